"""
Economy Module
==============

Coins, inventory, trading and work.

Exports:
- EconomyService: balances, inventory, selling, gifting, work
- ProfileRepository / InventoryRepository: session-level helpers shared
  by every service that moves coins or items
"""

from .repository import InventoryRepository, ProfileRepository
from .service import EconomyService, InventoryEntry, SaleResult, WorkResult

__all__ = [
    "EconomyService",
    "InventoryEntry",
    "SaleResult",
    "WorkResult",
    "ProfileRepository",
    "InventoryRepository",
]
