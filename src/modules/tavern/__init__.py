"""
Tavern Module
=============

Daily recruit rotation, rerolls, fame, goods and consumables.
"""

from .repository import TavernFameRepository, TavernRotationRepository
from .service import (
    PurchaseResult,
    RerollResult,
    ShopOffer,
    TavernMeta,
    TavernRecruit,
    TavernService,
    TavernState,
)

__all__ = [
    "TavernService",
    "TavernState",
    "TavernMeta",
    "TavernRecruit",
    "RerollResult",
    "ShopOffer",
    "PurchaseResult",
    "TavernFameRepository",
    "TavernRotationRepository",
]
