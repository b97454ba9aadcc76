"""
Core tables: economic profile, saga profile, runtime config and inventory.
"""

from .bot_config import BotConfig
from .item import Inventory, Item
from .profile import Profile
from .saga_profile import SagaProfile

__all__ = [
    "Profile",
    "SagaProfile",
    "BotConfig",
    "Item",
    "Inventory",
]
