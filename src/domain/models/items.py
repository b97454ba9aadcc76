"""
Item catalog for the Gamemaster Saga economy.

Purpose
-------
The closed set of items (ids 1-21) and their static properties: display
name, description, emoji, category, rarity, trade flags and prices. Also
the text aliases used to parse item names and the pet -> research data
mapping used by taming and battle drops.

Responsibilities
----------------
- `ItemId` enum whose values are the `items.item_id` primary keys
- `ItemProperties` value objects in `ITEM_CATALOG`
- `parse_item`, `item_from_id`, `research_item_for_unit`
- Tavern shop pricing table

LES 2025 Compliance
-------------------
- Pure data and pure functions
- Database `items` rows are seeded from this catalog
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


class ItemId(IntEnum):
    FISH = 1
    ORE = 2
    GEM = 3
    GOLDEN_FISH = 4
    LARGE_GEODE = 5
    ANCIENT_RELIC = 6
    XP_BOOSTER = 7
    SLIME_GEL = 8
    SLIME_RESEARCH_DATA = 9
    TAMING_LURE = 10
    HEALTH_POTION = 11
    WOLF_RESEARCH_DATA = 12
    BOAR_RESEARCH_DATA = 13
    FOREST_CONTRACT_PARCHMENT = 14
    FRONTIER_CONTRACT_PARCHMENT = 15
    SCHOLAR_RESEARCH_NOTES = 16
    GREATER_HEALTH_POTION = 17
    STAMINA_DRAFT = 18
    FOCUS_TONIC = 19
    BEAR_RESEARCH_DATA = 20
    SPIDER_RESEARCH_DATA = 21


class ItemCategory(str, Enum):
    RESOURCE = "Resource"
    SPECIAL = "Special"
    CONSUMABLE = "Consumable"


class ItemRarity(str, Enum):
    """Item rarity; a separate ladder from unit rarity."""

    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    LEGENDARY = "Legendary"


@dataclass(frozen=True)
class ItemProperties:
    """
    Static properties of one item.

    Attributes
    ----------
    buy_price / sell_price : Optional[int]
        None means the item cannot be bought / has no sell value.
    aliases : Tuple[str, ...]
        Lowercase names accepted by `parse_item`.
    """

    display_name: str
    description: str
    emoji: str
    category: ItemCategory
    rarity: ItemRarity
    is_sellable: bool
    is_tradeable: bool
    buy_price: Optional[int]
    sell_price: Optional[int]
    aliases: Tuple[str, ...]

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.display_name}"


_C, _U, _R, _L = ItemRarity.COMMON, ItemRarity.UNCOMMON, ItemRarity.RARE, ItemRarity.LEGENDARY
_RES, _SPE, _CON = ItemCategory.RESOURCE, ItemCategory.SPECIAL, ItemCategory.CONSUMABLE

ITEM_CATALOG: Mapping[ItemId, ItemProperties] = MappingProxyType(
    {
        ItemId.FISH: ItemProperties(
            "Fish", "A common fish. Good for selling in bulk.", "🐟",
            _RES, _C, True, True, 20, 10, ("fish",),
        ),
        ItemId.ORE: ItemProperties(
            "Ore", "A chunk of raw, unprocessed ore.", "⛏️",
            _RES, _C, True, True, 100, 50, ("ore",),
        ),
        ItemId.GEM: ItemProperties(
            "Gem", "A polished, valuable gemstone.", "💎",
            _RES, _U, True, True, 500, 250, ("gem",),
        ),
        ItemId.GOLDEN_FISH: ItemProperties(
            "Golden Fish", "An incredibly rare and valuable fish. A true prize!", "🐠",
            _SPE, _R, True, True, None, 1000, ("goldenfish", "golden"),
        ),
        ItemId.LARGE_GEODE: ItemProperties(
            "Large Geode", "A heavy, unassuming rock. Perhaps something valuable is inside?", "🪨",
            _SPE, _R, False, True, None, None, ("largegeode", "geode"),
        ),
        ItemId.ANCIENT_RELIC: ItemProperties(
            "Ancient Relic", "A mysterious artifact from a forgotten era. Its value is immense.", "🏺",
            _SPE, _L, True, True, None, 10000, ("ancientrelic", "relic"),
        ),
        ItemId.XP_BOOSTER: ItemProperties(
            "XP Booster", "Doubles XP gain from working for one hour.", "🚀",
            _CON, _R, False, True, 2000, None, ("xpbooster", "booster"),
        ),
        ItemId.SLIME_GEL: ItemProperties(
            "Slime Gel", "A sticky, gelatinous substance. Surprisingly useful in crafting.", "🟢",
            _RES, _C, True, True, None, 5, ("slimegel", "gel"),
        ),
        ItemId.SLIME_RESEARCH_DATA: ItemProperties(
            "Slime Research Data", "Combat notes that could be used to tame a slime.", "🔬",
            _SPE, _U, False, False, None, None, ("slimedata", "data"),
        ),
        ItemId.TAMING_LURE: ItemProperties(
            "Taming Lure", "A lure used to attract and pacify wild or proud units for bonding.", "🐾",
            _CON, _U, True, True, 250, 125, ("taminglure", "lure", "contract"),
        ),
        ItemId.HEALTH_POTION: ItemProperties(
            "Health Potion", "A basic potion that restores a small amount of health.", "🧪",
            _CON, _U, True, True, None, 50, ("healthpotion", "potion"),
        ),
        ItemId.WOLF_RESEARCH_DATA: ItemProperties(
            "Wolf Research Data", "Observations on wolf behavior, useful for taming.", "📓",
            _SPE, _U, False, False, None, None, ("wolfresearchdata", "wolfdata"),
        ),
        ItemId.BOAR_RESEARCH_DATA: ItemProperties(
            "Boar Research Data", "Notes on boar aggression and patterns.", "📕",
            _SPE, _U, False, False, None, None, ("boarresearchdata", "boardata"),
        ),
        ItemId.FOREST_CONTRACT_PARCHMENT: ItemProperties(
            "Forest Contract Parchment", "A blank contract ready to draft a local human recruit.", "📜",
            _SPE, _R, True, True, None, 300, ("forestcontract", "forestparchment"),
        ),
        ItemId.FRONTIER_CONTRACT_PARCHMENT: ItemProperties(
            "Frontier Contract Parchment", "Higher grade contract for seasoned humans.", "📜",
            _SPE, _R, True, True, None, 500, ("frontiercontract", "frontierparchment"),
        ),
        ItemId.SCHOLAR_RESEARCH_NOTES: ItemProperties(
            "Scholar Research Notes", "Dense annotations that accelerate future discoveries.", "📘",
            _SPE, _R, False, False, None, None, ("scholarnotes", "researchnotes"),
        ),
        ItemId.GREATER_HEALTH_POTION: ItemProperties(
            "Greater Health Potion", "Restores a large amount of health.", "🧪",
            _CON, _R, True, True, None, 150, ("greaterpotion", "greaterhealthpotion"),
        ),
        ItemId.STAMINA_DRAFT: ItemProperties(
            "Stamina Draft", "Restores action stamina in the saga.", "🥤",
            _CON, _R, True, True, None, 120, ("staminadraft", "draft"),
        ),
        ItemId.FOCUS_TONIC: ItemProperties(
            "Focus Tonic", "Slightly increases research drop rate for a short time.", "🧴",
            _CON, _R, True, True, None, 140, ("focustonic", "tonic"),
        ),
        ItemId.BEAR_RESEARCH_DATA: ItemProperties(
            "Bear Research Data", "Heavy scrawlings on bear movement and power.", "📙",
            _SPE, _R, False, False, None, None, ("beardata", "bearresearchdata"),
        ),
        ItemId.SPIDER_RESEARCH_DATA: ItemProperties(
            "Spider Research Data", "Sketched web patterns and venom potency notes.", "🕷️",
            _SPE, _R, False, False, None, None, ("spiderdata", "spiderresearchdata"),
        ),
    }
)

_ALIASES: Dict[str, ItemId] = {
    alias: item for item, props in ITEM_CATALOG.items() for alias in props.aliases
}

# Shared research data: Alpha Wolf uses the Wolf notes.
_RESEARCH_ITEMS: Mapping[str, ItemId] = MappingProxyType(
    {
        "Slime": ItemId.SLIME_RESEARCH_DATA,
        "Wolf": ItemId.WOLF_RESEARCH_DATA,
        "Alpha Wolf": ItemId.WOLF_RESEARCH_DATA,
        "Boar": ItemId.BOAR_RESEARCH_DATA,
        "Bear": ItemId.BEAR_RESEARCH_DATA,
        "Giant Spider": ItemId.SPIDER_RESEARCH_DATA,
    }
)

PURCHASABLE: Tuple[ItemId, ...] = (
    ItemId.FISH,
    ItemId.ORE,
    ItemId.GEM,
    ItemId.XP_BOOSTER,
    ItemId.TAMING_LURE,
)

# Candidate pool for the tavern's daily goods, in catalog display order.
TAVERN_SHOP_POOL: Tuple[ItemId, ...] = (
    ItemId.GREATER_HEALTH_POTION,
    ItemId.XP_BOOSTER,
    ItemId.FOREST_CONTRACT_PARCHMENT,
    ItemId.FRONTIER_CONTRACT_PARCHMENT,
    ItemId.HEALTH_POTION,
    ItemId.STAMINA_DRAFT,
    ItemId.FOCUS_TONIC,
    ItemId.TAMING_LURE,
)

# Always on the tavern's goods counter.
TAVERN_GOODS: Tuple[ItemId, ...] = (
    ItemId.HEALTH_POTION,
    ItemId.FOCUS_TONIC,
    ItemId.STAMINA_DRAFT,
    ItemId.TAMING_LURE,
)

TAVERN_PRICES: Mapping[ItemId, int] = MappingProxyType(
    {
        ItemId.HEALTH_POTION: 50,
        ItemId.FOCUS_TONIC: 125,
        ItemId.STAMINA_DRAFT: 125,
        ItemId.TAMING_LURE: 200,
        ItemId.GREATER_HEALTH_POTION: 150,
        ItemId.XP_BOOSTER: 2000,
        ItemId.FOREST_CONTRACT_PARCHMENT: 300,
        ItemId.FRONTIER_CONTRACT_PARCHMENT: 500,
    }
)


def properties(item: ItemId) -> ItemProperties:
    return ITEM_CATALOG[item]


def item_from_id(item_id: int) -> Optional[ItemId]:
    try:
        return ItemId(item_id)
    except ValueError:
        return None


def parse_item(text: str) -> Optional[ItemId]:
    """Resolve user text (case and spaces ignored) to an item."""
    key = text.strip().lower().replace(" ", "")
    return _ALIASES.get(key)


def research_item_for_unit(unit_name: str) -> Optional[ItemId]:
    """Research data item for a pet, or None when it cannot be researched."""
    return _RESEARCH_ITEMS.get(unit_name)


def tavern_price(item: ItemId) -> Optional[int]:
    return TAVERN_PRICES.get(item)
