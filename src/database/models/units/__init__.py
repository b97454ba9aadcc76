"""
Unit tables: masters, owned units, bonds, human encounters, contracts and
pet research.
"""

from .bond import EquippableUnitBond
from .drafted_contract import DraftedHumanContract
from .human_encounter import HumanEncounter
from .player_unit import PlayerUnit
from .research import UnitResearchProgress
from .unit import Unit

__all__ = [
    "Unit",
    "PlayerUnit",
    "EquippableUnitBond",
    "HumanEncounter",
    "DraftedHumanContract",
    "UnitResearchProgress",
]
