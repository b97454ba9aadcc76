"""
Units Module
============

Owned units and the services around them.

Exports:
- UnitService: hire, tame, party, training, dismissal, battle rewards
- BondService: equippable bonds and their stat bonuses
- ResearchService: pet research progress and targets
"""

from .bond_service import BondContribution, BondRecord, BondService
from .repository import OwnedUnit, PlayerUnitRepository, ResearchProgressRepository, UnitRepository
from .research_service import ResearchEntry, ResearchService
from .service import RecruitOutcome, UnitService

__all__ = [
    "UnitService",
    "BondService",
    "ResearchService",
    "OwnedUnit",
    "RecruitOutcome",
    "BondRecord",
    "BondContribution",
    "ResearchEntry",
    "UnitRepository",
    "PlayerUnitRepository",
    "ResearchProgressRepository",
]
