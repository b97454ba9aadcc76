"""
Contracts Module
================

Human recruitment by defeat: encounters, drafted contracts, acceptance.
"""

from .repository import DraftedContractRepository, HumanEncounterRepository
from .service import (
    ContractStatus,
    DraftedContract,
    HumanContractService,
    defeats_required_for,
    parchment_for,
)

__all__ = [
    "HumanContractService",
    "ContractStatus",
    "DraftedContract",
    "defeats_required_for",
    "parchment_for",
    "HumanEncounterRepository",
    "DraftedContractRepository",
]
