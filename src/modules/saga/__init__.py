"""
Saga Module
===========

Action Points, Training Points, story progress and map availability.
"""

from .repository import SagaProfileRepository
from .service import (
    SagaService,
    SagaSnapshot,
    available_nodes,
    calculate_tp_recharge,
    needs_ap_reset,
)

__all__ = [
    "SagaService",
    "SagaProfileRepository",
    "SagaSnapshot",
    "available_nodes",
    "calculate_tp_recharge",
    "needs_ap_reset",
]
