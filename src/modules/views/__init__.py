"""
Views Module
============

Domain: Render-ready view models and the component id adapter

Components:
- ViewComposer: builds view models from services
- ComponentRouter: component id -> service call -> view model + notice
"""

from .composer import ViewComposer
from .models import (
    BattleView,
    CombatantRow,
    ContractRow,
    ContractsView,
    Notice,
    PartyView,
    QuestBoardView,
    RecruitRow,
    SagaOverviewView,
    TasksView,
    TavernView,
    UnitRow,
    battle_actions,
)
from .router import (
    UNKNOWN_ACTION_MESSAGE,
    ComponentRouter,
    RouteResult,
    notice_for_error,
    parse_numeric_argument,
)

__all__ = [
    "BattleView",
    "CombatantRow",
    "ComponentRouter",
    "ContractRow",
    "ContractsView",
    "Notice",
    "PartyView",
    "QuestBoardView",
    "RecruitRow",
    "RouteResult",
    "SagaOverviewView",
    "TasksView",
    "TavernView",
    "UNKNOWN_ACTION_MESSAGE",
    "UnitRow",
    "ViewComposer",
    "battle_actions",
    "notice_for_error",
    "parse_numeric_argument",
]
