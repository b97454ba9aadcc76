"""
Tasks and quests.
"""

from src.modules.progression.listeners import register_progression_listeners
from src.modules.progression.quest_service import (
    ACCEPT_FAILED_MESSAGE,
    COMPLETE_FAILED_MESSAGE,
    AcceptedQuest,
    QuestEntry,
    QuestService,
    parse_enemy_ids,
)
from src.modules.progression.repository import (
    PlayerQuestRepository,
    PlayerTaskRepository,
    QuestRewardRepository,
)
from src.modules.progression.task_service import (
    CLAIM_UNAVAILABLE_MESSAGE,
    PlayerTaskView,
    RewardBundle,
    TaskService,
)

__all__ = [
    "TaskService",
    "QuestService",
    "PlayerTaskView",
    "QuestEntry",
    "AcceptedQuest",
    "RewardBundle",
    "parse_enemy_ids",
    "register_progression_listeners",
    "PlayerTaskRepository",
    "PlayerQuestRepository",
    "QuestRewardRepository",
    "CLAIM_UNAVAILABLE_MESSAGE",
    "ACCEPT_FAILED_MESSAGE",
    "COMPLETE_FAILED_MESSAGE",
]
