"""Task and quest tables."""

from .quest import PlayerQuest, Quest, QuestReward
from .task import PlayerTask, Task

__all__ = ["Task", "PlayerTask", "Quest", "QuestReward", "PlayerQuest"]
