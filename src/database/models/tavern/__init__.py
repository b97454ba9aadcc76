"""Tavern tables."""

from .fame import TavernFame
from .rotation import TavernUserRotation

__all__ = ["TavernFame", "TavernUserRotation"]
