"""
Leaderboard Module
==================

Domain: Gamemaster, wealth and work streak rankings

Services:
- LeaderboardService: ranked read queries
"""

from .service import LeaderboardEntry, LeaderboardService, gamemaster_score

__all__ = [
    "LeaderboardEntry",
    "LeaderboardService",
    "gamemaster_score",
]
