"""
World Module
============

Map nodes, node enemies and loot tables.
"""

from .repository import MapNodeRepository
from .service import EnemyTemplate, MapNodeInfo, NodeBundle, NodeLoot, WorldService

__all__ = [
    "WorldService",
    "MapNodeInfo",
    "NodeBundle",
    "NodeLoot",
    "EnemyTemplate",
    "MapNodeRepository",
]
