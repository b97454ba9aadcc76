"""Story map tables."""

from .map_node import MapNode, NodeEnemy, NodeReward

__all__ = ["MapNode", "NodeEnemy", "NodeReward"]
