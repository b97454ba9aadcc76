"""
World Service
=============

Purpose
-------
Map nodes a player can reach and everything needed to fight on one:
the node itself, its enemies and its loot table, loaded together.

Domain
------
- Story 0 unlocks node 1; any later progress keeps node 2 repeatable
- A node without declared enemies gets up to three non-human units of
  at least the node's rarity tier, chosen at random once and stored

LES 2025 Compliance
-------------------
✓ Single bundle read per battle
✓ Fallback enemies persisted in the same transaction as the read
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import MapNode, SagaProfile, Unit
from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.items import ItemId, item_from_id
from src.domain.models.rarity import rarities_at_least, rarity_tier_for_story
from src.modules.saga.repository import SagaProfileRepository
from src.modules.saga.service import available_nodes
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError
from src.modules.units.repository import UnitRepository
from src.modules.world.repository import MapNodeRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class MapNodeInfo:
    node_id: int
    area_id: int
    name: str
    description: Optional[str]
    story_progress_required: int
    reward_coins: int
    reward_unit_xp: int

    @classmethod
    def from_row(cls, row: MapNode) -> "MapNodeInfo":
        return cls(
            node_id=row.node_id,
            area_id=row.area_id,
            name=row.name,
            description=row.description,
            story_progress_required=row.story_progress_required,
            reward_coins=row.reward_coins,
            reward_unit_xp=row.reward_unit_xp,
        )


@dataclass(frozen=True)
class NodeLoot:
    item: ItemId
    quantity: int
    drop_chance: float


@dataclass(frozen=True)
class EnemyTemplate:
    unit_id: int
    name: str
    kind: UnitKind
    rarity: UnitRarity
    attack: int
    defense: int
    health: int
    is_recruitable: bool

    @classmethod
    def from_unit(cls, unit: Unit) -> "EnemyTemplate":
        return cls(
            unit_id=unit.unit_id,
            name=unit.name,
            kind=unit.kind,
            rarity=unit.rarity,
            attack=unit.base_attack,
            defense=unit.base_defense,
            health=unit.base_health,
            is_recruitable=unit.is_recruitable,
        )


@dataclass(frozen=True)
class NodeBundle:
    node: MapNodeInfo
    enemies: List[EnemyTemplate]
    rewards: List[NodeLoot]


class WorldService(BaseService):
    """Map node reads and battle bundles."""

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._rng = rng or random.Random()
        self._nodes = MapNodeRepository(MapNode, get_logger(f"{__name__}.MapNodeRepository"))
        self._units = UnitRepository(Unit, get_logger(f"{__name__}.UnitRepository"))
        self._saga = SagaProfileRepository(SagaProfile, get_logger(f"{__name__}.SagaProfileRepository"))

    async def get_available_nodes(self, user_id: int) -> List[MapNodeInfo]:
        async with self.persistence_guard("get_available_nodes", user_id=user_id):
            async with DatabaseService.get_session() as session:
                saga_row = await self._saga.get(session, user_id)
                story = saga_row.story_progress if saga_row is not None else 0
                nodes = await self._nodes.get_nodes(session, available_nodes(story))
        return [MapNodeInfo.from_row(n) for n in nodes]

    async def get_node(self, node_id: int) -> MapNodeInfo:
        async with self.persistence_guard("get_node", node_id=node_id):
            async with DatabaseService.get_session() as session:
                node = await self._nodes.get(session, node_id)
        if node is None:
            raise NotFoundError("Node not found", resource_type="MapNode", identifier=node_id)
        return MapNodeInfo.from_row(node)

    async def load_node_bundle(self, node_id: int) -> NodeBundle:
        """
        Node, enemies and loot table in one transaction.

        Raises:
            NotFoundError: Unknown node
        """
        async with self.persistence_guard("load_node_bundle", node_id=node_id):
            async with DatabaseService.get_transaction() as session:
                node = await self._nodes.get(session, node_id)
                if node is None:
                    raise NotFoundError("Node not found", resource_type="MapNode", identifier=node_id)

                enemies = await self._nodes.enemies_for_node(session, node_id)
                if not enemies:
                    enemies = await self._generate_fallback_enemies(session, node)

                rewards = await self._nodes.rewards_for_node(session, node_id)
                bundle = NodeBundle(
                    node=MapNodeInfo.from_row(node),
                    enemies=[EnemyTemplate.from_unit(u) for u in enemies],
                    rewards=self._loot_table(node_id, rewards),
                )
        return bundle

    async def load_victory_bundle(self, node_id: int, enemy_unit_ids: Sequence[int]) -> NodeBundle:
        """
        Node, loot table and the masters of the enemies actually fought.

        Enemies follow `enemy_unit_ids` order, duplicates included; ids
        without a master are dropped.

        Raises:
            NotFoundError: Unknown node
        """
        async with self.persistence_guard("load_victory_bundle", node_id=node_id):
            async with DatabaseService.get_session() as session:
                node = await self._nodes.get(session, node_id)
                if node is None:
                    raise NotFoundError("Node not found", resource_type="MapNode", identifier=node_id)
                rewards = await self._nodes.rewards_for_node(session, node_id)
                masters = await self._units.get_many(session, list(set(enemy_unit_ids)))
                bundle = NodeBundle(
                    node=MapNodeInfo.from_row(node),
                    enemies=self._in_order(masters, enemy_unit_ids),
                    rewards=self._loot_table(node_id, rewards),
                )
        return bundle

    async def load_enemy_templates(self, unit_ids: Sequence[int]) -> List[EnemyTemplate]:
        """Enemy templates for explicit unit ids (quest battles)."""
        async with self.persistence_guard("load_enemy_templates", unit_ids=list(unit_ids)):
            async with DatabaseService.get_session() as session:
                masters = await self._units.get_many(session, list(set(unit_ids)))
        return self._in_order(masters, unit_ids)

    @staticmethod
    def _in_order(masters: List[Unit], unit_ids: Sequence[int]) -> List[EnemyTemplate]:
        by_id = {u.unit_id: EnemyTemplate.from_unit(u) for u in masters}
        return [by_id[uid] for uid in unit_ids if uid in by_id]

    async def _generate_fallback_enemies(self, session, node: MapNode) -> List[Unit]:
        tier = rarity_tier_for_story(node.story_progress_required)
        candidates = await self._units.list_non_human_at_least(session, rarities_at_least(tier))
        # sample() returns a random order; no await between draw and use
        picked = self._rng.sample(candidates, min(constants.FALLBACK_ENEMY_COUNT, len(candidates)))
        await self._nodes.add_enemies(session, node.node_id, [u.unit_id for u in picked])
        return picked

    def _loot_table(self, node_id: int, rewards) -> List[NodeLoot]:
        table = []
        for reward in rewards:
            item = item_from_id(reward.item_id)
            if item is None:
                self.log.warning(
                    "Node reward references unknown item",
                    extra={"node_id": node_id, "item_id": reward.item_id},
                )
                continue
            table.append(NodeLoot(item=item, quantity=reward.quantity, drop_chance=reward.drop_chance))
        return table
