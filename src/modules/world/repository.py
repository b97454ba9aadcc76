"""
World map repository: nodes, node enemies and loot tables.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models import MapNode, NodeEnemy, NodeReward, Unit
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class MapNodeRepository(BaseRepository[MapNode]):
    async def get_nodes(self, session: AsyncSession, node_ids: Sequence[int]) -> List[MapNode]:
        if not node_ids:
            return []
        result = await session.scalars(
            select(MapNode).where(MapNode.node_id.in_(list(node_ids))).order_by(MapNode.node_id)
        )
        return list(result.all())

    async def enemies_for_node(self, session: AsyncSession, node_id: int) -> List[Unit]:
        result = await session.scalars(
            select(Unit)
            .join(NodeEnemy, NodeEnemy.unit_id == Unit.unit_id)
            .where(NodeEnemy.node_id == node_id)
            .order_by(Unit.unit_id)
        )
        return list(result.all())

    async def rewards_for_node(self, session: AsyncSession, node_id: int) -> List[NodeReward]:
        result = await session.scalars(
            select(NodeReward).where(NodeReward.node_id == node_id).order_by(NodeReward.item_id)
        )
        return list(result.all())

    async def add_enemies(self, session: AsyncSession, node_id: int, unit_ids: Sequence[int]) -> None:
        """Persist enemy slots; existing slots are left alone."""
        if not unit_ids:
            return
        await session.execute(
            pg_insert(NodeEnemy)
            .values([{"node_id": node_id, "unit_id": uid} for uid in unit_ids])
            .on_conflict_do_nothing(index_elements=[NodeEnemy.node_id, NodeEnemy.unit_id])
        )
        self.log.info("Fallback node enemies stored", extra={"node_id": node_id, "unit_ids": list(unit_ids)})
