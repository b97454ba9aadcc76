"""
Integration fixtures: a small seeded world on the testcontainer database.

Every test using `world` starts from the same unit masters and map node;
`clean_database` (pulled in through `services`) truncates afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest_asyncio

from src.core.database.service import DatabaseService
from src.database.models import MapNode, NodeEnemy, NodeReward, Unit
from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.items import ItemId


@dataclass(frozen=True)
class World:
    squire_id: int = 1
    slime_id: int = 2
    bandit_id: int = 3
    scout_id: int = 4
    alpha_wolf_id: int = 5
    woods_node_id: int = 1
    woods_coins: int = 100
    woods_xp: int = 130


def _unit(unit_id, name, kind, rarity, atk, dfn, hp, recruitable=False) -> Unit:
    return Unit(
        unit_id=unit_id,
        name=name,
        description=f"{name} (test)",
        base_attack=atk,
        base_defense=dfn,
        base_health=hp,
        is_recruitable=recruitable,
        kind=kind,
        rarity=rarity,
    )


@pytest_asyncio.fixture
async def world(services) -> World:
    """Unit masters, extra tavern recruits and the Whispering Woods node."""
    ids = World()
    units = [
        _unit(ids.squire_id, "Squire", UnitKind.HUMAN, UnitRarity.COMMON, 20, 10, 100, recruitable=True),
        _unit(ids.slime_id, "Slime", UnitKind.PET, UnitRarity.COMMON, 4, 2, 30, recruitable=True),
        _unit(ids.bandit_id, "Bandit", UnitKind.HUMAN, UnitRarity.COMMON, 10, 5, 50),
        _unit(ids.scout_id, "Scout", UnitKind.HUMAN, UnitRarity.EPIC, 18, 9, 90),
        _unit(ids.alpha_wolf_id, "Alpha Wolf", UnitKind.PET, UnitRarity.LEGENDARY, 30, 15, 160),
    ]
    units.extend(
        _unit(100 + i, f"Mercenary {i}", UnitKind.HUMAN, UnitRarity.COMMON, 8 + i, 4, 60, recruitable=True)
        for i in range(10)
    )

    async with DatabaseService.get_transaction() as session:
        session.add_all(units)
        session.add(
            MapNode(
                node_id=ids.woods_node_id,
                area_id=1,
                name="Whispering Woods",
                description="A quiet forest path.",
                story_progress_required=0,
                reward_coins=ids.woods_coins,
                reward_unit_xp=ids.woods_xp,
            )
        )
        await session.flush()
        session.add(NodeEnemy(node_id=ids.woods_node_id, unit_id=ids.bandit_id))
        session.add(NodeReward(node_id=ids.woods_node_id, item_id=int(ItemId.GEM), quantity=2, drop_chance=1.0))

    return ids
