"""
Unit repositories: master definitions and owned units.

Purpose
-------
Session-level queries shared by the unit, contract, tavern, saga and
battle services. Owned units are returned as `OwnedUnit` snapshots
(joined with their master row) so callers never hold live ORM state
across transactions.

LES 2025 Compliance
-------------------
- No transaction management; callers pass the session
- Row locks (`FOR UPDATE`) on request
- Read models are immutable dataclasses
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models import EquippableUnitBond, PlayerUnit, Unit, UnitResearchProgress
from src.database.models.enums import UnitKind, UnitRarity
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class OwnedUnit:
    """A player unit joined with its master's name and kind."""

    player_unit_id: int
    unit_id: int
    name: str
    nickname: Optional[str]
    kind: UnitKind
    rarity: UnitRarity
    current_level: int
    current_xp: int
    current_attack: int
    current_defense: int
    current_health: int
    is_in_party: bool
    is_training: bool
    training_stat: Optional[str]
    training_ends_at: Optional[datetime]

    @property
    def display_name(self) -> str:
        return self.nickname or self.name

    @property
    def is_human(self) -> bool:
        return self.kind == UnitKind.HUMAN


def _owned_select():
    return select(PlayerUnit, Unit.name, Unit.kind).join(Unit, Unit.unit_id == PlayerUnit.unit_id)


def _to_owned(row) -> OwnedUnit:
    pu: PlayerUnit = row[0]
    return OwnedUnit(
        player_unit_id=pu.player_unit_id,
        unit_id=pu.unit_id,
        name=row[1],
        nickname=pu.nickname,
        kind=row[2],
        rarity=pu.rarity,
        current_level=pu.current_level,
        current_xp=pu.current_xp,
        current_attack=pu.current_attack,
        current_defense=pu.current_defense,
        current_health=pu.current_health,
        is_in_party=pu.is_in_party,
        is_training=pu.is_training,
        training_stat=pu.training_stat,
        training_ends_at=pu.training_ends_at,
    )


class UnitRepository(BaseRepository[Unit]):
    """Master unit definitions."""

    async def list_recruitable(self, session: AsyncSession) -> List[Unit]:
        result = await session.execute(
            select(Unit).where(Unit.is_recruitable.is_(True)).order_by(Unit.unit_id)
        )
        return list(result.scalars().all())

    async def list_humans(self, session: AsyncSession) -> List[Unit]:
        result = await session.execute(
            select(Unit).where(Unit.kind == UnitKind.HUMAN).order_by(Unit.unit_id)
        )
        return list(result.scalars().all())

    async def list_non_human_at_least(self, session: AsyncSession, rarities: Sequence[UnitRarity]) -> List[Unit]:
        result = await session.execute(
            select(Unit).where(Unit.kind != UnitKind.HUMAN, Unit.rarity.in_(list(rarities)))
        )
        return list(result.scalars().all())


class PlayerUnitRepository(BaseRepository[PlayerUnit]):
    """Units owned by players."""

    async def list_owned(self, session: AsyncSession, user_id: int) -> List[OwnedUnit]:
        """Every owned unit, party members first, then by level."""
        result = await session.execute(
            _owned_select()
            .where(PlayerUnit.user_id == user_id)
            .order_by(
                PlayerUnit.is_in_party.desc(),
                PlayerUnit.current_level.desc(),
                PlayerUnit.player_unit_id,
            )
        )
        return [_to_owned(row) for row in result.all()]

    async def list_party(self, session: AsyncSession, user_id: int) -> List[OwnedUnit]:
        result = await session.execute(
            _owned_select()
            .where(PlayerUnit.user_id == user_id, PlayerUnit.is_in_party.is_(True))
            .order_by(PlayerUnit.player_unit_id)
        )
        return [_to_owned(row) for row in result.all()]

    async def get_owned(self, session: AsyncSession, user_id: int, player_unit_id: int) -> Optional[OwnedUnit]:
        result = await session.execute(
            _owned_select().where(
                PlayerUnit.user_id == user_id,
                PlayerUnit.player_unit_id == player_unit_id,
            )
        )
        row = result.first()
        return _to_owned(row) if row is not None else None

    async def lock_owned(self, session: AsyncSession, user_id: int, player_unit_id: int) -> Optional[PlayerUnit]:
        """The user's unit row locked `FOR UPDATE`, or None when not owned."""
        return await self.find_one_where(
            session,
            PlayerUnit.user_id == user_id,
            PlayerUnit.player_unit_id == player_unit_id,
            for_update=True,
        )

    async def count_army(self, session: AsyncSession, user_id: int) -> int:
        return await self.count(session, PlayerUnit.user_id == user_id)

    async def count_party(self, session: AsyncSession, user_id: int) -> int:
        return await self.count(session, PlayerUnit.user_id == user_id, PlayerUnit.is_in_party.is_(True))

    async def owns_unit(self, session: AsyncSession, user_id: int, unit_id: int) -> bool:
        result = await session.execute(
            select(PlayerUnit.player_unit_id)
            .where(PlayerUnit.user_id == user_id, PlayerUnit.unit_id == unit_id)
            .limit(1)
        )
        return result.first() is not None

    async def is_bond_equipped(self, session: AsyncSession, player_unit_id: int) -> bool:
        """True while the unit is the equipped side of an active bond."""
        result = await session.execute(
            select(EquippableUnitBond.bond_id)
            .where(
                EquippableUnitBond.equipped_player_unit_id == player_unit_id,
                EquippableUnitBond.is_equipped.is_(True),
            )
            .limit(1)
        )
        return result.first() is not None

    async def create_from_master(
        self,
        session: AsyncSession,
        user_id: int,
        unit: Unit,
        *,
        in_party: bool,
    ) -> PlayerUnit:
        """Insert a level 1 unit with the master's base stats and rarity snapshot."""
        player_unit = PlayerUnit(
            user_id=user_id,
            unit_id=unit.unit_id,
            nickname=unit.name,
            current_level=1,
            current_xp=0,
            current_attack=unit.base_attack,
            current_defense=unit.base_defense,
            current_health=unit.base_health,
            is_in_party=in_party,
            is_training=False,
            rarity=unit.rarity,
        )
        session.add(player_unit)
        await session.flush()
        self.log.info(
            "Player unit created",
            extra={
                "user_id": user_id,
                "unit_id": unit.unit_id,
                "player_unit_id": player_unit.player_unit_id,
                "in_party": in_party,
            },
        )
        return player_unit


class ResearchProgressRepository(BaseRepository[UnitResearchProgress]):
    """Per-user taming research counters."""

    async def increment(self, session: AsyncSession, user_id: int, unit_id: int, amount: int = 1) -> int:
        """Add `amount` research progress; returns the new count."""
        stmt = pg_insert(UnitResearchProgress).values(user_id=user_id, unit_id=unit_id, tamed_count=amount)
        stmt = stmt.on_conflict_do_update(
            index_elements=[UnitResearchProgress.user_id, UnitResearchProgress.unit_id],
            set_={
                "tamed_count": UnitResearchProgress.tamed_count + stmt.excluded.tamed_count,
                "last_updated": func.now(),
            },
        ).returning(UnitResearchProgress.tamed_count)
        return int((await session.execute(stmt)).scalar_one())

    async def get_count(self, session: AsyncSession, user_id: int, unit_id: int) -> int:
        row = await self.get(session, (user_id, unit_id))
        return row.tamed_count if row is not None else 0

    async def list_counts(self, session: AsyncSession, user_id: int) -> List[Tuple[int, int]]:
        result = await session.execute(
            select(UnitResearchProgress.unit_id, UnitResearchProgress.tamed_count)
            .where(UnitResearchProgress.user_id == user_id)
            .order_by(UnitResearchProgress.unit_id)
        )
        return [(int(unit_id), int(count)) for unit_id, count in result.all()]
