"""
Bond Service
============

Purpose
-------
Equippable bonds: a pet equipped onto a host unit lends part of its stats
to the host in battle.

Domain
------
- At most one active bond per host; a unit is the equipped side of at
  most one bond row ever
- Equipped rarity never exceeds host rarity; only pets can be equipped
- An equipped unit leaves the party
- Unequipping keeps the row (`is_equipped = false`); re-bonding the same
  pair reactivates it

LES 2025 Compliance
-------------------
✓ Transaction-safe - both unit rows locked FOR UPDATE
✓ Cached reads - equipment bonuses 5 s, bond map 10 s
✓ Domain exceptions - ordered validation with verbatim messages
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from src.core.cache import bond_map_cache, equipment_bonus_cache, invalidate_user_caches
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models import EquippableUnitBond, PlayerUnit, Unit
from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.rarity import rarity_rank
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ConflictError, NotFoundError, ValidationError
from src.modules.units.bonus_logic import BonusTriple, bond_bonus
from src.modules.units.repository import PlayerUnitRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class BondRecord:
    bond_id: int
    host_player_unit_id: int
    equipped_player_unit_id: int
    created_at: datetime
    is_equipped: bool


@dataclass(frozen=True)
class BondContribution:
    bond_id: int
    host_player_unit_id: int
    equipped_player_unit_id: int
    equipped_name: str
    rarity: UnitRarity
    bonus_attack: int
    bonus_defense: int
    bonus_health: int


class BondService(BaseService):
    """
    Equippable bonds between owned units.

    Public Methods
    --------------
    - bond_units() / unequip_equippable()
    - get_equipment_bonuses() -> host -> (atk, def, hp), cached
    - get_bond_map() -> host -> equipped, cached
    - list_active_bonds_detailed() / list_bond_contributions()
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._player_units = PlayerUnitRepository(PlayerUnit, get_logger(f"{__name__}.PlayerUnitRepository"))

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    async def bond_units(self, user_id: int, host_player_unit_id: int, equipped_player_unit_id: int) -> None:
        """
        Equip one owned pet onto another owned unit.

        Raises:
            ValidationError: Self-bond, rarity order, non-pet equip
            NotFoundError: Host or equipped unit not owned
            ConflictError: Host already equipped, unit bonded elsewhere
        """
        if host_player_unit_id == equipped_player_unit_id:
            raise ValidationError("Cannot bond a unit to itself.", field="equipped_player_unit_id")

        async with self.persistence_guard(
            "bond_units", user_id=user_id, host=host_player_unit_id, equipped=equipped_player_unit_id
        ):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                host = await self._player_units.lock_owned(session, user_id, host_player_unit_id)
                if host is None:
                    raise NotFoundError("Host unit not found.", resource_type="PlayerUnit", identifier=host_player_unit_id)
                equipped = await self._player_units.lock_owned(session, user_id, equipped_player_unit_id)
                if equipped is None:
                    raise NotFoundError(
                        "Equippable unit not found.", resource_type="PlayerUnit", identifier=equipped_player_unit_id
                    )

                if rarity_rank(equipped.rarity) > rarity_rank(host.rarity):
                    raise ValidationError("Equipped unit's rarity exceeds host unit's rarity.", field="rarity")
                equipped_kind = await session.scalar(select(Unit.kind).where(Unit.unit_id == equipped.unit_id))
                if equipped_kind != UnitKind.PET:
                    raise ValidationError("Only pets can be equipped.", field="kind")

                host_active = await session.scalar(
                    select(EquippableUnitBond.bond_id).where(
                        EquippableUnitBond.host_player_unit_id == host_player_unit_id,
                        EquippableUnitBond.is_equipped.is_(True),
                    )
                )
                if host_active is not None:
                    raise ConflictError("Host already has an equipped unit.", details={"bond_id": host_active})

                existing = (
                    await session.execute(
                        select(EquippableUnitBond)
                        .where(EquippableUnitBond.equipped_player_unit_id == equipped_player_unit_id)
                        .with_for_update()
                    )
                ).scalar_one_or_none()
                if existing is not None:
                    if existing.host_player_unit_id != host_player_unit_id or existing.is_equipped:
                        raise ConflictError(
                            "That unit is already bonded elsewhere.", details={"bond_id": existing.bond_id}
                        )
                    existing.is_equipped = True
                else:
                    session.add(
                        EquippableUnitBond(
                            host_player_unit_id=host_player_unit_id,
                            equipped_player_unit_id=equipped_player_unit_id,
                            is_equipped=True,
                        )
                    )
                    try:
                        await session.flush()
                    except IntegrityError as exc:
                        self.log_error("bond_units", exc, user_id=user_id)
                        raise ConflictError("Failed to create bond.", details={"error": str(exc)}) from exc

                equipped.is_in_party = False

        invalidate_user_caches(user_id)
        self.log_operation(
            "bond_units", user_id=user_id, host=host_player_unit_id, equipped=equipped_player_unit_id
        )

    async def unequip_equippable(self, user_id: int, host_player_unit_id: int) -> bool:
        """Deactivate the host's bond; False when not owned or nothing equipped."""
        async with self.persistence_guard("unequip_equippable", user_id=user_id, host=host_player_unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                owned = await self._player_units.get_owned(session, user_id, host_player_unit_id)
                if owned is None:
                    return False
                result = await session.execute(
                    update(EquippableUnitBond)
                    .where(
                        EquippableUnitBond.host_player_unit_id == host_player_unit_id,
                        EquippableUnitBond.is_equipped.is_(True),
                    )
                    .values(is_equipped=False)
                )
                changed = result.rowcount > 0

        if changed:
            invalidate_user_caches(user_id)
            self.log_operation("unequip_equippable", user_id=user_id, host=host_player_unit_id)
        return changed

    # ========================================================================
    # READS
    # ========================================================================

    async def get_equipment_bonuses(self, user_id: int) -> Dict[int, BonusTriple]:
        """Bonus stats per host player_unit_id from its active bond."""
        cached = equipment_bonus_cache.get(user_id)
        if cached is not None:
            return cached

        bonuses = {
            c.host_player_unit_id: (c.bonus_attack, c.bonus_defense, c.bonus_health)
            for c in await self.list_bond_contributions(user_id)
        }
        equipment_bonus_cache.insert(user_id, bonuses)
        return bonuses

    async def get_bond_map(self, user_id: int) -> Dict[int, int]:
        """host player_unit_id -> equipped player_unit_id for active bonds."""
        cached = bond_map_cache.get(user_id)
        if cached is not None:
            return cached

        bonds = await self.list_active_bonds_detailed(user_id)
        mapping = {b.host_player_unit_id: b.equipped_player_unit_id for b in bonds if b.is_equipped}
        bond_map_cache.insert(user_id, mapping)
        return mapping

    async def list_active_bonds_detailed(self, user_id: int) -> List[BondRecord]:
        """Every bond row hosted by the user's units, equipped or not."""
        async with self.persistence_guard("list_active_bonds_detailed", user_id=user_id):
            async with DatabaseService.get_session() as session:
                owned_hosts = select(PlayerUnit.player_unit_id).where(PlayerUnit.user_id == user_id)
                result = await session.execute(
                    select(EquippableUnitBond)
                    .where(EquippableUnitBond.host_player_unit_id.in_(owned_hosts))
                    .order_by(EquippableUnitBond.bond_id)
                )
                rows = list(result.scalars().all())
        return [
            BondRecord(
                bond_id=r.bond_id,
                host_player_unit_id=r.host_player_unit_id,
                equipped_player_unit_id=r.equipped_player_unit_id,
                created_at=r.created_at,
                is_equipped=r.is_equipped,
            )
            for r in rows
        ]

    async def list_bond_contributions(self, user_id: int) -> List[BondContribution]:
        """Computed bonus per active bond."""
        async with self.persistence_guard("list_bond_contributions", user_id=user_id):
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(
                        EquippableUnitBond.bond_id,
                        EquippableUnitBond.host_player_unit_id,
                        EquippableUnitBond.equipped_player_unit_id,
                        func.coalesce(PlayerUnit.nickname, Unit.name).label("equipped_name"),
                        PlayerUnit.current_attack,
                        PlayerUnit.current_defense,
                        PlayerUnit.current_health,
                        PlayerUnit.current_level,
                        PlayerUnit.rarity,
                    )
                    .join(PlayerUnit, PlayerUnit.player_unit_id == EquippableUnitBond.equipped_player_unit_id)
                    .join(Unit, Unit.unit_id == PlayerUnit.unit_id)
                    .where(PlayerUnit.user_id == user_id, EquippableUnitBond.is_equipped.is_(True))
                    .order_by(EquippableUnitBond.bond_id)
                )
                rows = result.all()

        contributions = []
        for r in rows:
            atk, dfn, hp = bond_bonus(r.rarity, r.current_level, r.current_attack, r.current_defense, r.current_health)
            contributions.append(
                BondContribution(
                    bond_id=r.bond_id,
                    host_player_unit_id=r.host_player_unit_id,
                    equipped_player_unit_id=r.equipped_player_unit_id,
                    equipped_name=r.equipped_name or "(Unnamed)",
                    rarity=r.rarity,
                    bonus_attack=atk,
                    bonus_defense=dfn,
                    bonus_health=hp,
                )
            )
        return contributions
