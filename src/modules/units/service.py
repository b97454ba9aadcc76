"""
Unit Service
============

Purpose
-------
The owned-unit lifecycle: hire, tame, party membership, training,
dismissal and battle reward application (coins, loot, XP and level-ups).

Domain
------
- Army holds at most MAX_ARMY_SIZE units, party at most MAX_PARTY_SIZE
- Pets join the party only at Legendary rarity or above
- A unit equipped through an active bond stays out of the party
- Humans are hired or contracted, never tamed
- Taming costs 1 Taming Lure plus 10 of the creature's research item;
  sub-Legendary pets become research progress instead of army members
- Level-ups add +2 ATK, +1 DEF, +10 HP per level

LES 2025 Compliance
-------------------
✓ Transaction-safe - per-user advisory lock on every army mutation
✓ Pessimistic locking - profile and unit rows locked before checks
✓ Domain exceptions - user-facing messages carried verbatim
✓ Event-driven - recruit/dismiss events after commit
✓ Cache discipline - per-user caches invalidated after every mutation
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from sqlalchemy import delete, update

from src.core.cache import invalidate_user_caches
from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import Inventory, PlayerUnit, Profile, SagaProfile, Unit, UnitResearchProgress
from src.database.models.enums import TrainingStat, UnitKind
from src.domain.models.items import ItemId, research_item_for_unit
from src.domain.models.leveling import LevelUpResult, apply_unit_xp
from src.domain.models.rarity import is_party_eligible_pet_rarity
from src.modules.economy.repository import InventoryRepository, ProfileRepository
from src.modules.saga.repository import SagaProfileRepository
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import InsufficientResourcesError, NotFoundError, ValidationError
from src.modules.units.repository import (
    OwnedUnit,
    PlayerUnitRepository,
    ResearchProgressRepository,
    UnitRepository,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class RecruitOutcome:
    """Result of a taming attempt."""

    unit_name: str
    added_to_army: bool
    research_count: Optional[int] = None

    @property
    def message(self) -> str:
        if self.added_to_army:
            return f"{self.unit_name} joined your army!"
        return f"{self.unit_name} tamed (+1 research progress)."


class UnitService(BaseService):
    """
    Owned unit management.

    Public Methods
    --------------
    - get_player_units() / get_user_party() -> OwnedUnit snapshots
    - hire_unit() -> buy a unit with coins
    - attempt_recruit_unit() -> tame a pet with materials
    - set_unit_party_status() / start_training() / dismiss_unit() -> bool
    - apply_battle_rewards() -> coins, loot and XP in one transaction
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._units = UnitRepository(Unit, get_logger(f"{__name__}.UnitRepository"))
        self._player_units = PlayerUnitRepository(PlayerUnit, get_logger(f"{__name__}.PlayerUnitRepository"))
        self._research = ResearchProgressRepository(
            UnitResearchProgress, get_logger(f"{__name__}.ResearchProgressRepository")
        )
        self._profiles = ProfileRepository(Profile, get_logger(f"{__name__}.ProfileRepository"))
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))
        self._saga = SagaProfileRepository(SagaProfile, get_logger(f"{__name__}.SagaProfileRepository"))

    # ========================================================================
    # READS
    # ========================================================================

    async def get_player_units(self, user_id: int) -> List[OwnedUnit]:
        async with self.persistence_guard("get_player_units", user_id=user_id):
            async with DatabaseService.get_session() as session:
                return await self._player_units.list_owned(session, user_id)

    async def get_user_party(self, user_id: int) -> List[OwnedUnit]:
        async with self.persistence_guard("get_user_party", user_id=user_id):
            async with DatabaseService.get_session() as session:
                return await self._player_units.list_party(session, user_id)

    async def get_unit(self, unit_id: int) -> Optional[Unit]:
        async with self.persistence_guard("get_unit", unit_id=unit_id):
            async with DatabaseService.get_session() as session:
                return await self._units.get(session, unit_id)

    # ========================================================================
    # ACQUISITION
    # ========================================================================

    async def hire_unit(self, user_id: int, unit_id: int, cost: int) -> str:
        """
        Buy a unit for `cost` coins; returns its name.

        Humans join the party while it has room; pets go to the army only.

        Raises:
            NotFoundError: No profile, or the unit no longer exists
            InsufficientResourcesError: Not enough coins
            ValidationError: Army full
        """
        self.validate_non_negative_int(cost, "cost")

        async with self.persistence_guard("hire_unit", user_id=user_id, unit_id=unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                profile = await self._profiles.get_for_update(session, user_id)
                if profile is None:
                    raise NotFoundError("Could not find your profile.", resource_type="Profile", identifier=user_id)
                if profile.balance < cost:
                    raise InsufficientResourcesError(
                        "You don't have enough coins.", resource="coins", required=cost, current=profile.balance
                    )

                army_size = await self._player_units.count_army(session, user_id)
                if army_size >= constants.MAX_ARMY_SIZE:
                    raise ValidationError(
                        f"Your army is full ({army_size}/{constants.MAX_ARMY_SIZE})", field="army"
                    )

                unit = await self._units.get(session, unit_id)
                if unit is None:
                    raise NotFoundError(
                        "This mercenary is no longer available.", resource_type="Unit", identifier=unit_id
                    )

                await self._profiles.add_balance(session, user_id, -cost)
                in_party = (
                    unit.kind == UnitKind.HUMAN
                    and await self._player_units.count_party(session, user_id) < constants.MAX_PARTY_SIZE
                )
                await self._player_units.create_from_master(session, user_id, unit, in_party=in_party)
                unit_name = unit.name

        invalidate_user_caches(user_id)
        self.log_operation("hire_unit", user_id=user_id, unit_id=unit_id, cost=cost)
        await self.emit_event(
            SagaEvents.UNIT_RECRUITED,
            {"user_id": user_id, "unit_id": unit_id, "source": "hire"},
        )
        return unit_name

    async def grant_starter_unit(self, user_id: int) -> str:
        """
        Give a new player the configured starter unit for free.

        The starter joins the party unless it is a sub-Legendary pet.

        Raises:
            ValidationError: Player already owns a unit
            NotFoundError: `starter_unit_id` points at no unit
        """
        starter_id = await self._config.get_config_int("starter_unit_id", 1)
        async with self.persistence_guard("grant_starter_unit", user_id=user_id, unit_id=starter_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                if await self._player_units.count_army(session, user_id) > 0:
                    raise ValidationError("You already have a unit. Tutorial reward skipped.", field="army")
                unit = await self._units.get(session, starter_id)
                if unit is None:
                    raise NotFoundError("Starter unit is not configured.", resource_type="Unit", identifier=starter_id)
                in_party = unit.kind == UnitKind.HUMAN or is_party_eligible_pet_rarity(unit.rarity)
                await self._player_units.create_from_master(session, user_id, unit, in_party=in_party)
                unit_name = unit.name

        invalidate_user_caches(user_id)
        self.log_operation("grant_starter_unit", user_id=user_id, unit_id=starter_id)
        await self.emit_event(
            SagaEvents.UNIT_RECRUITED,
            {"user_id": user_id, "unit_id": starter_id, "source": "starter"},
        )
        return unit_name

    async def attempt_recruit_unit(self, user_id: int, unit_id: int) -> RecruitOutcome:
        """
        Tame a pet, consuming 1 Taming Lure and 10 research items.

        Raises:
            NotFoundError: Unknown creature
            ValidationError: Not recruitable, Human, army full, no research mapping
            InsufficientResourcesError: Missing materials
        """
        async with self.persistence_guard("attempt_recruit_unit", user_id=user_id, unit_id=unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                unit = await self._units.get(session, unit_id)
                if unit is None:
                    raise NotFoundError("Creature data not found.", resource_type="Unit", identifier=unit_id)
                if not unit.is_recruitable:
                    raise ValidationError("This unit cannot be recruited.", field="unit_id")
                if unit.kind == UnitKind.HUMAN:
                    raise ValidationError(
                        "Humans can't be tamed. Defeat them to unlock a contract or hire them in town.",
                        field="unit_id",
                    )

                party_eligible = is_party_eligible_pet_rarity(unit.rarity)
                if party_eligible:
                    army_size = await self._player_units.count_army(session, user_id)
                    if army_size >= constants.MAX_ARMY_SIZE:
                        self.log.warning(
                            "Recruit blocked: army full",
                            extra={"user_id": user_id, "army_size": army_size, "limit": constants.MAX_ARMY_SIZE},
                        )
                        raise ValidationError(
                            f"Your army is full! ({army_size} / {constants.MAX_ARMY_SIZE}). Dismiss a unit first.",
                            field="army",
                        )

                research_item = research_item_for_unit(unit.name)
                if research_item is None:
                    raise ValidationError("This creature cannot currently be researched/tamed.", field="unit_id")
                for item, quantity in (
                    (ItemId.TAMING_LURE, constants.TAMING_LURE_COST),
                    (research_item, constants.RESEARCH_ITEM_COST),
                ):
                    await self._inventory.consume(session, user_id, item, quantity)

                if not party_eligible:
                    count = await self._research.increment(session, user_id, unit_id)
                    outcome = RecruitOutcome(unit_name=unit.name, added_to_army=False, research_count=count)
                else:
                    in_party = await self._player_units.count_party(session, user_id) < constants.MAX_PARTY_SIZE
                    await self._player_units.create_from_master(session, user_id, unit, in_party=in_party)
                    outcome = RecruitOutcome(unit_name=unit.name, added_to_army=True)

        invalidate_user_caches(user_id)
        self.log_operation(
            "attempt_recruit_unit", user_id=user_id, unit_id=unit_id, added_to_army=outcome.added_to_army
        )
        if outcome.added_to_army:
            await self.emit_event(
                SagaEvents.UNIT_RECRUITED,
                {"user_id": user_id, "unit_id": unit_id, "source": "tame"},
            )
        return outcome

    # ========================================================================
    # PARTY, TRAINING, DISMISSAL
    # ========================================================================

    async def set_unit_party_status(self, user_id: int, player_unit_id: int, in_party: bool) -> bool:
        """
        Add to or remove from the party.

        Adding requires an owned unit that is not equipped in a bond,
        Legendary+ for pets, and a free slot.
        Removing is unconditional for owned units.
        """
        async with self.persistence_guard("set_unit_party_status", user_id=user_id, player_unit_id=player_unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                if in_party:
                    owned = await self._player_units.get_owned(session, user_id, player_unit_id)
                    if owned is None:
                        return False
                    if owned.kind == UnitKind.PET and not is_party_eligible_pet_rarity(owned.rarity):
                        return False
                    if owned.is_in_party:
                        return True
                    if await self._player_units.is_bond_equipped(session, player_unit_id):
                        return False
                    if await self._player_units.count_party(session, user_id) >= constants.MAX_PARTY_SIZE:
                        return False

                result = await session.execute(
                    update(PlayerUnit)
                    .where(PlayerUnit.player_unit_id == player_unit_id, PlayerUnit.user_id == user_id)
                    .values(is_in_party=in_party)
                )
                changed = result.rowcount > 0

        if changed:
            invalidate_user_caches(user_id)
            self.log_operation(
                "set_unit_party_status", user_id=user_id, player_unit_id=player_unit_id, in_party=in_party
            )
        return changed

    async def start_training(
        self,
        user_id: int,
        player_unit_id: int,
        stat: str,
        duration_hours: int,
        tp_cost: int,
    ) -> bool:
        """
        Spend TP and start training one stat.

        Returns False (nothing spent) when TP is short or the unit is not
        owned or already training.
        """
        if stat not in {s.value for s in TrainingStat}:
            raise ValidationError(f"Unknown training stat '{stat}'.", field="stat")
        self.validate_positive_int(duration_hours, "duration_hours")
        self.validate_non_negative_int(tp_cost, "tp_cost")

        ends_at = datetime.now(timezone.utc) + timedelta(hours=duration_hours)
        async with self.persistence_guard("start_training", user_id=user_id, player_unit_id=player_unit_id):
            async with DatabaseService.get_transaction() as session:
                row = await self._player_units.lock_owned(session, user_id, player_unit_id)
                if row is None or row.is_training:
                    return False
                if not await self._saga.spend_training_points(session, user_id, tp_cost):
                    return False
                row.is_training = True
                row.training_stat = stat
                row.training_ends_at = ends_at

        invalidate_user_caches(user_id)
        self.log_operation(
            "start_training", user_id=user_id, player_unit_id=player_unit_id, stat=stat, tp_cost=tp_cost
        )
        return True

    async def dismiss_unit(self, user_id: int, player_unit_id: int) -> bool:
        async with self.persistence_guard("dismiss_unit", user_id=user_id, player_unit_id=player_unit_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                result = await session.execute(
                    delete(PlayerUnit).where(
                        PlayerUnit.player_unit_id == player_unit_id,
                        PlayerUnit.user_id == user_id,
                    )
                )
                dismissed = result.rowcount > 0

        if dismissed:
            invalidate_user_caches(user_id)
            self.log_operation("dismiss_unit", user_id=user_id, player_unit_id=player_unit_id)
            await self.emit_event(
                SagaEvents.UNIT_DISMISSED,
                {"user_id": user_id, "player_unit_id": player_unit_id},
            )
        return dismissed

    # ========================================================================
    # BATTLE REWARDS
    # ========================================================================

    async def apply_battle_rewards(
        self,
        user_id: int,
        coins: int,
        loot: Sequence[Tuple[ItemId, int]],
        units: Sequence[OwnedUnit],
        xp_per_unit: int,
    ) -> List[LevelUpResult]:
        """
        Credit coins, loot and unit XP in a single transaction.

        Returns one LevelUpResult per unit, in input order. A unit dismissed
        since the battle started gets a zero-XP result and no write.
        """
        results: List[LevelUpResult] = []
        async with self.persistence_guard("apply_battle_rewards", user_id=user_id, coins=coins):
            async with DatabaseService.get_transaction() as session:
                if coins > 0:
                    await self._profiles.ensure(session, user_id)
                    await self._profiles.add_balance(session, user_id, coins)
                for item, quantity in loot:
                    await self._inventory.add_item(session, user_id, item, quantity)

                # XP lands on the current row, not the snapshot taken at battle start.
                for unit in units:
                    row = await self._player_units.lock_owned(session, user_id, unit.player_unit_id)
                    if row is None:
                        results.append(apply_unit_xp(unit.player_unit_id, unit.current_level, unit.current_xp, 0))
                        continue
                    level = apply_unit_xp(row.player_unit_id, row.current_level, row.current_xp, xp_per_unit)
                    atk, dfn, hp = level.stat_gains
                    row.current_level = level.new_level
                    row.current_xp = level.new_xp
                    row.current_attack += atk
                    row.current_defense += dfn
                    row.current_health += hp
                    results.append(level)

        invalidate_user_caches(user_id)
        self.log_operation(
            "apply_battle_rewards",
            user_id=user_id,
            coins=coins,
            loot_items=len(loot),
            units=len(units),
            level_ups=sum(1 for r in results if r.did_level_up),
        )
        return results
