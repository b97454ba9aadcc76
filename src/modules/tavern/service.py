"""
Tavern Service
==============

Purpose
-------
Everything sold or hired at the tavern: the daily recruit rotation with
per-user rerolls, fame, the goods counter and daily shop, and the two
tavern consumables (Focus Tonic, Stamina Draft).

Domain
------
- One global daily pool of recruitable units (UTC day, max 25), cached
  in-process per date
- Each user's rotation of that pool is ranked by weighted jitter, then
  capped by story progress and fame tier
- Pets stay hidden until story progress 5
- Rerolls cost 150 coins (fame discount applies), max 3 per UTC day
- Each hire grants 5 fame

LES 2025 Compliance
-------------------
✓ Transaction-safe - reroll, purchases and consumables are single transactions
✓ Advisory locks - per-user serialization on every mutation
✓ Deterministic - ordering is a pure function of (user, day, ids)
✓ Event-driven - hire and reroll events after commit
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select

from src.core.cache import focus_buff_cache, invalidate_user_caches, tavern_daily_pool
from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import Inventory, Profile, SagaProfile, TavernFame, TavernUserRotation, Unit
from src.database.models.enums import UnitKind, UnitRarity
from src.domain.models.items import TAVERN_GOODS, ItemId, properties, tavern_price
from src.modules.economy.repository import InventoryRepository, ProfileRepository
from src.modules.saga.repository import SagaProfileRepository
from src.modules.shared import constants
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    InsufficientResourcesError,
    NotFoundError,
    ValidationError,
)
from src.modules.tavern import pricing
from src.modules.tavern.repository import TavernFameRepository, TavernRotationRepository, rerolls_used_on

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.units.service import UnitService

REROLL_FAILED_MESSAGE = "Cannot reroll right now (limit reached or balance changed)."


# ============================================================================
# VIEW DATA
# ============================================================================


@dataclass(frozen=True)
class TavernRecruit:
    unit_id: int
    name: str
    description: Optional[str]
    kind: UnitKind
    rarity: UnitRarity
    base_attack: int
    base_defense: int
    base_health: int
    cost: int

    @classmethod
    def from_unit(cls, unit: Unit) -> "TavernRecruit":
        return cls(
            unit_id=unit.unit_id,
            name=unit.name,
            description=unit.description,
            kind=unit.kind,
            rarity=unit.rarity,
            base_attack=unit.base_attack,
            base_defense=unit.base_defense,
            base_health=unit.base_health,
            cost=pricing.hire_cost_for_rarity(unit.rarity),
        )


@dataclass(frozen=True)
class TavernMeta:
    balance: int
    fame: int
    fame_tier: int
    fame_progress: float
    daily_rerolls_used: int
    max_daily_rerolls: int
    reroll_cost: int
    can_reroll: bool
    story_progress: int = 0
    resets_in_seconds: int = 0
    visible_cap: int = constants.TAVERN_BASE_ROTATION

    @property
    def rerolls_left(self) -> int:
        return max(self.max_daily_rerolls - self.daily_rerolls_used, 0)

    @property
    def fame_to_next_tier(self) -> Optional[int]:
        return pricing.fame_to_next_tier(self.fame)


@dataclass(frozen=True)
class TavernState:
    recruits: List[TavernRecruit]
    meta: TavernMeta

    @property
    def affordable_count(self) -> int:
        return sum(1 for r in self.recruits if r.cost <= self.meta.balance)

    @property
    def average_cost(self) -> int:
        if not self.recruits:
            return 0
        return pricing.round_half_up(sum(r.cost for r in self.recruits) / len(self.recruits))


@dataclass(frozen=True)
class RerollResult:
    state: TavernState
    cost: int
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ShopOffer:
    item: ItemId
    base_price: int
    price: int

    @property
    def display_name(self) -> str:
        return properties(self.item).display_name


@dataclass(frozen=True)
class PurchaseResult:
    item: ItemId
    quantity: int
    total_cost: int
    new_balance: int


class TavernService(BaseService):
    """
    Tavern rotation, fame, shop and consumables.

    Hiring goes through UnitService so the army/party rules stay in one place.

    Public Methods
    --------------
    - get_daily_recruits() / get_or_generate_rotation()
    - build_tavern_state_cached() -> TavernState
    - transactional_reroll() / reroll_tavern()
    - add_fame() / can_reroll()
    - hire_from_tavern()
    - get_tavern_goods() / get_daily_shop_items() / buy_tavern_item()
    - use_focus_tonic() / use_stamina_draft() / focus_remaining_seconds()
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        unit_service: UnitService,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._unit_service = unit_service
        self._clock = clock or utc_now
        self._fame = TavernFameRepository(TavernFame, get_logger(f"{__name__}.TavernFameRepository"))
        self._rotations = TavernRotationRepository(
            TavernUserRotation, get_logger(f"{__name__}.TavernRotationRepository")
        )
        self._profiles = ProfileRepository(Profile, get_logger(f"{__name__}.ProfileRepository"))
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))
        self._saga = SagaProfileRepository(SagaProfile, get_logger(f"{__name__}.SagaProfileRepository"))

    @property
    def max_daily_rerolls(self) -> int:
        return int(self.get_config("tavern.max_daily_rerolls", constants.TAVERN_MAX_DAILY_REROLLS))

    @property
    def fame_per_hire(self) -> int:
        return int(self.get_config("tavern.fame_per_hire", constants.FAME_PER_HIRE))

    def _today(self) -> date:
        return self._clock().date()

    # ========================================================================
    # DAILY POOL & ROTATION
    # ========================================================================

    async def _daily_pool_ids(self, session: AsyncSession, today: date) -> List[int]:
        cached = tavern_daily_pool.get(today)
        if cached is not None:
            return cached
        unit_ids = (await session.scalars(select(Unit.unit_id).where(Unit.is_recruitable.is_(True)))).all()
        pool = pricing.daily_pool_order(unit_ids, today)
        tavern_daily_pool.set(today, pool)
        self.log.info("Tavern daily pool generated", extra={"day": today.isoformat(), "size": len(pool)})
        return pool

    async def get_daily_recruits(self) -> List[TavernRecruit]:
        """Today's global pool in pool order."""
        today = self._today()
        async with self.persistence_guard("get_daily_recruits"):
            async with DatabaseService.get_session() as session:
                pool = await self._daily_pool_ids(session, today)
                units = {u.unit_id: u for u in await self._load_units(session, pool)}
        return [TavernRecruit.from_unit(units[uid]) for uid in pool if uid in units]

    async def _load_units(self, session: AsyncSession, unit_ids: Sequence[int]) -> List[Unit]:
        if not unit_ids:
            return []
        return list((await session.scalars(select(Unit).where(Unit.unit_id.in_(list(unit_ids))))).all())

    async def _rotation_for(self, session: AsyncSession, user_id: int, global_ids: Sequence[int], today: date) -> List[int]:
        stored = await self._rotations.get_for_day(session, user_id, today)
        if stored is not None:
            return stored
        await self._rotations.upsert(session, user_id, global_ids, today)
        return list(global_ids)

    async def get_or_generate_rotation(self, user_id: int, global_ids: Sequence[int]) -> List[int]:
        """Today's stored rotation, or `global_ids` stored as today's."""
        async with self.persistence_guard("get_or_generate_rotation", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                return await self._rotation_for(session, user_id, global_ids, self._today())

    # ========================================================================
    # STATE
    # ========================================================================

    async def build_tavern_state_cached(self, user_id: int) -> TavernState:
        """
        Ordered visible recruits plus the meta block for one user.

        Two calls on the same day without a state change return the same
        recruits in the same order.
        """
        now = self._clock()
        today = now.date()
        async with self.persistence_guard("build_tavern_state", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                profile = await self._profiles.get_or_create(session, user_id)
                saga_row = await self._saga.get(session, user_id)
                story_progress = saga_row.story_progress if saga_row is not None else 0

                pool_ids = await self._daily_pool_ids(session, today)
                pool_units = await self._load_units(session, pool_ids)
                by_id: Dict[int, Unit] = {u.unit_id: u for u in pool_units}
                gated_ids = [
                    uid
                    for uid in pool_ids
                    if uid in by_id and (by_id[uid].kind != UnitKind.PET or pricing.is_pet_unlocked(story_progress))
                ]

                rotation = await self._rotation_for(session, user_id, gated_ids, today)
                gated = set(gated_ids)
                ordered = [by_id[uid] for uid in rotation if uid in gated]
                if not ordered:
                    ordered = [by_id[uid] for uid in gated_ids]

                fame_row = await self._fame.get_or_create(session, user_id)
                balance, fame = profile.balance, fame_row.fame
                used_today = rerolls_used_on(fame_row, today)

        tier, progress = pricing.fame_tier(fame)
        perks = pricing.fame_perks(tier)
        cap = pricing.visible_cap(story_progress, perks.extra_visible)
        ordered = pricing.order_by_weighted_jitter(
            ordered,
            user_id,
            today,
            story_progress,
            unit_id_of=lambda u: u.unit_id,
            rarity_of=lambda u: u.rarity,
        )
        recruits = [TavernRecruit.from_unit(u) for u in ordered[:cap]]

        max_daily = self.max_daily_rerolls
        meta = TavernMeta(
            balance=balance,
            fame=fame,
            fame_tier=tier,
            fame_progress=progress,
            daily_rerolls_used=used_today,
            max_daily_rerolls=max_daily,
            reroll_cost=pricing.reroll_cost_for_fame(fame),
            can_reroll=used_today < max_daily,
            story_progress=story_progress,
            resets_in_seconds=pricing.seconds_until_reset(now),
            visible_cap=cap,
        )
        return TavernState(recruits=recruits, meta=meta)

    # ========================================================================
    # FAME & REROLLS
    # ========================================================================

    async def add_fame(self, user_id: int, amount: int) -> int:
        """Add fame; returns the new total."""
        self.validate_non_negative_int(amount, "amount")
        async with self.persistence_guard("add_fame", user_id=user_id, amount=amount):
            async with DatabaseService.get_transaction() as session:
                total = await self._fame.add_fame(session, user_id, amount)
        self.log.debug("Fame added", extra={"user_id": user_id, "amount": amount, "fame": total})
        return total

    async def can_reroll(self, user_id: int, max_daily: Optional[int] = None) -> bool:
        limit = self.max_daily_rerolls if max_daily is None else max_daily
        async with self.persistence_guard("can_reroll", user_id=user_id):
            async with DatabaseService.get_session() as session:
                row = await self._fame.get(session, user_id)
        return rerolls_used_on(row, self._today()) < limit

    async def transactional_reroll(
        self, user_id: int, new_rotation: Sequence[int], cost: int, max_daily: Optional[int] = None
    ) -> int:
        """
        Charge for and store a new rotation; returns the new balance.

        All or nothing: on failure balance, rotation and reroll counters are
        untouched.

        Raises:
            NotFoundError: No reroll slot left today
            InsufficientResourcesError: Balance below cost
        """
        self.validate_non_negative_int(cost, "cost")
        limit = self.max_daily_rerolls if max_daily is None else max_daily
        today = self._today()

        async with self.persistence_guard("transactional_reroll", user_id=user_id, cost=cost):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)

                fame_row = await self._fame.get_or_create(session, user_id, for_update=True)
                used_today = rerolls_used_on(fame_row, today)
                if used_today >= limit:
                    raise NotFoundError(REROLL_FAILED_MESSAGE, resource_type="TavernReroll", identifier=user_id)

                profile = await self._profiles.get_or_create(session, user_id, for_update=True)
                if profile.balance < cost:
                    raise InsufficientResourcesError(
                        REROLL_FAILED_MESSAGE, resource="coins", required=cost, current=profile.balance
                    )
                new_balance = await self._profiles.add_balance(session, user_id, -cost)

                await self._rotations.upsert(session, user_id, new_rotation, today)
                fame_row.daily_rerolls = used_today + 1
                fame_row.last_reroll = today

        self.log_operation(
            "transactional_reroll",
            user_id=user_id,
            cost=cost,
            rerolls_used=used_today + 1,
            rotation_size=len(new_rotation),
        )
        return new_balance

    async def reroll_tavern(self, user_id: int) -> RerollResult:
        """
        Replace today's rotation with a fresh shuffle of the daily pool.

        Units currently on display drop out of the new rotation when the
        pool is large enough to fill the screen twice.
        """
        before = await self.build_tavern_state_cached(user_id)
        cost = before.meta.reroll_cost
        if not before.meta.can_reroll:
            raise NotFoundError(REROLL_FAILED_MESSAGE, resource_type="TavernReroll", identifier=user_id)
        if before.meta.balance < cost:
            raise InsufficientResourcesError(
                "Not enough coins to reroll.", resource="coins", required=cost, current=before.meta.balance
            )

        today = self._today()
        async with self.persistence_guard("reroll_tavern", user_id=user_id):
            async with DatabaseService.get_session() as session:
                pool_ids = await self._daily_pool_ids(session, today)
        new_rotation = pricing.reroll_rotation(
            pool_ids,
            (r.unit_id for r in before.recruits),
            user_id,
            today,
            before.meta.daily_rerolls_used + 1,
            before.meta.visible_cap,
        )
        await self.transactional_reroll(user_id, new_rotation, cost)

        after = await self.build_tavern_state_cached(user_id)
        before_ids = {r.unit_id for r in before.recruits}
        after_ids = {r.unit_id for r in after.recruits}
        result = RerollResult(
            state=after,
            cost=cost,
            added=[r.name for r in after.recruits if r.unit_id not in before_ids],
            removed=[r.name for r in before.recruits if r.unit_id not in after_ids],
        )
        await self.emit_event(
            SagaEvents.TAVERN_REROLL,
            {"user_id": user_id, "cost": cost, "added": len(result.added), "removed": len(result.removed)},
        )
        return result

    # ========================================================================
    # HIRING
    # ========================================================================

    async def hire_from_tavern(self, user_id: int, unit_id: int) -> str:
        """Hire at the rarity price and grant fame; returns the notice line."""
        unit = await self._unit_service.get_unit(unit_id)
        if unit is None:
            raise NotFoundError("Unit not found.", resource_type="Unit", identifier=unit_id)
        if not unit.is_recruitable:
            raise ValidationError("This unit cannot be hired.", field="unit_id")

        cost = pricing.hire_cost_for_rarity(unit.rarity)
        name = await self._unit_service.hire_unit(user_id, unit_id, cost)
        fame_gain = self.fame_per_hire
        await self.add_fame(user_id, fame_gain)
        invalidate_user_caches(user_id)

        await self.emit_event(
            SagaEvents.TAVERN_HIRE,
            {"user_id": user_id, "unit_id": unit_id, "cost": cost, "fame_gained": fame_gain},
        )
        return f"Hired {name}! Gained {fame_gain} Fame."

    # ========================================================================
    # SHOP
    # ========================================================================

    async def _shop_discount(self, user_id: int) -> float:
        async with self.persistence_guard("shop_discount", user_id=user_id):
            async with DatabaseService.get_session() as session:
                row = await self._fame.get(session, user_id)
        tier, _ = pricing.fame_tier(row.fame if row is not None else 0)
        return pricing.fame_perks(tier).shop_discount

    @staticmethod
    def _offers(items: Sequence[ItemId], discount: float) -> List[ShopOffer]:
        offers = []
        for item in items:
            base = tavern_price(item)
            if base is None:
                continue
            offers.append(ShopOffer(item=item, base_price=base, price=pricing.apply_shop_discount(base, discount)))
        return offers

    async def get_tavern_goods(self, user_id: int) -> List[ShopOffer]:
        return self._offers(TAVERN_GOODS, await self._shop_discount(user_id))

    async def get_daily_shop_items(self, user_id: int) -> List[ShopOffer]:
        """Today's three shop items for this user, fame discount applied."""
        items = pricing.daily_shop_items(user_id, self._today())
        return self._offers(items, await self._shop_discount(user_id))

    async def buy_tavern_item(self, user_id: int, item: ItemId, quantity: int = 1) -> PurchaseResult:
        """
        Buy from the goods counter or today's shop.

        Raises:
            ValidationError: Not sold here today, bad quantity
            InsufficientResourcesError: Not enough coins
        """
        self.validate_positive_int(quantity, "quantity")
        on_sale = set(TAVERN_GOODS) | set(pricing.daily_shop_items(user_id, self._today()))
        base = tavern_price(item)
        if item not in on_sale or base is None:
            raise ValidationError("That item isn't sold at the tavern today.", field="item")

        async with self.persistence_guard("buy_tavern_item", user_id=user_id, item_id=int(item)):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                fame_row = await self._fame.get(session, user_id)
                tier, _ = pricing.fame_tier(fame_row.fame if fame_row is not None else 0)
                unit_price = pricing.apply_shop_discount(base, pricing.fame_perks(tier).shop_discount)
                total = unit_price * quantity

                profile = await self._profiles.get_or_create(session, user_id, for_update=True)
                if profile.balance < total:
                    raise InsufficientResourcesError(
                        "You don't have enough coins.", resource="coins", required=total, current=profile.balance
                    )
                new_balance = await self._profiles.add_balance(session, user_id, -total)
                await self._inventory.add_item(session, user_id, item, quantity)

        self.log_operation(
            "buy_tavern_item", user_id=user_id, item_id=int(item), quantity=quantity, total_cost=total
        )
        return PurchaseResult(item=item, quantity=quantity, total_cost=total, new_balance=new_balance)

    # ========================================================================
    # CONSUMABLES
    # ========================================================================

    def focus_remaining_seconds(self, user_id: int) -> Optional[int]:
        """Seconds left on the Focus Tonic buff; None when inactive."""
        activated_at = focus_buff_cache.get(user_id)
        if activated_at is None:
            return None
        remaining = focus_buff_cache.ttl_seconds - (time.monotonic() - activated_at)
        return max(int(remaining), 0)

    def is_focus_active(self, user_id: int) -> bool:
        return self.focus_remaining_seconds(user_id) is not None

    async def use_focus_tonic(self, user_id: int) -> str:
        if self.is_focus_active(user_id):
            raise ValidationError("Your Focus Tonic is still active.", field="item")

        async with self.persistence_guard("use_focus_tonic", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                await self._inventory.consume(
                    session, user_id, ItemId.FOCUS_TONIC, 1, message="You don't have a Focus Tonic."
                )

        focus_buff_cache.insert(user_id, time.monotonic())
        self.log_operation("use_focus_tonic", user_id=user_id)
        return "Focus Tonic used. Buff active."

    async def use_stamina_draft(self, user_id: int) -> str:
        """Restore 1 AP, or up to 5 TP when AP is full."""
        async with self.persistence_guard("use_stamina_draft", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                await DatabaseService.acquire_user_lock(session, user_id)
                await self._inventory.consume(
                    session, user_id, ItemId.STAMINA_DRAFT, 1, message="You don't have a Stamina Draft."
                )
                message, restored = self._restore_stamina(await self._saga.upsert_and_lock(session, user_id))

        invalidate_user_caches(user_id)
        self.log_operation("use_stamina_draft", user_id=user_id, restored=restored)
        return message

    @staticmethod
    def _restore_stamina(row: SagaProfile) -> Tuple[str, str]:
        """Mutate the locked row; raises (rolling back the consume) when both pools are full."""
        if row.current_ap < row.max_ap:
            row.current_ap = min(row.current_ap + constants.STAMINA_DRAFT_AP, row.max_ap)
            return f"Restored 1 AP (now {row.current_ap}/{row.max_ap}).", "ap"
        if row.current_tp < row.max_tp:
            added = min(constants.STAMINA_DRAFT_MAX_TP, row.max_tp - row.current_tp)
            row.current_tp += added
            return f"Restored {added} TP (now {row.current_tp}/{row.max_tp}).", "tp"
        raise ValidationError("Your AP and TP are already full.", field="stamina")
