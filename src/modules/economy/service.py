"""
Economy Service
===============

Purpose
-------
Coins and items: lazy profile creation, guarded balance changes,
inventory listing, selling, gifting, coin transfers (the minigame balance
interface) and the work/jobs loop.

Domain
------
- Balance never drops below zero; every debit is a guarded UPDATE
- Items are the closed catalog in src.domain.models.items
- Work pays coins, job XP and resources, then reports task progress
  (`Work`, `GatherItem:<item_id>`) after commit

LES 2025 Compliance
-------------------
✓ Transaction-safe - each write is one atomic transaction
✓ Domain exceptions - ValidationError, InsufficientResourcesError,
  CooldownActiveError
✓ Event-driven - task progress published after commit
✓ Observable - structured logging on every write
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, List, Optional, Tuple

from sqlalchemy import update

from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import Inventory, Profile
from src.domain.models.items import ItemId, item_from_id, properties
from src.modules.economy.jobs import JOBS, apply_job_xp, roll_work
from src.modules.economy.repository import InventoryRepository, ProfileRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    CooldownActiveError,
    InsufficientResourcesError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


@dataclass(frozen=True)
class InventoryEntry:
    item_id: int
    name: str
    quantity: int

    @property
    def item(self) -> Optional[ItemId]:
        return item_from_id(self.item_id)


@dataclass(frozen=True)
class SaleResult:
    item: ItemId
    quantity: int
    coins_earned: int
    new_balance: int


@dataclass(frozen=True)
class WorkResult:
    job: str
    base_coins: int
    streak_bonus: int
    streak: int
    xp_gained: int
    new_level: int
    leveled_up: bool
    items: List[Tuple[ItemId, int]] = field(default_factory=list)
    rare_drop: Optional[ItemId] = None

    @property
    def total_coins(self) -> int:
        return self.base_coins + self.streak_bonus

    def reward_lines(self) -> List[str]:
        lines = [f"💰 You earned `{self.base_coins}` coins."]
        if self.streak_bonus:
            lines.append(f"🔥 Streak bonus: `+{self.streak_bonus}` coins ({self.streak} days).")
        for item, qty in self.items:
            if item == self.rare_drop:
                lines.append(f"🌟 **RARE DROP!** You found a **{properties(item).display_name}**!")
            else:
                props = properties(item)
                lines.append(f"{props.emoji} You found `{qty}` {props.display_name}.")
        if self.leveled_up:
            lines.append(f"🎉 {self.job.title()} level up! You are now level **{self.new_level}**.")
        return lines


class EconomyService(BaseService):
    """
    Coins, inventory and work.

    Public Methods
    --------------
    - get_or_create_profile() -> Profile row (created lazily)
    - add_balance() / transfer_coins() -> guarded coin movements
    - add_to_inventory() / get_inventory() -> item stacks
    - sell_item() / give_item() -> catalog-governed trades
    - do_work() -> one work shift
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._profiles = ProfileRepository(Profile, get_logger(f"{__name__}.ProfileRepository"))
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))
        self._rng = rng or random.Random()

    # ========================================================================
    # PROFILE & BALANCE
    # ========================================================================

    async def get_or_create_profile(self, user_id: int) -> Profile:
        async with self.persistence_guard("get_or_create_profile", user_id=user_id):
            async with DatabaseService.get_transaction() as session:
                return await self._profiles.get_or_create(session, user_id)

    async def add_balance(self, user_id: int, delta: int) -> int:
        """
        Signed balance change; returns the new balance.

        Raises:
            InsufficientResourcesError: If the result would be negative
        """
        async with self.persistence_guard("add_balance", user_id=user_id, delta=delta):
            async with DatabaseService.get_transaction() as session:
                await self._profiles.ensure(session, user_id)
                new_balance = await self._profiles.add_balance(session, user_id, delta)

        self.log_operation("add_balance", user_id=user_id, delta=delta, new_balance=new_balance)
        return new_balance

    async def transfer_coins(self, from_user_id: int, to_user_id: int, amount: int) -> Tuple[int, int]:
        """
        Move coins between players atomically (minigame payouts and bets).

        Returns:
            (sender_balance, receiver_balance)
        """
        self.validate_positive_int(amount, "amount")
        if from_user_id == to_user_id:
            raise ValidationError("You cannot transfer coins to yourself.", field="to_user_id")

        async with self.persistence_guard("transfer_coins", from_user_id=from_user_id, to_user_id=to_user_id):
            async with DatabaseService.get_transaction() as session:
                # Lock both profiles in a stable order.
                for uid in sorted((from_user_id, to_user_id)):
                    await self._profiles.get_or_create(session, uid, for_update=True)
                sender = await self._profiles.add_balance(session, from_user_id, -amount)
                receiver = await self._profiles.add_balance(session, to_user_id, amount)

        self.log_operation("transfer_coins", from_user_id=from_user_id, to_user_id=to_user_id, amount=amount)
        return sender, receiver

    # ========================================================================
    # INVENTORY
    # ========================================================================

    async def add_to_inventory(self, user_id: int, item: ItemId, quantity: int) -> None:
        """Positive quantities upsert; negative ones consume (never below zero)."""
        if quantity == 0:
            return
        async with self.persistence_guard("add_to_inventory", user_id=user_id, item_id=int(item)):
            async with DatabaseService.get_transaction() as session:
                if quantity > 0:
                    await self._inventory.add_item(session, user_id, item, quantity)
                else:
                    await self._inventory.consume(session, user_id, item, -quantity)

    async def get_inventory(self, user_id: int) -> List[InventoryEntry]:
        async with self.persistence_guard("get_inventory", user_id=user_id):
            async with DatabaseService.get_session() as session:
                rows = await self._inventory.list_for_user(session, user_id)
        return [InventoryEntry(item_id=i, name=n, quantity=q) for i, n, q in rows]

    async def get_item_quantity(self, user_id: int, item: ItemId) -> int:
        async with self.persistence_guard("get_item_quantity", user_id=user_id):
            async with DatabaseService.get_session() as session:
                return await self._inventory.get_quantity(session, user_id, item)

    async def sell_item(self, user_id: int, item: ItemId, quantity: Optional[int] = None) -> SaleResult:
        """
        Sell `quantity` of an item (all held when None) at its catalog price.

        Raises:
            ValidationError: Item not sellable
            InsufficientResourcesError: Not enough held
        """
        props = properties(item)
        if not props.is_sellable:
            raise ValidationError(f"The item '{props.display_name}' cannot be sold.", field="item")
        price = props.sell_price or 0

        async with self.persistence_guard("sell_item", user_id=user_id, item_id=int(item)):
            async with DatabaseService.get_transaction() as session:
                held = await self._inventory.get_quantity(session, user_id, item, for_update=True)
                if held <= 0:
                    raise InsufficientResourcesError(
                        f"You do not have any {props.display_name} to sell.",
                        resource=props.display_name,
                        required=1,
                        current=0,
                    )
                amount = max(quantity if quantity is not None else held, 1)
                await self._inventory.consume(
                    session,
                    user_id,
                    item,
                    amount,
                    message=f"You only have `{held}` {props.display_name} to sell.",
                )
                await self._profiles.ensure(session, user_id)
                new_balance = await self._profiles.add_balance(session, user_id, price * amount)

        self.log_operation("sell_item", user_id=user_id, item_id=int(item), quantity=amount, coins=price * amount)
        return SaleResult(item=item, quantity=amount, coins_earned=price * amount, new_balance=new_balance)

    async def give_item(self, giver_id: int, receiver_id: int, item: ItemId, quantity: int) -> None:
        """
        Gift items to another player.

        Raises:
            ValidationError: Self-gift, non-positive quantity, untradeable item
            InsufficientResourcesError: Giver holds fewer than `quantity`
        """
        if giver_id == receiver_id:
            raise ValidationError("You cannot give items to yourself.", field="receiver_id")
        if quantity <= 0:
            raise ValidationError("You must give at least one item.", field="quantity")
        props = properties(item)
        if not props.is_tradeable:
            raise ValidationError(f"The item '{props.display_name}' cannot be traded.", field="item")

        async with self.persistence_guard("give_item", user_id=giver_id, receiver_id=receiver_id):
            async with DatabaseService.get_transaction() as session:
                await self._inventory.consume(
                    session,
                    giver_id,
                    item,
                    quantity,
                    message=f"You do not have enough **{props.display_name}** to give. You need `{quantity}`.",
                )
                await self._inventory.add_item(session, receiver_id, item, quantity)

        self.log_operation("give_item", user_id=giver_id, receiver_id=receiver_id, item_id=int(item), quantity=quantity)

    # ========================================================================
    # WORK
    # ========================================================================

    async def do_work(self, user_id: int, job_name: str) -> WorkResult:
        """
        Work one shift.

        Raises:
            ValidationError: Unknown job
            CooldownActiveError: The job's cooldown since the last shift has not elapsed
        """
        job = JOBS.get(job_name.strip().lower())
        if job is None:
            raise ValidationError(
                "That's not a valid job! Try `fishing`, `mining`, or `coding`.", field="job"
            )

        now = datetime.now(timezone.utc)
        async with self.persistence_guard("do_work", user_id=user_id, job=job.name):
            async with DatabaseService.get_transaction() as session:
                profile = await self._profiles.get_or_create(session, user_id, for_update=True)

                if profile.last_work is not None:
                    ready_at = profile.last_work + job.cooldown
                    if now < ready_at:
                        raise CooldownActiveError("work", (ready_at - now).total_seconds())

                if profile.last_work is None or profile.last_work < now - timedelta(days=1):
                    streak = 1
                else:
                    streak = profile.work_streak + 1

                level = getattr(profile, job.level_field)
                xp = getattr(profile, job.xp_field)
                roll = roll_work(job, level, streak, self._rng)
                new_level, new_xp, leveled = apply_job_xp(level, xp, job.xp_gain)

                await self._profiles.add_balance(session, user_id, roll.total_coins)
                for item, qty in roll.items:
                    await self._inventory.add_item(session, user_id, item, qty)
                await session.execute(
                    update(Profile)
                    .where(Profile.user_id == user_id)
                    .values(
                        {
                            "last_work": now,
                            "work_streak": streak,
                            job.level_field: new_level,
                            job.xp_field: new_xp,
                        }
                    )
                )

        result = WorkResult(
            job=job.name,
            base_coins=roll.base_coins,
            streak_bonus=roll.streak_bonus,
            streak=streak,
            xp_gained=job.xp_gain,
            new_level=new_level,
            leveled_up=leveled,
            items=list(roll.items),
            rare_drop=roll.rare_drop,
        )
        self.log_operation("do_work", user_id=user_id, job=job.name, coins=result.total_coins, streak=streak)

        await self.publish_task_progress(user_id, "Work", 1)
        for item, qty in roll.items:
            await self.publish_task_progress(user_id, f"GatherItem:{int(item)}", qty)
        await self.emit_event(SagaEvents.WORK_COMPLETED, {"user_id": user_id, "job": job.name})
        return result
