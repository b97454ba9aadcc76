"""
Economy repositories: profiles, balances and inventories.

Purpose
-------
Session-level building blocks used inside other services' transactions.
Every saga mutation that touches coins or items goes through these so the
"balance never below zero" and "quantity never below zero" rules live in
one place.

LES 2025 Compliance
-------------------
- No transaction management; callers pass the session
- Guarded updates (`WHERE balance + :delta >= 0`) instead of read-modify-write
- Row locks (`FOR UPDATE`) before consuming items
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models import Inventory, Item, Profile
from src.domain.models.items import ItemId, properties
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import InsufficientResourcesError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class ProfileRepository(BaseRepository[Profile]):
    """Player profile rows (coins, work stats)."""

    async def ensure(self, session: AsyncSession, user_id: int) -> None:
        """Create the profile lazily."""
        await session.execute(
            pg_insert(Profile).values(user_id=user_id).on_conflict_do_nothing(index_elements=[Profile.user_id])
        )

    async def get_or_create(self, session: AsyncSession, user_id: int, *, for_update: bool = False) -> Profile:
        await self.ensure(session, user_id)
        stmt = select(Profile).where(Profile.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        return (await session.execute(stmt)).scalar_one()

    async def add_balance(self, session: AsyncSession, user_id: int, delta: int) -> int:
        """
        Apply a signed balance change; returns the new balance.

        Raises
        ------
        InsufficientResourcesError
            When the change would take the balance below zero (or no
            profile exists); nothing is written.
        """
        stmt = (
            update(Profile)
            .where(Profile.user_id == user_id, Profile.balance + delta >= 0)
            .values(balance=Profile.balance + delta)
            .returning(Profile.balance)
        )
        new_balance = (await session.execute(stmt)).scalar_one_or_none()
        if new_balance is None:
            raise InsufficientResourcesError(
                "You don't have enough coins.",
                resource="coins",
                required=max(-delta, 0),
            )
        self.log.debug(
            "Balance adjusted",
            extra={"user_id": user_id, "delta": delta, "new_balance": new_balance},
        )
        return int(new_balance)


class InventoryRepository(BaseRepository[Inventory]):
    """Per-user item quantities."""

    async def add_item(self, session: AsyncSession, user_id: int, item_id: int, quantity: int) -> None:
        """Upsert a positive quantity."""
        if quantity <= 0:
            return
        stmt = pg_insert(Inventory).values(user_id=user_id, item_id=int(item_id), quantity=quantity)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Inventory.user_id, Inventory.item_id],
            set_={"quantity": Inventory.quantity + stmt.excluded.quantity},
        )
        await session.execute(stmt)

    async def get_quantity(self, session: AsyncSession, user_id: int, item_id: int, *, for_update: bool = False) -> int:
        stmt = select(Inventory.quantity).where(Inventory.user_id == user_id, Inventory.item_id == int(item_id))
        if for_update:
            stmt = stmt.with_for_update()
        quantity = (await session.execute(stmt)).scalar_one_or_none()
        return int(quantity or 0)

    async def consume(
        self,
        session: AsyncSession,
        user_id: int,
        item: ItemId,
        quantity: int,
        message: Optional[str] = None,
    ) -> int:
        """
        Lock the row, verify and remove `quantity`; returns what remains.

        Raises
        ------
        InsufficientResourcesError
            With `message` (default "You need {qty} {item}.") when short.
        """
        held = await self.get_quantity(session, user_id, item, for_update=True)
        if held < quantity:
            display = properties(item).display_name
            raise InsufficientResourcesError(
                message or f"You need {quantity} {display}.",
                resource=display,
                required=quantity,
                current=held,
            )
        await session.execute(
            update(Inventory)
            .where(Inventory.user_id == user_id, Inventory.item_id == int(item))
            .values(quantity=Inventory.quantity - quantity)
        )
        return held - quantity

    async def list_for_user(self, session: AsyncSession, user_id: int) -> List[Tuple[int, str, int]]:
        """(item_id, name, quantity) for every positive stack, by name."""
        rows = await session.execute(
            select(Inventory.item_id, Item.name, Inventory.quantity)
            .join(Item, Item.item_id == Inventory.item_id)
            .where(Inventory.user_id == user_id, Inventory.quantity > 0)
            .order_by(Item.name)
        )
        return [(int(r.item_id), r.name, int(r.quantity)) for r in rows]
