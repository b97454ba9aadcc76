"""
Static data seeding.

Purpose
-------
Populate the `items` table from the in-code item catalog so inventory
rows always reference a known item. Idempotent: existing rows get their
name and description refreshed.

Usage
-----
    async with DatabaseService.get_transaction() as session:
        await seed_items(session)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.core.logging.logger import get_logger
from src.database.models import Item
from src.domain.models.items import ITEM_CATALOG

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def seed_items(session: AsyncSession) -> int:
    """Upsert every catalog item; returns the number of items written."""
    rows = [
        {"item_id": int(item_id), "name": props.display_name, "description": props.description}
        for item_id, props in ITEM_CATALOG.items()
    ]
    stmt = pg_insert(Item).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Item.item_id],
        set_={"name": stmt.excluded.name, "description": stmt.excluded.description},
    )
    await session.execute(stmt)
    logger.info("Item catalog seeded", extra={"item_count": len(rows)})
    return len(rows)
