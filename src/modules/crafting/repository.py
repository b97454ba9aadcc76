"""
Recipe repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from src.database.models import Recipe, RecipeIngredient
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class RecipeRepository(BaseRepository[Recipe]):
    async def list_all(self, session: AsyncSession) -> List[Recipe]:
        return await self.find_many_where(session, order_by=[Recipe.recipe_id])


class RecipeIngredientRepository(BaseRepository[RecipeIngredient]):
    async def for_recipe(self, session: AsyncSession, recipe_id: int) -> List[RecipeIngredient]:
        return await self.find_many_where(
            session,
            RecipeIngredient.recipe_id == recipe_id,
            order_by=[RecipeIngredient.item_id],
        )

    async def grouped(self, session: AsyncSession) -> Dict[int, List[RecipeIngredient]]:
        """Every ingredient row keyed by recipe id."""
        grouped: Dict[int, List[RecipeIngredient]] = {}
        for row in await self.find_many_where(
            session, order_by=[RecipeIngredient.recipe_id, RecipeIngredient.item_id]
        ):
            grouped.setdefault(row.recipe_id, []).append(row)
        return grouped
