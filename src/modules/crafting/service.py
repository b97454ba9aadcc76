"""
Crafting Service
================

Purpose
-------
Recipes that turn inventory items into other items.

Domain
------
- A recipe has one output stack and one or more ingredient stacks
- Crafting consumes every ingredient and grants the output atomically;
  any shortfall leaves the inventory untouched
- Recipes pointing at items outside the catalog are data errors, logged
  and reported with a distinct message

LES 2025 Compliance
-------------------
✓ Transaction-safe - consume and grant in one transaction
✓ Row locks - ingredient rows locked before the quantity check
✓ Event-driven - `item.crafted` after commit
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Sequence, Tuple

from src.core.database.service import DatabaseService
from src.core.event.types import SagaEvents
from src.core.logging.logger import get_logger
from src.database.models import Inventory, Recipe, RecipeIngredient
from src.domain.models.items import ItemId, item_from_id, properties
from src.modules.crafting.repository import RecipeIngredientRepository, RecipeRepository
from src.modules.economy.repository import InventoryRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import InvariantViolationError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus

INVALID_INGREDIENT_MESSAGE = "Invalid ingredient item id in recipe."
INVALID_OUTPUT_MESSAGE = "Invalid output item ID in recipe."

Stack = Tuple[ItemId, int]


@dataclass(frozen=True)
class RecipeView:
    recipe_id: int
    name: str
    output: Stack
    ingredients: Tuple[Stack, ...]

    @property
    def output_label(self) -> str:
        item, qty = self.output
        return f"{qty}x {properties(item).label}"


@dataclass(frozen=True)
class CraftResult:
    recipe_id: int
    item: ItemId
    quantity: int

    @property
    def message(self) -> str:
        return f"You crafted {self.quantity}x {properties(self.item).label}!"


class CraftingService(BaseService):
    """
    Recipe listing and crafting.

    Public Methods
    --------------
    - get_all_recipes() -> recipes with ingredients
    - get_ingredients_for_recipe() -> (item, quantity) stacks
    - craft_item() -> CraftResult
    """

    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._recipes = RecipeRepository(Recipe, get_logger(f"{__name__}.RecipeRepository"))
        self._ingredients = RecipeIngredientRepository(
            RecipeIngredient, get_logger(f"{__name__}.RecipeIngredientRepository")
        )
        self._inventory = InventoryRepository(Inventory, get_logger(f"{__name__}.InventoryRepository"))

    def _stacks(self, recipe_id: int, rows: Sequence[RecipeIngredient]) -> Tuple[Stack, ...]:
        stacks = []
        for row in rows:
            item = item_from_id(row.item_id)
            if item is None:
                self.log.error(
                    INVALID_INGREDIENT_MESSAGE,
                    extra={"recipe_id": recipe_id, "item_id": row.item_id},
                )
                raise InvariantViolationError(
                    INVALID_INGREDIENT_MESSAGE, details={"recipe_id": recipe_id, "item_id": row.item_id}
                )
            stacks.append((item, row.quantity))
        return tuple(stacks)

    def _output(self, recipe: Recipe) -> ItemId:
        item = item_from_id(recipe.output_item_id)
        if item is None:
            self.log.error(
                INVALID_OUTPUT_MESSAGE,
                extra={"recipe_id": recipe.recipe_id, "item_id": recipe.output_item_id},
            )
            raise InvariantViolationError(
                INVALID_OUTPUT_MESSAGE, details={"recipe_id": recipe.recipe_id, "item_id": recipe.output_item_id}
            )
        return item

    # ========================================================================
    # READS
    # ========================================================================

    async def get_all_recipes(self) -> List[RecipeView]:
        async with self.persistence_guard("get_all_recipes"):
            async with DatabaseService.get_session() as session:
                recipes = await self._recipes.list_all(session)
                ingredients = await self._ingredients.grouped(session)
        return [
            RecipeView(
                recipe_id=r.recipe_id,
                name=r.name,
                output=(self._output(r), r.output_quantity),
                ingredients=self._stacks(r.recipe_id, ingredients.get(r.recipe_id, [])),
            )
            for r in recipes
        ]

    async def get_ingredients_for_recipe(self, recipe_id: int) -> Tuple[Stack, ...]:
        async with self.persistence_guard("get_ingredients_for_recipe", recipe_id=recipe_id):
            async with DatabaseService.get_session() as session:
                rows = await self._ingredients.for_recipe(session, recipe_id)
        return self._stacks(recipe_id, rows)

    # ========================================================================
    # CRAFTING
    # ========================================================================

    async def craft_item(self, user_id: int, recipe_id: int) -> CraftResult:
        """
        Consume a recipe's ingredients and grant its output.

        Raises:
            NotFoundError: Unknown recipe
            InsufficientResourcesError: "You don't have enough {item}!"
            InvariantViolationError: Recipe references an unknown item
        """
        async with self.persistence_guard("craft_item", user_id=user_id, recipe_id=recipe_id):
            async with DatabaseService.get_transaction() as session:
                recipe = await self._recipes.get(session, recipe_id)
                if recipe is None:
                    raise NotFoundError("That recipe does not exist.", resource_type="Recipe", identifier=recipe_id)

                stacks = self._stacks(recipe_id, await self._ingredients.for_recipe(session, recipe_id))
                output = self._output(recipe)

                for item, quantity in stacks:
                    await self._inventory.consume(
                        session,
                        user_id,
                        item,
                        quantity,
                        message=f"You don't have enough {properties(item).display_name}!",
                    )
                await self._inventory.add_item(session, user_id, int(output), recipe.output_quantity)
                result = CraftResult(recipe_id=recipe_id, item=output, quantity=recipe.output_quantity)

        self.log_operation(
            "craft_item",
            user_id=user_id,
            recipe_id=recipe_id,
            output_item_id=int(result.item),
            quantity=result.quantity,
        )
        await self.emit_event(
            SagaEvents.ITEM_CRAFTED,
            {"user_id": user_id, "recipe_id": recipe_id, "item_id": int(result.item), "quantity": result.quantity},
        )
        return result
