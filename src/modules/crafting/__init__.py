"""
Crafting Module
===============

Recipes and item crafting.
"""

from .repository import RecipeIngredientRepository, RecipeRepository
from .service import CraftingService, CraftResult, RecipeView

__all__ = [
    "CraftingService",
    "CraftResult",
    "RecipeView",
    "RecipeRepository",
    "RecipeIngredientRepository",
]
