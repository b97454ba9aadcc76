"""Crafting tables."""

from .recipe import Recipe, RecipeIngredient

__all__ = ["Recipe", "RecipeIngredient"]
