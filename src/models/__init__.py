"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .ingredient import Category, Ingredient
from .recipe import Recipe, RecipeIngredient
from .stock_lot import StockLot
from .preparation_record import PreparationRecord

__all__ = [
    "Base",
    "BaseModel",
    "Category",
    "Ingredient",
    "Recipe",
    "RecipeIngredient",
    "StockLot",
    "PreparationRecord",
]
