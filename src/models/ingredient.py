"""
Ingredient and Category models.

Ingredients are the catalog entries stock lots are purchased for.
A category is an optional grouping referenced by id.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index

from .base import BaseModel


class Category(BaseModel):
    """
    Category grouping ingredients (e.g., "Dairy", "Spices").

    Attributes:
        name: Display name (unique)
        description: Optional description
    """

    __tablename__ = "categories"

    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)


class Ingredient(BaseModel):
    """
    Ingredient catalog entry.

    Immutable once referenced by a stock lot; the allocation core only reads it.

    Attributes:
        name: Display name
        description: Optional description
        picture: Optional picture reference (URL or path)
        category_id: Optional foreign key to Category
    """

    __tablename__ = "ingredients"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    picture = Column(String(500), nullable=True)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("idx_ingredient_name", "name"),
        Index("idx_ingredient_category", "category_id"),
    )
