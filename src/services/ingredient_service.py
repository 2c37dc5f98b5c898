"""Ingredient Service - Catalog entries that stock lots are purchased for.

This module provides creation and lookup of ingredients and their
categories. Ingredients are read-only to the allocation core; it only
needs their names to label shortages.

Example Usage:
  >>> from src.services.ingredient_service import create_category, create_ingredient
  >>>
  >>> dairy = create_category("Dairy")
  >>> milk = create_ingredient("Milk", category_id=dairy["id"])
  >>> get_ingredient(milk["id"])["name"]
  'Milk'
"""

from typing import Any, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Category, Ingredient
from .database import session_scope
from .exceptions import (
    IngredientNotFound,
    ValidationError as ServiceValidationError,
    DatabaseError,
)


def create_category(
    name: str, description: Optional[str] = None, session: Optional[Session] = None
) -> Dict[str, Any]:
    """Create an ingredient category.

    Raises:
        ValidationError: If the name is empty or already taken
        DatabaseError: If the insert fails
    """
    if not name or not name.strip():
        raise ServiceValidationError(["Category name is required"])
    name = name.strip()

    def _impl(sess: Session) -> Dict[str, Any]:
        if sess.query(Category).filter(Category.name == name).first() is not None:
            raise ServiceValidationError([f"Category '{name}' already exists"])
        category = Category(name=name, description=description)
        sess.add(category)
        sess.flush()
        return category.to_dict()

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceValidationError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to create category '{name}'", original_error=e)


def create_ingredient(
    name: str,
    description: Optional[str] = None,
    picture: Optional[str] = None,
    category_id: Optional[int] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a new ingredient.

    Args:
        name: Display name (required)
        description: Optional description
        picture: Optional picture reference
        category_id: Optional category ID
        session: Optional session for transaction composition

    Returns:
        Dictionary of the created ingredient's columns

    Raises:
        ValidationError: If the name is empty or the category does not exist
        DatabaseError: If the insert fails
    """
    if not name or not name.strip():
        raise ServiceValidationError(["Ingredient name is required"])

    def _impl(sess: Session) -> Dict[str, Any]:
        if category_id is not None and sess.get(Category, category_id) is None:
            raise ServiceValidationError([f"Category with id {category_id} not found"])
        ingredient = Ingredient(
            name=name.strip(),
            description=description,
            picture=picture,
            category_id=category_id,
        )
        sess.add(ingredient)
        sess.flush()
        return ingredient.to_dict()

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceValidationError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to create ingredient '{name}'", original_error=e)


def get_ingredient(ingredient_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Retrieve an ingredient by ID.

    Raises:
        IngredientNotFound: If no ingredient has this ID
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        ingredient = sess.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)
        return ingredient.to_dict()

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_ingredient_names(
    ingredient_ids: Iterable[int], session: Optional[Session] = None
) -> Dict[int, str]:
    """Map ingredient IDs to names; unknown IDs are left out."""
    ids = list(set(ingredient_ids))
    if not ids:
        return {}

    def _impl(sess: Session) -> Dict[int, str]:
        rows = sess.query(Ingredient.id, Ingredient.name).filter(Ingredient.id.in_(ids)).all()
        return {row.id: row.name for row in rows}

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
