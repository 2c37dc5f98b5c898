"""Recipe Service - Recipes and their per-preparation requirements.

This module provides creation and lookup of recipes. The allocation core
reads recipes only through get_recipe_requirements, which returns
immutable Requirement values.

Example Usage:
  >>> from src.services.recipe_service import create_recipe, get_recipe_requirements
  >>>
  >>> recipe = create_recipe(
  ...     "Pancakes",
  ...     [
  ...         {"ingredient_id": flour_id, "quantity": 250, "unit": "g"},
  ...         {"ingredient_id": milk_id, "quantity": 300, "unit": "ml"},
  ...     ],
  ... )
  >>> [r.unit for r in get_recipe_requirements(recipe["id"])]
  ['g', 'ml']
"""

from decimal import InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Ingredient, Recipe, RecipeIngredient
from .database import session_scope
from .dto import Requirement
from .dto_utils import to_decimal
from .exceptions import (
    RecipeNotFound,
    IngredientNotFound,
    ValidationError as ServiceValidationError,
    DatabaseError,
)


def _validate_requirements(requirements: List[Dict[str, Any]]) -> None:
    errors = []
    for index, item in enumerate(requirements, start=1):
        if item.get("ingredient_id") is None:
            errors.append(f"Requirement {index}: ingredient_id is required")
        if not item.get("unit"):
            errors.append(f"Requirement {index}: unit is required")
        try:
            if to_decimal(item.get("quantity")) <= 0:
                errors.append(f"Requirement {index}: quantity must be positive")
        except (InvalidOperation, TypeError, ValueError):
            errors.append(f"Requirement {index}: quantity must be a number")
    if errors:
        raise ServiceValidationError(errors)


def _recipe_to_dict(recipe: Recipe) -> Dict[str, Any]:
    result = recipe.to_dict()
    result["requirements"] = [
        {
            "ingredient_id": item.ingredient_id,
            "quantity": item.quantity,
            "unit": item.unit,
        }
        for item in recipe.requirements
    ]
    return result


def create_recipe(
    name: str,
    requirements: List[Dict[str, Any]],
    description: Optional[str] = None,
    short_description: Optional[str] = None,
    picture: Optional[str] = None,
    cooking_instructions: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a recipe with its per-preparation ingredient requirements.

    Args:
        name: Recipe name (required)
        requirements: List of dicts with ingredient_id, quantity, unit
        description: Optional long description
        short_description: Optional one-line summary
        picture: Optional picture reference
        cooking_instructions: Optional instructions
        session: Optional session for transaction composition

    Returns:
        Dictionary of the recipe's columns plus its requirements

    Raises:
        ValidationError: If the name or a requirement is invalid
        IngredientNotFound: If a requirement names an unknown ingredient
        DatabaseError: If the insert fails
    """
    if not name or not name.strip():
        raise ServiceValidationError(["Recipe name is required"])
    requirements = list(requirements or [])
    _validate_requirements(requirements)

    def _impl(sess: Session) -> Dict[str, Any]:
        for item in requirements:
            if sess.get(Ingredient, item["ingredient_id"]) is None:
                raise IngredientNotFound(item["ingredient_id"])

        recipe = Recipe(
            name=name.strip(),
            description=description,
            short_description=short_description,
            picture=picture,
            cooking_instructions=cooking_instructions,
        )
        for item in requirements:
            recipe.requirements.append(
                RecipeIngredient(
                    ingredient_id=item["ingredient_id"],
                    quantity=float(to_decimal(item["quantity"])),
                    unit=item["unit"].strip(),
                )
            )
        sess.add(recipe)
        sess.flush()
        return _recipe_to_dict(recipe)

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except (IngredientNotFound, ServiceValidationError):
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to create recipe '{name}'", original_error=e)


def get_recipe(recipe_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Retrieve a recipe and its requirements by ID.

    Raises:
        RecipeNotFound: If no recipe has this ID
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        recipe = sess.get(Recipe, recipe_id)
        if recipe is None:
            raise RecipeNotFound(recipe_id)
        return _recipe_to_dict(recipe)

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_recipe_requirements(
    recipe_id: int, session: Optional[Session] = None
) -> List[Requirement]:
    """Get the per-preparation requirements of a recipe.

    Args:
        recipe_id: Recipe to read
        session: Optional session for transaction composition

    Returns:
        List of Requirement in entry order (may be empty)

    Raises:
        RecipeNotFound: If no recipe has this ID
    """

    def _impl(sess: Session) -> List[Requirement]:
        if sess.get(Recipe, recipe_id) is None:
            raise RecipeNotFound(recipe_id)
        rows = (
            sess.query(RecipeIngredient)
            .filter(RecipeIngredient.recipe_id == recipe_id)
            .order_by(RecipeIngredient.id)
            .all()
        )
        return [
            Requirement(
                ingredient_id=row.ingredient_id,
                quantity=to_decimal(row.quantity),
                unit=row.unit,
            )
            for row in rows
        ]

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
