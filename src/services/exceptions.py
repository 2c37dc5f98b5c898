"""Service layer exception classes for Larder.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Ordinary stock shortage is NOT an exception: allocation reports it through
``AllocationResult.shortages`` and ``check_and_reserve`` returns it as a
``success=False`` result.

Exception Hierarchy:
    ServiceError (base)
    ├── RecipeNotFound
    ├── IngredientNotFound
    ├── StockLotNotFound
    ├── MalformedRequestError
    ├── RateUnavailableError (alias CurrencyUnavailableError)
    ├── ConcurrentModificationError
    ├── ValidationError
    └── DatabaseError
"""

from typing import Iterable, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class RecipeNotFound(ServiceError):
    """Raised when a recipe cannot be found by ID."""

    def __init__(self, recipe_id: int):
        self.recipe_id = recipe_id
        super().__init__(f"Recipe with ID {recipe_id} not found")


class IngredientNotFound(ServiceError):
    """Raised when an ingredient cannot be found by ID."""

    def __init__(self, ingredient_id: int):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient with ID {ingredient_id} not found")


class StockLotNotFound(ServiceError):
    """Raised when a stock lot cannot be found by ID.

    Example:
        >>> raise StockLotNotFound(456)
        StockLotNotFound: Stock lot with ID 456 not found
    """

    def __init__(self, lot_id: int):
        self.lot_id = lot_id
        super().__init__(f"Stock lot with ID {lot_id} not found")


class MalformedRequestError(ServiceError):
    """Raised for a request that is rejected before any stock is read.

    Covers a non-positive preparation count, a missing requirements list,
    and requirements with a non-positive per-preparation quantity.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Malformed request: {message}")


class RateUnavailableError(ServiceError):
    """Raised when an exchange rate cannot be resolved.

    Args:
        currency: Currency code that could not be converted, or None when
            the whole rate table could not be fetched
        reason: Optional explanation (unreachable source, unknown currency)
    """

    def __init__(self, currency: Optional[str], reason: Optional[str] = None):
        self.currency = currency
        self.reason = reason
        if currency:
            message = f"Exchange rate for {currency} unavailable"
        else:
            message = "Exchange rates unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


CurrencyUnavailableError = RateUnavailableError


class ConcurrentModificationError(ServiceError):
    """Raised when stock changed between the availability check and the commit.

    The caller should retry or tell the user that stock changed.

    Args:
        recipe_id: Recipe being prepared
        requested: Preparations requested
        shortages: Shortages found by the commit-time re-check
    """

    def __init__(self, recipe_id: int, requested: int, shortages: Iterable = ()):
        self.recipe_id = recipe_id
        self.requested = requested
        self.shortages: List = list(shortages)
        super().__init__(
            f"Stock changed while preparing recipe {recipe_id} x{requested}; "
            f"{len(self.shortages)} ingredient(s) no longer sufficient"
        )


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
