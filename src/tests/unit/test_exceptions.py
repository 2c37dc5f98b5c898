"""Unit tests for exception hierarchy.

Validates that all exceptions inherit from ServiceError and carry the
attributes callers rely on.
"""

import inspect
from decimal import Decimal

import pytest

from src.services import exceptions as exc_module
from src.services.dto import Shortage
from src.services.exceptions import (
    ConcurrentModificationError,
    CurrencyUnavailableError,
    DatabaseError,
    IngredientNotFound,
    MalformedRequestError,
    RateUnavailableError,
    RecipeNotFound,
    ServiceError,
    StockLotNotFound,
    ValidationError,
)


def get_all_exception_classes():
    """Discover all exception classes in the exceptions module."""
    return [
        (name, obj)
        for name, obj in inspect.getmembers(exc_module, inspect.isclass)
        if issubclass(obj, Exception) and obj.__module__ == exc_module.__name__
    ]


class TestExceptionHierarchy:
    """Verify all exceptions inherit from ServiceError."""

    def test_all_domain_exceptions_inherit_from_service_error(self):
        """All domain exceptions must inherit from ServiceError."""
        failures = [
            f"{name} does not inherit from ServiceError"
            for name, exc_class in get_all_exception_classes()
            if not issubclass(exc_class, ServiceError)
        ]
        assert not failures, "\n".join(failures)

    def test_currency_alias(self):
        """CurrencyUnavailableError is the same class as RateUnavailableError."""
        assert CurrencyUnavailableError is RateUnavailableError


class TestExceptionMessages:
    """Verify exception attributes and messages."""

    def test_not_found_errors(self):
        assert RecipeNotFound(4).recipe_id == 4
        assert "Recipe with ID 4 not found" in str(RecipeNotFound(4))
        assert IngredientNotFound(5).ingredient_id == 5
        assert StockLotNotFound(6).lot_id == 6

    def test_malformed_request(self):
        error = MalformedRequestError("preparation count must be positive, got 0")
        assert error.message.startswith("preparation count")
        assert str(error).startswith("Malformed request:")

    @pytest.mark.parametrize(
        "currency,reason,expected",
        [
            ("EUR", None, "Exchange rate for EUR unavailable"),
            ("EUR", "offline", "Exchange rate for EUR unavailable: offline"),
            (None, "timeout", "Exchange rates unavailable: timeout"),
        ],
    )
    def test_rate_unavailable(self, currency, reason, expected):
        error = RateUnavailableError(currency, reason)
        assert str(error) == expected
        assert error.currency == currency
        assert error.reason == reason

    def test_concurrent_modification_carries_shortages(self):
        shortage = Shortage(ingredient_id=3, missing_quantity=Decimal("0.5"), display_unit="Kg")
        error = ConcurrentModificationError(recipe_id=9, requested=2, shortages=[shortage])
        assert error.recipe_id == 9
        assert error.requested == 2
        assert error.shortages == [shortage]
        assert "1 ingredient(s)" in str(error)

    def test_validation_error_joins_messages(self):
        error = ValidationError(["Quantity must be positive", "Unit is required"])
        assert error.errors == ["Quantity must be positive", "Unit is required"]
        assert str(error) == "Validation failed: Quantity must be positive; Unit is required"

    def test_database_error_keeps_original(self):
        original = RuntimeError("disk full")
        error = DatabaseError("Failed to add stock lot", original_error=original)
        assert error.original_error is original
        assert str(error) == "Database error: Failed to add stock lot"
