"""Pytest configuration and fixtures for service layer tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from src.models.base import Base
from src.services.currency_service import CurrencyNormalizer
from src.services.dto import LotSnapshot, Requirement
from src.services.exceptions import RateUnavailableError
from src.utils.config import reset_config

# Fixed reference instant for pure engine tests
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the config singleton so LARDER_* overrides never leak between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    import src.models  # noqa: F401

    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    # Restore original session factory
    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def file_db(tmp_path):
    """Provide a file-backed SQLite database shared by several threads.

    Each call to session_scope() gets its own session and connection, so
    concurrent commits really race against each other.
    """
    import src.models  # noqa: F401
    from src.services.database import create_database_engine

    engine = create_database_engine(f"sqlite:///{tmp_path / 'larder-test.db'}")
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: session_factory

    yield session_factory

    Base.metadata.drop_all(engine)
    engine.dispose()
    db_module.get_session_factory = original_get_session


class FakeRateSource:
    """In-memory rate source counting how often it was asked."""

    def __init__(self, rates=None, fail=False):
        self.rates = dict(rates or {})
        self.fail = fail
        self.calls = 0

    def fetch_rates(self):
        self.calls += 1
        if self.fail:
            raise RateUnavailableError(None, "rate source offline")
        return dict(self.rates)


class RecordingRateLookup:
    """Rate lookup callable that records every currency it was asked for."""

    def __init__(self, rates=None):
        self.rates = {code: Decimal(str(rate)) for code, rate in (rates or {}).items()}
        self.calls = []

    def __call__(self, currency_code):
        self.calls.append(currency_code)
        if currency_code not in self.rates:
            raise RateUnavailableError(currency_code, "not in test table")
        return self.rates[currency_code]


@pytest.fixture
def fake_rate_source():
    """Rate source with EUR and USD quoted in RON."""
    return FakeRateSource({"EUR": Decimal("4.9765"), "USD": Decimal("4.5")})


@pytest.fixture
def rate_lookup():
    return RecordingRateLookup({"EUR": "5", "USD": "4.5"})


@pytest.fixture
def normalizer(rate_lookup):
    """CurrencyNormalizer with RON as base and fixed EUR/USD rates."""
    return CurrencyNormalizer(rate_lookup, base_currency="RON")


@pytest.fixture
def now():
    """Reference instant the make_snapshot lots are dated against."""
    return NOW


@pytest.fixture
def make_snapshot():
    """Factory for LotSnapshot values relative to NOW."""

    def _make(
        lot_id,
        quantity,
        unit="Kg",
        unit_price="0",
        currency="RON",
        ingredient_id=1,
        expires_in_days=30,
        consumed=False,
    ):
        return LotSnapshot(
            lot_id=lot_id,
            ingredient_id=ingredient_id,
            quantity=Decimal(str(quantity)),
            unit=unit,
            unit_price=Decimal(str(unit_price)),
            currency=currency,
            purchase_date=NOW - timedelta(days=10),
            expires_at=NOW + timedelta(days=expires_in_days),
            consumed_at=NOW - timedelta(days=1) if consumed else None,
        )

    return _make


@pytest.fixture
def make_requirement():
    """Factory for Requirement values with Decimal quantities."""

    def _make(ingredient_id, quantity, unit):
        return Requirement(
            ingredient_id=ingredient_id, quantity=Decimal(str(quantity)), unit=unit
        )

    return _make


@pytest.fixture
def pantry(test_db):
    """Flour and milk ingredients plus a pancake recipe using both."""
    from src.services import ingredient_service, recipe_service

    category = ingredient_service.create_category("Baking")
    flour = ingredient_service.create_ingredient("Flour", category_id=category["id"])
    milk = ingredient_service.create_ingredient("Milk")
    recipe = recipe_service.create_recipe(
        "Pancakes",
        [
            {"ingredient_id": flour["id"], "quantity": 1, "unit": "Kg"},
            {"ingredient_id": milk["id"], "quantity": 500, "unit": "ml"},
        ],
    )
    return {"flour": flour, "milk": milk, "recipe": recipe, "category": category}
