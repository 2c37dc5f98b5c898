"""Services package - Stock allocation and costing for Larder.

This package contains the allocation core and the persistence-backed
collaborators it reads from and writes to.

Architecture:
- Pure engines: unit_converter, lot_pool, allocation_engine, costing_engine
- Money: currency_service (normalizer, rate cache, BNR rate source)
- Persistence: stock_service, recipe_service, ingredient_service,
  preparation_recorder (the only writer of stock lots)
- Outbound: preparation_service (get_max_preparations, check_and_reserve)
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Structured service logging
"""

# Service modules
from . import (
    database,
    unit_converter,
    ingredient_service,
    recipe_service,
    stock_service,
)

from .allocation_engine import allocate, max_preparations
from .costing_engine import cost_plan, total_cost
from .currency_service import (
    BnrRateSource,
    CurrencyNormalizer,
    ExchangeRateCache,
    create_currency_normalizer,
)
from .dto import (
    AllocationResult,
    ConsumptionStep,
    CostSummary,
    LotSnapshot,
    Requirement,
    RecipeIngredientRequirement,
    Shortage,
)
from .lot_pool import LotPool
from .preparation_recorder import IngredientLocks, PreparationRecorder
from .preparation_service import PreparationService
from .stock_service import LotSortKey

# Exceptions
from .exceptions import (
    ServiceError,
    RecipeNotFound,
    IngredientNotFound,
    StockLotNotFound,
    MalformedRequestError,
    RateUnavailableError,
    CurrencyUnavailableError,
    ConcurrentModificationError,
    ValidationError,
    DatabaseError,
)

__all__ = [
    # Modules
    "database",
    "unit_converter",
    "ingredient_service",
    "recipe_service",
    "stock_service",
    # Engines
    "allocate",
    "max_preparations",
    "cost_plan",
    "total_cost",
    "LotPool",
    # Currency
    "BnrRateSource",
    "CurrencyNormalizer",
    "ExchangeRateCache",
    "create_currency_normalizer",
    # Value types
    "AllocationResult",
    "ConsumptionStep",
    "CostSummary",
    "LotSnapshot",
    "Requirement",
    "RecipeIngredientRequirement",
    "Shortage",
    "LotSortKey",
    # Preparation
    "IngredientLocks",
    "PreparationRecorder",
    "PreparationService",
    # Exceptions
    "ServiceError",
    "RecipeNotFound",
    "IngredientNotFound",
    "StockLotNotFound",
    "MalformedRequestError",
    "RateUnavailableError",
    "CurrencyUnavailableError",
    "ConcurrentModificationError",
    "ValidationError",
    "DatabaseError",
]
