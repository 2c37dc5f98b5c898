"""Data Transfer Objects for service layer.

This module provides the immutable value types passed between the pure
allocation/costing engines and the persistence-backed services, plus the
pagination containers used by list operations.

All quantities and money amounts are ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Requirement:
    """Quantity of one ingredient needed for a single preparation.

    Attributes:
        ingredient_id: Ingredient the quantity refers to
        quantity: Amount per preparation, in ``unit``
        unit: Unit the quantity is expressed in
    """

    ingredient_id: int
    quantity: Decimal
    unit: str


# Name used by the recipe collaborators
RecipeIngredientRequirement = Requirement


@dataclass(frozen=True)
class LotSnapshot:
    """Immutable copy of one stock lot, taken at query time."""

    lot_id: int
    ingredient_id: int
    quantity: Decimal
    unit: str
    unit_price: Decimal
    currency: str
    purchase_date: Optional[datetime]
    expires_at: datetime
    consumed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ConsumptionStep:
    """One lot's contribution to an allocation plan.

    Attributes:
        lot_id: Lot consumed from
        quantity: Amount consumed, in ``unit`` (base unit)
        unit: Base unit label ("Kg", "L", or the lot's own count unit)
        lot_quantity: Same amount expressed in the lot's stored unit
        lot_unit: The lot's stored unit
        unit_price: Lot price per base unit, in ``currency``
        currency: Currency of the lot's price
        cost: ``quantity * unit_price``, in ``currency``
        depletes_lot: True when the step takes everything left in the lot
    """

    lot_id: int
    quantity: Decimal
    unit: str
    lot_quantity: Decimal
    lot_unit: str
    unit_price: Decimal
    currency: str
    cost: Decimal
    depletes_lot: bool


@dataclass(frozen=True)
class Shortage:
    """Missing quantity of one ingredient for a requested preparation count."""

    ingredient_id: int
    missing_quantity: Decimal
    display_unit: str


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of one allocation call.

    Attributes:
        requested: Number of preparations asked for
        max_preparations: Preparations the eligible stock can support
        plan: Ingredient id -> ordered consumption steps. Only ingredients
            that can cover ``requested`` have a plan.
        shortages: Ingredient id -> Shortage for ingredients that cannot
    """

    requested: int
    max_preparations: int
    plan: Dict[int, Tuple[ConsumptionStep, ...]] = field(default_factory=dict)
    shortages: Dict[int, Shortage] = field(default_factory=dict)

    @property
    def satisfied(self) -> bool:
        """True when the requested count can be prepared in full."""
        return not self.shortages and 0 < self.requested <= self.max_preparations

    def steps(self) -> List[ConsumptionStep]:
        """All consumption steps in plan order."""
        return [step for steps in self.plan.values() for step in steps]


@dataclass(frozen=True)
class CostSummary:
    """Total and per-preparation cost, rounded for reporting."""

    total_cost: Decimal
    unit_cost: Decimal
    currency: str


@dataclass
class PaginationParams:
    """Pagination parameters for list operations.

    Attributes:
        page: Page number (1-indexed, default 1)
        per_page: Items per page (default 50, max 1000)

    Raises:
        ValueError: If page < 1, per_page < 1, or per_page > 1000
    """

    page: int = 1
    per_page: int = 50

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.per_page < 1:
            raise ValueError("per_page must be >= 1")
        if self.per_page > 1000:
            raise ValueError("per_page must be <= 1000")

    def offset(self) -> int:
        """Calculate SQL OFFSET value: (page - 1) * per_page."""
        return (self.page - 1) * self.per_page


@dataclass
class PaginatedResult(Generic[T]):
    """Generic paginated result container."""

    items: List[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        """Total number of pages (minimum 1, even for empty results)."""
        if self.total == 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1
