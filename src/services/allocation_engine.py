"""
Allocation Engine - FIFO stock allocation for recipe preparations.

Given a recipe's per-preparation ingredient requirements and one LotPool
per ingredient, computes:
- the maximum number of preparations the eligible stock supports
- the lot-by-lot consumption plan for a requested number of preparations,
  splitting the last lot touched when it holds more than is still needed
- a shortage per ingredient that cannot cover the request

This module is pure: it reads snapshots and never touches the database,
the clock, or exchange rates. Insufficient stock is a normal result
(``AllocationResult.shortages``), never an exception.

Algorithm (per ingredient):
    1. per_prep = requirement quantity in base units
    2. target = per_prep * desired
    3. available = sum of eligible lot quantities in base units
    4. max_for_ingredient = floor(available / per_prep)
    5. max_preparations = min over ingredients (0 for an empty recipe)
    6. available == 0            -> shortage of the whole target
    7. max_for_ingredient < desired -> shortage of target - available
    8. otherwise walk lots oldest-first until target is covered

Quantities are Decimal, so "lot exactly drained" is an exact comparison
rather than a float equality.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .dto import AllocationResult, ConsumptionStep, LotSnapshot, Requirement, Shortage
from .dto_utils import to_decimal
from .exceptions import MalformedRequestError
from .logging_utils import get_service_logger, log_operation
from .lot_pool import LotPool
from .unit_converter import display_unit, from_base, normalize, units_compatible

logger = get_service_logger(__name__)

_ZERO = Decimal("0")


@dataclass(frozen=True)
class _IngredientNeed:
    """Merged per-preparation need of one ingredient, in base units."""

    ingredient_id: int
    per_prep: Decimal
    unit: str


@dataclass(frozen=True)
class _IngredientCapacity:
    need: _IngredientNeed
    pool: LotPool
    usable: Tuple[Tuple[LotSnapshot, Decimal], ...]
    available: Decimal

    @property
    def max_preparations(self) -> int:
        return int(self.available // self.need.per_prep)


def validate_desired(desired_preparations) -> int:
    """
    Validate a requested preparation count.

    Raises:
        MalformedRequestError: If the count is not a positive integer
    """
    if isinstance(desired_preparations, bool) or not isinstance(desired_preparations, int):
        raise MalformedRequestError(
            f"preparation count must be an integer, got {desired_preparations!r}"
        )
    if desired_preparations <= 0:
        raise MalformedRequestError(
            f"preparation count must be positive, got {desired_preparations}"
        )
    return desired_preparations


def _merge_requirements(
    requirements: Optional[Sequence[Requirement]],
) -> "OrderedDict[int, _IngredientNeed]":
    """
    Validate requirements and merge repeated ingredients.

    Raises:
        MalformedRequestError: If the list is None, a quantity is not
            positive, or one ingredient is listed in incompatible units
    """
    if requirements is None:
        raise MalformedRequestError("requirements list is required")

    needs: "OrderedDict[int, _IngredientNeed]" = OrderedDict()
    for requirement in requirements:
        quantity = to_decimal(requirement.quantity)
        if quantity <= 0:
            raise MalformedRequestError(
                f"ingredient {requirement.ingredient_id} has non-positive quantity {quantity}"
            )
        base, _ = normalize(quantity, requirement.unit)
        existing = needs.get(requirement.ingredient_id)
        if existing is None:
            needs[requirement.ingredient_id] = _IngredientNeed(
                requirement.ingredient_id, base, requirement.unit
            )
        elif not units_compatible(existing.unit, requirement.unit):
            raise MalformedRequestError(
                f"ingredient {requirement.ingredient_id} is listed in both "
                f"{existing.unit!r} and {requirement.unit!r}"
            )
        else:
            needs[requirement.ingredient_id] = _IngredientNeed(
                existing.ingredient_id, existing.per_prep + base, existing.unit
            )
    return needs


def _capacity(need: _IngredientNeed, pool: LotPool) -> _IngredientCapacity:
    usable: List[Tuple[LotSnapshot, Decimal]] = []
    for lot in pool:
        if not units_compatible(lot.unit, need.unit):
            log_operation(
                logger,
                operation="allocate",
                outcome="lot_unit_mismatch",
                level=logging.WARNING,
                ingredient_id=need.ingredient_id,
                lot_id=lot.lot_id,
                lot_unit=lot.unit,
                requirement_unit=need.unit,
            )
            continue
        usable.append((lot, normalize(lot.quantity, lot.unit)[0]))
    available = sum((base for _, base in usable), _ZERO)
    return _IngredientCapacity(need=need, pool=pool, usable=tuple(usable), available=available)


def _capacities(
    requirements: Optional[Sequence[Requirement]], pools: Mapping[int, LotPool]
) -> List[_IngredientCapacity]:
    needs = _merge_requirements(requirements)
    capacities = []
    for ingredient_id, need in needs.items():
        pool = pools.get(ingredient_id)
        if pool is None:
            pool = LotPool.empty(ingredient_id, None)
        capacities.append(_capacity(need, pool))
    return capacities


def max_preparations(
    requirements: Optional[Sequence[Requirement]], pools: Mapping[int, LotPool]
) -> int:
    """
    Compute how many preparations the eligible stock supports.

    An empty requirement list yields 0: a recipe without ingredients is
    treated as malformed, not as unlimited.

    Args:
        requirements: Per-preparation requirements of the recipe
        pools: Ingredient id -> LotPool (missing ingredients have no stock)

    Returns:
        Maximum number of full preparations

    Raises:
        MalformedRequestError: If requirements is None or invalid
    """
    capacities = _capacities(requirements, pools)
    if not capacities:
        return 0
    return min(capacity.max_preparations for capacity in capacities)


def _plan(capacity: _IngredientCapacity, target: Decimal) -> Tuple[ConsumptionStep, ...]:
    steps = []
    remaining = target
    for lot, lot_base in capacity.usable:
        if remaining <= 0:
            break
        if lot_base <= remaining:
            taken = lot_base
            lot_quantity = lot.quantity
            depletes = True
        else:
            taken = remaining
            lot_quantity = from_base(taken, lot.unit)
            depletes = False
        steps.append(
            ConsumptionStep(
                lot_id=lot.lot_id,
                quantity=taken,
                unit=display_unit(lot.unit),
                lot_quantity=lot_quantity,
                lot_unit=lot.unit,
                unit_price=lot.unit_price,
                currency=lot.currency,
                cost=taken * lot.unit_price,
                depletes_lot=depletes,
            )
        )
        remaining -= taken
    return tuple(steps)


def allocate(
    requirements: Optional[Sequence[Requirement]],
    desired_preparations: int,
    pools: Mapping[int, LotPool],
) -> AllocationResult:
    """
    Allocate stock for ``desired_preparations`` preparations of a recipe.

    Every requirement is evaluated independently: ingredients that can
    cover the request get a consumption plan, the others get a shortage.
    The returned ``max_preparations`` is truthful regardless of the request.

    Args:
        requirements: Per-preparation requirements of the recipe
        desired_preparations: Number of preparations wanted (> 0)
        pools: Ingredient id -> LotPool

    Returns:
        AllocationResult; ``result.satisfied`` tells whether the request
        can be committed

    Raises:
        MalformedRequestError: If requirements is None, a requirement
            quantity is not positive, or desired_preparations <= 0

    Example:
        >>> result = allocate(requirements, 3, pools)
        >>> result.satisfied
        True
        >>> [step.quantity for step in result.plan[flour_id]]
        [Decimal('2'), Decimal('1')]
    """
    desired = validate_desired(desired_preparations)
    capacities = _capacities(requirements, pools)

    if not capacities:
        log_operation(
            logger, operation="allocate", outcome="no_requirements", requested=desired
        )
        return AllocationResult(requested=desired, max_preparations=0)

    plan: Dict[int, Tuple[ConsumptionStep, ...]] = {}
    shortages: Dict[int, Shortage] = {}

    for capacity in capacities:
        need = capacity.need
        target = need.per_prep * desired
        unit = display_unit(need.unit)

        if capacity.available == 0:
            shortages[need.ingredient_id] = Shortage(need.ingredient_id, target, unit)
        elif capacity.max_preparations < desired:
            shortages[need.ingredient_id] = Shortage(
                need.ingredient_id, target - capacity.available, unit
            )
        else:
            plan[need.ingredient_id] = _plan(capacity, target)

    result = AllocationResult(
        requested=desired,
        max_preparations=min(capacity.max_preparations for capacity in capacities),
        plan=plan,
        shortages=shortages,
    )
    log_operation(
        logger,
        operation="allocate",
        outcome="satisfied" if result.satisfied else "insufficient_stock",
        level=logging.DEBUG if result.satisfied else logging.INFO,
        requested=desired,
        max_preparations=result.max_preparations,
        missing_ingredients=sorted(shortages),
    )
    return result
