"""
Costing Engine - total and per-preparation cost of an allocation plan.

Each consumption step carries its cost in the lot's purchase currency;
the engine converts every step into the base currency through a
CurrencyNormalizer and sums the unrounded amounts. Rounding to 2 places
happens once, on the reported figures, so many small lots do not
accumulate rounding error.

A missing exchange rate fails the whole costing call
(RateUnavailableError propagates); there is no best-effort total.
"""

from decimal import Decimal
from typing import Iterable, Mapping, Union

from .dto import AllocationResult, ConsumptionStep, CostSummary
from .dto_utils import round_money

PlanLike = Union[AllocationResult, Mapping[int, Iterable[ConsumptionStep]]]


def _iter_steps(plan: PlanLike):
    if isinstance(plan, AllocationResult):
        return plan.steps()
    return [step for steps in plan.values() for step in steps]


def total_cost(plan: PlanLike, normalizer) -> Decimal:
    """
    Sum the base-currency cost of every step in a plan, unrounded.

    Args:
        plan: AllocationResult or ingredient id -> consumption steps
        normalizer: CurrencyNormalizer used for conversion

    Returns:
        Total cost in the normalizer's base currency

    Raises:
        RateUnavailableError: If any step's currency cannot be converted
    """
    total = Decimal("0")
    for step in _iter_steps(plan):
        total += normalizer.to_base_currency(step.cost, step.currency)
    return total


def cost_plan(plan: PlanLike, preparations: int, normalizer) -> CostSummary:
    """
    Compute total and unit cost of a plan.

    Args:
        plan: AllocationResult or ingredient id -> consumption steps
        preparations: Number of preparations the plan covers
        normalizer: CurrencyNormalizer used for conversion

    Returns:
        CostSummary rounded to 2 places; unit_cost is 0 when
        preparations is 0

    Example:
        Lots L1 (2 Kg at 3/Kg) and L2 (5 Kg at 4/Kg), 1 Kg per preparation,
        3 preparations: total 2*3 + 1*4 = 10.00, unit 10/3 = 3.33.
    """
    total = total_cost(plan, normalizer)
    unit = total / preparations if preparations > 0 else Decimal("0")
    return CostSummary(
        total_cost=round_money(total),
        unit_cost=round_money(unit),
        currency=normalizer.base_currency,
    )
