"""Tests for FIFO allocation.

Scenarios:
- FIFO walk with a split on the last lot
- shortage reporting (amount and display unit)
- empty and malformed requirement lists
- expired/consumed lots never selected
- read-only allocation is idempotent
"""

import logging
from decimal import Decimal

import pytest

from src.services.allocation_engine import allocate, max_preparations
from src.services.exceptions import MalformedRequestError
from src.services.lot_pool import LotPool

FLOUR = 1
MILK = 2
EGGS = 3


def pools_for(now, lots):
    by_ingredient = {}
    for lot in lots:
        by_ingredient.setdefault(lot.ingredient_id, []).append(lot)
    return {
        ingredient_id: LotPool.from_lots(ingredient_id, items, now)
        for ingredient_id, items in by_ingredient.items()
    }


class TestFifoPlan:
    """L1 2 Kg @3, L2 5 Kg @4, 1 Kg per preparation."""

    @pytest.fixture
    def pools(self, make_snapshot, now):
        return pools_for(
            now,
            [make_snapshot(1, 2, unit_price=3), make_snapshot(2, 5, unit_price=4)],
        )

    def test_three_preparations_take_two_then_one(self, pools, make_requirement):
        result = allocate([make_requirement(FLOUR, 1, "Kg")], 3, pools)

        assert result.satisfied
        steps = result.plan[FLOUR]
        assert [(step.lot_id, step.quantity) for step in steps] == [
            (1, Decimal("2")),
            (2, Decimal("1")),
        ]
        assert steps[0].depletes_lot is True
        assert steps[1].depletes_lot is False
        assert [step.cost for step in steps] == [Decimal("6"), Decimal("4")]

    def test_max_preparations(self, pools, make_requirement):
        assert max_preparations([make_requirement(FLOUR, 1, "Kg")], pools) == 7

    def test_exact_drain_depletes_both_lots(self, pools, make_requirement):
        result = allocate([make_requirement(FLOUR, 1, "Kg")], 7, pools)
        assert result.satisfied
        assert all(step.depletes_lot for step in result.plan[FLOUR])

    def test_split_expressed_in_lot_unit(self, make_snapshot, now, make_requirement):
        pools = pools_for(now, [make_snapshot(1, 750, unit="g", unit_price=10)])
        result = allocate([make_requirement(FLOUR, 250, "g")], 2, pools)

        step = result.plan[FLOUR][0]
        assert step.quantity == Decimal("0.5")
        assert step.unit == "Kg"
        assert step.lot_quantity == Decimal("500")
        assert step.lot_unit == "g"
        assert step.cost == Decimal("5.0")

    def test_read_only_allocation_is_idempotent(self, pools, make_requirement):
        requirements = [make_requirement(FLOUR, 1, "Kg")]
        assert allocate(requirements, 3, pools) == allocate(requirements, 3, pools)


class TestShortages:
    def test_two_available_five_needed(self, make_snapshot, now, make_requirement):
        pools = pools_for(now, [make_snapshot(1, 2, unit="Kg", unit_price=3)])
        result = allocate([make_requirement(FLOUR, 1, "Kg")], 5, pools)

        assert not result.satisfied
        assert result.max_preparations == 2
        shortage = result.shortages[FLOUR]
        assert shortage.missing_quantity == Decimal("3")
        assert shortage.display_unit == "Kg"
        assert FLOUR not in result.plan

    def test_no_stock_reports_full_target(self, now, make_requirement):
        result = allocate([make_requirement(MILK, 300, "ml")], 2, {})

        assert result.max_preparations == 0
        assert result.shortages[MILK].missing_quantity == Decimal("0.6")
        assert result.shortages[MILK].display_unit == "L"

    def test_only_short_ingredients_are_reported(self, make_snapshot, now, make_requirement):
        pools = pools_for(
            now,
            [make_snapshot(1, 10, ingredient_id=FLOUR), make_snapshot(2, 1, unit="pcs", ingredient_id=EGGS)],
        )
        result = allocate(
            [make_requirement(FLOUR, 1, "Kg"), make_requirement(EGGS, 2, "pcs")], 2, pools
        )
        assert set(result.shortages) == {EGGS}
        assert result.shortages[EGGS].missing_quantity == Decimal("3")
        assert result.shortages[EGGS].display_unit == "pcs"
        assert FLOUR in result.plan

    def test_shortage_logged_at_info(self, now, make_requirement, caplog):
        with caplog.at_level(logging.INFO, logger="larder.services"):
            allocate([make_requirement(FLOUR, 1, "Kg")], 1, {})
        assert "allocate: insufficient_stock" in caplog.text


class TestEligibleLotsOnly:
    def test_expired_and_consumed_lots_never_selected(self, make_snapshot, now, make_requirement):
        pools = pools_for(
            now,
            [
                make_snapshot(1, 5, expires_in_days=-1),
                make_snapshot(2, 5, consumed=True),
                make_snapshot(3, 1),
            ],
        )
        result = allocate([make_requirement(FLOUR, 1, "Kg")], 1, pools)

        assert result.max_preparations == 1
        assert [step.lot_id for step in result.steps()] == [3]

    def test_mismatched_unit_family_is_skipped(self, make_snapshot, now, make_requirement, caplog):
        pools = pools_for(now, [make_snapshot(1, 5, unit="L"), make_snapshot(2, 1, unit="Kg")])
        with caplog.at_level(logging.WARNING, logger="larder.services"):
            result = allocate([make_requirement(FLOUR, 1, "Kg")], 1, pools)

        assert [step.lot_id for step in result.steps()] == [2]
        assert "lot_unit_mismatch" in caplog.text

    def test_shortage_labelled_by_requirement_family(self, make_snapshot, now, make_requirement):
        pools = pools_for(now, [make_snapshot(1, 5, unit="L"), make_snapshot(2, 1, unit="Kg")])
        result = allocate([make_requirement(FLOUR, 1, "Kg")], 3, pools)

        shortage = result.shortages[FLOUR]
        assert shortage.missing_quantity == Decimal("2")
        assert shortage.display_unit == "Kg"

    def test_different_count_units_are_not_added(self, make_snapshot, now, make_requirement):
        pools = pools_for(
            now,
            [
                make_snapshot(1, 2, unit="dozen", ingredient_id=EGGS),
                make_snapshot(2, 3, unit="pcs", ingredient_id=EGGS),
            ],
        )
        result = allocate([make_requirement(EGGS, 1, "pcs")], 3, pools)

        assert result.max_preparations == 3
        assert [step.lot_id for step in result.steps()] == [2]


class TestEdgeCases:
    def test_empty_recipe_yields_zero(self, make_snapshot, now):
        pools = pools_for(now, [make_snapshot(1, 5)])
        assert max_preparations([], pools) == 0

        result = allocate([], 1, pools)
        assert result.max_preparations == 0
        assert result.shortages == {}
        assert not result.satisfied

    def test_none_requirements_is_malformed(self):
        with pytest.raises(MalformedRequestError):
            max_preparations(None, {})
        with pytest.raises(MalformedRequestError):
            allocate(None, 1, {})

    @pytest.mark.parametrize("desired", [0, -1])
    def test_non_positive_desired_is_malformed(self, desired, make_requirement):
        with pytest.raises(MalformedRequestError):
            allocate([make_requirement(FLOUR, 1, "Kg")], desired, {})

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_requirement_is_malformed(self, quantity, make_requirement):
        with pytest.raises(MalformedRequestError):
            allocate([make_requirement(FLOUR, quantity, "Kg")], 1, {})

    def test_repeated_ingredient_is_merged(self, make_snapshot, now, make_requirement):
        pools = pools_for(now, [make_snapshot(1, 3)])
        requirements = [make_requirement(FLOUR, 500, "g"), make_requirement(FLOUR, "0.5", "Kg")]
        assert max_preparations(requirements, pools) == 3

    def test_repeated_ingredient_in_two_families_is_malformed(self, make_requirement):
        with pytest.raises(MalformedRequestError):
            max_preparations(
                [make_requirement(FLOUR, 1, "Kg"), make_requirement(FLOUR, 1, "L")], {}
            )

    def test_repeated_ingredient_in_two_count_units_is_malformed(self, make_requirement):
        with pytest.raises(MalformedRequestError):
            max_preparations(
                [make_requirement(EGGS, 2, "pcs"), make_requirement(EGGS, 1, "dozen")], {}
            )
