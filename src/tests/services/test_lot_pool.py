"""Tests for LotPool eligibility filtering and FIFO ordering."""

from datetime import timedelta
from decimal import Decimal

from src.services.lot_pool import LotPool, is_eligible


class TestEligibility:
    def test_fresh_lot_is_eligible(self, make_snapshot, now):
        assert is_eligible(make_snapshot(1, 2), now)

    def test_expired_lot_is_not_eligible(self, make_snapshot, now):
        assert not is_eligible(make_snapshot(1, 2, expires_in_days=-1), now)

    def test_lot_expiring_exactly_now_is_not_eligible(self, make_snapshot, now):
        lot = make_snapshot(1, 2, expires_in_days=0)
        assert lot.expires_at == now
        assert not is_eligible(lot, now)

    def test_consumed_lot_is_not_eligible(self, make_snapshot, now):
        assert not is_eligible(make_snapshot(1, 2, consumed=True), now)

    def test_empty_lot_is_not_eligible(self, make_snapshot, now):
        assert not is_eligible(make_snapshot(1, 0), now)


class TestFromLots:
    def test_orders_by_lot_id(self, make_snapshot, now):
        pool = LotPool.from_lots(1, [make_snapshot(7, 1), make_snapshot(3, 1), make_snapshot(5, 1)], now)
        assert [lot.lot_id for lot in pool] == [3, 5, 7]

    def test_drops_ineligible_and_foreign_lots(self, make_snapshot, now):
        lots = [
            make_snapshot(1, 1),
            make_snapshot(2, 1, expires_in_days=-3),
            make_snapshot(3, 1, consumed=True),
            make_snapshot(4, 1, ingredient_id=2),
            make_snapshot(5, 1),
        ]
        pool = LotPool.from_lots(1, lots, now)
        assert [lot.lot_id for lot in pool] == [1, 5]
        assert len(pool) == 2

    def test_as_of_controls_expiry(self, make_snapshot, now):
        lot = make_snapshot(1, 1, expires_in_days=5)
        assert len(LotPool.from_lots(1, [lot], now)) == 1
        assert len(LotPool.from_lots(1, [lot], now + timedelta(days=6))) == 0

    def test_total_base_quantity_mixes_units(self, make_snapshot, now):
        pool = LotPool.from_lots(1, [make_snapshot(1, 500, unit="g"), make_snapshot(2, "1.5")], now)
        assert pool.total_base_quantity() == Decimal("2")

