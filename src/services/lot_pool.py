"""
Lot Pool - the allocatable view of one ingredient's stock.

A pool holds immutable LotSnapshots that are eligible at ``as_of``:
unconsumed, not expired, and holding a positive quantity. Lots are
ordered by id (intake order), which is what makes consumption FIFO and
decides which purchase price is attributed to which preparation.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Iterator, Tuple

from src.utils.datetime_utils import ensure_utc
from .dto import LotSnapshot
from .unit_converter import normalize


def is_eligible(lot: LotSnapshot, as_of: datetime) -> bool:
    """
    Check whether a lot can be allocated at ``as_of``.

    Args:
        lot: Lot snapshot
        as_of: Reference instant

    Returns:
        True if consumed_at is None, expires_at > as_of and quantity > 0
    """
    return (
        lot.consumed_at is None
        and ensure_utc(lot.expires_at) > ensure_utc(as_of)
        and lot.quantity > 0
    )


@dataclass(frozen=True)
class LotPool:
    """
    Eligible lots of one ingredient, oldest intake first.

    Build pools with ``LotPool.from_lots`` so the eligibility filter and
    FIFO ordering are always applied, whatever the lot source returned.
    """

    ingredient_id: int
    as_of: datetime
    lots: Tuple[LotSnapshot, ...] = ()

    @classmethod
    def from_lots(
        cls, ingredient_id: int, lots: Iterable[LotSnapshot], as_of: datetime
    ) -> "LotPool":
        """
        Build a pool from any iterable of snapshots.

        Lots belonging to other ingredients are ignored.

        Args:
            ingredient_id: Ingredient the pool is for
            lots: Candidate lot snapshots
            as_of: Reference instant for expiry

        Returns:
            LotPool with eligible lots ordered by lot_id ascending
        """
        as_of = ensure_utc(as_of)
        eligible = [
            lot
            for lot in lots
            if lot.ingredient_id == ingredient_id and is_eligible(lot, as_of)
        ]
        eligible.sort(key=lambda lot: lot.lot_id)
        return cls(ingredient_id=ingredient_id, as_of=as_of, lots=tuple(eligible))

    @classmethod
    def empty(cls, ingredient_id: int, as_of: datetime) -> "LotPool":
        return cls(ingredient_id=ingredient_id, as_of=ensure_utc(as_of))

    def __iter__(self) -> Iterator[LotSnapshot]:
        return iter(self.lots)

    def __len__(self) -> int:
        return len(self.lots)

    def total_base_quantity(self) -> Decimal:
        """Sum of all lot quantities, in base units."""
        return sum((normalize(lot.quantity, lot.unit)[0] for lot in self.lots), Decimal("0"))
