"""
StockLot model for tracking purchased ingredient batches.

Each record is one purchase batch of one ingredient, with its own unit,
price, currency and expiry. Lots are consumed oldest-intake-first (FIFO by
id). Consumed records are never deleted:
- a fully drained lot keeps its last quantity and gets consumed_at stamped
- a partially drained lot is decremented and a split record carrying the
  consumed portion (source_lot_id set, consumed_at stamped) is added
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)

from .base import BaseModel
from src.utils.datetime_utils import utc_now, ensure_utc


class StockLot(BaseModel):
    """
    StockLot model representing one purchased batch of an ingredient.

    Attributes:
        ingredient_id: Foreign key to Ingredient
        quantity: Remaining quantity, in ``unit``
        unit: Unit of measure the lot was entered in ("g", "Kg", "ml", "L", "pcs", ...)
        unit_price: Purchase price per base unit (per Kg, per L, per item)
        currency: ISO currency code of unit_price
        purchase_date: When the lot was bought
        expires_at: Instant after which the lot is no longer usable
        consumed_at: When the lot (or this split record) was used up; None = available
        source_lot_id: For split records, the lot the consumed portion came from
        preparation_id: Preparation that consumed this record
    """

    __tablename__ = "stock_lots"

    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )

    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String(20), nullable=False)
    unit_price = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False)

    purchase_date = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)

    source_lot_id = Column(
        Integer, ForeignKey("stock_lots.id", ondelete="SET NULL"), nullable=True
    )
    preparation_id = Column(
        Integer, ForeignKey("preparation_records.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("idx_stock_lot_ingredient", "ingredient_id"),
        Index("idx_stock_lot_expires", "expires_at"),
        Index("idx_stock_lot_consumed", "consumed_at"),
        Index("idx_stock_lot_preparation", "preparation_id"),
        CheckConstraint("quantity >= 0", name="ck_stock_lot_quantity_non_negative"),
        CheckConstraint("unit_price >= 0", name="ck_stock_lot_unit_price_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"StockLot(id={self.id}, "
            f"ingredient_id={self.ingredient_id}, "
            f"quantity={self.quantity}, unit='{self.unit}', "
            f"consumed={self.consumed_at is not None})"
        )

    def is_expired(self, as_of: Optional[datetime] = None) -> bool:
        """
        Check if the lot is expired.

        Args:
            as_of: Reference instant (default: now)

        Returns:
            True if expires_at <= as_of
        """
        as_of = ensure_utc(as_of) if as_of else utc_now()
        return ensure_utc(self.expires_at) <= as_of

    def is_eligible(self, as_of: Optional[datetime] = None) -> bool:
        """
        Check whether the lot can be allocated.

        A lot is eligible when it is unconsumed, unexpired and not empty.
        """
        return self.consumed_at is None and not self.is_expired(as_of) and self.quantity > 0

    def to_snapshot(self):
        """
        Build an immutable LotSnapshot of this row for the allocation engine.

        Returns:
            LotSnapshot with Decimal quantity and price
        """
        from src.services.dto import LotSnapshot

        return LotSnapshot(
            lot_id=self.id,
            ingredient_id=self.ingredient_id,
            quantity=Decimal(str(self.quantity)),
            unit=self.unit,
            unit_price=Decimal(str(self.unit_price)),
            currency=self.currency,
            purchase_date=ensure_utc(self.purchase_date),
            expires_at=ensure_utc(self.expires_at),
            consumed_at=ensure_utc(self.consumed_at),
        )
