"""
PreparationRecord model for the append-only preparation history.

A record is written only when a commit fully satisfied the requested
number of preparations. The stock records it consumed point back at it
through StockLot.preparation_id.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, CheckConstraint

from .base import BaseModel
from src.utils.datetime_utils import utc_now


class PreparationRecord(BaseModel):
    """
    One committed preparation event.

    Attributes:
        recipe_id: Foreign key to the prepared Recipe
        amount: Number of preparations made (> 0)
        prepared_at: When the preparation was committed
    """

    __tablename__ = "preparation_records"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Integer, nullable=False)
    prepared_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_preparation_recipe", "recipe_id"),
        Index("idx_preparation_prepared_at", "prepared_at"),
        CheckConstraint("amount > 0", name="ck_preparation_amount_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"PreparationRecord(id={self.id}, recipe_id={self.recipe_id}, "
            f"amount={self.amount})"
        )
