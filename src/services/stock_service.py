"""Stock Service - Stock lot intake, listing and eligible-lot queries.

This module provides the persistence side of the lot pool:

- add_stock_lot / get_stock_lot: intake and lookup of purchase batches
- get_eligible_lots / get_lot_pool: the allocatable lots of an ingredient,
  oldest intake first, optionally row-locked for a commit
- list_stock_lots: paginated listing ordered by an enumerated sort key
- get_stock_status: empty / expired / almost-expired flags for an ingredient

Stock lots are mutated only by the preparation recorder; nothing here
updates or deletes a lot after intake.

Example Usage:
      >>> from decimal import Decimal
      >>> from datetime import datetime, timedelta, timezone
      >>> from src.services.stock_service import add_stock_lot, get_lot_pool
      >>>
      >>> lot = add_stock_lot(
      ...     ingredient_id=1,
      ...     quantity=Decimal("500"),
      ...     unit="g",
      ...     unit_price=Decimal("12.50"),
      ...     currency="RON",
      ...     expires_at=datetime.now(timezone.utc) + timedelta(days=30),
      ... )
      >>> pool = get_lot_pool(1)
      >>> pool.total_base_quantity()
      Decimal('0.5')
"""

import enum
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Ingredient, StockLot
from ..utils.config import get_config
from ..utils.datetime_utils import ensure_utc, utc_now
from .database import session_scope
from .dto import LotSnapshot, PaginatedResult, PaginationParams
from .dto_utils import Number, to_decimal
from .exceptions import (
    IngredientNotFound,
    StockLotNotFound,
    ValidationError as ServiceValidationError,
    DatabaseError,
)
from .logging_utils import get_service_logger, log_operation
from .lot_pool import LotPool

logger = get_service_logger(__name__)


class LotSortKey(enum.Enum):
    """Orderings available to list_stock_lots."""

    ID = "id"
    QUANTITY = "quantity"
    PURCHASE_DATE = "purchase_date"
    EXPIRES_AT = "expires_at"


_SORT_COLUMNS = {
    LotSortKey.ID: StockLot.id,
    LotSortKey.QUANTITY: StockLot.quantity,
    LotSortKey.PURCHASE_DATE: StockLot.purchase_date,
    LotSortKey.EXPIRES_AT: StockLot.expires_at,
}


def _validate_lot(
    quantity: Decimal,
    unit: str,
    unit_price: Decimal,
    currency: str,
    purchase_date: datetime,
    expires_at: Optional[datetime],
) -> None:
    errors = []
    if quantity <= 0:
        errors.append("Quantity must be positive")
    if not unit or not unit.strip():
        errors.append("Unit is required")
    if unit_price < 0:
        errors.append("Unit price cannot be negative")
    if not currency or len(currency.strip()) != 3 or not currency.strip().isalpha():
        errors.append("Currency must be a 3-letter ISO code")
    if expires_at is None:
        errors.append("Expiry date is required")
    elif ensure_utc(expires_at) <= ensure_utc(purchase_date):
        errors.append("Expiry date must be after purchase date")
    if errors:
        raise ServiceValidationError(errors)


def add_stock_lot(
    ingredient_id: int,
    quantity: Number,
    unit: str,
    unit_price: Number,
    currency: str,
    expires_at: datetime,
    purchase_date: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Add a purchased batch of an ingredient to stock.

    Args:
        ingredient_id: Ingredient the lot belongs to
        quantity: Amount purchased, in ``unit`` (must be > 0)
        unit: Unit the lot is stored in ("g", "Kg", "ml", "L", "pcs", ...)
        unit_price: Price per base unit (per Kg, per L, per item), >= 0
        currency: ISO code of ``unit_price``
        expires_at: Instant after which the lot is unusable
        purchase_date: When the lot was bought (defaults to now)
        session: Optional session for transaction composition

    Returns:
        Dictionary of the created lot's columns

    Raises:
        ValidationError: If a field is invalid
        IngredientNotFound: If the ingredient does not exist
        DatabaseError: If the insert fails
    """
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    purchase_date = ensure_utc(purchase_date) if purchase_date else utc_now()
    _validate_lot(quantity, unit, unit_price, currency, purchase_date, expires_at)

    def _impl(sess: Session) -> Dict[str, Any]:
        if sess.get(Ingredient, ingredient_id) is None:
            raise IngredientNotFound(ingredient_id)

        lot = StockLot(
            ingredient_id=ingredient_id,
            quantity=float(quantity),  # Model uses Float
            unit=unit.strip(),
            unit_price=float(unit_price),
            currency=currency.strip().upper(),
            purchase_date=purchase_date,
            expires_at=ensure_utc(expires_at),
        )
        sess.add(lot)
        sess.flush()
        log_operation(
            logger,
            operation="add_stock_lot",
            outcome="success",
            lot_id=lot.id,
            ingredient_id=ingredient_id,
        )
        return lot.to_dict()

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except (IngredientNotFound, ServiceValidationError):
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to add stock lot", original_error=e)


def get_stock_lot(lot_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Retrieve a stock lot by ID.

    Raises:
        StockLotNotFound: If no lot has this ID
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        lot = sess.get(StockLot, lot_id)
        if lot is None:
            raise StockLotNotFound(lot_id)
        return lot.to_dict()

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def _eligible_query(sess: Session, ingredient_id: int, as_of: datetime):
    return (
        sess.query(StockLot)
        .filter(
            StockLot.ingredient_id == ingredient_id,
            StockLot.consumed_at.is_(None),
            StockLot.expires_at > as_of,
            StockLot.quantity > 0,
        )
        .order_by(StockLot.id.asc())
    )


def get_eligible_lots(
    ingredient_id: int,
    as_of: Optional[datetime] = None,
    session: Optional[Session] = None,
    for_update: bool = False,
) -> List[LotSnapshot]:
    """Get snapshots of the lots of an ingredient that can be allocated.

    A lot is eligible when it is unconsumed, expires after ``as_of`` and
    holds a positive quantity. Results are ordered by id (FIFO).

    Args:
        ingredient_id: Ingredient to query
        as_of: Reference instant (default: now)
        session: Optional session; required for ``for_update`` to matter
        for_update: Lock the selected rows (SELECT ... FOR UPDATE) on
            backends that support it

    Returns:
        List of LotSnapshot, oldest intake first
    """
    as_of = ensure_utc(as_of) if as_of else utc_now()

    def _impl(sess: Session) -> List[LotSnapshot]:
        query = _eligible_query(sess, ingredient_id, as_of)
        if for_update:
            query = query.with_for_update()
        return [lot.to_snapshot() for lot in query.all()]

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_lot_pool(
    ingredient_id: int,
    as_of: Optional[datetime] = None,
    session: Optional[Session] = None,
    for_update: bool = False,
) -> LotPool:
    """Build the LotPool of an ingredient from the database."""
    as_of = ensure_utc(as_of) if as_of else utc_now()
    lots = get_eligible_lots(ingredient_id, as_of, session=session, for_update=for_update)
    return LotPool.from_lots(ingredient_id, lots, as_of)


def list_stock_lots(
    ingredient_id: Optional[int] = None,
    sort_key: LotSortKey = LotSortKey.ID,
    ascending: bool = True,
    page: int = 1,
    page_size: int = 20,
    include_consumed: bool = False,
    session: Optional[Session] = None,
) -> PaginatedResult[Dict[str, Any]]:
    """List stock lots page by page.

    Ties on the sort column are broken by id so paging is stable.

    Args:
        ingredient_id: Restrict to one ingredient (default: all)
        sort_key: Column to order by
        ascending: Sort direction
        page: Page number (1-indexed)
        page_size: Lots per page
        include_consumed: Also list consumed lots and split records
        session: Optional session for transaction composition

    Returns:
        PaginatedResult of lot dictionaries

    Raises:
        ValidationError: If sort_key is not a LotSortKey or paging is invalid
    """
    if not isinstance(sort_key, LotSortKey):
        raise ServiceValidationError([f"Unknown sort key: {sort_key!r}"])
    try:
        params = PaginationParams(page=page, per_page=page_size)
    except ValueError as e:
        raise ServiceValidationError([str(e)])

    column = _SORT_COLUMNS[sort_key]

    def _impl(sess: Session) -> PaginatedResult[Dict[str, Any]]:
        query = sess.query(StockLot)
        if ingredient_id is not None:
            query = query.filter(StockLot.ingredient_id == ingredient_id)
        if not include_consumed:
            query = query.filter(StockLot.consumed_at.is_(None))

        total = query.count()
        order = (column.asc(), StockLot.id.asc()) if ascending else (column.desc(), StockLot.id.desc())
        lots = query.order_by(*order).offset(params.offset()).limit(params.per_page).all()
        return PaginatedResult(
            items=[lot.to_dict() for lot in lots],
            total=total,
            page=params.page,
            per_page=params.per_page,
        )

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_stock_status(
    ingredient_id: int,
    as_of: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> Dict[str, bool]:
    """Summarize the stock state of an ingredient.

    Only unconsumed lots with a positive quantity are considered.

    Args:
        ingredient_id: Ingredient to inspect
        as_of: Reference instant (default: now)
        session: Optional session for transaction composition

    Returns:
        Dictionary with:
        - stock_empty: no usable lot is left
        - stock_expired: at least one remaining lot has expired
        - stock_almost_expired: at least one usable lot expires within
          the configured almost-expired window

    Raises:
        IngredientNotFound: If the ingredient does not exist
    """
    as_of = ensure_utc(as_of) if as_of else utc_now()
    horizon = as_of + timedelta(days=get_config().almost_expired_days)

    def _impl(sess: Session) -> Dict[str, bool]:
        if sess.get(Ingredient, ingredient_id) is None:
            raise IngredientNotFound(ingredient_id)

        lots = (
            sess.query(StockLot)
            .filter(
                StockLot.ingredient_id == ingredient_id,
                StockLot.consumed_at.is_(None),
                StockLot.quantity > 0,
            )
            .all()
        )
        expiries = [ensure_utc(lot.expires_at) for lot in lots]
        usable = [expires_at for expires_at in expiries if expires_at > as_of]
        return {
            "stock_empty": not usable,
            "stock_expired": any(expires_at <= as_of for expires_at in expiries),
            "stock_almost_expired": any(expires_at <= horizon for expires_at in usable),
        }

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
