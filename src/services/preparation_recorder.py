"""
Preparation Recorder - atomically consumes stock for a preparation.

The only component that mutates stock lots. A commit:

1. takes the in-process locks of every affected ingredient (sorted by id,
   so two commits never wait on each other in opposite order)
2. opens one database transaction and re-reads the eligible lots with
   SELECT ... FOR UPDATE where the backend supports it
3. re-runs allocation for the requested count; if stock no longer covers
   it, raises ConcurrentModificationError and nothing is written
4. applies every consumption step and appends one PreparationRecord

Applying a step:
- whole lot taken: the lot keeps its quantity and gets consumed_at stamped
- part of a lot taken: the lot is decremented and a split record holding
  the consumed portion (same price, currency, purchase and expiry data,
  source_lot_id pointing back) is inserted with consumed_at stamped

Every record consumed by the commit is linked to the PreparationRecord.
When the caller supplies the session, the ingredient locks are held until
that session's transaction ends, not just until commit() returns.
Transient OperationalErrors (e.g. SQLite "database is locked") retry the
whole transaction a bounded number of times.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Optional, Sequence

from sqlalchemy import event
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction, scoped_session

from ..models import PreparationRecord, StockLot
from ..utils.config import get_config
from ..utils.datetime_utils import ensure_utc, utc_now
from .allocation_engine import allocate, validate_desired
from .database import session_scope
from .dto import AllocationResult, ConsumptionStep, Requirement
from .dto_utils import to_decimal
from .exceptions import ConcurrentModificationError, DatabaseError, MalformedRequestError
from .logging_utils import get_service_logger, log_operation
from .lot_pool import LotPool
from .stock_service import get_eligible_lots

logger = get_service_logger(__name__)


class IngredientLocks:
    """
    Process-wide registry of one lock per ingredient.

    Commits touching disjoint ingredients run in parallel; commits sharing
    an ingredient are serialized. Locks are reentrant so one transaction can
    record several preparations of recipes sharing an ingredient.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}

    def _lock_for(self, ingredient_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(ingredient_id)
            if lock is None:
                lock = self._locks[ingredient_id] = threading.RLock()
            return lock

    def acquire(self, ingredient_ids: Iterable[int]) -> Callable[[], None]:
        """
        Acquire the locks of ``ingredient_ids`` in ascending id order.

        Returns:
            Callable releasing them; calling it more than once is a no-op.
            It must run on the acquiring thread.
        """
        acquired = []
        try:
            for ingredient_id in sorted(set(ingredient_ids)):
                lock = self._lock_for(ingredient_id)
                lock.acquire()
                acquired.append(lock)
        except BaseException:
            for lock in reversed(acquired):
                lock.release()
            raise

        def release() -> None:
            while acquired:
                acquired.pop().release()

        return release

    @contextmanager
    def hold(self, ingredient_ids: Iterable[int]):
        """Hold the locks of ``ingredient_ids`` for the duration of the block."""
        release = self.acquire(ingredient_ids)
        try:
            yield
        finally:
            release()


_shared_locks = IngredientLocks()

_PENDING_RELEASES = "larder.pending_lock_releases"


def _release_pending(session: Session, transaction: SessionTransaction) -> None:
    pending = session.info.get(_PENDING_RELEASES)
    if not pending:
        return
    remaining = []
    for owner, release in pending:
        if owner is transaction:
            release()
        else:
            remaining.append((owner, release))
    pending[:] = remaining


def _release_at_transaction_end(session: Session, release: Callable[[], None]) -> None:
    """Defer ``release`` until the session's current root transaction ends."""
    if isinstance(session, scoped_session):
        session = session()
    transaction = session.get_transaction()
    if transaction is None:
        release()
        return
    pending = session.info.get(_PENDING_RELEASES)
    if pending is None:
        pending = session.info[_PENDING_RELEASES] = []
        event.listen(session, "after_transaction_end", _release_pending)
    pending.append((transaction, release))


def _plan_signature(result: AllocationResult):
    return sorted((step.lot_id, step.quantity) for step in result.steps())


class PreparationRecorder:
    """
    Commits allocation plans to the database.

    Args:
        clock: Callable returning the current UTC instant
        locks: Ingredient lock registry (default: shared by the process)
        commit_retries: Attempts on OperationalError (default from config)

    Raises:
        ValueError: If commit_retries is below 1
    """

    def __init__(
        self,
        clock: Callable = utc_now,
        locks: Optional[IngredientLocks] = None,
        commit_retries: Optional[int] = None,
    ):
        self._clock = clock
        self._locks = locks if locks is not None else _shared_locks
        self._commit_retries = (
            commit_retries if commit_retries is not None else get_config().commit_retries
        )
        if self._commit_retries < 1:
            raise ValueError(f"commit_retries must be >= 1, got {self._commit_retries}")

    def commit(
        self,
        recipe_id: int,
        requirements: Sequence[Requirement],
        requested: int,
        *,
        stale_plan: Optional[AllocationResult] = None,
        session: Optional[Session] = None,
    ) -> PreparationRecord:
        """
        Consume stock for ``requested`` preparations of a recipe.

        Args:
            recipe_id: Recipe being prepared
            requirements: Its per-preparation requirements
            requested: Number of preparations (> 0)
            stale_plan: Plan the caller inspected before deciding to commit;
                used only to log when the fresh plan differs
            session: Optional session; the caller then owns commit/rollback
                and no retry happens. The ingredient locks stay held until
                the session's transaction ends, so it must be committed or
                rolled back on the calling thread.

        Returns:
            The appended PreparationRecord

        Raises:
            MalformedRequestError: If requested <= 0 or requirements are empty
            ConcurrentModificationError: If stock no longer covers the request
            DatabaseError: If persistence fails after all retries
        """
        requested = validate_desired(requested)
        if not requirements:
            raise MalformedRequestError("cannot commit a preparation without requirements")
        ingredient_ids = [requirement.ingredient_id for requirement in requirements]

        if session is not None:
            release = self._locks.acquire(ingredient_ids)
            try:
                return self._commit_once(session, recipe_id, requirements, requested, stale_plan)
            finally:
                _release_at_transaction_end(session, release)

        with self._locks.hold(ingredient_ids):
            for attempt in range(1, self._commit_retries + 1):
                try:
                    with session_scope() as sess:
                        return self._commit_once(
                            sess, recipe_id, requirements, requested, stale_plan
                        )
                except OperationalError as e:
                    if attempt == self._commit_retries:
                        raise DatabaseError(
                            f"Failed to commit preparation of recipe {recipe_id}",
                            original_error=e,
                        )
                    log_operation(
                        logger,
                        operation="commit_preparation",
                        outcome="retry",
                        level=logging.WARNING,
                        recipe_id=recipe_id,
                        attempt=attempt,
                        error=str(e),
                    )
                except SQLAlchemyError as e:
                    raise DatabaseError(
                        f"Failed to commit preparation of recipe {recipe_id}",
                        original_error=e,
                    )

    def _commit_once(
        self,
        sess: Session,
        recipe_id: int,
        requirements: Sequence[Requirement],
        requested: int,
        stale_plan: Optional[AllocationResult],
    ) -> PreparationRecord:
        now = ensure_utc(self._clock())
        pools = {}
        for requirement in requirements:
            ingredient_id = requirement.ingredient_id
            if ingredient_id not in pools:
                lots = get_eligible_lots(ingredient_id, now, session=sess, for_update=True)
                pools[ingredient_id] = LotPool.from_lots(ingredient_id, lots, now)

        result = allocate(requirements, requested, pools)
        if not result.satisfied:
            log_operation(
                logger,
                operation="commit_preparation",
                outcome="concurrent_modification",
                level=logging.WARNING,
                recipe_id=recipe_id,
                requested=requested,
                max_preparations=result.max_preparations,
            )
            raise ConcurrentModificationError(recipe_id, requested, result.shortages.values())

        if stale_plan is not None and _plan_signature(stale_plan) != _plan_signature(result):
            log_operation(
                logger,
                operation="commit_preparation",
                outcome="plan_changed",
                recipe_id=recipe_id,
                requested=requested,
            )

        record = PreparationRecord(recipe_id=recipe_id, amount=requested, prepared_at=now)
        sess.add(record)
        sess.flush()

        for step in result.steps():
            self._apply_step(sess, step, record.id, now)
        sess.flush()

        log_operation(
            logger,
            operation="commit_preparation",
            outcome="success",
            recipe_id=recipe_id,
            requested=requested,
            preparation_id=record.id,
            lots_touched=len(result.steps()),
        )
        return record

    @staticmethod
    def _apply_step(sess: Session, step: ConsumptionStep, preparation_id: int, now) -> None:
        lot = sess.get(StockLot, step.lot_id)
        if step.depletes_lot:
            lot.consumed_at = now
            lot.preparation_id = preparation_id
            return

        lot.quantity = float(to_decimal(lot.quantity) - step.lot_quantity)
        sess.add(
            StockLot(
                ingredient_id=lot.ingredient_id,
                quantity=float(step.lot_quantity),
                unit=lot.unit,
                unit_price=lot.unit_price,
                currency=lot.currency,
                purchase_date=lot.purchase_date,
                expires_at=lot.expires_at,
                consumed_at=now,
                source_lot_id=lot.id,
                preparation_id=preparation_id,
            )
        )
