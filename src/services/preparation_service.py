"""
Preparation Service - how many times a recipe can be made, at what cost,
and reserving the stock to make it.

This service wires the collaborators together:

    recipe requirements -> lot pool per ingredient -> allocation engine
    -> costing engine -> [check_and_reserve only] preparation recorder

Read-only operations work on a snapshot of the eligible lots and take no
locks. check_and_reserve pre-checks the same way and, when stock covers
the request, hands off to the PreparationRecorder, which re-validates
inside its own transaction.

Example:
    >>> service = PreparationService(create_currency_normalizer())
    >>> service.get_max_preparations(recipe_id)
    {'recipe_id': 1, 'max_preparations': 3, 'total_cost': Decimal('10.00'),
     'unit_cost': Decimal('3.33'), 'currency': 'RON'}
    >>> service.check_and_reserve(recipe_id, 2)["success"]
    True
"""

from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..models import PreparationRecord, Recipe, StockLot
from ..utils.datetime_utils import ensure_utc, utc_now
from .allocation_engine import allocate, max_preparations, validate_desired
from .costing_engine import cost_plan
from .database import session_scope
from .dto import AllocationResult, CostSummary, Requirement
from .dto_utils import round_money, to_decimal
from .ingredient_service import get_ingredient_names
from .logging_utils import get_service_logger, log_operation
from .lot_pool import LotPool
from .preparation_recorder import PreparationRecorder
from .recipe_service import get_recipe_requirements
from .stock_service import get_lot_pool

logger = get_service_logger(__name__)


class PreparationService:
    """
    Outbound operations of the allocation core.

    Args:
        normalizer: CurrencyNormalizer shared by the process
        clock: Callable returning the current UTC instant
        recorder: PreparationRecorder (default: one using ``clock``)
    """

    def __init__(
        self,
        normalizer,
        clock: Callable[[], datetime] = utc_now,
        recorder: Optional[PreparationRecorder] = None,
    ):
        self._normalizer = normalizer
        self._clock = clock
        self._recorder = recorder or PreparationRecorder(clock=clock)

    def _snapshot(
        self, recipe_id: int, session: Optional[Session]
    ) -> Tuple[Sequence[Requirement], Dict[int, LotPool]]:
        as_of = ensure_utc(self._clock())
        with nullcontext(session) if session is not None else session_scope() as sess:
            requirements = get_recipe_requirements(recipe_id, session=sess)
            pools = {}
            for requirement in requirements:
                if requirement.ingredient_id not in pools:
                    pools[requirement.ingredient_id] = get_lot_pool(
                        requirement.ingredient_id, as_of, session=sess
                    )
        return requirements, pools

    def get_max_preparations(
        self, recipe_id: int, session: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Compute the maximum preparations of a recipe and what they would cost.

        Nothing is reserved or written.

        Args:
            recipe_id: Recipe to evaluate
            session: Optional database session

        Returns:
            Dictionary with recipe_id, max_preparations, total_cost and
            unit_cost (Decimal, 2 places, base currency) and currency

        Raises:
            RecipeNotFound: If the recipe does not exist
            RateUnavailableError: If a lot's currency cannot be converted
        """
        requirements, pools = self._snapshot(recipe_id, session)
        count = max_preparations(requirements, pools)

        if count > 0:
            summary = cost_plan(allocate(requirements, count, pools), count, self._normalizer)
        else:
            summary = CostSummary(
                total_cost=round_money(0),
                unit_cost=round_money(0),
                currency=self._normalizer.base_currency,
            )

        log_operation(
            logger,
            operation="get_max_preparations",
            outcome="success",
            recipe_id=recipe_id,
            max_preparations=count,
        )
        return {
            "recipe_id": recipe_id,
            "max_preparations": count,
            "total_cost": summary.total_cost,
            "unit_cost": summary.unit_cost,
            "currency": summary.currency,
        }

    def check_and_reserve(
        self, recipe_id: int, desired_preparations: int, session: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Reserve stock for ``desired_preparations`` preparations if possible.

        A shortage is a normal result, never an exception.

        Args:
            recipe_id: Recipe to prepare
            desired_preparations: Number of preparations (> 0)
            session: Optional database session; the caller then owns the
                transaction, and the affected ingredients stay locked until
                it commits or rolls back

        Returns:
            Dictionary with:
            - success: True if stock was consumed and a preparation recorded
            - shortages: list of {ingredient_id, ingredient_name,
              missing_quantity, display_unit} (empty on success)
            - preparation_id: ID of the new PreparationRecord, or None

        Raises:
            MalformedRequestError: If desired_preparations <= 0
            RecipeNotFound: If the recipe does not exist
            ConcurrentModificationError: If another commit took the stock
                between the check and the commit
        """
        desired = validate_desired(desired_preparations)
        requirements, pools = self._snapshot(recipe_id, session)
        result = allocate(requirements, desired, pools)

        if not result.satisfied:
            shortages = self._describe_shortages(result, session)
            log_operation(
                logger,
                operation="check_and_reserve",
                outcome="insufficient_stock" if requirements else "no_requirements",
                recipe_id=recipe_id,
                requested=desired,
                max_preparations=result.max_preparations,
                missing_ingredients=[item["ingredient_id"] for item in shortages],
            )
            return {"success": False, "shortages": shortages, "preparation_id": None}

        record = self._recorder.commit(
            recipe_id, requirements, desired, stale_plan=result, session=session
        )
        log_operation(
            logger,
            operation="check_and_reserve",
            outcome="reserved",
            recipe_id=recipe_id,
            requested=desired,
            preparation_id=record.id,
        )
        return {"success": True, "shortages": [], "preparation_id": record.id}

    def _describe_shortages(
        self, result: AllocationResult, session: Optional[Session]
    ) -> List[Dict[str, Any]]:
        names = get_ingredient_names(result.shortages.keys(), session=session)
        return [
            {
                "ingredient_id": shortage.ingredient_id,
                "ingredient_name": names.get(shortage.ingredient_id),
                "missing_quantity": shortage.missing_quantity,
                "display_unit": shortage.display_unit,
            }
            for shortage in result.shortages.values()
        ]

    def get_preparation_history(
        self,
        recipe_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
        session: Optional[Session] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query committed preparations, newest first.

        Args:
            recipe_id: Optional filter by recipe ID
            limit: Maximum number of results (default 100)
            offset: Number of results to skip (for pagination)
            session: Optional database session

        Returns:
            List of preparation dictionaries, each with recipe_name and the
            stock records it consumed under "consumed"
        """
        with nullcontext(session) if session is not None else session_scope() as sess:
            query = sess.query(PreparationRecord, Recipe.name).join(
                Recipe, Recipe.id == PreparationRecord.recipe_id
            )
            if recipe_id is not None:
                query = query.filter(PreparationRecord.recipe_id == recipe_id)
            rows = (
                query.order_by(PreparationRecord.prepared_at.desc(), PreparationRecord.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )

            ids = [record.id for record, _ in rows]
            consumed: Dict[int, List[Dict[str, Any]]] = {record_id: [] for record_id in ids}
            if ids:
                lots = (
                    sess.query(StockLot)
                    .filter(StockLot.preparation_id.in_(ids))
                    .order_by(StockLot.id)
                    .all()
                )
                for lot in lots:
                    consumed[lot.preparation_id].append(
                        {
                            "lot_id": lot.id,
                            "source_lot_id": lot.source_lot_id,
                            "ingredient_id": lot.ingredient_id,
                            "quantity": to_decimal(lot.quantity),
                            "unit": lot.unit,
                            "unit_price": to_decimal(lot.unit_price),
                            "currency": lot.currency,
                        }
                    )

            return [
                {
                    "id": record.id,
                    "recipe_id": record.recipe_id,
                    "recipe_name": recipe_name,
                    "amount": record.amount,
                    "prepared_at": ensure_utc(record.prepared_at).isoformat(),
                    "consumed": consumed[record.id],
                }
                for record, recipe_name in rows
            ]
