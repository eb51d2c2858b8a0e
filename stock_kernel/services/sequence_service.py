"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per sequence name.  Lots use the
    ``stock_item_receipt`` sequence as their creation order, which is the
    FEFO tie-break between lots sharing an expiration date.

Invariants enforced:
    - Values come from the locked counter row, never from MAX(...) + 1
      over the lots table.
    - The increment belongs to the caller's unit of work: a rollback
      returns the value.

Failure modes:
    - OptimisticLockError when two transactions create the same counter
      row at once.  The StockEngine retries the operation, which then finds
      the row.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.exceptions import OptimisticLockError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.sequence_counter import SequenceCounterModel

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional sequence numbers.

    Contract:
        next_value(name) returns an integer greater than every value
        previously committed for that name.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the transaction.
    """

    STOCK_ITEM_RECEIPT = "stock_item_receipt"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounterModel | None:
        return self._session.execute(
            select(SequenceCounterModel)
            .where(SequenceCounterModel.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounterModel(name=sequence_name, current_value=1)
            self._session.add(counter)
            try:
                self._session.flush()
            except IntegrityError as exc:
                logger.debug(
                    "sequence_counter_race",
                    extra={"sequence_name": sequence_name},
                )
                raise OptimisticLockError("sequence_counters", sequence_name) from exc
        else:
            counter.current_value += 1
            self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounterModel).where(SequenceCounterModel.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter is not None else None
