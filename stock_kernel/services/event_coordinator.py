"""
EventCommitCoordinator -- commit-ordered event delivery.

Responsibility:
    Hands domain events to the messaging sink only once the state change
    that produced them is durable.

Rules:
    - A unit of work is active (passed explicitly, or current in context):
      delivery is registered as an on-success hook and happens after commit.
      On rollback nothing is delivered.
    - No unit of work is active: events are delivered synchronously, now.
    - A sink failure is logged at ERROR with the exception and the event
      ids.  It is never raised, and never undoes the committed change.
"""

from __future__ import annotations

from collections.abc import Iterable

from stock_kernel.domain.events import DomainEvent
from stock_kernel.logging_config import get_logger
from stock_kernel.ports import MessagingSink
from stock_kernel.services.unit_of_work import UnitOfWork

logger = get_logger("services.event_coordinator")


class EventCommitCoordinator:

    def __init__(self, sink: MessagingSink):
        self._sink = sink

    def dispatch(
        self,
        events: Iterable[DomainEvent],
        unit_of_work: UnitOfWork | None = None,
    ) -> None:
        batch = tuple(events)
        if not batch:
            return

        uow = unit_of_work if unit_of_work is not None else UnitOfWork.current()
        if uow is not None and uow.active:
            uow.on_success(lambda: self._deliver(batch))
            logger.debug(
                "events_deferred_until_commit",
                extra={"event_count": len(batch)},
            )
            return

        self._deliver(batch)

    def _deliver(self, batch: tuple[DomainEvent, ...]) -> None:
        try:
            self._sink.publish(list(batch))
        except Exception:
            logger.error(
                "event_publication_failed",
                exc_info=True,
                extra={
                    "event_count": len(batch),
                    "event_ids": [str(e.event_id) for e in batch],
                    "event_types": [e.event_type for e in batch],
                },
            )
            return
        logger.info(
            "events_published",
            extra={
                "event_count": len(batch),
                "event_types": [e.event_type for e in batch],
            },
        )
