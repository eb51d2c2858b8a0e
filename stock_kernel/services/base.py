"""
BaseService -- abstract base for all stock services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service.  Services receive the SQLAlchemy ``Session`` of the caller's unit
    of work and the injected Clock, and use ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's unit of
      work and never commit or roll back themselves.  The UnitOfWork (driven
      by the StockEngine or a test) owns commit/rollback.
    - Services return the domain events they produced; they never publish.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base
from stock_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all stock services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only queries for callers -- those belong in
          ``stock_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
