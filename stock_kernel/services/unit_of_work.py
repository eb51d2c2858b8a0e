"""
UnitOfWork -- one database transaction plus its post-commit hooks.

Responsibility:
    Owns a SQLAlchemy session for the duration of one operation.  Work done
    inside the ``with`` block is committed on normal exit and rolled back on
    an exception.  Callbacks registered with ``on_success`` run only after
    the commit has returned, in registration order; on rollback they are
    discarded without running.

Invariants enforced:
    - A hook never runs before commit returns, and never runs after a
      rollback.
    - A failing hook is logged at ERROR and does not affect the committed
      transaction, the remaining hooks, or the caller.
    - A stale optimistic-lock write (StaleDataError at flush or commit)
      surfaces as OptimisticLockError after the transaction is rolled back.

The unit of work active in the current context is available through
``UnitOfWork.current()`` so collaborators that were not handed one
explicitly can still defer work until commit.
"""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar, Token
from types import TracebackType

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.exceptions import OptimisticLockError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")

_current_uow: ContextVar[UnitOfWork | None] = ContextVar("_current_uow", default=None)

SuccessHook = Callable[[], None]


class UnitOfWork:
    """
    Transaction scope around one session.

    Usage:
        with UnitOfWork(session_factory) as uow:
            service = AllocationService(uow.session, clock)
            result = service.allocate(...)
            coordinator.dispatch(result.events, uow)
        # committed here; events delivered after commit
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._session: Session | None = None
        self._hooks: list[SuccessHook] = []
        self._token: Token | None = None
        self._active = False

    @classmethod
    def current(cls) -> UnitOfWork | None:
        """The unit of work active in this context, if any."""
        return _current_uow.get()

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork is not active; use it as a context manager")
        return self._session

    @property
    def active(self) -> bool:
        return self._active

    def on_success(self, hook: SuccessHook) -> None:
        """Run ``hook`` after this unit of work commits."""
        if not self._active:
            raise RuntimeError("Cannot register a success hook on an inactive UnitOfWork")
        self._hooks.append(hook)

    def __enter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        self._hooks = []
        self._active = True
        self._token = _current_uow.set(self)
        logger.debug("unit_of_work_started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        try:
            if exc is None:
                self._commit()
            else:
                self._rollback()
                logger.warning(
                    "unit_of_work_rolled_back",
                    extra={"error_type": type(exc).__name__},
                )
                if isinstance(exc, StaleDataError):
                    raise OptimisticLockError(_entity_from(exc)) from exc
        finally:
            self._finish()
        return False

    def _commit(self) -> None:
        session = self.session
        try:
            session.flush()
            session.commit()
        except StaleDataError as exc:
            self._rollback()
            logger.warning("unit_of_work_conflict", extra={"detail": str(exc)})
            raise OptimisticLockError(_entity_from(exc)) from exc
        except Exception:
            self._rollback()
            logger.warning("unit_of_work_commit_failed", exc_info=True)
            raise

        hooks, self._hooks = self._hooks, []
        self._active = False
        logger.debug("unit_of_work_committed", extra={"hooks": len(hooks)})
        for hook in hooks:
            self._run_hook(hook)

    def _rollback(self) -> None:
        discarded = len(self._hooks)
        self._hooks = []
        self._active = False
        if self._session is not None:
            self._session.rollback()
        if discarded:
            logger.debug("success_hooks_discarded", extra={"hooks": discarded})

    @staticmethod
    def _run_hook(hook: SuccessHook) -> None:
        try:
            hook()
        except Exception:
            logger.error("success_hook_failed", exc_info=True)

    def _finish(self) -> None:
        self._active = False
        if self._token is not None:
            _current_uow.reset(self._token)
            self._token = None
        if self._session is not None:
            self._session.close()
            self._session = None


def _entity_from(exc: StaleDataError) -> str:
    # "UPDATE statement on table 'stock_items' expected to update 1 row(s)..."
    message = str(exc)
    if "'" in message:
        return message.split("'")[1]
    return "unknown"
