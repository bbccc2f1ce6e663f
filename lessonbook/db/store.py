"""Transaction boundary with bounded retry shared by the booking engine and the ledger.

``run_in_transaction`` opens a fresh session per attempt, runs ``fn`` inside
``session.begin()`` and commits. Write conflicts (stale version counters,
serialization failures, SQLite lock contention) roll back and rerun ``fn``
from scratch; once the attempts are spent :class:`TransactionConflict` is
raised and the caller decides what that means for its operation. Connection
level failures are retried the same way and end as :class:`StoreUnavailable`.
Anything else, business errors included, propagates on the first attempt.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..core.errors import StoreUnavailable, TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3

# PostgreSQL serialization_failure and deadlock_detected
_CONFLICT_PGCODES = {"40001", "40P01"}

_CONFLICT = "conflict"
_UNAVAILABLE = "unavailable"


def _classify(exc: Exception) -> str | None:
    if isinstance(exc, StaleDataError):
        return _CONFLICT
    if isinstance(exc, DBAPIError):
        if getattr(exc.orig, "pgcode", None) in _CONFLICT_PGCODES:
            return _CONFLICT
        if "database is locked" in str(exc.orig):
            return _CONFLICT
        if isinstance(exc, OperationalError) or exc.connection_invalidated:
            return _UNAVAILABLE
    return None


class TransactionalStore:
    def __init__(self, session_factory: sessionmaker, *, attempts: int = DEFAULT_ATTEMPTS) -> None:
        if attempts < 1:
            raise ValueError("attempts must be positive")
        self._session_factory = session_factory
        self.attempts = attempts

    def run_in_transaction(self, fn: Callable[[Session], T], *, attempts: int | None = None) -> T:
        attempts = attempts or self.attempts
        last_kind = None
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            session = self._session_factory()
            try:
                with session.begin():
                    return fn(session)
            except (StaleDataError, DBAPIError) as exc:
                kind = _classify(exc)
                if kind is None:
                    raise
                last_kind, last_exc = kind, exc
                logger.warning(
                    "Transaction attempt failed, retrying",
                    extra={"attempt": attempt, "attempts": attempts, "kind": kind},
                )
            finally:
                session.close()
        if last_kind == _CONFLICT:
            raise TransactionConflict(f"Gave up after {attempts} attempts") from last_exc
        raise StoreUnavailable() from last_exc

    def read(self, fn: Callable[[Session], T], *, attempts: int | None = None) -> T:
        """Run ``fn`` outside an explicit transaction, retrying transient failures."""
        attempts = attempts or self.attempts
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            session = self._session_factory()
            try:
                return fn(session)
            except (StaleDataError, DBAPIError) as exc:
                if _classify(exc) is None:
                    raise
                last_exc = exc
                logger.warning(
                    "Store read failed, retrying",
                    extra={"attempt": attempt, "attempts": attempts},
                )
            finally:
                session.close()
        raise StoreUnavailable() from last_exc


_store: TransactionalStore | None = None


def get_store() -> TransactionalStore:
    global _store
    if _store is None:
        from ..config import get_settings
        from .session import SessionLocal

        _store = TransactionalStore(
            SessionLocal, attempts=get_settings().transaction_retry_attempts
        )
    return _store
