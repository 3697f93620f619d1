"""
Conflict retry -- bounded automatic retry of serialization failures.

Responsibility:
    Re-runs a complete unit of work when the database reports that the
    transaction lost a serialization race (PostgreSQL SQLSTATE 40001 /
    40P01, SQLite busy/locked).  All other errors propagate untouched.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Wrapped around every write operation of ReconciliationService.

Invariants enforced:
    - Only ConcurrencyConflict-class failures are retried; NotFound,
      validation and state-conflict errors surface immediately.
    - The wrapped callable owns commit/rollback, so every attempt starts
      from a clean transaction.
    - After ``max_attempts`` the failure surfaces as ConcurrencyConflictError.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DBAPIError

from receiving_kernel.exceptions import ConcurrencyConflictError
from receiving_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

_SQLITE_BUSY_MESSAGES = ("database is locked", "database table is locked")


@dataclass(frozen=True)
class ConflictRetryPolicy:
    """How many times, and how patiently, to retry a conflicting unit of work."""
    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def is_serialization_conflict(exc: BaseException) -> bool:
    """True if ``exc`` is a DB error that a fresh transaction may not hit."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(text in message for text in _SQLITE_BUSY_MESSAGES)


def run_with_conflict_retry(
    operation: str,
    unit_of_work: Callable[[], T],
    policy: ConflictRetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``unit_of_work`` and retry it on serialization conflicts.

    Args:
        operation: Name used in logs and in the surfaced error.
        unit_of_work: Callable that runs (and commits or rolls back) one
            complete transaction.
        policy: Attempt limit and linear backoff.
        sleep: Injectable for tests.

    Raises:
        ConcurrencyConflictError: If every attempt hit a conflict.
    """
    policy = policy or ConflictRetryPolicy()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return unit_of_work()
        except DBAPIError as exc:
            if not is_serialization_conflict(exc):
                raise
            if attempt >= policy.max_attempts:
                logger.error(
                    "serialization_conflict_exhausted",
                    extra={"operation": operation, "attempts": attempt},
                )
                raise ConcurrencyConflictError(operation, attempt) from exc
            logger.warning(
                "serialization_conflict_retry",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                },
            )
            sleep(policy.backoff_seconds * attempt)
    raise AssertionError("unreachable")
