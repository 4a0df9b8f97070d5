"""
store_services.conflict_retry -- rerun a whole action after an optimistic conflict.

Responsibility:
    Owns the transaction around one unit of work: opens a session, runs
    the operation, commits.  On ConflictError the transaction is rolled
    back and the operation is rerun from scratch in a fresh session, so
    every attempt re-reads current versions.  Any other error rolls back
    and propagates immediately.

Architecture position:
    Services -- above the kernel.  The kernel never retries on its own.

Invariants enforced:
    - Bounded: at most ``max_attempts`` runs; the last ConflictError
      propagates to the caller.
    - Nothing from a failed attempt is committed.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session

from store_kernel.exceptions import ConflictError
from store_kernel.logging_config import get_logger

logger = get_logger("services.conflict_retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def run_with_conflict_retry(
    session_factory: Callable[[], Session],
    operation: Callable[[Session], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """
    Run ``operation(session)`` and commit, retrying on ConflictError.

    Args:
        session_factory: Produces a new Session per attempt.
        operation: The unit of work.  Must not commit; must be safe to
            rerun (it sees a fresh session each time).
        max_attempts: Upper bound on runs (>= 1).

    Returns:
        Whatever ``operation`` returned on the committed attempt.

    Raises:
        ValueError: max_attempts < 1.
        ConflictError: every attempt conflicted.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        session = session_factory()
        try:
            result = operation(session)
            session.commit()
            if attempt > 1:
                logger.info("conflict_retry_succeeded", extra={"attempt": attempt})
            return result
        except ConflictError as exc:
            session.rollback()
            if attempt == max_attempts:
                logger.error(
                    "conflict_retry_exhausted",
                    extra={
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "entity_type": exc.entity_type,
                        "entity_id": exc.entity_id,
                    },
                )
                raise
            logger.warning(
                "conflict_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "entity_type": exc.entity_type,
                    "entity_id": exc.entity_id,
                },
            )
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    raise AssertionError("unreachable")  # pragma: no cover
