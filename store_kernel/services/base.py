"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback it.  Each mutating operation
      runs in its own SAVEPOINT (``atomic``) so a failed operation leaves
      no partial change behind while the caller's transaction stays usable.
    - Optimistic conflicts: a StaleDataError at flush (lost version race
      on an Item or StoreRequest row) surfaces as a retryable ConflictError.
"""

from abc import ABC
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from store_kernel.db.base import Base
from store_kernel.exceptions import ConflictError
from store_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.base")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only listings -- those belong in
          ``store_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def atomic(self, entity_type: str, entity_id: object) -> Iterator[None]:
        """
        Run the body in a SAVEPOINT and flush before releasing it.

        Any exception rolls the savepoint back, so none of the body's
        changes reach the database.  StaleDataError is re-raised as
        ConflictError naming ``entity_type``/``entity_id``.
        """
        try:
            with self.session.begin_nested():
                yield
                self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "optimistic_lock_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            raise ConflictError(entity_type, str(entity_id)) from exc
