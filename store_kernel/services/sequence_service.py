"""
Per-name counters handing out strictly increasing numbers.

Each name owns one row in ``sequence_counters``.  Allocation locks that
row (``SELECT ... FOR UPDATE`` on PostgreSQL), bumps it and flushes, so
two transactions drawing from the same name queue on the row instead of
both reading "max + 1".  Reference numbers use one name per day,
``request_number:YYYYMMDD``.

A value only becomes visible when the caller commits; a rollback hands it
back.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from store_kernel.logging_config import get_logger
from store_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Allocates from named counters.  Flushes only; never commits."""

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock, bump and return the counter for ``sequence_name`` (first value 1).

        Only the counter row is reloaded; every other object in the session
        keeps the state it was read with, so version checks still see it.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create it at the same time;
            # the savepoint keeps the caller's other work intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def advance_to(self, sequence_name: str, value: int) -> None:
        """
        Raise a sequence to at least ``value``; never lowers it.

        Used when a caller had to skip past values already taken
        elsewhere (e.g. reference numbers written before the counter
        existed).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=value)
            self._session.add(counter)
        elif counter.current_value < value:
            counter.current_value = value

        self._session.flush()
