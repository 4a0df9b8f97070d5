"""
ReferenceNumberService -- assigns ``REQ-YYYYMMDD-NNNN`` request numbers.

Responsibility:
    Draws the day's next counter from SequenceService
    (``request_number:YYYYMMDD``), then runs the pure generator with a
    probe against ``store_requests.request_number``.  Under normal
    operation the first candidate is free; the probe guards against rows
    numbered before the counter existed.  When the probe had to skip ahead,
    the counter is advanced past the number handed out.

Architecture position:
    Kernel > Services.  Called by the workflow engine at the first
    stock-issuing transition of a request.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from store_kernel.domain.clock import Clock, SystemClock
from store_kernel.domain.reference_number import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PREFIX,
    DEFAULT_WIDTH,
    counter_of,
    generate_reference_number,
)
from store_kernel.logging_config import get_logger
from store_kernel.models.request import StoreRequest
from store_kernel.services.sequence_service import SequenceService

logger = get_logger("services.reference")


class ReferenceNumberService:
    """Unique human-readable request numbers, one counter per day."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        prefix: str = DEFAULT_PREFIX,
        width: int = DEFAULT_WIDTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence = SequenceService(session)
        self._prefix = prefix
        self._width = width
        self._max_attempts = max_attempts

    @staticmethod
    def sequence_name(day: date) -> str:
        return f"request_number:{day:%Y%m%d}"

    def is_taken(self, reference_number: str) -> bool:
        return self._session.execute(
            select(StoreRequest.id).where(StoreRequest.request_number == reference_number)
        ).first() is not None

    def next_reference_number(self) -> str:
        """
        Allocate the next free reference number for today.

        Raises:
            ReferenceNumberExhaustedError: no free number within the
                probe bound or the counter space.
        """
        today = self._clock.today()
        name = self.sequence_name(today)
        start = self._sequence.next_value(name)

        number = generate_reference_number(
            today,
            self.is_taken,
            start=start,
            max_attempts=self._max_attempts,
            prefix=self._prefix,
            width=self._width,
        )

        issued = counter_of(number)
        if issued != start:
            self._sequence.advance_to(name, issued)
            logger.warning(
                "reference_number_collision_skipped",
                extra={"sequence_name": name, "start": start, "issued": issued},
            )

        logger.info(
            "reference_number_assigned",
            extra={"reference_number": number},
        )
        return number
