"""
Module: store_kernel.models.sequence
Responsibility: Named counter rows behind SequenceService.

Each row is one named sequence with its current value; the service locks
the row (``SELECT ... FOR UPDATE``) to increment it.
"""

from sqlalchemy.orm import Mapped, mapped_column

from store_kernel.db.base import Base
from store_kernel.db.types import Label


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    # Sequence name (e.g. "request_number:20240115")
    name: Mapped[Label] = mapped_column(
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )
