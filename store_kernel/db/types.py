"""
Module: store_kernel.db.types
Responsibility: Annotated type aliases and the timezone-preserving datetime
    column type shared by every store model.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Quantities are whole numbers (BigInteger); stock is counted, not measured.
    - Costs are Decimal (Numeric(38, 9)); never float.
    - Timestamps round-trip as timezone-aware UTC values on every backend.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, DateTime, Numeric, String, Text
from sqlalchemy.types import TypeDecorator


class TZDateTime(TypeDecorator):
    """
    Timezone-aware DateTime that survives backends without tz storage.

    PostgreSQL keeps the offset natively.  SQLite drops it, so values are
    normalised to UTC on the way in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


# Column aliases.  Models declare ``Mapped[Money]`` etc.; Base.type_annotation_map
# resolves each alias to the SQL type carried in its metadata.

Money = Annotated[Decimal, Numeric(38, 9)]

# Counted stock (pieces, boxes, sets ...)
Quantity = Annotated[int, BigInteger()]

# Enum values, request numbers
ShortCode = Annotated[str, String(50)]

# Names, serial numbers, sections, actor ids
Label = Annotated[str, String(255)]

# Notes, descriptions, reasons
LongText = Annotated[str, Text()]

Timestamp = Annotated[datetime, TZDateTime()]

COLUMN_ALIASES = (Money, Quantity, ShortCode, Label, LongText, Timestamp)
