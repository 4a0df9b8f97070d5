"""
Declarative bases for the store models.

``Base`` gives every table a uuid4 primary key and a shared type map:
costs are ``Numeric(38, 9)`` (never float), datetimes are ``TZDateTime``
so they load back timezone-aware on SQLite as well as PostgreSQL, and
integers are ``BigInteger``.  ``TrackedBase`` adds server-side
``created_at`` / ``updated_at``; business times such as ``requested_at``
or ``recorded_at`` come from the injected clock instead.

Nothing here imports from models, services or selectors.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from store_kernel.db.types import COLUMN_ALIASES, TZDateTime


class UUIDString(TypeDecorator):
    """UUID kept as its 36-character text form, so one schema fits every backend."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: TZDateTime(),
        int: BigInteger,
        **{alias: alias.__metadata__[0] for alias in COLUMN_ALIASES},
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        TZDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False
    )
