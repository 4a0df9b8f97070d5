"""Database layer - engine, base classes, and column types."""

from store_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from store_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from store_kernel.db.types import (
    Label,
    LongText,
    Money,
    Quantity,
    ShortCode,
    Timestamp,
    TZDateTime,
)

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "TZDateTime",
    "Money",
    "Quantity",
    "ShortCode",
    "Label",
    "Timestamp",
    "LongText",
]
