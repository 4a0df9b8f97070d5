"""
Values -- Enumerated vocabularies of the store domain.

Responsibility:
    Every closed set of strings the store speaks (categories, conditions,
    locations, transaction types, request statuses, actions, roles) is a
    ``(str, Enum)`` here.  Members compare equal to their wire strings, so
    the values stored in the database and accepted at the CLI are exactly
    the ``.value`` of each member.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module.

Failure modes:
    - ValidationError from ``parse_enum`` when a string names no member.
"""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

from store_kernel.exceptions import ValidationError


class Location(str, Enum):
    """Where stock physically sits."""

    LOCAL_STORE = "localStore"
    WSG_STORE = "wsgStore"
    COD = "cod"


class ItemCategory(str, Enum):
    ORDNANCE = "ORDNANCE"
    DGEME = "DGEME"
    PMSE = "PMSE"
    TTG = "TTG"


class ConditionStatus(str, Enum):
    SERVICEABLE = "serviceable"
    UNSERVICEABLE = "unserviceable"
    OBT = "OBT"
    OBE = "OBE"


class UnitOfMeasure(str, Enum):
    PIECES = "Pieces"
    KILOS = "Kilos"
    LITERS = "Liters"
    METERS = "Meters"
    BOXES = "Boxes"
    SETS = "Sets"
    UNITS = "Units"


class TransactionType(str, Enum):
    """Kinds of entry in an item's transaction history."""

    RECEIVED = "received"
    ISSUED = "issued"
    RETURNED = "returned"
    DAMAGED = "damaged"
    CALIBRATED = "calibrated"


class StockDirection(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


# How a direct stock movement moves the count.  None: no stock change.
MOVEMENT_DIRECTIONS: dict[TransactionType, StockDirection | None] = {
    TransactionType.RECEIVED: StockDirection.INCREASE,
    TransactionType.RETURNED: StockDirection.INCREASE,
    TransactionType.ISSUED: StockDirection.DECREASE,
    TransactionType.DAMAGED: StockDirection.DECREASE,
    TransactionType.CALIBRATED: None,
}


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


def stock_status_for(stock_level: int, min_stock_level: int) -> StockStatus:
    """Derive the stock status from the current and minimum levels."""
    if stock_level == 0:
        return StockStatus.OUT_OF_STOCK
    if stock_level <= min_stock_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RequestStatus(str, Enum):
    """Request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FORWARDED_TO_WSG = "forwardedToWSG"
    FORWARDED_TO_COD = "forwardedToCOD"
    ALLOCATED = "allocated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorkflowAction(str, Enum):
    """Named actions an actor can perform on a request, in display order."""

    APPROVE = "approve"
    REJECT = "reject"
    FORWARD_TO_WSG = "forwardToWSG"
    FORWARD_TO_COD = "forwardToCOD"
    ALLOCATE = "allocate"
    COMPLETE = "complete"
    CANCEL = "cancel"


class ActorRole(str, Enum):
    LOCAL_STORE_MANAGER = "localStoreManager"
    WSG_STORE_MANAGER = "wsgStoreManager"
    REQUESTER = "requester"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: str | E, field: str) -> E:
    """
    Coerce a wire string to an enum member.

    Raises:
        ValidationError: value is not one of the member values.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise ValidationError(
            f"Invalid {field}: {value!r} (expected one of: {allowed})",
            field=field,
        ) from None
