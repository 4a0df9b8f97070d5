"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    The immutable shapes that cross the kernel boundary: inputs for item
    registration and request creation, read views of items, transactions
    and requests, and the listing filter.

Architecture position:
    Kernel > Domain -- zero I/O, free of ORM dependencies.  Models build
    views through their ``to_dto()`` methods; services accept inputs and
    return views, never ORM entities.

Data flow:
    ItemInput -> Item -> ItemView
    RequestInput -> StoreRequest -> RequestView (+ live stock per line)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from store_kernel.domain.values import (
    ConditionStatus,
    Location,
    Priority,
    StockStatus,
)


# =========================================================================
# Items
# =========================================================================


@dataclass(frozen=True)
class ItemInput:
    """Everything needed to register a new stock-keeping unit.

    Enum-valued fields accept either the enum member or its string value;
    the ledger validates them.
    """

    name: str
    category: str
    serial_number: str
    location: str
    unit_of_measure: str
    cost: Decimal
    stock_level: int = 0
    min_stock_level: int = 0
    condition_status: str = ConditionStatus.SERVICEABLE.value
    section: str | None = None
    description: str | None = None
    supplier: str | None = None
    date_received: datetime | None = None
    lead_time_days: int = 30
    calibration_schedule: str | None = None
    expiration_date: date | None = None


@dataclass(frozen=True)
class ItemView:
    id: UUID
    name: str
    description: str | None
    category: str
    serial_number: str
    condition_status: str
    location: str
    stock_level: int
    min_stock_level: int
    unit_of_measure: str
    section: str | None
    cost: Decimal
    supplier: str | None
    date_received: datetime | None
    last_issued: datetime | None
    lead_time_days: int
    calibration_schedule: str | None
    expiration_date: date | None
    is_active: bool
    version: int
    stock_status: StockStatus


@dataclass(frozen=True)
class TransactionView:
    """One entry of an item's append-only history."""

    item_id: UUID
    position: int
    recorded_at: datetime
    transaction_type: str
    quantity: int
    reference: str
    notes: str | None
    performed_by: str


# =========================================================================
# Requests
# =========================================================================


@dataclass(frozen=True)
class LineItemInput:
    item_id: UUID | str
    quantity: int
    purpose: str | None = None


@dataclass(frozen=True)
class RequestInput:
    requester_id: str
    requester_name: str
    requester_section: str
    line_items: tuple[LineItemInput, ...]
    priority: str = Priority.MEDIUM.value
    notes: str | None = None
    source_location: str = Location.LOCAL_STORE.value
    requester_rank: str | None = None


@dataclass(frozen=True)
class LineItemView:
    """A request line: snapshot values plus, when listed, live stock."""

    line_no: int
    item_id: UUID
    item_name: str
    serial_number: str
    category: str
    unit_of_measure: str
    quantity: int
    purpose: str | None
    estimated_cost: Decimal
    current_stock: int | None = None


@dataclass(frozen=True)
class RequestView:
    id: UUID
    request_number: str | None
    requester_id: str
    requester_name: str
    requester_section: str
    requester_rank: str | None
    line_items: tuple[LineItemView, ...]
    status: str
    priority: str
    requested_at: datetime
    approved_by: str | None
    approved_at: datetime | None
    rejection_reason: str | None
    current_location: str
    source_location: str
    allocated_from: str | None
    allocation_date: datetime | None
    allocated_by: str | None
    notes: str
    total_estimated_cost: Decimal
    estimated_delivery_date: datetime | None
    actual_delivery_date: datetime | None
    is_active: bool
    version: int


@dataclass(frozen=True)
class RequestFilter:
    """Listing filter; None means "any"."""

    status: str | None = None
    section: str | None = None
    priority: str | None = None
    location: str | None = None

