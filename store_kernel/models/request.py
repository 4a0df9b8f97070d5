"""
Module: store_kernel.models.request
Responsibility: ORM persistence for store requests and their line-item
    snapshots.

Architecture position: Kernel > Models.  May import from db/ and domain/
    only.

Invariants enforced:
    - status is one of the request lifecycle values (check constraint);
      the workflow engine enforces which transitions are legal.
    - request_number is unique when assigned (NULL until the first
      stock-issuing transition).
    - Optimistic concurrency via ``version`` (mapper version_id_col).
    - Line items are snapshots: name, serial, category, unit and cost are
      copied from the item at creation and never refreshed.  UPDATE and
      DELETE on a line raise ImmutabilityViolationError.
    - Requests are never deleted; cancel clears ``is_active``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from store_kernel.db.base import Base, TrackedBase, UUIDString
from store_kernel.db.types import Label, LongText, Money, Quantity, ShortCode, Timestamp
from store_kernel.domain.dtos import LineItemView, RequestView
from store_kernel.domain.values import RequestStatus
from store_kernel.exceptions import ImmutabilityViolationError

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in RequestStatus)


class StoreRequest(TrackedBase):
    """One outstanding ask for items, moved along by the workflow engine."""

    __tablename__ = "store_requests"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_store_requests_valid_status",
        ),
        CheckConstraint(
            "total_estimated_cost >= 0",
            name="ck_store_requests_total_nonnegative",
        ),
        Index("ix_store_requests_status", "status"),
        Index("ix_store_requests_section", "requester_section"),
        Index("ix_store_requests_requested_at", "requested_at"),
    )

    request_number: Mapped[ShortCode | None] = mapped_column(nullable=True, unique=True)
    requester_id: Mapped[Label] = mapped_column(nullable=False)
    requester_name: Mapped[Label] = mapped_column(nullable=False)
    requester_section: Mapped[Label] = mapped_column(nullable=False)
    requester_rank: Mapped[Label | None] = mapped_column(nullable=True)
    status: Mapped[ShortCode] = mapped_column(nullable=False)
    priority: Mapped[ShortCode] = mapped_column(nullable=False)
    requested_at: Mapped[Timestamp] = mapped_column(nullable=False)
    approved_by: Mapped[Label | None] = mapped_column(nullable=True)
    approved_at: Mapped[Timestamp | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[LongText | None] = mapped_column(nullable=True)
    current_location: Mapped[ShortCode] = mapped_column(nullable=False)
    source_location: Mapped[ShortCode] = mapped_column(nullable=False)
    allocated_from: Mapped[ShortCode | None] = mapped_column(nullable=True)
    allocation_date: Mapped[Timestamp | None] = mapped_column(nullable=True)
    allocated_by: Mapped[Label | None] = mapped_column(nullable=True)
    notes: Mapped[LongText] = mapped_column(nullable=False, default="")
    total_estimated_cost: Mapped[Money] = mapped_column(nullable=False)
    estimated_delivery_date: Mapped[Timestamp | None] = mapped_column(nullable=True)
    actual_delivery_date: Mapped[Timestamp | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    line_items: Mapped[list["RequestLineItem"]] = relationship(
        "RequestLineItem",
        back_populates="request",
        order_by="RequestLineItem.line_no",
        cascade="save-update, merge",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<StoreRequest {self.request_number or self.id} "
            f"status={self.status} v{self.version}>"
        )

    def append_note(self, text: str) -> None:
        """Append to the notes log, one entry per line."""
        self.notes = f"{self.notes}\n{text}" if self.notes else text

    def to_dto(self, stock_levels: dict[UUID, int] | None = None) -> RequestView:
        """Convert ORM model to frozen domain DTO.

        ``stock_levels`` (item id -> current stock) enriches each line for
        listings; items missing from the map read as 0.
        """
        return RequestView(
            id=self.id,
            request_number=self.request_number,
            requester_id=self.requester_id,
            requester_name=self.requester_name,
            requester_section=self.requester_section,
            requester_rank=self.requester_rank,
            line_items=tuple(
                line.to_dto(
                    None if stock_levels is None else stock_levels.get(line.item_id, 0)
                )
                for line in self.line_items
            ),
            status=self.status,
            priority=self.priority,
            requested_at=self.requested_at,
            approved_by=self.approved_by,
            approved_at=self.approved_at,
            rejection_reason=self.rejection_reason,
            current_location=self.current_location,
            source_location=self.source_location,
            allocated_from=self.allocated_from,
            allocation_date=self.allocation_date,
            allocated_by=self.allocated_by,
            notes=self.notes,
            total_estimated_cost=self.total_estimated_cost,
            estimated_delivery_date=self.estimated_delivery_date,
            actual_delivery_date=self.actual_delivery_date,
            is_active=self.is_active,
            version=self.version,
        )


class RequestLineItem(Base):
    """Snapshot of one requested item at request time."""

    __tablename__ = "request_line_items"

    __table_args__ = (
        UniqueConstraint("request_id", "line_no", name="uq_request_line_items_line_no"),
        CheckConstraint("quantity > 0", name="ck_request_line_items_quantity_positive"),
        CheckConstraint("estimated_cost >= 0", name="ck_request_line_items_cost_nonnegative"),
        Index("ix_request_line_items_item", "item_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("store_requests.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(nullable=False)
    # Non-owning reference: no foreign key, the item may be deactivated later
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    item_name: Mapped[Label] = mapped_column(nullable=False)
    serial_number: Mapped[Label] = mapped_column(nullable=False)
    category: Mapped[ShortCode] = mapped_column(nullable=False)
    unit_of_measure: Mapped[ShortCode] = mapped_column(nullable=False)
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    purpose: Mapped[LongText | None] = mapped_column(nullable=True)
    estimated_cost: Mapped[Money] = mapped_column(nullable=False)

    request: Mapped[StoreRequest] = relationship("StoreRequest", back_populates="line_items")

    def __repr__(self) -> str:
        return f"<RequestLineItem {self.request_id}#{self.line_no} {self.item_name} x{self.quantity}>"

    def to_dto(self, current_stock: int | None = None) -> LineItemView:
        return LineItemView(
            line_no=self.line_no,
            item_id=self.item_id,
            item_name=self.item_name,
            serial_number=self.serial_number,
            category=self.category,
            unit_of_measure=self.unit_of_measure,
            quantity=self.quantity,
            purpose=self.purpose,
            estimated_cost=self.estimated_cost,
            current_stock=current_stock,
        )


@event.listens_for(RequestLineItem, "before_update")
def prevent_line_item_update(mapper, connection, target):
    """Line items are cost/identity snapshots and are never refreshed."""
    raise ImmutabilityViolationError(
        entity_type="RequestLineItem",
        entity_id=str(target.id),
        reason="Request line items are snapshots -- cannot modify",
    )


@event.listens_for(RequestLineItem, "before_delete")
def prevent_line_item_delete(mapper, connection, target):
    """Prevent deletion of request line items."""
    raise ImmutabilityViolationError(
        entity_type="RequestLineItem",
        entity_id=str(target.id),
        reason="Request line items are snapshots -- cannot delete",
    )
