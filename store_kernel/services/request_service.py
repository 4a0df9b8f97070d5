"""
RequestService -- creates store requests with line-item snapshots.

Responsibility:
    Validates a RequestInput against the Item Ledger, snapshots each
    requested item (name, serial, category, unit, unit cost x quantity)
    and persists a ``pending`` StoreRequest.  Status changes after creation
    belong to the workflow engine.

Architecture position:
    Kernel > Services.  Flushes, never commits.

Invariants enforced:
    - A request has at least one line; every quantity is a positive integer.
    - Every line's item is active and held at the request's source location.
    - total_estimated_cost == sum of line estimated costs at creation.
    - No reference number is assigned at creation.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from store_kernel.domain.clock import Clock, SystemClock
from store_kernel.domain.dtos import RequestInput, RequestView
from store_kernel.domain.validation import as_uuid, require_positive_int, require_text
from store_kernel.domain.values import Location, Priority, RequestStatus, parse_enum
from store_kernel.exceptions import (
    LocationMismatchError,
    RequestNotFoundError,
    ValidationError,
)
from store_kernel.logging_config import get_logger
from store_kernel.models.request import RequestLineItem, StoreRequest
from store_kernel.services.base import BaseService
from store_kernel.services.item_ledger import ItemLedgerService

logger = get_logger("services.request")


class RequestService(BaseService[StoreRequest]):
    """Creation and lookup of StoreRequest rows."""

    def __init__(
        self,
        session: Session,
        ledger: ItemLedgerService,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._clock = clock or SystemClock()

    def load_request(self, request_id: UUID | str) -> StoreRequest:
        """Return the StoreRequest row (active or not); RequestNotFoundError otherwise."""
        uid = as_uuid(request_id)
        request = self.session.get(StoreRequest, uid) if uid is not None else None
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    def create_request(self, data: RequestInput) -> RequestView:
        """
        Validate and persist a new pending request.

        Raises:
            ValidationError: missing requester fields, unknown priority or
                location, no lines, non-positive quantity, or an item held
                somewhere other than the source location.
            ItemNotFoundError: a line names a missing or inactive item.
        """
        requester_id = require_text(data.requester_id, "requester_id")
        requester_name = require_text(data.requester_name, "requester_name")
        requester_section = require_text(data.requester_section, "requester_section")
        priority = parse_enum(Priority, data.priority, "priority")
        source = parse_enum(Location, data.source_location, "source_location")

        if not data.line_items:
            raise ValidationError("At least one item must be requested", field="line_items")

        lines: list[RequestLineItem] = []
        total = Decimal("0")
        for line_no, requested in enumerate(data.line_items, start=1):
            item = self._ledger.load_item(requested.item_id)
            quantity = require_positive_int(requested.quantity, "quantity")
            if item.location != source.value:
                raise LocationMismatchError(item.name, item.location, source.value)

            estimated = item.cost * quantity
            total += estimated
            lines.append(
                RequestLineItem(
                    line_no=line_no,
                    item_id=item.id,
                    item_name=item.name,
                    serial_number=item.serial_number,
                    category=item.category,
                    unit_of_measure=item.unit_of_measure,
                    quantity=quantity,
                    purpose=requested.purpose,
                    estimated_cost=estimated,
                )
            )

        request = StoreRequest(
            id=uuid4(),
            request_number=None,
            requester_id=requester_id,
            requester_name=requester_name,
            requester_section=requester_section,
            requester_rank=data.requester_rank,
            status=RequestStatus.PENDING.value,
            priority=priority.value,
            requested_at=self._clock.now(),
            current_location=source.value,
            source_location=source.value,
            notes=data.notes or "",
            total_estimated_cost=total,
            is_active=True,
            line_items=lines,
        )

        with self.atomic("StoreRequest", request.id):
            self.session.add(request)

        logger.info(
            "request_created",
            extra={
                "request_id": str(request.id),
                "requester_id": requester_id,
                "line_count": len(lines),
                "total_estimated_cost": total,
                "source_location": source.value,
            },
        )
        return request.to_dto()
