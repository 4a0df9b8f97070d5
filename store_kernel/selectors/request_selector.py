"""
Module: store_kernel.selectors.request_selector
Responsibility: Read-only listing and lookup of store requests, each line
    enriched with the item's current stock level.
Architecture position: Kernel > Selectors.

Ordering:
    Active requests only, by status rank ascending (pending first, rejected
    last, unknown statuses in the middle), then newest first.  The rank is
    computed in SQL so the database does the sorting.

Failure modes:
    - get_request raises RequestNotFoundError for an unknown id.
    - list_requests returns an empty list when nothing matches.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from uuid import UUID

from sqlalchemy import case, select

from store_kernel.domain.dtos import RequestFilter, RequestView
from store_kernel.domain.validation import as_uuid
from store_kernel.exceptions import RequestNotFoundError
from store_kernel.models.item import Item
from store_kernel.models.request import StoreRequest
from store_kernel.selectors.base import BaseSelector

DEFAULT_STATUS_RANK: Mapping[str, int] = MappingProxyType({
    "pending": 0,
    "approved": 1,
    "allocated": 2,
    "inTransit": 3,
    "completed": 4,
    "cancelled": 5,
    "forwardedToWSG": 6,
    "forwardedToCOD": 7,
    "rejected": 99,
})
DEFAULT_UNKNOWN_RANK = 50


def _plain(value):
    return value.value if isinstance(value, Enum) else value


class RequestSelector(BaseSelector[StoreRequest]):
    """Listing and lookup of requests."""

    def __init__(
        self,
        session,
        status_rank: Mapping[str, int] | None = None,
        unknown_rank: int = DEFAULT_UNKNOWN_RANK,
    ):
        super().__init__(session)
        self._status_rank = dict(status_rank or DEFAULT_STATUS_RANK)
        self._unknown_rank = unknown_rank

    def _stock_levels(self, requests: Iterable[StoreRequest]) -> dict[UUID, int]:
        item_ids = {line.item_id for r in requests for line in r.line_items}
        if not item_ids:
            return {}
        rows = self.session.execute(
            select(Item.id, Item.stock_level)
            .where(Item.id.in_(item_ids))
            .where(Item.is_active.is_(True))
        ).all()
        return {item_id: stock for item_id, stock in rows}

    def list_requests(self, request_filter: RequestFilter | None = None) -> list[RequestView]:
        """Active requests matching the filter, in display order."""
        f = request_filter or RequestFilter()
        rank = case(self._status_rank, value=StoreRequest.status, else_=self._unknown_rank)

        stmt = select(StoreRequest).where(StoreRequest.is_active.is_(True))
        if f.status is not None:
            stmt = stmt.where(StoreRequest.status == _plain(f.status))
        if f.section is not None:
            stmt = stmt.where(StoreRequest.requester_section == f.section)
        if f.priority is not None:
            stmt = stmt.where(StoreRequest.priority == _plain(f.priority))
        if f.location is not None:
            stmt = stmt.where(StoreRequest.current_location == _plain(f.location))
        stmt = stmt.order_by(rank.asc(), StoreRequest.requested_at.desc(), StoreRequest.id)

        requests = self.session.execute(stmt).scalars().all()
        levels = self._stock_levels(requests)
        return [r.to_dto(levels) for r in requests]

    def get_request(self, request_id: UUID | str) -> RequestView:
        """One request by id, active or not, with live stock per line."""
        uid = as_uuid(request_id)
        request = None if uid is None else self.session.get(StoreRequest, uid)
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request.to_dto(self._stock_levels([request]))
