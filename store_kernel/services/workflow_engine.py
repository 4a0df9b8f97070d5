"""
RequestWorkflowEngine -- moves store requests through their lifecycle.

Responsibility:
    The only component that changes a request's status, and the only one
    that issues stock as a side effect of a transition.  Each call to
    ``perform_action`` runs four steps in order:

        1. Policy    -- may the actor's declared role perform the action?
        2. Guard     -- is the action legal from the current status
                        (REQUEST_WORKFLOW)?
        3. Check     -- for stock-issuing transitions, read and check EVERY
                        line item (exists, location, stock) before touching
                        any of them.
        4. Mutate    -- inside one SAVEPOINT: assign a reference number if
                        needed, issue stock per line through the Item
                        Ledger, then update the request.

    A failure in steps 1-3 leaves everything untouched.  A lost optimistic
    race in step 4 rolls the savepoint back and raises ConflictError.

Architecture position:
    Kernel > Services.  Flushes, never commits.  Depends on
    ItemLedgerService, RequestService, ReferenceNumberService and the
    domain ActionPolicy / REQUEST_WORKFLOW.

Invariants enforced:
    - Terminal statuses (rejected, completed, forwardedToCOD, cancelled)
      accept no action.
    - reject and cancel never touch stock or transaction history.
    - All-or-nothing issue: approve and allocate check all lines first.
      Lines naming the same item are checked against their combined
      quantity.
    - A request number, once assigned, is never changed.

Failure modes:
    - ValidationError: unknown action, missing performer, bad allocatedFrom,
      location mismatch.
    - RequestNotFoundError / ItemNotFoundError.
    - UnauthorizedActionError, InvalidTransitionError,
      InsufficientStockError, ConflictError, ReferenceNumberExhaustedError.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from store_kernel.domain.action_policy import ActionPolicy
from store_kernel.domain.clock import Clock, SystemClock
from store_kernel.domain.dtos import RequestView
from store_kernel.domain.validation import require_text
from store_kernel.domain.values import (
    Location,
    StockDirection,
    TransactionType,
    WorkflowAction,
    parse_enum,
)
from store_kernel.domain.workflow import REQUEST_WORKFLOW, Transition
from store_kernel.exceptions import (
    InsufficientStockError,
    InvalidTransitionError,
    ItemNotFoundError,
    LocationMismatchError,
    StoreKernelError,
    UnauthorizedActionError,
    ValidationError,
)
from store_kernel.logging_config import LogContext, get_logger
from store_kernel.models.item import Item
from store_kernel.models.request import RequestLineItem, StoreRequest
from store_kernel.services.base import BaseService
from store_kernel.services.item_ledger import ItemLedgerService
from store_kernel.services.reference_service import ReferenceNumberService
from store_kernel.services.request_service import RequestService

logger = get_logger("services.workflow_engine")

DEFAULT_REJECTION_REASON = "Request rejected"

_ALLOCATION_SOURCES = (Location.LOCAL_STORE, Location.WSG_STORE)

_ACTION_ORDER = {action.value: index for index, action in enumerate(WorkflowAction)}


class RequestWorkflowEngine(BaseService[StoreRequest]):
    """
    State machine executor for store requests.

    Usage:
        engine = RequestWorkflowEngine(session, ledger, requests, references)
        view = engine.perform_action(
            request_id, "approve", "mgr-1", actor_role="localStoreManager",
        )
    """

    def __init__(
        self,
        session: Session,
        ledger: ItemLedgerService,
        requests: RequestService,
        references: ReferenceNumberService,
        policy: ActionPolicy | None = None,
        clock: Clock | None = None,
        *,
        default_rejection_reason: str = DEFAULT_REJECTION_REASON,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._requests = requests
        self._references = references
        self._policy = policy or ActionPolicy()
        self._clock = clock or SystemClock()
        self._default_rejection_reason = default_rejection_reason

        self._effects: dict[WorkflowAction, Callable[[StoreRequest, str, str | None], None]] = {
            WorkflowAction.APPROVE: self._mark_approved,
            WorkflowAction.REJECT: self._mark_rejected,
            WorkflowAction.FORWARD_TO_WSG: self._mark_forwarded_to_wsg,
            WorkflowAction.FORWARD_TO_COD: self._mark_forwarded_to_cod,
            WorkflowAction.ALLOCATE: self._mark_allocated,
            WorkflowAction.COMPLETE: self._mark_completed,
            WorkflowAction.CANCEL: self._mark_cancelled,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def perform_action(
        self,
        request_id: UUID | str,
        action: WorkflowAction | str,
        performed_by: str,
        *,
        notes: str | None = None,
        allocated_from: Location | str | None = None,
        actor_role: str | None = None,
    ) -> RequestView:
        """Apply ``action`` to the request and return its new view."""
        action_name = action.value if isinstance(action, WorkflowAction) else str(action)
        with LogContext.bind(
            request_id=str(request_id),
            actor_id=performed_by,
            action=action_name,
        ):
            try:
                return self._perform(
                    request_id, action, performed_by, notes, allocated_from, actor_role,
                )
            except StoreKernelError as exc:
                logger.warning(
                    "workflow_action_failed",
                    extra={"error_code": exc.code, "error": str(exc)},
                )
                raise

    def available_actions(self, request_id: UUID | str, role: str | None) -> tuple[str, ...]:
        """Actions legal from the request's status that ``role`` may perform."""
        request = self._requests.load_request(request_id)
        legal = sorted(REQUEST_WORKFLOW.actions_from(request.status), key=_ACTION_ORDER.get)
        return self._policy.permitted(legal, role)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _perform(
        self,
        request_id: UUID | str,
        action: WorkflowAction | str,
        performed_by: str,
        notes: str | None,
        allocated_from: Location | str | None,
        actor_role: str | None,
    ) -> RequestView:
        act = parse_enum(WorkflowAction, action, "action")
        performer = require_text(performed_by, "performed_by")
        request = self._requests.load_request(request_id)

        # 1. Policy
        allowed, reason = self._policy.check(act.value, actor_role)
        if not allowed:
            raise UnauthorizedActionError(act.value, actor_role, reason)

        # 2. Guard
        transition = REQUEST_WORKFLOW.find_transition(request.status, act.value)
        if transition is None:
            raise InvalidTransitionError(str(request.id), request.status, act.value)

        # 3. Check
        source: Location | None = None
        if act is WorkflowAction.ALLOCATE:
            source = self._require_allocation_source(allocated_from)
        issue_lines = self._lines_to_issue(request, transition, source)

        # 4. Mutate
        from_status = request.status
        with self.atomic("StoreRequest", request.id):
            if issue_lines:
                self._issue(request, act, issue_lines, performer)
            if source is not None:
                request.allocated_from = source.value
            self._effects[act](request, performer, notes)
            request.status = transition.to_state

        logger.info(
            "request_transitioned",
            extra={
                "from_status": from_status,
                "to_status": request.status,
                "request_number": request.request_number,
                "issued_lines": len(issue_lines),
            },
        )
        return request.to_dto()

    def _require_allocation_source(self, allocated_from: Location | str | None) -> Location:
        if allocated_from is None:
            raise ValidationError(
                "allocatedFrom is required to allocate a request", field="allocated_from",
            )
        source = parse_enum(Location, allocated_from, "allocated_from")
        if source not in _ALLOCATION_SOURCES:
            raise ValidationError(
                f"Cannot allocate from {source.value}; "
                "allocatedFrom must be localStore or wsgStore",
                field="allocated_from",
            )
        return source

    def _lines_to_issue(
        self,
        request: StoreRequest,
        transition: Transition,
        allocation_source: Location | None,
    ) -> list[tuple[RequestLineItem, Item]]:
        """Read and check every line; return them only if ALL pass."""
        if not transition.issues_stock:
            return []

        if allocation_source is None:
            # approve: only a local-store request issues stock on approval
            if request.source_location != Location.LOCAL_STORE.value:
                return []
            required = Location.LOCAL_STORE
            accepts = {Location.LOCAL_STORE.value}
        else:
            required = allocation_source
            if allocation_source is Location.WSG_STORE:
                # the central store can draw on local stock too
                accepts = {Location.WSG_STORE.value, Location.LOCAL_STORE.value}
            else:
                accepts = {allocation_source.value}

        checked: list[tuple[RequestLineItem, Item]] = []
        claimed: dict[UUID, int] = {}
        for line in request.line_items:
            try:
                item = self._ledger.load_item(line.item_id)
            except ItemNotFoundError:
                raise ItemNotFoundError(str(line.item_id), line.item_name) from None

            if item.location not in accepts:
                raise LocationMismatchError(item.name, item.location, required.value)

            available = item.stock_level - claimed.get(item.id, 0)
            if available < line.quantity:
                raise InsufficientStockError(
                    str(item.id), item.name, line.quantity, available,
                )
            claimed[item.id] = claimed.get(item.id, 0) + line.quantity
            checked.append((line, item))
        return checked

    def _issue(
        self,
        request: StoreRequest,
        act: WorkflowAction,
        lines: list[tuple[RequestLineItem, Item]],
        performer: str,
    ) -> None:
        if request.request_number is None:
            request.request_number = self._references.next_reference_number()
        number = request.request_number

        verb = "Issued on approval" if act is WorkflowAction.APPROVE else "Allocated"
        for line, item in lines:
            self._ledger.adjust_stock(
                item.id, line.quantity, StockDirection.DECREASE, stamp_issued=True,
            )
            self._ledger.record_transaction(
                item.id,
                TransactionType.ISSUED,
                line.quantity,
                number,
                performer,
                notes=f"{verb} for request {number}",
            )

    # ------------------------------------------------------------------
    # Per-action effects on the request row
    # ------------------------------------------------------------------

    def _append_notes(self, request: StoreRequest, notes: str | None) -> None:
        if notes:
            request.append_note(notes)

    def _mark_approved(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.approved_by = performer
        request.approved_at = self._clock.now()
        self._append_notes(request, notes)

    def _mark_rejected(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.rejection_reason = notes or self._default_rejection_reason
        if notes:
            request.append_note(f"Rejection reason: {notes}")

    def _mark_forwarded_to_wsg(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.current_location = Location.WSG_STORE.value
        self._append_notes(request, notes)

    def _mark_forwarded_to_cod(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.current_location = Location.COD.value
        self._append_notes(request, notes)

    def _mark_allocated(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.allocation_date = self._clock.now()
        request.allocated_by = performer
        self._append_notes(request, notes)

    def _mark_completed(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.actual_delivery_date = self._clock.now()
        self._append_notes(request, notes)

    def _mark_cancelled(self, request: StoreRequest, performer: str, notes: str | None) -> None:
        request.is_active = False
        self._append_notes(request, notes)

