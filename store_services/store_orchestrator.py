"""
store_services.store_orchestrator -- central DI container for store services.

Responsibility:
    Creates every kernel service exactly once per session and wires them
    together, applying configuration through ``store_config.bridges``.
    No kernel service creates other services internally.

Architecture position:
    Services -- the only place where kernel services are constructed and
    composed.  Sits above store_kernel and store_config.

Invariants enforced:
    - All services share the same Session and Clock.
    - Without a configuration the kernel defaults apply.

Non-goals:
    - Does NOT manage transaction boundaries (caller's responsibility, or
      ``run_with_conflict_retry``).

Usage:
    orchestrator = StoreOrchestrator(session, config=get_active_config())
    view = orchestrator.engine.perform_action(request_id, "approve", "mgr-1",
                                              actor_role="localStoreManager")
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from store_config.bridges import (
    build_action_policy,
    build_status_rank,
    reference_number_options,
)
from store_config.schema import StoreConfiguration
from store_kernel.domain.action_policy import ActionPolicy
from store_kernel.domain.clock import Clock, SystemClock
from store_kernel.selectors.request_selector import DEFAULT_UNKNOWN_RANK, RequestSelector
from store_kernel.services.item_ledger import ItemLedgerService
from store_kernel.services.reference_service import ReferenceNumberService
from store_kernel.services.request_service import RequestService
from store_kernel.services.workflow_engine import (
    DEFAULT_REJECTION_REASON,
    RequestWorkflowEngine,
)


class StoreOrchestrator:
    """Central factory for store services.

    Attributes:
        ledger: ItemLedgerService
        requests: RequestService
        references: ReferenceNumberService
        engine: RequestWorkflowEngine
        selector: RequestSelector
    """

    def __init__(
        self,
        session: Session,
        config: StoreConfiguration | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.config = config
        self.clock = clock or SystemClock()

        if config is not None:
            policy = build_action_policy(config)
            reference_options = reference_number_options(config)
            rejection_reason = config.workflow.default_rejection_reason
            status_rank = build_status_rank(config)
            unknown_rank = config.listing.unknown_rank
        else:
            policy = ActionPolicy()
            reference_options = {}
            rejection_reason = DEFAULT_REJECTION_REASON
            status_rank = None
            unknown_rank = DEFAULT_UNKNOWN_RANK

        self.ledger = ItemLedgerService(session, self.clock)
        self.requests = RequestService(session, self.ledger, self.clock)
        self.references = ReferenceNumberService(session, self.clock, **reference_options)
        self.engine = RequestWorkflowEngine(
            session,
            self.ledger,
            self.requests,
            self.references,
            policy,
            self.clock,
            default_rejection_reason=rejection_reason,
        )
        self.selector = RequestSelector(session, status_rank, unknown_rank)
