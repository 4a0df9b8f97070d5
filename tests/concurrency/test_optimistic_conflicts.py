"""
Optimistic concurrency tests.

Two sessions against one file database, each committing for real.  A
session that acted on a stale read must get ConflictError with nothing
of its action applied; the retry helper reruns the action on fresh reads.

Run with: pytest tests/concurrency -v
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from store_kernel.domain.dtos import ItemInput, LineItemInput, RequestInput
from store_kernel.exceptions import (
    ConflictError,
    InvalidTransitionError,
    ValidationError,
)
from store_kernel.models.sequence import SequenceCounter
from store_services import StoreOrchestrator, run_with_conflict_retry

pytestmark = pytest.mark.slow_locks

LOCAL = "localStoreManager"


@pytest.fixture
def seeded(file_session_factory, clock):
    """One item with 10 in stock and a pending request for 3 of it, committed."""
    session = file_session_factory()
    try:
        store = StoreOrchestrator(session, clock=clock)
        item = store.ledger.register_item(
            ItemInput(
                name="Torque wrench",
                category="TTG",
                serial_number="TW-100",
                location="localStore",
                unit_of_measure="Pieces",
                cost=Decimal("12.50"),
                stock_level=10,
                section="Section A",
            ),
            "clerk-1",
        )
        request = store.requests.create_request(
            RequestInput(
                requester_id="user-7",
                requester_name="Cpl Jones",
                requester_section="Section A",
                line_items=(LineItemInput(item_id=item.id, quantity=3),),
            )
        )
        session.commit()
    finally:
        session.close()
    return item, request


def _stale_session(factory, clock, item, request):
    """
    Session that has loaded the request and item rows, then committed.

    The returned rows must stay referenced until the action runs: the
    identity map holds objects weakly, and a dropped row would simply be
    reloaded at its current version.
    """
    session = factory()
    store = StoreOrchestrator(session, clock=clock)
    rows = (store.requests.load_request(request.id), store.ledger.load_item(item.id))
    session.commit()
    return session, store, rows


def _fresh_view(factory, clock, item, request):
    session = factory()
    try:
        store = StoreOrchestrator(session, clock=clock)
        return (
            store.selector.get_request(request.id),
            store.ledger.get_item(item.id),
            store.ledger.get_transactions(item.id),
        )
    finally:
        session.close()


class TestStaleWrites:
    def test_stale_approve_raises_conflict_and_applies_nothing(self, file_session_factory, clock, seeded):
        item, request = seeded
        session_a, store_a, rows_a = _stale_session(file_session_factory, clock, item, request)

        session_b = file_session_factory()
        StoreOrchestrator(session_b, clock=clock).ledger.record_movement(
            item.id, "received", 5, "GRN-7", "clerk-2",
        )
        session_b.commit()
        session_b.close()

        stale_item = rows_a[1]
        assert stale_item.stock_level == 10

        with pytest.raises(ConflictError) as exc_info:
            store_a.engine.perform_action(request.id, "approve", "mgr-1", actor_role=LOCAL)
        assert exc_info.value.retryable is True
        session_a.rollback()
        session_a.close()

        view, stock, history = _fresh_view(file_session_factory, clock, item, request)
        assert view.status == "pending"
        assert view.request_number is None
        assert stock.stock_level == 15
        assert [t.reference for t in history] == ["Initial stock", "GRN-7"]

        check = file_session_factory()
        try:
            assert check.execute(select(SequenceCounter)).scalars().all() == []
        finally:
            check.close()

    def test_second_approver_loses(self, file_session_factory, clock, seeded):
        item, request = seeded
        session_a, store_a, _ = _stale_session(file_session_factory, clock, item, request)
        session_b, store_b, rows_b = _stale_session(file_session_factory, clock, item, request)

        store_a.engine.perform_action(request.id, "approve", "mgr-1", actor_role=LOCAL)
        session_a.commit()
        session_a.close()

        assert rows_b[0].status == "pending"
        with pytest.raises(ConflictError):
            store_b.engine.perform_action(request.id, "approve", "mgr-2", actor_role=LOCAL)
        session_b.rollback()
        session_b.close()

        view, stock, history = _fresh_view(file_session_factory, clock, item, request)
        assert view.status == "approved"
        assert view.approved_by == "mgr-1"
        assert stock.stock_level == 7
        assert len(history) == 2


class TestConflictRetry:
    def test_retry_rereads_and_reports_the_real_outcome(self, file_session_factory, clock, seeded):
        """The loser's rerun sees the request already approved."""
        item, request = seeded
        session_a, store_a, _ = _stale_session(file_session_factory, clock, item, request)
        stale_b, _, rows_b = _stale_session(file_session_factory, clock, item, request)

        store_a.engine.perform_action(request.id, "approve", "mgr-1", actor_role=LOCAL)
        session_a.commit()
        session_a.close()

        assert rows_b[0].status == "pending"
        pending = [stale_b]

        def factory():
            return pending.pop() if pending else file_session_factory()

        def approve(session):
            return StoreOrchestrator(session, clock=clock).engine.perform_action(
                request.id, "approve", "mgr-2", actor_role=LOCAL,
            )

        with pytest.raises(InvalidTransitionError):
            run_with_conflict_retry(factory, approve, max_attempts=3)

        _, stock, _ = _fresh_view(file_session_factory, clock, item, request)
        assert stock.stock_level == 7

    def test_commits_on_success(self, file_session_factory, clock, seeded):
        item, request = seeded

        def approve(session):
            return StoreOrchestrator(session, clock=clock).engine.perform_action(
                request.id, "approve", "mgr-1", actor_role=LOCAL,
            )

        view = run_with_conflict_retry(file_session_factory, approve)
        assert view.request_number == "REQ-20240101-0001"

        fresh, stock, _ = _fresh_view(file_session_factory, clock, item, request)
        assert fresh.status == "approved"
        assert stock.stock_level == 7

    def test_retries_then_succeeds(self, file_session_factory, captured_logs):
        attempts = []

        def flaky(session):
            attempts.append(session)
            if len(attempts) < 3:
                raise ConflictError("Item", "x")
            return "done"

        assert run_with_conflict_retry(file_session_factory, flaky, max_attempts=3) == "done"
        assert len(attempts) == 3
        assert len({id(s) for s in attempts}) == 3
        retries = [r for r in captured_logs() if r["message"] == "conflict_retry"]
        assert [r["attempt"] for r in retries] == [1, 2]

    def test_exhausted(self, file_session_factory, captured_logs):
        def always(session):
            raise ConflictError("StoreRequest", "r-1")

        with pytest.raises(ConflictError):
            run_with_conflict_retry(file_session_factory, always, max_attempts=2)
        assert any(r["message"] == "conflict_retry_exhausted" for r in captured_logs())

    def test_other_errors_are_not_retried(self, file_session_factory):
        calls = []

        def invalid(session):
            calls.append(session)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_conflict_retry(file_session_factory, invalid)
        assert len(calls) == 1

    def test_max_attempts_must_be_positive(self, file_session_factory):
        with pytest.raises(ValueError):
            run_with_conflict_retry(file_session_factory, lambda s: None, max_attempts=0)
