"""
Tests for ItemLedgerService.

Verifies:
- Registration validation, initial stock transaction, duplicate serials
- Transaction history is append-only and densely numbered
- Stock decreases clamp at zero; increases are unconditional (property-tested)
- Direct movements by transaction type
- Deactivated items behave as missing
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from store_kernel.domain.values import StockStatus
from store_kernel.exceptions import (
    DuplicateSerialNumberError,
    ImmutabilityViolationError,
    ItemNotFoundError,
    ValidationError,
)
from store_kernel.models.item import ItemTransaction


class TestRegisterItem:
    def test_registers_with_initial_stock_transaction(self, orchestrator, create_item, clock):
        item = create_item(stock_level=10, serial_number="TW-001")

        assert item.stock_level == 10
        assert item.serial_number == "TW-001"
        assert item.stock_status is StockStatus.IN_STOCK
        assert item.is_active is True

        history = orchestrator.ledger.get_transactions(item.id)
        assert len(history) == 1
        assert history[0].transaction_type == "received"
        assert history[0].quantity == 10
        assert history[0].reference == "Initial stock"
        assert history[0].position == 1
        assert history[0].recorded_at == clock.now()

    def test_zero_opening_stock_records_nothing(self, orchestrator, create_item):
        item = create_item(stock_level=0)
        assert orchestrator.ledger.get_transactions(item.id) == ()
        assert item.stock_status is StockStatus.OUT_OF_STOCK

    def test_duplicate_serial_rejected(self, create_item):
        create_item(serial_number="DUP-1")
        with pytest.raises(DuplicateSerialNumberError) as exc_info:
            create_item(serial_number="DUP-1")
        assert exc_info.value.serial_number == "DUP-1"

    def test_local_item_requires_section(self, create_item):
        with pytest.raises(ValidationError) as exc_info:
            create_item(section=None)
        assert exc_info.value.field == "section"

    def test_section_not_allowed_outside_local_store(self, create_item):
        with pytest.raises(ValidationError):
            create_item(location="wsgStore", section="Section A")

    def test_wsg_item_without_section(self, create_item):
        item = create_item(location="wsgStore")
        assert item.section is None
        assert item.location == "wsgStore"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"category": "SPARES"},
            {"unit_of_measure": "Gallons"},
            {"location": "attic"},
            {"stock_level": -1},
            {"cost": Decimal("-0.01")},
            {"cost": 3.5},
            {"name": "  "},
        ],
    )
    def test_invalid_input_rejected(self, create_item, overrides):
        with pytest.raises(ValidationError):
            create_item(**overrides)

    def test_missing_performer_rejected(self, create_item):
        with pytest.raises(ValidationError):
            create_item(performed_by="")


class TestLookup:
    def test_unknown_id(self, orchestrator):
        with pytest.raises(ItemNotFoundError):
            orchestrator.ledger.get_item(uuid4())

    def test_malformed_id(self, orchestrator):
        with pytest.raises(ItemNotFoundError):
            orchestrator.ledger.get_stock_level("not-a-uuid")

    def test_deactivated_item_is_missing(self, orchestrator, create_item):
        item = create_item()
        orchestrator.ledger.deactivate_item(item.id)

        with pytest.raises(ItemNotFoundError):
            orchestrator.ledger.get_item(item.id)
        with pytest.raises(ItemNotFoundError):
            orchestrator.ledger.record_movement(item.id, "received", 1, "GRN-1", "clerk-1")


class TestRecordTransaction:
    def test_appends_without_touching_stock(self, orchestrator, create_item):
        item = create_item(stock_level=5)
        tx = orchestrator.ledger.record_transaction(
            item.id, "calibrated", 1, "CAL-9", "tech-2", notes="annual",
        )
        assert tx.position == 2
        assert tx.notes == "annual"
        assert orchestrator.ledger.get_stock_level(item.id) == 5

    def test_positions_are_dense(self, orchestrator, create_item):
        item = create_item(stock_level=5)
        for n in range(3):
            orchestrator.ledger.record_transaction(item.id, "received", 1, f"GRN-{n}", "clerk-1")
        positions = [t.position for t in orchestrator.ledger.get_transactions(item.id)]
        assert positions == [1, 2, 3, 4]

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_quantity_must_be_positive(self, orchestrator, create_item, quantity):
        item = create_item()
        with pytest.raises(ValidationError):
            orchestrator.ledger.record_transaction(item.id, "received", quantity, "GRN", "clerk-1")

    def test_reference_required(self, orchestrator, create_item):
        item = create_item()
        with pytest.raises(ValidationError):
            orchestrator.ledger.record_transaction(item.id, "received", 1, "", "clerk-1")

    def test_history_rows_are_immutable(self, session, orchestrator, create_item):
        item = create_item(stock_level=3)
        row = session.query(ItemTransaction).filter_by(item_id=item.id).one()
        row.quantity = 99
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestAdjustStock:
    def test_increase(self, orchestrator, create_item):
        item = create_item(stock_level=2)
        assert orchestrator.ledger.adjust_stock(item.id, 5, "increase") == 7

    def test_decrease(self, orchestrator, create_item):
        item = create_item(stock_level=10)
        assert orchestrator.ledger.adjust_stock(item.id, 4, "decrease") == 6

    def test_decrease_clamps_at_zero(self, orchestrator, create_item, captured_logs):
        item = create_item(stock_level=3)
        assert orchestrator.ledger.adjust_stock(item.id, 8, "decrease") == 0

        adjusted = [r for r in captured_logs() if r["message"] == "stock_adjusted"]
        assert adjusted[-1]["clamped"] is True
        assert adjusted[-1]["stock_before"] == 3
        assert adjusted[-1]["stock_after"] == 0

    def test_does_not_record_history(self, orchestrator, create_item):
        item = create_item(stock_level=3)
        orchestrator.ledger.adjust_stock(item.id, 1, "decrease")
        assert len(orchestrator.ledger.get_transactions(item.id)) == 1

    def test_stamp_issued(self, orchestrator, create_item, clock):
        item = create_item(stock_level=3)
        clock.advance(60)
        orchestrator.ledger.adjust_stock(item.id, 1, "decrease", stamp_issued=True)
        assert orchestrator.ledger.get_item(item.id).last_issued == clock.now()

    def test_unknown_direction(self, orchestrator, create_item):
        item = create_item()
        with pytest.raises(ValidationError):
            orchestrator.ledger.adjust_stock(item.id, 1, "sideways")

    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        opening=st.integers(min_value=0, max_value=50),
        moves=st.lists(
            st.tuples(st.sampled_from(["increase", "decrease"]), st.integers(min_value=1, max_value=60)),
            max_size=15,
        ),
    )
    def test_stock_never_negative(self, orchestrator, create_item, opening, moves):
        item = create_item(stock_level=opening)
        expected = opening
        for direction, quantity in moves:
            level = orchestrator.ledger.adjust_stock(item.id, quantity, direction)
            expected = expected + quantity if direction == "increase" else max(0, expected - quantity)
            assert level == expected
            assert level >= 0
        assert orchestrator.ledger.get_stock_level(item.id) == expected


class TestRecordMovement:
    def test_received_increases(self, orchestrator, create_item):
        item = create_item(stock_level=2)
        view = orchestrator.ledger.record_movement(item.id, "received", 3, "GRN-4", "clerk-1")
        assert view.stock_level == 5

    def test_returned_increases(self, orchestrator, create_item):
        item = create_item(stock_level=2)
        view = orchestrator.ledger.record_movement(item.id, "returned", 1, "RET-1", "clerk-1")
        assert view.stock_level == 3

    def test_issued_decreases_and_stamps(self, orchestrator, create_item, clock):
        item = create_item(stock_level=4)
        view = orchestrator.ledger.record_movement(item.id, "issued", 3, "ISS-1", "clerk-1")
        assert view.stock_level == 1
        assert view.last_issued == clock.now()
        assert view.stock_status is StockStatus.LOW_STOCK

    def test_damaged_marks_unserviceable(self, orchestrator, create_item):
        item = create_item(stock_level=4)
        view = orchestrator.ledger.record_movement(item.id, "damaged", 1, "DMG-1", "clerk-1")
        assert view.stock_level == 3
        assert view.condition_status == "unserviceable"

    def test_calibrated_leaves_stock(self, orchestrator, create_item):
        item = create_item(stock_level=4)
        view = orchestrator.ledger.record_movement(item.id, "calibrated", 1, "CAL-1", "tech-1")
        assert view.stock_level == 4

    def test_issued_beyond_stock_clamps(self, orchestrator, create_item):
        item = create_item(stock_level=2)
        view = orchestrator.ledger.record_movement(item.id, "issued", 5, "ISS-2", "clerk-1")
        assert view.stock_level == 0
        history = orchestrator.ledger.get_transactions(item.id)
        assert history[-1].quantity == 5

    def test_unknown_type_changes_nothing(self, orchestrator, create_item):
        item = create_item(stock_level=2)
        with pytest.raises(ValidationError):
            orchestrator.ledger.record_movement(item.id, "stolen", 1, "X", "clerk-1")
        assert orchestrator.ledger.get_stock_level(item.id) == 2
        assert len(orchestrator.ledger.get_transactions(item.id)) == 1

    def test_logs_movement(self, orchestrator, create_item, captured_logs):
        item = create_item(stock_level=2)
        orchestrator.ledger.record_movement(item.id, "received", 1, "GRN-9", "clerk-1")
        records = [r for r in captured_logs() if r["message"] == "stock_movement_recorded"]
        assert records[0]["item_id"] == str(item.id)
        assert records[0]["stock_level"] == 3
