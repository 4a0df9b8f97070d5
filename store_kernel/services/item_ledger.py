"""
ItemLedgerService -- stock levels and per-item transaction history.

Responsibility:
    Owns every write to ``items`` and ``item_transactions``: registering
    inbound stock, appending transaction records, adjusting stock counts,
    direct stock movements, and soft deactivation.  The workflow engine
    issues stock through this service; nothing else touches stock_level.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - stock_level never goes negative: decreases clamp at zero and never
      reject.  Availability checks belong to the workflow engine.
    - Transaction history is append-only and densely numbered per item.
    - Inactive items behave as missing (ItemNotFoundError).
    - Every mutating call runs in its own SAVEPOINT; a lost optimistic race
      raises ConflictError with nothing applied.
    - Each operation is local to one item row.

Failure modes:
    - ItemNotFoundError: unknown id or deactivated item.
    - ValidationError: bad quantity, unknown enum value, missing reference
      or performer, section/location mismatch on registration.
    - DuplicateSerialNumberError: serial number already registered.
    - ConflictError: item row changed under us.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from store_kernel.domain.clock import Clock, SystemClock
from store_kernel.domain.dtos import ItemInput, ItemView, TransactionView
from store_kernel.domain.validation import (
    as_uuid,
    require_cost,
    require_non_negative_int,
    require_positive_int,
    require_text,
)
from store_kernel.domain.values import (
    MOVEMENT_DIRECTIONS,
    ConditionStatus,
    ItemCategory,
    Location,
    StockDirection,
    TransactionType,
    UnitOfMeasure,
    parse_enum,
)
from store_kernel.exceptions import (
    DuplicateSerialNumberError,
    ItemNotFoundError,
    ValidationError,
)
from store_kernel.logging_config import get_logger
from store_kernel.models.item import Item, ItemTransaction
from store_kernel.services.base import BaseService

logger = get_logger("services.item_ledger")

INITIAL_STOCK_REFERENCE = "Initial stock"


class ItemLedgerService(BaseService[Item]):
    """
    Stock-level state and transaction history for items.

    Usage:
        ledger = ItemLedgerService(session, clock)
        item = ledger.register_item(ItemInput(...), performed_by="clerk-1")
        ledger.record_movement(item.id, "received", 5, "GRN-17", "clerk-1")
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def load_item(self, item_id: UUID | str) -> Item:
        """Return the active Item row; ItemNotFoundError otherwise.

        Returns the session's identity-mapped instance as loaded, so the
        version it carries is the one the caller's checks were made against.
        """
        uid = as_uuid(item_id)
        item = self.session.get(Item, uid) if uid is not None else None
        if item is None or not item.is_active:
            raise ItemNotFoundError(str(item_id))
        return item

    def get_item(self, item_id: UUID | str) -> ItemView:
        return self.load_item(item_id).to_dto()

    def get_stock_level(self, item_id: UUID | str) -> int:
        """Current stock of an active item."""
        return self.load_item(item_id).stock_level

    def get_transactions(self, item_id: UUID | str) -> tuple[TransactionView, ...]:
        """Transaction history of an active item, oldest first."""
        item = self.load_item(item_id)
        rows = self.session.execute(
            select(ItemTransaction)
            .where(ItemTransaction.item_id == item.id)
            .order_by(ItemTransaction.position)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    # ------------------------------------------------------------------
    # Registration / deactivation
    # ------------------------------------------------------------------

    def register_item(self, data: ItemInput, performed_by: str) -> ItemView:
        """
        Create an item from inbound stock.

        Records an initial ``received`` transaction when the opening stock
        is above zero.

        Raises:
            ValidationError: missing or malformed field, or section given
                for a non-local location / missing for the local store.
            DuplicateSerialNumberError: serial number already registered.
        """
        performer = require_text(performed_by, "performed_by")
        name = require_text(data.name, "name")
        serial_number = require_text(data.serial_number, "serial_number")
        category = parse_enum(ItemCategory, data.category, "category")
        location = parse_enum(Location, data.location, "location")
        unit = parse_enum(UnitOfMeasure, data.unit_of_measure, "unit_of_measure")
        condition = parse_enum(ConditionStatus, data.condition_status, "condition_status")
        stock_level = require_non_negative_int(data.stock_level, "stock_level")
        min_stock_level = require_non_negative_int(data.min_stock_level, "min_stock_level")
        lead_time_days = require_non_negative_int(data.lead_time_days, "lead_time_days")
        cost = require_cost(data.cost)

        section = data.section.strip() if data.section and data.section.strip() else None
        if location is Location.LOCAL_STORE and section is None:
            raise ValidationError("section is required for local store items", field="section")
        if location is not Location.LOCAL_STORE and section is not None:
            raise ValidationError(
                f"section applies only to local store items, not {location.value}",
                field="section",
            )

        existing = self.session.execute(
            select(Item.id).where(Item.serial_number == serial_number)
        ).first()
        if existing is not None:
            raise DuplicateSerialNumberError(serial_number)

        now = self._clock.now()
        item = Item(
            id=uuid4(),
            name=name,
            description=data.description,
            category=category.value,
            serial_number=serial_number,
            condition_status=condition.value,
            location=location.value,
            stock_level=stock_level,
            min_stock_level=min_stock_level,
            unit_of_measure=unit.value,
            section=section,
            cost=cost,
            supplier=data.supplier,
            date_received=data.date_received or now,
            lead_time_days=lead_time_days,
            calibration_schedule=data.calibration_schedule,
            expiration_date=data.expiration_date,
            is_active=True,
            transaction_count=0,
        )

        try:
            with self.atomic("Item", serial_number):
                self.session.add(item)
                if stock_level > 0:
                    self._append(
                        item, TransactionType.RECEIVED, stock_level,
                        INITIAL_STOCK_REFERENCE, performer, None, now,
                    )
        except IntegrityError as exc:
            raise DuplicateSerialNumberError(serial_number) from exc

        logger.info(
            "item_registered",
            extra={
                "item_id": str(item.id),
                "serial_number": serial_number,
                "location": location.value,
                "stock_level": stock_level,
            },
        )
        return item.to_dto()

    def deactivate_item(self, item_id: UUID | str) -> ItemView:
        """Soft-delete: the item disappears from every lookup."""
        item = self.load_item(item_id)
        with self.atomic("Item", item.id):
            item.is_active = False
        logger.info("item_deactivated", extra={"item_id": str(item.id)})
        return item.to_dto()

    # ------------------------------------------------------------------
    # Ledger primitives
    # ------------------------------------------------------------------

    def record_transaction(
        self,
        item_id: UUID | str,
        transaction_type: TransactionType | str,
        quantity: int,
        reference: str,
        performed_by: str,
        notes: str | None = None,
    ) -> TransactionView:
        """
        Append a transaction record stamped with the current time.

        Does not change the stock level.
        """
        tx_type = parse_enum(TransactionType, transaction_type, "transaction_type")
        qty = require_positive_int(quantity, "quantity")
        ref = require_text(reference, "reference")
        performer = require_text(performed_by, "performed_by")
        item = self.load_item(item_id)

        with self.atomic("Item", item.id):
            record = self._append(item, tx_type, qty, ref, performer, notes, self._clock.now())
        return record.to_dto()

    def adjust_stock(
        self,
        item_id: UUID | str,
        quantity: int,
        direction: StockDirection | str,
        *,
        stamp_issued: bool = False,
    ) -> int:
        """
        Move the stock count and return the new level.

        ``increase`` adds unconditionally; ``decrease`` subtracts and clamps
        at zero.  ``stamp_issued`` sets ``last_issued`` to now (issuing
        decreases only).
        """
        qty = require_positive_int(quantity, "quantity")
        move = parse_enum(StockDirection, direction, "direction")
        item = self.load_item(item_id)

        with self.atomic("Item", item.id):
            self._apply(item, qty, move, stamp_issued=stamp_issued)
        return item.stock_level

    def record_movement(
        self,
        item_id: UUID | str,
        transaction_type: TransactionType | str,
        quantity: int,
        reference: str,
        performed_by: str,
        notes: str | None = None,
    ) -> ItemView:
        """
        Direct stock movement: append the transaction, then move stock.

        ``received``/``returned`` increase, ``issued``/``damaged`` decrease
        (clamped), ``calibrated`` leaves stock alone.  ``damaged`` marks the
        item unserviceable; ``issued`` stamps ``last_issued``.
        """
        tx_type = parse_enum(TransactionType, transaction_type, "transaction_type")
        qty = require_positive_int(quantity, "quantity")
        ref = require_text(reference, "reference")
        performer = require_text(performed_by, "performed_by")
        item = self.load_item(item_id)

        with self.atomic("Item", item.id):
            self._append(item, tx_type, qty, ref, performer, notes, self._clock.now())
            direction = MOVEMENT_DIRECTIONS[tx_type]
            if direction is not None:
                self._apply(
                    item, qty, direction,
                    stamp_issued=tx_type is TransactionType.ISSUED,
                )
            if tx_type is TransactionType.DAMAGED:
                item.condition_status = ConditionStatus.UNSERVICEABLE.value

        logger.info(
            "stock_movement_recorded",
            extra={
                "item_id": str(item.id),
                "transaction_type": tx_type.value,
                "quantity": qty,
                "stock_level": item.stock_level,
            },
        )
        return item.to_dto()

    # ------------------------------------------------------------------
    # Internals (caller holds the savepoint)
    # ------------------------------------------------------------------

    def _append(
        self,
        item: Item,
        tx_type: TransactionType,
        quantity: int,
        reference: str,
        performed_by: str,
        notes: str | None,
        recorded_at,
    ) -> ItemTransaction:
        item.transaction_count += 1
        record = ItemTransaction(
            item=item,
            position=item.transaction_count,
            recorded_at=recorded_at,
            transaction_type=tx_type.value,
            quantity=quantity,
            reference=reference,
            notes=notes,
            performed_by=performed_by,
        )
        self.session.add(record)
        logger.info(
            "item_transaction_recorded",
            extra={
                "item_id": str(item.id),
                "position": record.position,
                "transaction_type": tx_type.value,
                "quantity": quantity,
                "reference": reference,
            },
        )
        return record

    def _apply(
        self,
        item: Item,
        quantity: int,
        direction: StockDirection,
        *,
        stamp_issued: bool,
    ) -> None:
        before = item.stock_level
        if direction is StockDirection.INCREASE:
            item.stock_level = before + quantity
        else:
            item.stock_level = max(0, before - quantity)
            if stamp_issued:
                item.last_issued = self._clock.now()
        logger.info(
            "stock_adjusted",
            extra={
                "item_id": str(item.id),
                "direction": direction.value,
                "quantity": quantity,
                "stock_before": before,
                "stock_after": item.stock_level,
                "clamped": direction is StockDirection.DECREASE and quantity > before,
            },
        )
