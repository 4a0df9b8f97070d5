"""
Module: store_kernel.models.item
Responsibility: ORM persistence for stock-keeping units and their
    append-only transaction history.

Architecture position: Kernel > Models.  May import from db/ and domain/
    values only.

Invariants enforced:
    - stock_level >= 0, min_stock_level >= 0, cost >= 0 (check constraints;
      the ledger clamps decreases so the constraint is never the first line
      of defence).
    - section is present iff location is localStore (check constraint).
    - serial_number is unique.
    - Optimistic concurrency: ``version`` is the mapper's version_id_col,
      so every UPDATE carries ``WHERE version = :read`` and a lost race
      raises StaleDataError at flush.
    - ItemTransaction rows are append-only: UPDATE and DELETE raise
      ImmutabilityViolationError.
    - Transaction positions are dense per item; ``transaction_count`` on the
      item is bumped with every append, so concurrent appends collide on
      the item version rather than on the position.

Failure modes:
    - IntegrityError on duplicate serial number (the ledger checks first).
    - StaleDataError on a lost optimistic race.
    - ImmutabilityViolationError on transaction UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import date
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
from store_kernel.domain.dtos import ItemView, TransactionView
from store_kernel.domain.values import Location, stock_status_for
from store_kernel.exceptions import ImmutabilityViolationError


class Item(TrackedBase):
    """A stock-keeping unit held at one store location."""

    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint("stock_level >= 0", name="ck_items_stock_nonnegative"),
        CheckConstraint("min_stock_level >= 0", name="ck_items_min_stock_nonnegative"),
        CheckConstraint("cost >= 0", name="ck_items_cost_nonnegative"),
        CheckConstraint("lead_time_days >= 0", name="ck_items_lead_time_nonnegative"),
        CheckConstraint(
            f"(location = '{Location.LOCAL_STORE.value}' AND section IS NOT NULL) "
            f"OR (location <> '{Location.LOCAL_STORE.value}' AND section IS NULL)",
            name="ck_items_section_iff_local_store",
        ),
        Index("ix_items_location", "location"),
        Index("ix_items_category", "category"),
    )

    name: Mapped[Label] = mapped_column(nullable=False)
    description: Mapped[LongText | None] = mapped_column(nullable=True)
    category: Mapped[ShortCode] = mapped_column(nullable=False)
    serial_number: Mapped[Label] = mapped_column(nullable=False, unique=True)
    condition_status: Mapped[ShortCode] = mapped_column(nullable=False)
    location: Mapped[ShortCode] = mapped_column(nullable=False)
    stock_level: Mapped[Quantity] = mapped_column(nullable=False, default=0)
    min_stock_level: Mapped[Quantity] = mapped_column(nullable=False, default=0)
    unit_of_measure: Mapped[ShortCode] = mapped_column(nullable=False)
    section: Mapped[Label | None] = mapped_column(nullable=True)
    cost: Mapped[Money] = mapped_column(nullable=False)
    supplier: Mapped[Label | None] = mapped_column(nullable=True)
    date_received: Mapped[Timestamp | None] = mapped_column(nullable=True)
    last_issued: Mapped[Timestamp | None] = mapped_column(nullable=True)
    lead_time_days: Mapped[int] = mapped_column(nullable=False, default=30)
    calibration_schedule: Mapped[Label | None] = mapped_column(nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    transaction_count: Mapped[int] = mapped_column(nullable=False, default=0)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    transactions: Mapped[list["ItemTransaction"]] = relationship(
        "ItemTransaction",
        back_populates="item",
        order_by="ItemTransaction.position",
        lazy="select",
    )

    def __repr__(self) -> str:
        return (
            f"<Item {self.serial_number} {self.name!r} "
            f"@{self.location} stock={self.stock_level}>"
        )

    def to_dto(self) -> ItemView:
        """Convert ORM model to frozen domain DTO."""
        return ItemView(
            id=self.id,
            name=self.name,
            description=self.description,
            category=self.category,
            serial_number=self.serial_number,
            condition_status=self.condition_status,
            location=self.location,
            stock_level=self.stock_level,
            min_stock_level=self.min_stock_level,
            unit_of_measure=self.unit_of_measure,
            section=self.section,
            cost=self.cost,
            supplier=self.supplier,
            date_received=self.date_received,
            last_issued=self.last_issued,
            lead_time_days=self.lead_time_days,
            calibration_schedule=self.calibration_schedule,
            expiration_date=self.expiration_date,
            is_active=self.is_active,
            version=self.version,
            stock_status=stock_status_for(self.stock_level, self.min_stock_level),
        )


class ItemTransaction(Base):
    """One append-only entry in an item's movement history."""

    __tablename__ = "item_transactions"

    __table_args__ = (
        UniqueConstraint("item_id", "position", name="uq_item_transactions_position"),
        CheckConstraint("quantity > 0", name="ck_item_transactions_quantity_positive"),
        Index("ix_item_transactions_reference", "reference"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    recorded_at: Mapped[Timestamp] = mapped_column(nullable=False)
    transaction_type: Mapped[ShortCode] = mapped_column(nullable=False)
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    reference: Mapped[Label] = mapped_column(nullable=False)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)
    performed_by: Mapped[Label] = mapped_column(nullable=False)

    item: Mapped[Item] = relationship("Item", back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<ItemTransaction {self.item_id}#{self.position} "
            f"{self.transaction_type} x{self.quantity}>"
        )

    def to_dto(self) -> TransactionView:
        return TransactionView(
            item_id=self.item_id,
            position=self.position,
            recorded_at=self.recorded_at,
            transaction_type=self.transaction_type,
            quantity=self.quantity,
            reference=self.reference,
            notes=self.notes,
            performed_by=self.performed_by,
        )


@event.listens_for(ItemTransaction, "before_update")
def prevent_transaction_update(mapper, connection, target):
    """Prevent updates to item transaction records."""
    raise ImmutabilityViolationError(
        entity_type="ItemTransaction",
        entity_id=str(target.id),
        reason="Item transactions are append-only -- cannot modify",
    )


@event.listens_for(ItemTransaction, "before_delete")
def prevent_transaction_delete(mapper, connection, target):
    """Prevent deletion of item transaction records."""
    raise ImmutabilityViolationError(
        entity_type="ItemTransaction",
        entity_id=str(target.id),
        reason="Item transactions are append-only -- cannot delete",
    )
