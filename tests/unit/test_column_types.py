"""Column types the models get from the shared aliases in store_kernel.db.types."""

import pytest
from sqlalchemy import BigInteger, Numeric, String, Text

from store_kernel.db.types import TZDateTime
from store_kernel.models.item import Item, ItemTransaction
from store_kernel.models.request import RequestLineItem, StoreRequest
from store_kernel.models.sequence import SequenceCounter


@pytest.mark.parametrize(
    "column",
    [
        Item.__table__.c.cost,
        StoreRequest.__table__.c.total_estimated_cost,
        RequestLineItem.__table__.c.estimated_cost,
    ],
)
def test_money_columns(column):
    assert isinstance(column.type, Numeric)
    assert (column.type.precision, column.type.scale) == (38, 9)


@pytest.mark.parametrize(
    "column",
    [
        Item.__table__.c.stock_level,
        Item.__table__.c.min_stock_level,
        ItemTransaction.__table__.c.quantity,
        RequestLineItem.__table__.c.quantity,
    ],
)
def test_quantity_columns(column):
    assert isinstance(column.type, BigInteger)


@pytest.mark.parametrize(
    "column, length",
    [
        (Item.__table__.c.location, 50),
        (StoreRequest.__table__.c.status, 50),
        (StoreRequest.__table__.c.request_number, 50),
        (Item.__table__.c.serial_number, 255),
        (ItemTransaction.__table__.c.performed_by, 255),
        (SequenceCounter.__table__.c.name, 255),
    ],
)
def test_string_columns(column, length):
    assert isinstance(column.type, String)
    assert column.type.length == length


@pytest.mark.parametrize(
    "column",
    [StoreRequest.__table__.c.notes, ItemTransaction.__table__.c.notes, Item.__table__.c.description],
)
def test_long_text_columns(column):
    assert isinstance(column.type, Text)


def test_optional_alias_keeps_nullability():
    assert Item.__table__.c.section.nullable is True
    assert isinstance(Item.__table__.c.section.type, String)
    assert Item.__table__.c.name.nullable is False


@pytest.mark.parametrize(
    "column",
    [StoreRequest.__table__.c.requested_at, ItemTransaction.__table__.c.recorded_at, Item.__table__.c.last_issued],
)
def test_timestamps_are_timezone_aware(column):
    assert isinstance(column.type, TZDateTime)
