"""ORM models for the store kernel."""

from store_kernel.models.item import Item, ItemTransaction
from store_kernel.models.request import RequestLineItem, StoreRequest
from store_kernel.models.sequence import SequenceCounter

__all__ = [
    "Item",
    "ItemTransaction",
    "StoreRequest",
    "RequestLineItem",
    "SequenceCounter",
]
