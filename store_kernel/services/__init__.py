"""Kernel services - the write side of the store kernel."""

from store_kernel.services.item_ledger import ItemLedgerService
from store_kernel.services.reference_service import ReferenceNumberService
from store_kernel.services.request_service import RequestService
from store_kernel.services.sequence_service import SequenceService
from store_kernel.services.workflow_engine import RequestWorkflowEngine

__all__ = [
    "ItemLedgerService",
    "ReferenceNumberService",
    "RequestService",
    "RequestWorkflowEngine",
    "SequenceService",
]
