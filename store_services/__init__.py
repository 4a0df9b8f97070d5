"""Store services - wiring of kernel services and transaction-level helpers."""

from store_services.conflict_retry import run_with_conflict_retry
from store_services.store_orchestrator import StoreOrchestrator

__all__ = ["StoreOrchestrator", "run_with_conflict_retry"]
