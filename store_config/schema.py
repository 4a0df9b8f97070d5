"""
StoreConfiguration schema.

The human-authored configuration set (YAML) is parsed by the loader into
these frozen dataclasses.  Tables are stored as tuples of pairs so the
whole object is hashable and cannot be mutated after loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ReferenceNumberConfig:
    """Shape of ``PREFIX-YYYYMMDD-NNNN`` request numbers."""

    prefix: str = "REQ"
    counter_width: int = 4
    max_probe_attempts: int = 100


@dataclass(frozen=True)
class WorkflowConfig:
    """Action policy inputs for the workflow engine."""

    enforce_roles: bool = True
    # (action, (role, ...)) in declaration order
    action_roles: tuple[tuple[str, tuple[str, ...]], ...] = ()
    default_rejection_reason: str = "Request rejected"


@dataclass(frozen=True)
class ListingConfig:
    # (status, rank) -- lower ranks list first
    status_rank: tuple[tuple[str, int], ...] = ()
    unknown_rank: int = 50


@dataclass(frozen=True)
class ConcurrencyConfig:
    max_conflict_retries: int = 3


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///store.db"


@dataclass(frozen=True)
class StoreConfiguration:
    """A complete, versioned configuration set."""

    config_id: str
    version: int
    description: str = ""
    reference_numbers: ReferenceNumberConfig = field(default_factory=ReferenceNumberConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    checksum: str = ""
