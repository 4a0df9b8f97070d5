"""
Configuration Loader (``store_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``store_config.schema`` dataclasses.  This is internal tooling; runtime
callers go through ``store_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a message naming the key.
* ``config_id`` and ``version`` are required; every section is optional
  and falls back to the schema defaults.
* ``compute_checksum`` produces a deterministic SHA-256 over the raw
  parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from store_config.schema import (
    ConcurrencyConfig,
    DatabaseConfig,
    ListingConfig,
    ReferenceNumberConfig,
    StoreConfiguration,
    WorkflowConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _int(section: dict[str, Any], key: str, default: int, where: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{where}.{key}' must be an integer, got {value!r}")
    return value


def parse_reference_numbers(data: dict[str, Any]) -> ReferenceNumberConfig:
    defaults = ReferenceNumberConfig()
    return ReferenceNumberConfig(
        prefix=str(data.get("prefix", defaults.prefix)),
        counter_width=_int(data, "counter_width", defaults.counter_width, "reference_numbers"),
        max_probe_attempts=_int(
            data, "max_probe_attempts", defaults.max_probe_attempts, "reference_numbers",
        ),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowConfig:
    defaults = WorkflowConfig()
    raw_roles = data.get("action_roles") or {}
    if not isinstance(raw_roles, dict):
        raise ValueError("'workflow.action_roles' must map action -> list of roles")

    action_roles: list[tuple[str, tuple[str, ...]]] = []
    for action, roles in raw_roles.items():
        if isinstance(roles, str) or not isinstance(roles, list):
            raise ValueError(
                f"'workflow.action_roles.{action}' must be a list of roles, got {roles!r}"
            )
        action_roles.append((str(action), tuple(str(r) for r in roles)))

    enforce = data.get("enforce_roles", defaults.enforce_roles)
    if not isinstance(enforce, bool):
        raise ValueError(f"'workflow.enforce_roles' must be true or false, got {enforce!r}")

    return WorkflowConfig(
        enforce_roles=enforce,
        action_roles=tuple(action_roles),
        default_rejection_reason=str(
            data.get("default_rejection_reason", defaults.default_rejection_reason)
        ),
    )


def parse_listing(data: dict[str, Any]) -> ListingConfig:
    defaults = ListingConfig()
    raw_rank = data.get("status_rank") or {}
    if not isinstance(raw_rank, dict):
        raise ValueError("'listing.status_rank' must map status -> rank")
    status_rank = tuple(
        (str(status), _int(raw_rank, status, 0, "listing.status_rank"))
        for status in raw_rank
    )
    return ListingConfig(
        status_rank=status_rank,
        unknown_rank=_int(data, "unknown_rank", defaults.unknown_rank, "listing"),
    )


def parse_concurrency(data: dict[str, Any]) -> ConcurrencyConfig:
    defaults = ConcurrencyConfig()
    return ConcurrencyConfig(
        max_conflict_retries=_int(
            data, "max_conflict_retries", defaults.max_conflict_retries, "concurrency",
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(url=str(data.get("url", DatabaseConfig().url)))


def parse_configuration(data: dict[str, Any]) -> StoreConfiguration:
    """Parse a whole configuration document."""
    for key in ("config_id", "version"):
        if key not in data:
            raise ValueError(f"Configuration is missing required key '{key}'")

    return StoreConfiguration(
        config_id=str(data["config_id"]),
        version=_int(data, "version", 0, "root"),
        description=str(data.get("description", "")),
        reference_numbers=parse_reference_numbers(_section(data, "reference_numbers")),
        workflow=parse_workflow(_section(data, "workflow")),
        listing=parse_listing(_section(data, "listing")),
        concurrency=parse_concurrency(_section(data, "concurrency")),
        database=parse_database(_section(data, "database")),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> StoreConfiguration:
    """Load and parse one configuration set file."""
    return parse_configuration(load_yaml_file(path))
