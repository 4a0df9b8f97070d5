"""
Config -> Kernel Bridges.

Functions that turn a StoreConfiguration into kernel-compatible inputs.
They live here (the producer) because the kernel must NEVER import
store_config.

Usage:
    config = get_active_config()
    policy = build_action_policy(config)
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

from store_config.schema import StoreConfiguration
from store_kernel.domain.action_policy import DEFAULT_ACTION_ROLES, ActionPolicy
from store_kernel.selectors.request_selector import DEFAULT_STATUS_RANK


def build_action_policy(config: StoreConfiguration) -> ActionPolicy:
    """ActionPolicy from ``workflow``; an empty table keeps the defaults."""
    if config.workflow.action_roles:
        table = MappingProxyType({
            action: frozenset(roles) for action, roles in config.workflow.action_roles
        })
    else:
        table = DEFAULT_ACTION_ROLES
    return ActionPolicy(action_roles=table, enforce_roles=config.workflow.enforce_roles)


def build_status_rank(config: StoreConfiguration) -> dict[str, int]:
    """Listing rank table; an empty table keeps the defaults."""
    if config.listing.status_rank:
        return dict(config.listing.status_rank)
    return dict(DEFAULT_STATUS_RANK)


def reference_number_options(config: StoreConfiguration) -> dict[str, Any]:
    """Keyword arguments for ReferenceNumberService."""
    ref = config.reference_numbers
    return {
        "prefix": ref.prefix,
        "width": ref.counter_width,
        "max_attempts": ref.max_probe_attempts,
    }
