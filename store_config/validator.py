"""
Configuration Validator (``store_config.validator``).

Responsibility
--------------
Validates a parsed ``StoreConfiguration`` before it is handed to the
runtime, so a bad file fails loudly at startup rather than mid-action.

Invariants enforced
-------------------
* Reference numbers: non-empty prefix without '-', width 1..9, at least
  one probe attempt.
* Action roles: only known actions and roles; every action names at least
  one role.
* Listing ranks: only known statuses (plus the reserved ``inTransit``).
* At least one conflict attempt.
* A database URL is present.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> the configuration MUST NOT
  be used.
* Warnings do not block use but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from store_config.schema import StoreConfiguration
from store_kernel.domain.values import ActorRole, RequestStatus, WorkflowAction

# Listed in the rank table for display even though no transition reaches it
RESERVED_STATUSES = frozenset({"inTransit"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: StoreConfiguration) -> ConfigValidationResult:
    """Validate a configuration set; never raises."""
    result = ConfigValidationResult()
    _validate_reference_numbers(config, result)
    _validate_workflow(config, result)
    _validate_listing(config, result)

    if config.concurrency.max_conflict_retries < 1:
        result.add_error(
            "concurrency.max_conflict_retries must be >= 1, "
            f"got {config.concurrency.max_conflict_retries}"
        )
    if not config.database.url.strip():
        result.add_error("database.url must not be empty")
    return result


def _validate_reference_numbers(config: StoreConfiguration, result: ConfigValidationResult) -> None:
    ref = config.reference_numbers
    if not ref.prefix.strip():
        result.add_error("reference_numbers.prefix must not be empty")
    elif "-" in ref.prefix:
        result.add_error(f"reference_numbers.prefix must not contain '-': {ref.prefix!r}")
    if not 1 <= ref.counter_width <= 9:
        result.add_error(
            f"reference_numbers.counter_width must be between 1 and 9, got {ref.counter_width}"
        )
    if ref.max_probe_attempts < 1:
        result.add_error(
            f"reference_numbers.max_probe_attempts must be >= 1, got {ref.max_probe_attempts}"
        )


def _validate_workflow(config: StoreConfiguration, result: ConfigValidationResult) -> None:
    known_actions = {a.value for a in WorkflowAction}
    known_roles = {r.value for r in ActorRole}
    seen: set[str] = set()

    for action, roles in config.workflow.action_roles:
        if action not in known_actions:
            result.add_error(f"workflow.action_roles: unknown action {action!r}")
        if action in seen:
            result.add_error(f"workflow.action_roles: duplicate action {action!r}")
        seen.add(action)
        if not roles:
            result.add_error(f"workflow.action_roles.{action}: at least one role is required")
        for role in roles:
            if role not in known_roles:
                result.add_error(f"workflow.action_roles.{action}: unknown role {role!r}")

    missing = known_actions - seen
    if config.workflow.action_roles and missing:
        result.add_warning(
            "workflow.action_roles does not restrict: " + ", ".join(sorted(missing))
        )


def _validate_listing(config: StoreConfiguration, result: ConfigValidationResult) -> None:
    known = {s.value for s in RequestStatus} | RESERVED_STATUSES
    for status, _rank in config.listing.status_rank:
        if status not in known:
            result.add_error(f"listing.status_rank: unknown status {status!r}")
