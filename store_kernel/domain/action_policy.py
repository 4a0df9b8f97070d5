"""
Action policy -- which roles may perform which request actions.

Responsibility:
    Holds the action -> allowed-roles table and answers whether an actor,
    acting under a declared role, may perform an action.  The workflow
    engine consults it before the transition guard.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The table comes from configuration
    (``store_config``) or ``DEFAULT_ACTION_ROLES``.

Invariants:
    - Kernel remains actor-agnostic: the caller supplies the role; this
      module does not resolve identities.
    - An action absent from the table is unrestricted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from store_kernel.domain.values import ActorRole, WorkflowAction

A = WorkflowAction
R = ActorRole

DEFAULT_ACTION_ROLES: Mapping[str, frozenset[str]] = MappingProxyType({
    A.APPROVE.value: frozenset({R.LOCAL_STORE_MANAGER.value}),
    A.REJECT.value: frozenset({R.LOCAL_STORE_MANAGER.value, R.WSG_STORE_MANAGER.value}),
    A.FORWARD_TO_WSG.value: frozenset({R.LOCAL_STORE_MANAGER.value}),
    A.FORWARD_TO_COD.value: frozenset({R.LOCAL_STORE_MANAGER.value, R.WSG_STORE_MANAGER.value}),
    A.ALLOCATE.value: frozenset({R.WSG_STORE_MANAGER.value}),
    A.COMPLETE.value: frozenset({
        R.LOCAL_STORE_MANAGER.value,
        R.WSG_STORE_MANAGER.value,
        R.REQUESTER.value,
    }),
    A.CANCEL.value: frozenset({R.LOCAL_STORE_MANAGER.value, R.REQUESTER.value}),
})


@dataclass(frozen=True)
class ActionPolicy:
    """Action -> allowed-roles table plus the enforcement switch.

    With ``enforce_roles=False`` a caller that declares no role is let
    through; a declared role is still checked against the table.
    """

    action_roles: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: DEFAULT_ACTION_ROLES
    )
    enforce_roles: bool = True

    def check(self, action: str, role: str | None) -> tuple[bool, str]:
        """Return (allowed, reason); reason is empty when allowed."""
        allowed_roles = self.action_roles.get(action)
        if allowed_roles is None:
            return (True, "")

        if role is None or not str(role).strip():
            if self.enforce_roles:
                return (False, f"A role is required to {action} a request")
            return (True, "")

        if role not in allowed_roles:
            allowed = ", ".join(sorted(allowed_roles))
            return (
                False,
                f"Role {role} may not {action} a request (allowed: {allowed})",
            )
        return (True, "")

    def permitted(self, actions: Iterable[str], role: str | None) -> tuple[str, ...]:
        """Filter ``actions`` down to those ``role`` may perform, keeping order."""
        return tuple(a for a in actions if self.check(a, role)[0])
