"""
Canonical workflow types (``store_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the store request state machine: Guard, Transition
and Workflow, plus ``REQUEST_WORKFLOW`` itself.  The workflow engine asks
this module which transition (if any) an action takes from a status; it
never hard-codes the graph.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* At most one transition per (from_state, action).
"""

from __future__ import annotations

from dataclasses import dataclass

from store_kernel.domain.values import RequestStatus, WorkflowAction


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow engine does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``issues_stock=True`` marks a transition that decrements the Item Ledger
    for every line of the request (subject to its guard).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    issues_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                "is not a declared state"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in self.states:
                    raise ValueError(
                        f"Workflow {self.name}: transition {t.action!r} "
                        f"references unknown state {state!r}"
                    )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has outgoing transition {t.action!r}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition {t.action!r} "
                    f"from {t.from_state!r}"
                )
            seen.add(key)

    def find_transition(self, state: str, action: str) -> Transition | None:
        """Return the transition ``action`` takes from ``state``, or None."""
        for t in self.transitions:
            if t.from_state == state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Actions legal from ``state``, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


# =========================================================================
# Store request workflow
# =========================================================================

S = RequestStatus
A = WorkflowAction

LOCAL_STOCK_AVAILABLE = Guard(
    name="local_stock_available",
    description=(
        "When the request draws on the local store, every line item is "
        "held at the local store with stock >= requested quantity"
    ),
)

ALLOCATION_STOCK_AVAILABLE = Guard(
    name="allocation_stock_available",
    description=(
        "allocatedFrom is localStore or wsgStore; every line item is held "
        "at a compatible location with stock >= requested quantity"
    ),
)

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    S.REJECTED,
    S.COMPLETED,
    S.FORWARDED_TO_COD,
    S.CANCELLED,
})

_NON_TERMINAL = (S.PENDING, S.FORWARDED_TO_WSG, S.APPROVED, S.ALLOCATED)


def _build_transitions() -> tuple[Transition, ...]:
    transitions = [
        Transition(S.PENDING.value, S.APPROVED.value, A.APPROVE.value,
                   guard=LOCAL_STOCK_AVAILABLE, issues_stock=True),
        Transition(S.PENDING.value, S.FORWARDED_TO_WSG.value, A.FORWARD_TO_WSG.value),
        Transition(S.PENDING.value, S.FORWARDED_TO_COD.value, A.FORWARD_TO_COD.value),
        Transition(S.FORWARDED_TO_WSG.value, S.FORWARDED_TO_COD.value,
                   A.FORWARD_TO_COD.value),
        Transition(S.FORWARDED_TO_WSG.value, S.ALLOCATED.value, A.ALLOCATE.value,
                   guard=ALLOCATION_STOCK_AVAILABLE, issues_stock=True),
        Transition(S.ALLOCATED.value, S.COMPLETED.value, A.COMPLETE.value),
    ]
    # reject and cancel are legal from every non-terminal status
    for state in _NON_TERMINAL:
        transitions.append(Transition(state.value, S.REJECTED.value, A.REJECT.value))
        transitions.append(Transition(state.value, S.CANCELLED.value, A.CANCEL.value))
    return tuple(transitions)


REQUEST_WORKFLOW = Workflow(
    name="store_request",
    description="Item request lifecycle from submission to issue or closure",
    initial_state=S.PENDING.value,
    states=tuple(s.value for s in RequestStatus),
    transitions=_build_transitions(),
    terminal_states=tuple(s.value for s in TERMINAL_REQUEST_STATUSES),
)

REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    status: frozenset(
        RequestStatus(t.to_state)
        for t in REQUEST_WORKFLOW.transitions
        if t.from_state == status.value
    )
    for status in RequestStatus
}
