"""
Canonical workflow types (``hr_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines, so Guard, Transition and Workflow are
defined once and a module declares its lifecycle as data.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
"""

from __future__ import annotations

from dataclasses import dataclass

from hr_kernel.exceptions import WorkflowTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the caller evaluates the condition.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``persists=True`` marks the transition that writes to storage.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    persists: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition.

    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in states of {self.name}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Transition {t.from_state}->{t.to_state} references an "
                    f"unknown state in {self.name}"
                )

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def transition(self, current_state: str, action: str) -> Transition:
        """Return the transition for ``action`` or raise WorkflowTransitionError."""
        found = self.find_transition(current_state, action)
        if found is None:
            raise WorkflowTransitionError(self.name, current_state, action)
        return found

    def allowed_actions(self, current_state: str) -> tuple[str, ...]:
        return tuple(
            t.action for t in self.transitions if t.from_state == current_state
        )
