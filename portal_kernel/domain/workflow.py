"""
Canonical workflow types (``portal_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for status state machines.  Guard, Transition and
Workflow are defined once here; modules declare their lifecycles with
them and the module's state machine evaluates the guards.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the state machine does.
    """
    name: str
    description: str

    def __post_init__(self) -> None:
        if not self.name or not self.description:
            raise ValueError("Guard name and description must be non-empty")


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``settles=True`` marks transitions into a settled state that stamp the
    settlement date and may spawn a follow-up record.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    settles: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle."""
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
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references "
                    f"undeclared state ({t.from_state} -> {t.to_state})"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} "
                    "cannot have outgoing transitions"
                )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def transitions_from(self, state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == state)

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None
