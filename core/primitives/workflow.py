"""
MTS Workflow Primitive - Generic State Machine
===============================================
Deterministic finite state machine used by every record that tracks
lifecycle state.

Used by:
    Lot stock status      (in-stock -> withdrawn | resampled)
    Lot finance status    (unpaid -> invoiced -> paid, exported branch)
    Advance payment state (Unpaid -> Paid)

RULES (NON-NEGOTIABLE):
- State transitions are deterministic (same input -> same output)
- Invalid transitions REJECTED (TransitionError), no silent state skips
- Terminal states accept no transition
- State machine definition is immutable (frozen)

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from core.errors import TransitionError


# ══════════════════════════════════════════════════════════════
# TRANSITION RECORD
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StateTransition:
    """An immutable record of a single accepted transition."""
    machine: str
    from_state: str
    to_state: str
    transitioned_at: datetime
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "machine": self.machine,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "transitioned_at": self.transitioned_at.isoformat(),
            "reason": self.reason,
        }


# ══════════════════════════════════════════════════════════════
# WORKFLOW DEFINITION (state machine schema)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Defines the valid states and transitions for a workflow type.

    Fields:
        name:            Identifier for this machine (e.g. "finance_status")
        initial_state:   Starting state for all new records
        terminal_states: States from which no further transitions are allowed
        transitions:     Dict of {from_state -> frozenset(allowed_to_states)}
    """
    name: str
    initial_state: str
    terminal_states: FrozenSet[str]
    transitions: Dict[str, FrozenSet[str]]

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow name must be non-empty.")
        if self.initial_state not in self.transitions:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in transitions."
            )
        for state in self.terminal_states:
            if self.transitions.get(state):
                raise ValueError(
                    f"Terminal state '{state}' must not declare transitions."
                )

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        return to_state in self.transitions.get(from_state, frozenset())

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_next_states(self, from_state: str) -> FrozenSet[str]:
        return self.transitions.get(from_state, frozenset())

    def transition(
        self,
        from_state: str,
        to_state: str,
        at: datetime,
        reason: str = "",
    ) -> StateTransition:
        """
        Validate and record a transition.
        Raises TransitionError for unknown states, terminal sources and
        transitions not listed in the definition.
        """
        if from_state not in self.transitions or to_state not in self.transitions:
            raise TransitionError(self.name, from_state, to_state)
        if self.is_terminal(from_state):
            raise TransitionError(self.name, from_state, to_state)
        if not self.is_valid_transition(from_state, to_state):
            raise TransitionError(self.name, from_state, to_state)
        return StateTransition(
            machine=self.name,
            from_state=from_state,
            to_state=to_state,
            transitioned_at=at,
            reason=reason,
        )

    def coerce(self, state: Optional[str]) -> str:
        """Return the initial state for None; reject unknown states."""
        if state is None:
            return self.initial_state
        if state not in self.transitions:
            raise ValueError(f"'{state}' is not a {self.name} state.")
        return state
