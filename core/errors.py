"""
MTS Core - Error Taxonomy
==========================
Typed errors raised by the settlement and payment engines.

ValidationError     - input missing or out of range; reported per field.
ConfigurationError  - no fee schedule available for a category.
ConsistencyError    - a previously eligible record was consumed or changed
                      before commit; the caller must re-preview.
TransitionError     - a status change not allowed by the lifecycle rules.
CapabilityDenied    - caller lacks the capability an operation declares.

Division by zero is NOT an error here. It yields "undefined" (None)
through core.primitives.amounts.safe_divide.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple


@dataclass(frozen=True)
class FieldIssue:
    """One offending field in a ValidationError."""

    field: str
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


class SettlementError(Exception):
    """Base error for all MTS engine failures."""
    pass


class ValidationError(SettlementError):
    """Input rejected before a calculation or before commit eligibility."""

    def __init__(self, issues: Iterable[FieldIssue]):
        self.issues: Tuple[FieldIssue, ...] = tuple(issues)
        if not self.issues:
            raise ValueError("ValidationError requires at least one FieldIssue.")
        super().__init__(
            "; ".join(f"{i.field}: {i.message}" for i in self.issues)
        )

    @classmethod
    def single(cls, field: str, code: str, message: str) -> "ValidationError":
        return cls((FieldIssue(field=field, code=code, message=message),))

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(i.field for i in self.issues)

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(i.code for i in self.issues)


class TransitionError(ValidationError):
    """Status transition not permitted by the lifecycle definition."""

    def __init__(self, machine: str, from_state: str, to_state: str):
        self.machine = machine
        self.from_state = from_state
        self.to_state = to_state
        super().__init__((FieldIssue(
            field=machine,
            code="INVALID_TRANSITION",
            message=f"Invalid {machine} transition: {from_state} -> {to_state}.",
        ),))


class ConfigurationError(SettlementError):
    """No usable fee schedule for a mineral category."""

    def __init__(self, category: str, detail: Optional[str] = None):
        self.category = category
        message = (
            f"No fee schedule configured for category '{category}' "
            f"and the lot carries no complete override."
        )
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class ConsistencyError(SettlementError):
    """
    Commit aborted because selected records are no longer eligible.

    Raised once for the whole selection. Nothing has been mutated.
    """

    def __init__(self, stale_ids: Iterable[str], reason: str = ""):
        self.stale_ids: Tuple[str, ...] = tuple(sorted(stale_ids))
        self.reason = reason
        message = "Selection is stale; re-preview required."
        if self.stale_ids:
            message = f"{message} Stale: {', '.join(self.stale_ids)}."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class CapabilityDenied(SettlementError):
    """Caller's capability set does not include the required capability."""

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"Capability '{capability}' is required.")
