"""
MTS Command Layer - Rejection Model
====================================
Structured rejection reasons produced by eligibility policies.

This is NOT an exception. Policies return Optional[RejectionReason];
the caller decides whether the collected reasons become a
ValidationError (preview) or a ConsistencyError (commit).

Every rejection must be:
- Deterministic (same input -> same rejection)
- Machine-readable (code)
- Human-readable (message)
- Traceable (policy_name + subject_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import FieldIssue


@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason a record was refused.

    Fields:
        code:        Machine-readable rejection code (see ReasonCode).
        message:     Human-readable explanation.
        policy_name: Name of the policy that produced it.
        subject_id:  Id of the lot or advance concerned ("" if none).
    """

    code: str
    message: str
    policy_name: str
    subject_id: str = ""

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
            "subject_id": self.subject_id,
        }

    def to_field_issue(self, field: str) -> FieldIssue:
        return FieldIssue(field=field, code=self.code, message=self.message)


class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Selection ─────────────────────────────────────────────
    EMPTY_SELECTION = "EMPTY_SELECTION"
    DUPLICATE_SELECTION = "DUPLICATE_SELECTION"

    # ── Lots ──────────────────────────────────────────────────
    LOT_NOT_FOUND = "LOT_NOT_FOUND"
    LOT_SUPPLIER_MISMATCH = "LOT_SUPPLIER_MISMATCH"
    LOT_NOT_PAYABLE = "LOT_NOT_PAYABLE"
    LOT_SETTLEMENT_INCOMPLETE = "LOT_SETTLEMENT_INCOMPLETE"
    LOT_FINANCIALS_FROZEN = "LOT_FINANCIALS_FROZEN"

    # ── Advances ──────────────────────────────────────────────
    ADVANCE_NOT_FOUND = "ADVANCE_NOT_FOUND"
    ADVANCE_SUPPLIER_MISMATCH = "ADVANCE_SUPPLIER_MISMATCH"
    ADVANCE_ALREADY_PAID = "ADVANCE_ALREADY_PAID"
    ADVANCE_CURRENCY_MISMATCH = "ADVANCE_CURRENCY_MISMATCH"

    # ── Commit ────────────────────────────────────────────────
    PREVIEW_OUTDATED = "PREVIEW_OUTDATED"
