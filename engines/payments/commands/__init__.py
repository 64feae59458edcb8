"""
MTS Payments Engine - Request Commands
=======================================
Typed payment requests. Each declares the capability it requires.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from core.errors import ValidationError
from core.security.access import Capability
from engines.payments.models import AdvancePayment, PaymentMethod, PaymentSelection


# ══════════════════════════════════════════════════════════════
# REQUEST TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

ADVANCE_CREATE_REQUEST = "payments.advance.create.request"
PAYMENT_PREVIEW_REQUEST = "payments.payment.preview.request"
PAYMENT_COMMIT_REQUEST = "payments.payment.commit.request"


def _require_selection(selection) -> None:
    if not isinstance(selection, PaymentSelection):
        raise ValidationError.single("selection", "INVALID_TYPE", "selection must be a PaymentSelection.")


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AdvanceCreateRequest:
    """Record an advance handed to a supplier. Always created Unpaid."""
    advance_id: str
    supplier_id: str
    amount: Decimal
    currency: str = "USD"
    method: PaymentMethod = PaymentMethod.CASH
    paid_on: Optional[date] = None
    supplier_name: str = ""
    note: str = ""

    request_type = ADVANCE_CREATE_REQUEST
    required_capability = Capability.ADVANCE_CREATE

    def to_advance(self, created_at) -> AdvancePayment:
        return AdvancePayment(
            advance_id=self.advance_id,
            supplier_id=self.supplier_id,
            supplier_name=self.supplier_name,
            amount=self.amount,
            currency=self.currency,
            method=self.method,
            paid_on=self.paid_on,
            note=self.note,
            created_at=created_at,
            updated_at=created_at,
        )


@dataclass(frozen=True)
class PaymentPreviewRequest:
    selection: PaymentSelection

    request_type = PAYMENT_PREVIEW_REQUEST
    required_capability = Capability.PAYMENT_PREVIEW

    def __post_init__(self):
        _require_selection(self.selection)


@dataclass(frozen=True)
class PaymentCommitRequest:
    """
    Commit a selection. expected_fingerprint, when given, must match the
    fingerprint of the fresh aggregation or the commit is refused.
    """
    selection: PaymentSelection
    expected_fingerprint: Optional[str] = None
    payment_id: Optional[str] = None

    request_type = PAYMENT_COMMIT_REQUEST
    required_capability = Capability.PAYMENT_COMMIT

    def __post_init__(self):
        _require_selection(self.selection)
        if self.expected_fingerprint is not None and len(self.expected_fingerprint) != 64:
            raise ValidationError.single(
                "expected_fingerprint", "INVALID_FINGERPRINT",
                "expected_fingerprint must be a 64-character SHA-256 hex digest.",
            )
