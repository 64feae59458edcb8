"""
MTS Payments Engine - Eligibility Policies
===========================================
Each policy returns None (accepted) or a RejectionReason. The
aggregator collects them into one ValidationError; the commit path
collects them into one ConsistencyError.
"""

from __future__ import annotations

from collections import Counter
from typing import List, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.minerals.lifecycle import is_advance_status_eligible, is_lot_eligible
from engines.minerals.models import MineralCategory, MineralLot
from engines.payments.models import SETTLEMENT_CURRENCY, AdvancePayment, PaymentSelection


# ══════════════════════════════════════════════════════════════
# SELECTION (structural)
# ══════════════════════════════════════════════════════════════

def selection_has_lots_policy(selection: PaymentSelection) -> Optional[RejectionReason]:
    """Advances alone cannot form a payment."""
    if selection.lot_count > 0:
        return None
    return RejectionReason(
        code=ReasonCode.EMPTY_SELECTION,
        message="Select at least one lot; advances alone cannot form a payment.",
        policy_name="selection_has_lots_policy",
    )


def selection_unique_ids_policy(selection: PaymentSelection) -> List[RejectionReason]:
    reasons = []
    groups = [(c.value, selection.lot_ids(c)) for c in MineralCategory]
    groups.append(("advance", selection.advance_ids))
    for label, ids in groups:
        for subject_id, count in sorted(Counter(ids).items()):
            if count > 1:
                reasons.append(RejectionReason(
                    code=ReasonCode.DUPLICATE_SELECTION,
                    message=f"{label} id '{subject_id}' selected {count} times.",
                    policy_name="selection_unique_ids_policy",
                    subject_id=subject_id,
                ))
    return reasons


# ══════════════════════════════════════════════════════════════
# LOTS
# ══════════════════════════════════════════════════════════════

def lot_eligibility_policy(
    category: MineralCategory,
    lot_id: str,
    lot: Optional[MineralLot],
    supplier_id: str,
) -> Optional[RejectionReason]:
    """
    Existence, ownership, finance status and settlement completeness,
    checked in that order; the first failure wins.
    """
    name = "lot_eligibility_policy"
    label = f"{category.value} lot '{lot_id}'"

    if lot is None:
        return RejectionReason(
            code=ReasonCode.LOT_NOT_FOUND,
            message=f"{label} not found.",
            policy_name=name,
            subject_id=lot_id,
        )
    if lot.supplier_id != supplier_id:
        return RejectionReason(
            code=ReasonCode.LOT_SUPPLIER_MISMATCH,
            message=f"{label} belongs to another supplier.",
            policy_name=name,
            subject_id=lot_id,
        )
    if not is_lot_eligible(lot):
        return RejectionReason(
            code=ReasonCode.LOT_NOT_PAYABLE,
            message=f"{label} is {lot.finance_status.value}; only unpaid or invoiced lots can be paid.",
            policy_name=name,
            subject_id=lot_id,
        )
    if lot.settlement is None:
        return RejectionReason(
            code=ReasonCode.LOT_SETTLEMENT_INCOMPLETE,
            message=f"{label} has no complete settlement yet.",
            policy_name=name,
            subject_id=lot_id,
        )
    return None


# ══════════════════════════════════════════════════════════════
# ADVANCES
# ══════════════════════════════════════════════════════════════

def advance_eligibility_policy(
    advance_id: str,
    advance: Optional[AdvancePayment],
    supplier_id: str,
) -> Optional[RejectionReason]:
    name = "advance_eligibility_policy"

    if advance is None:
        return RejectionReason(
            code=ReasonCode.ADVANCE_NOT_FOUND,
            message=f"Advance '{advance_id}' not found.",
            policy_name=name,
            subject_id=advance_id,
        )
    if advance.supplier_id != supplier_id:
        return RejectionReason(
            code=ReasonCode.ADVANCE_SUPPLIER_MISMATCH,
            message=f"Advance '{advance_id}' belongs to another supplier.",
            policy_name=name,
            subject_id=advance_id,
        )
    if not is_advance_status_eligible(advance.status.value):
        return RejectionReason(
            code=ReasonCode.ADVANCE_ALREADY_PAID,
            message=f"Advance '{advance_id}' is already {advance.status.value}.",
            policy_name=name,
            subject_id=advance_id,
        )
    return None


def advance_currency_policy(
    advance: AdvancePayment,
    settlement_currency: str = SETTLEMENT_CURRENCY,
) -> Optional[RejectionReason]:
    """Advances are deducted from lot net amounts, so currencies must match."""
    if advance.currency == settlement_currency.upper():
        return None
    return RejectionReason(
        code=ReasonCode.ADVANCE_CURRENCY_MISMATCH,
        message=(
            f"Advance '{advance.advance_id}' is in {advance.currency}; "
            f"payments settle in {settlement_currency.upper()}."
        ),
        policy_name="advance_currency_policy",
        subject_id=advance.advance_id,
    )
