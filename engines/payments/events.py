"""
MTS Payments Engine - Event Types and Payload Builders
=======================================================
Preview emits nothing. Only accepted writes produce events.
"""

from __future__ import annotations

from typing import Optional

from engines.minerals.models import MineralCategory
from engines.payments.commands import ADVANCE_CREATE_REQUEST, PAYMENT_COMMIT_REQUEST
from engines.payments.models import AdvancePayment, Payment


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

PAYMENTS_ADVANCE_CREATED_V1 = "payments.advance.created.v1"
PAYMENTS_PAYMENT_COMMITTED_V1 = "payments.payment.committed.v1"

REQUEST_TO_EVENT_TYPE = {
    ADVANCE_CREATE_REQUEST: PAYMENTS_ADVANCE_CREATED_V1,
    PAYMENT_COMMIT_REQUEST: PAYMENTS_PAYMENT_COMMITTED_V1,
}


def resolve_payments_event_type(request_type: str) -> Optional[str]:
    return REQUEST_TO_EVENT_TYPE.get(request_type)


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def build_advance_created_payload(advance: AdvancePayment) -> dict:
    return {"advance": advance.to_dict()}


def build_payment_committed_payload(payment: Payment) -> dict:
    aggregate = payment.aggregate
    return {
        "payment": payment.to_dict(),
        "consumed_lot_ids": {
            category.value: list(aggregate.ids_for(category))
            for category in MineralCategory
        },
        "consumed_advance_ids": list(aggregate.advance_ids),
    }
