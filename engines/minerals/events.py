"""
MTS Minerals Engine - Event Types and Payload Builders
=======================================================
Every accepted lot change yields one event. The payload is the full
lot snapshot after the change, so consumers can replace rather than merge.
"""

from __future__ import annotations

from typing import Optional

from core.primitives.workflow import StateTransition
from engines.minerals.commands import (
    LOT_FINANCE_STATUS_CHANGE_REQUEST,
    LOT_FINANCIAL_UPDATE_REQUEST,
    LOT_LAB_UPDATE_REQUEST,
    LOT_REGISTER_REQUEST,
    LOT_STOCK_STATUS_CHANGE_REQUEST,
    LOT_STOCK_UPDATE_REQUEST,
)
from engines.minerals.models import MineralLot


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

MINERALS_LOT_REGISTERED_V1 = "minerals.lot.registered.v1"
MINERALS_LOT_STOCK_UPDATED_V1 = "minerals.lot.stock.updated.v1"
MINERALS_LOT_LAB_UPDATED_V1 = "minerals.lot.lab.updated.v1"
MINERALS_LOT_FINANCIALS_UPDATED_V1 = "minerals.lot.financials.updated.v1"
MINERALS_LOT_STOCK_STATUS_CHANGED_V1 = "minerals.lot.stock_status.changed.v1"
MINERALS_LOT_FINANCE_STATUS_CHANGED_V1 = "minerals.lot.finance_status.changed.v1"


# ══════════════════════════════════════════════════════════════
# REQUEST → EVENT MAPPING
# ══════════════════════════════════════════════════════════════

REQUEST_TO_EVENT_TYPE = {
    LOT_REGISTER_REQUEST: MINERALS_LOT_REGISTERED_V1,
    LOT_STOCK_UPDATE_REQUEST: MINERALS_LOT_STOCK_UPDATED_V1,
    LOT_LAB_UPDATE_REQUEST: MINERALS_LOT_LAB_UPDATED_V1,
    LOT_FINANCIAL_UPDATE_REQUEST: MINERALS_LOT_FINANCIALS_UPDATED_V1,
    LOT_STOCK_STATUS_CHANGE_REQUEST: MINERALS_LOT_STOCK_STATUS_CHANGED_V1,
    LOT_FINANCE_STATUS_CHANGE_REQUEST: MINERALS_LOT_FINANCE_STATUS_CHANGED_V1,
}


def resolve_minerals_event_type(request_type: str) -> Optional[str]:
    return REQUEST_TO_EVENT_TYPE.get(request_type)


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def build_lot_payload(
    lot: MineralLot,
    transition: Optional[StateTransition] = None,
) -> dict:
    payload = {"lot": lot.to_dict()}
    payload["transition"] = transition.to_dict() if transition else None
    return payload
