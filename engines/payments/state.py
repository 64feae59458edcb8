"""
MTS Payments Engine - Settlement Workspace State
=================================================
Explicit, serialisable state for a client working on supplier payments,
with a pure reducer per action. No module-level mutable state.

    new_state = reduce(state, action_type, payload)

Rules:
- Changing the selection discards any preview (it no longer matches).
- A failed commit discards the preview; the caller must re-preview.
- A successful commit removes consumed lots and advances, appends the
  Payment and clears selection and preview.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple

from core.errors import ConsistencyError, SettlementError, ValidationError
from engines.minerals.models import MineralLot, lot_key
from engines.payments.models import AdvancePayment, AggregateResult, Payment, PaymentSelection


# ══════════════════════════════════════════════════════════════
# ACTION TYPES
# ══════════════════════════════════════════════════════════════

LOTS_FETCHED = "workspace.lots.fetched"
LOT_UPDATED = "workspace.lot.updated"
ADVANCES_FETCHED = "workspace.advances.fetched"
PAYMENTS_FETCHED = "workspace.payments.fetched"
SELECTION_CHANGED = "workspace.selection.changed"
PREVIEW_SUCCEEDED = "workspace.preview.succeeded"
PREVIEW_FAILED = "workspace.preview.failed"
COMMIT_SUCCEEDED = "workspace.commit.succeeded"
COMMIT_FAILED = "workspace.commit.failed"


def error_to_dict(error: SettlementError) -> dict:
    data = {
        "type": type(error).__name__,
        "message": str(error),
        "issues": [],
        "stale_ids": [],
    }
    if isinstance(error, ValidationError):
        data["issues"] = [issue.to_dict() for issue in error.issues]
    if isinstance(error, ConsistencyError):
        data["stale_ids"] = list(error.stale_ids)
    return data


@dataclass(frozen=True)
class SettlementState:
    supplier_id: Optional[str] = None
    lots: Tuple[MineralLot, ...] = ()
    advances: Tuple[AdvancePayment, ...] = ()
    payments: Tuple[Payment, ...] = ()
    selection: Optional[PaymentSelection] = None
    preview: Optional[AggregateResult] = None
    last_error: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "lots": [lot.to_dict() for lot in self.lots],
            "advances": [advance.to_dict() for advance in self.advances],
            "payments": [payment.to_dict() for payment in self.payments],
            "selection": self.selection.to_dict() if self.selection else None,
            "preview": self.preview.to_dict() if self.preview else None,
            "last_error": self.last_error,
        }


# ══════════════════════════════════════════════════════════════
# REDUCERS
# ══════════════════════════════════════════════════════════════

def _lots_fetched(state: SettlementState, payload: dict) -> SettlementState:
    category = payload["category"]
    kept = tuple(lot for lot in state.lots if lot.category != category)
    fetched = tuple(sorted(payload["lots"], key=lambda lot: lot.lot_id))
    return replace(state, lots=kept + fetched, supplier_id=payload.get("supplier_id", state.supplier_id))


def _lot_updated(state: SettlementState, payload: dict) -> SettlementState:
    lot = payload["lot"]
    others = tuple(x for x in state.lots if lot_key(x) != lot_key(lot))
    return replace(state, lots=others + (lot,), preview=None)


def _advances_fetched(state: SettlementState, payload: dict) -> SettlementState:
    return replace(state, advances=tuple(payload["advances"]))


def _payments_fetched(state: SettlementState, payload: dict) -> SettlementState:
    return replace(state, payments=tuple(payload["payments"]))


def _selection_changed(state: SettlementState, payload: dict) -> SettlementState:
    return replace(state, selection=payload["selection"], preview=None, last_error=None)


def _preview_succeeded(state: SettlementState, payload: dict) -> SettlementState:
    return replace(state, preview=payload["result"], last_error=None)


def _failed(state: SettlementState, payload: dict) -> SettlementState:
    return replace(state, preview=None, last_error=error_to_dict(payload["error"]))


def _commit_succeeded(state: SettlementState, payload: dict) -> SettlementState:
    payment: Payment = payload["payment"]
    aggregate = payment.aggregate
    consumed = {(line.category, line.lot_id) for line in aggregate.lines}
    paid_advances = set(aggregate.advance_ids)
    return replace(
        state,
        lots=tuple(lot for lot in state.lots if lot_key(lot) not in consumed),
        advances=tuple(a for a in state.advances if a.advance_id not in paid_advances),
        payments=state.payments + (payment,),
        selection=None,
        preview=None,
        last_error=None,
    )


_REDUCERS = {
    LOTS_FETCHED: _lots_fetched,
    LOT_UPDATED: _lot_updated,
    ADVANCES_FETCHED: _advances_fetched,
    PAYMENTS_FETCHED: _payments_fetched,
    SELECTION_CHANGED: _selection_changed,
    PREVIEW_SUCCEEDED: _preview_succeeded,
    PREVIEW_FAILED: _failed,
    COMMIT_SUCCEEDED: _commit_succeeded,
    COMMIT_FAILED: _failed,
}


def reduce(state: SettlementState, action_type: str, payload: Any = None) -> SettlementState:
    """Pure transition. Unknown actions leave the state unchanged."""
    reducer = _REDUCERS.get(action_type)
    if reducer is None:
        return state
    return reducer(state, payload or {})
