"""
MTS Payments - Workspace State Reducer Tests
=============================================
"""

from dataclasses import replace
from datetime import datetime, timezone

from core.errors import ConsistencyError, ValidationError
from engines.minerals.fees import resolve
from engines.minerals.models import FeeSchedule, MineralCategory, MineralLot, PricingInputs
from engines.minerals.settlement import settlement_or_none
from engines.payments.aggregator import compute_totals
from engines.payments.models import AdvancePayment, Payment, PaymentSelection
from engines.payments.state import (
    ADVANCES_FETCHED,
    COMMIT_FAILED,
    COMMIT_SUCCEEDED,
    LOT_UPDATED,
    LOTS_FETCHED,
    PREVIEW_FAILED,
    PREVIEW_SUCCEEDED,
    SELECTION_CHANGED,
    SettlementState,
    reduce,
)

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)
TA = MineralCategory.TANTALUM
SN = MineralCategory.TIN
SCHEDULE = FeeSchedule(
    category=TA,
    rra_percentage="3",
    rma_per_ton="125",
    inkomane_fee_per_kg="40",
    rra_price_per_percentage="500",
)


def _lot(lot_id, category=TA):
    return MineralLot(lot_id=lot_id, category=category, supplier_id="SUP-1", net_weight="10")


def _settled(lot_id):
    lot = replace(_lot(lot_id), pricing=PricingInputs(
        price_per_percentage="5",
        purchased_percentage="40",
        exchange_rate="1300",
        tag_price_per_kg="10",
    ))
    return replace(lot, settlement=settlement_or_none(lot, resolve(lot, SCHEDULE)))


def _loaded() -> SettlementState:
    state = reduce(SettlementState(), LOTS_FETCHED, {
        "category": TA, "supplier_id": "SUP-1", "lots": [_lot("TA-2"), _lot("TA-1")],
    })
    state = reduce(state, LOTS_FETCHED, {"category": SN, "lots": [_lot("SN-1", SN)]})
    return reduce(state, ADVANCES_FETCHED, {"advances": [
        AdvancePayment(advance_id="ADV-1", supplier_id="SUP-1", amount="10"),
        AdvancePayment(advance_id="ADV-2", supplier_id="SUP-1", amount="20"),
    ]})


class TestReducer:
    def test_initial_state_serialises(self):
        data = SettlementState().to_dict()
        assert data["lots"] == [] and data["preview"] is None

    def test_lots_fetched_replaces_one_category(self):
        state = _loaded()
        assert state.supplier_id == "SUP-1"
        assert [lot.lot_id for lot in state.lots] == ["TA-1", "TA-2", "SN-1"]
        state = reduce(state, LOTS_FETCHED, {"category": TA, "lots": [_lot("TA-3")]})
        assert [lot.lot_id for lot in state.lots] == ["SN-1", "TA-3"]

    def test_selection_change_discards_preview(self):
        state = _loaded()
        preview = compute_totals("SUP-1", [], [])
        state = reduce(state, PREVIEW_SUCCEEDED, {"result": preview})
        assert state.preview is preview
        state = reduce(state, SELECTION_CHANGED, {
            "selection": PaymentSelection(supplier_id="SUP-1", tantalum_ids=("TA-1",)),
        })
        assert state.preview is None
        assert state.selection.tantalum_ids == ("TA-1",)

    def test_lot_update_discards_preview(self):
        state = reduce(_loaded(), PREVIEW_SUCCEEDED, {"result": compute_totals("SUP-1", [], [])})
        updated = replace(_lot("TA-1"), lot_number="L-7")
        state = reduce(state, LOT_UPDATED, {"lot": updated})
        assert state.preview is None
        assert [lot for lot in state.lots if lot.lot_id == "TA-1"][0].lot_number == "L-7"
        assert len(state.lots) == 3

    def test_failures_are_recorded_as_plain_data(self):
        state = reduce(_loaded(), PREVIEW_FAILED, {
            "error": ValidationError.single("selection", "EMPTY_SELECTION", "nothing selected"),
        })
        assert state.last_error["type"] == "ValidationError"
        assert state.last_error["issues"][0]["code"] == "EMPTY_SELECTION"

        state = reduce(state, COMMIT_FAILED, {"error": ConsistencyError(["TA-2", "TA-1"])})
        assert state.last_error["stale_ids"] == ["TA-1", "TA-2"]
        assert state.preview is None

    def test_commit_success_removes_consumed_records(self):
        state = _loaded()
        state = reduce(state, LOTS_FETCHED, {"category": TA, "lots": [_settled("TA-1"), _lot("TA-2")]})
        aggregate = compute_totals("SUP-1", [_settled("TA-1")], [state.advances[0]])
        payment = Payment(payment_id="PAY-1", created_at=NOW, aggregate=aggregate)
        state = reduce(state, SELECTION_CHANGED, {
            "selection": PaymentSelection(
                supplier_id="SUP-1", tantalum_ids=("TA-1",), advance_ids=("ADV-1",),
            ),
        })
        state = reduce(state, PREVIEW_SUCCEEDED, {"result": aggregate})
        state = reduce(state, COMMIT_SUCCEEDED, {"payment": payment})
        assert [lot.lot_id for lot in state.lots] == ["SN-1", "TA-2"]
        assert [a.advance_id for a in state.advances] == ["ADV-2"]
        assert state.payments == (payment,)
        assert state.selection is None and state.preview is None
        assert state.to_dict()["payments"][0]["payment_id"] == "PAY-1"

    def test_unknown_action_is_ignored(self):
        state = _loaded()
        assert reduce(state, "workspace.nothing", {}) is state
