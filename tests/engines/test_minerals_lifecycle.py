"""
MTS Minerals - Status Lifecycle and Lot Service Tests
======================================================
Stock / finance / advance state machines, capability-gated field-group
edits, settlement recompute and the frozen-financials rule.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.errors import (
    CapabilityDenied,
    ConfigurationError,
    TransitionError,
    ValidationError,
)
from core.security.access import Capability, CapabilitySet
from core.time.clock import FixedClock
from engines.minerals.commands import (
    LotFinanceStatusChangeRequest,
    LotFinancialUpdateRequest,
    LotLabUpdateRequest,
    LotRegisterRequest,
    LotStockStatusChangeRequest,
    LotStockUpdateRequest,
)
from engines.minerals.events import (
    MINERALS_LOT_FINANCIALS_UPDATED_V1,
    MINERALS_LOT_REGISTERED_V1,
)
from engines.minerals.lifecycle import (
    ADVANCE_STATUS_WORKFLOW,
    FINANCE_STATUS_WORKFLOW,
    STOCK_STATUS_WORKFLOW,
    change_finance_status,
    change_stock_status,
    is_lot_eligible,
    pay_advance_status,
)
from engines.minerals.models import (
    FeeSchedule,
    FinanceStatus,
    LabResults,
    MineralCategory,
    MineralLot,
    PricingInputs,
    StockStatus,
)
from engines.minerals.services import MineralLotService
from engines.payments.commands import AdvanceCreateRequest
from engines.payments.storage import InMemoryStorage

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)
TA = MineralCategory.TANTALUM
ALL = CapabilitySet.full()

PRICING = PricingInputs(
    price_per_percentage="5",
    purchased_percentage="40",
    exchange_rate="1300",
    tag_price_per_kg="10",
)


def _lot(**kwargs) -> MineralLot:
    values = dict(lot_id="TA-001", category=TA, supplier_id="SUP-1", net_weight="100")
    values.update(kwargs)
    return MineralLot(**values)


def _service(with_schedule: bool = True):
    storage = InMemoryStorage()
    if with_schedule:
        storage.fee_schedules.publish(FeeSchedule(
            category=TA,
            rra_percentage="3",
            rma_per_ton="125",
            inkomane_fee_per_kg="40",
            rra_price_per_percentage="500",
        ))
    events = []
    service = MineralLotService(
        lot_store=storage.lots,
        fee_store=storage.fee_schedules,
        clock=FixedClock(NOW),
        event_sink=lambda event_type, payload: events.append((event_type, payload)),
    )
    service.execute(LotRegisterRequest(
        category=TA, lot_id="TA-001", supplier_id="SUP-1",
        supplier_name="Kivu Mining", net_weight="100",
    ), ALL)
    return service, storage, events


# ══════════════════════════════════════════════════════════════
# UNIT: state machines
# ══════════════════════════════════════════════════════════════

class TestStockStatus:
    def test_initial_state(self):
        assert STOCK_STATUS_WORKFLOW.initial_state == "in-stock"

    def test_resample_round_trip(self):
        lot, _ = change_stock_status(_lot(), StockStatus.RESAMPLED, NOW)
        lot, record = change_stock_status(lot, StockStatus.IN_STOCK, NOW)
        assert lot.stock_status == StockStatus.IN_STOCK
        assert record.from_state == "resampled"
        assert lot.stock_status_changed_at == NOW

    def test_withdrawn_is_terminal(self):
        lot, _ = change_stock_status(_lot(), StockStatus.WITHDRAWN, NOW)
        with pytest.raises(TransitionError):
            change_stock_status(lot, StockStatus.IN_STOCK, NOW)

    def test_resampled_cannot_be_withdrawn_directly(self):
        lot, _ = change_stock_status(_lot(), StockStatus.RESAMPLED, NOW)
        with pytest.raises(TransitionError):
            change_stock_status(lot, StockStatus.WITHDRAWN, NOW)


class TestFinanceStatus:
    def test_invoice_records_previous_status(self):
        lot, _ = change_finance_status(_lot(), FinanceStatus.INVOICED, NOW)
        assert lot.finance_status == FinanceStatus.INVOICED
        assert lot.previous_finance_status == FinanceStatus.UNPAID
        assert lot.finance_status_changed_at == NOW

    def test_paid_is_reserved_to_commit(self):
        with pytest.raises(TransitionError):
            change_finance_status(_lot(), FinanceStatus.PAID, NOW)
        lot, _ = change_finance_status(_lot(), FinanceStatus.PAID, NOW, via_commit=True)
        assert lot.finance_status == FinanceStatus.PAID

    def test_exported_from_invoiced(self):
        lot, _ = change_finance_status(_lot(), FinanceStatus.INVOICED, NOW)
        lot, _ = change_finance_status(lot, FinanceStatus.EXPORTED, NOW)
        assert lot.finance_status == FinanceStatus.EXPORTED

    def test_no_way_back_to_unpaid(self):
        lot, _ = change_finance_status(_lot(), FinanceStatus.INVOICED, NOW)
        with pytest.raises(TransitionError):
            change_finance_status(lot, FinanceStatus.UNPAID, NOW)

    def test_terminal_states(self):
        assert FINANCE_STATUS_WORKFLOW.is_terminal("paid")
        assert FINANCE_STATUS_WORKFLOW.is_terminal("exported")
        assert not FINANCE_STATUS_WORKFLOW.is_terminal("invoiced")

    def test_eligibility(self):
        assert is_lot_eligible(_lot())
        assert is_lot_eligible(_lot(finance_status=FinanceStatus.INVOICED))
        assert not is_lot_eligible(_lot(finance_status=FinanceStatus.PAID))
        assert not is_lot_eligible(_lot(finance_status=FinanceStatus.EXPORTED))


class TestAdvanceStatus:
    def test_one_way(self):
        record = pay_advance_status("Unpaid", NOW)
        assert record.to_state == "Paid"
        with pytest.raises(TransitionError):
            pay_advance_status("Paid", NOW)
        assert ADVANCE_STATUS_WORKFLOW.allowed_next_states("Paid") == frozenset()


# ══════════════════════════════════════════════════════════════
# INTEGRATION: MineralLotService
# ══════════════════════════════════════════════════════════════

class TestLotService:
    def test_register_emits_event_without_settlement(self):
        _, storage, events = _service()
        lot = storage.lots.get(TA, "TA-001")
        assert lot.settlement is None
        assert lot.created_at == NOW
        assert events[0][0] == MINERALS_LOT_REGISTERED_V1
        assert events[0][1]["lot"]["settlement"]["net_amount"] is None

    def test_duplicate_register_rejected(self):
        service, _, _ = _service()
        with pytest.raises(ValidationError) as exc:
            service.execute(LotRegisterRequest(
                category=TA, lot_id="TA-001", supplier_id="SUP-1", net_weight="5",
            ), ALL)
        assert exc.value.codes == ("DUPLICATE",)

    def test_financial_update_settles_lot(self):
        service, storage, events = _service()
        result = service.execute(LotFinancialUpdateRequest(
            category=TA, lot_id="TA-001", pricing=PRICING,
        ), ALL)
        assert result.event_type == MINERALS_LOT_FINANCIALS_UPDATED_V1
        stored = storage.lots.get(TA, "TA-001")
        assert stored.settlement.net_amount == Decimal("19383.653846")
        assert events[-1][1]["lot"]["settlement"]["net_amount"] == "19383.653846"

    def test_weight_change_resettles(self):
        service, storage, _ = _service()
        service.execute(LotFinancialUpdateRequest(category=TA, lot_id="TA-001", pricing=PRICING), ALL)
        service.execute(LotStockUpdateRequest(category=TA, lot_id="TA-001", net_weight="200"), ALL)
        assert storage.lots.get(TA, "TA-001").settlement.total_amount == Decimal("40000")

    def test_incomplete_inputs_need_no_schedule(self):
        service, storage, _ = _service(with_schedule=False)
        service.execute(LotFinancialUpdateRequest(
            category=TA, lot_id="TA-001",
            pricing=PricingInputs(price_per_percentage="5"),
        ), ALL)
        assert storage.lots.get(TA, "TA-001").settlement is None

    def test_complete_inputs_without_schedule_raise(self):
        service, storage, _ = _service(with_schedule=False)
        with pytest.raises(ConfigurationError):
            service.execute(LotFinancialUpdateRequest(
                category=TA, lot_id="TA-001", pricing=PRICING,
            ), ALL)
        assert storage.lots.get(TA, "TA-001").pricing.price_per_percentage is None

    def test_lab_update_keeps_settlement(self):
        service, storage, _ = _service()
        service.execute(LotFinancialUpdateRequest(category=TA, lot_id="TA-001", pricing=PRICING), ALL)
        before = storage.lots.get(TA, "TA-001").settlement
        service.execute(LotLabUpdateRequest(
            category=TA, lot_id="TA-001", lab=LabResults(external_assay="41.2"),
        ), ALL)
        lot = storage.lots.get(TA, "TA-001")
        assert lot.settlement == before
        assert lot.has_external_assay

    def test_each_group_requires_its_capability(self):
        service, _, _ = _service()
        lab_only = CapabilitySet.of(Capability.LOT_LAB_EDIT)
        with pytest.raises(CapabilityDenied) as exc:
            service.execute(LotFinancialUpdateRequest(
                category=TA, lot_id="TA-001", pricing=PRICING,
            ), lab_only)
        assert exc.value.capability == Capability.LOT_FINANCIAL_EDIT
        service.execute(LotLabUpdateRequest(
            category=TA, lot_id="TA-001", lab=LabResults(internal_assay="30"),
        ), lab_only)

    def test_unknown_lot_rejected(self):
        service, _, _ = _service()
        with pytest.raises(ValidationError) as exc:
            service.execute(LotLabUpdateRequest(
                category=TA, lot_id="NOPE", lab=LabResults(),
            ), ALL)
        assert exc.value.codes == ("LOT_NOT_FOUND",)

    def test_unsupported_request_type_rejected(self):
        service, _, events = _service()
        with pytest.raises(ValueError, match="Unsupported lot request type"):
            service.execute(AdvanceCreateRequest(
                advance_id="ADV-1", supplier_id="SUP-1", amount="1",
            ), ALL)
        assert [event_type for event_type, _ in events] == [MINERALS_LOT_REGISTERED_V1]

    def test_exported_lot_financials_frozen(self):
        service, _, _ = _service()
        service.execute(LotFinanceStatusChangeRequest(
            category=TA, lot_id="TA-001", to_status=FinanceStatus.EXPORTED,
        ), ALL)
        with pytest.raises(ValidationError) as exc:
            service.execute(LotFinancialUpdateRequest(
                category=TA, lot_id="TA-001", pricing=PRICING,
            ), ALL)
        assert exc.value.codes == ("LOT_FINANCIALS_FROZEN",)
        with pytest.raises(ValidationError):
            service.execute(LotStockUpdateRequest(category=TA, lot_id="TA-001", net_weight="1"), ALL)
        # Non-settlement stock fields stay editable.
        service.execute(LotStockUpdateRequest(category=TA, lot_id="TA-001", lot_number="L-9"), ALL)

    def test_manual_paid_rejected(self):
        service, _, _ = _service()
        with pytest.raises(TransitionError):
            service.execute(LotFinanceStatusChangeRequest(
                category=TA, lot_id="TA-001", to_status=FinanceStatus.PAID,
            ), ALL)

    def test_stock_status_change_returns_transition(self):
        service, _, _ = _service()
        result = service.execute(LotStockStatusChangeRequest(
            category=TA, lot_id="TA-001", to_status=StockStatus.RESAMPLED, reason="lab retest",
        ), ALL)
        assert result.transition.to_dict()["reason"] == "lab retest"
        assert result.payload["transition"]["to_state"] == "resampled"

    def test_publish_requires_capability(self):
        service, storage, _ = _service()
        schedule = storage.fee_schedules.current(TA)
        with pytest.raises(CapabilityDenied):
            service.publish_fee_schedule(schedule, CapabilitySet.of(Capability.LOT_FINANCIAL_EDIT))
        published = service.publish_fee_schedule(schedule, ALL)
        assert published.version == 2
        assert published.published_at == NOW

    def test_empty_stock_update_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LotStockUpdateRequest(category=TA, lot_id="TA-001")
        assert exc.value.codes == ("NO_CHANGES",)
