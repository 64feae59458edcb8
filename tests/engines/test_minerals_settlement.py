"""
MTS Minerals - Fee Resolution and Settlement Tests
===================================================
Fee override vs. global schedule, settlement formulas, Incomplete
handling and the division guard.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.errors import ConfigurationError, ValidationError
from engines.minerals.fees import (
    InMemoryFeeScheduleStore,
    bootstrap_schedules,
    resolve,
    resolve_from_store,
    schedules_from_settings,
)
from engines.minerals.models import (
    AssaySource,
    FeeOverride,
    FeeSchedule,
    Incomplete,
    LabResults,
    MineralCategory,
    MineralLot,
    PricingInputs,
    SettlementResult,
)
from engines.minerals.settlement import settle, settlement_or_none

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

SCHEDULE = FeeSchedule(
    category=MineralCategory.TANTALUM,
    rra_percentage="3",
    rma_per_ton="125",
    inkomane_fee_per_kg="40",
    rra_price_per_percentage="500",
)


def _lot(**pricing) -> MineralLot:
    values = {
        "price_per_percentage": "5",
        "purchased_percentage": "40",
        "exchange_rate": "1300",
        "tag_price_per_kg": "10",
    }
    values.update(pricing)
    return MineralLot(
        lot_id="TA-001",
        category=MineralCategory.TANTALUM,
        supplier_id="SUP-1",
        net_weight="100",
        pricing=PricingInputs(**values),
    )


# ══════════════════════════════════════════════════════════════
# UNIT: FeeConfigResolver
# ══════════════════════════════════════════════════════════════

class TestFeeResolution:
    def test_global_schedule_is_normalised(self):
        fees = resolve(_lot(), SCHEDULE)
        assert fees.source == "global"
        assert fees.schedule_version == 1
        assert fees.rra_rate == Decimal("0.03")
        assert fees.per_ton_rate == Decimal("0.125")
        assert fees.per_kg_flat_fee == Decimal("40")
        assert fees.price_per_percentage_rate == Decimal("5")

    def test_complete_enabled_override_wins(self):
        lot = replace(_lot(), fee_override=FeeOverride(
            enabled=True,
            rra_percentage="2",
            rma_per_ton="100",
            inkomane_fee_per_kg="20",
            rra_price_per_percentage="400",
        ))
        fees = resolve(lot, SCHEDULE)
        assert fees.source == "override"
        assert fees.schedule_version is None
        assert fees.rra_rate == Decimal("0.02")
        assert fees.per_ton_rate == Decimal("0.1")
        assert fees.per_kg_flat_fee == Decimal("20")
        assert fees.price_per_percentage_rate == Decimal("4")

    def test_incomplete_override_falls_back_to_global(self):
        lot = replace(_lot(), fee_override=FeeOverride(
            enabled=True, rra_percentage="2", rma_per_ton="100", inkomane_fee_per_kg="20",
        ))
        assert resolve(lot, SCHEDULE).source == "global"

    def test_disabled_override_is_ignored(self):
        lot = replace(_lot(), fee_override=FeeOverride(
            enabled=False,
            rra_percentage="2",
            rma_per_ton="100",
            inkomane_fee_per_kg="20",
            rra_price_per_percentage="400",
        ))
        assert resolve(lot, SCHEDULE).source == "global"

    def test_no_schedule_and_no_override_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc:
            resolve(_lot(), None)
        assert exc.value.category == "TANTALUM"

    def test_override_without_schedule_still_resolves(self):
        lot = replace(_lot(), fee_override=FeeOverride(
            enabled=True,
            rra_percentage="2",
            rma_per_ton="100",
            inkomane_fee_per_kg="20",
            rra_price_per_percentage="400",
        ))
        assert resolve(lot, None).source == "override"

    def test_schedule_for_other_category_rejected(self):
        tin = replace(SCHEDULE, category=MineralCategory.TIN)
        with pytest.raises(ConfigurationError, match="TIN"):
            resolve(_lot(), tin)

    def test_negative_fee_rejected(self):
        with pytest.raises(ValidationError) as exc:
            replace(SCHEDULE, rma_per_ton="-1")
        assert exc.value.fields == ("rma_per_ton",)


class TestFeeScheduleStore:
    def test_publish_bumps_version_and_current_is_latest(self):
        store = InMemoryFeeScheduleStore()
        first = store.publish(SCHEDULE)
        second = store.publish(replace(SCHEDULE, rra_percentage="4"))
        assert (first.version, second.version) == (1, 2)
        assert store.current(MineralCategory.TANTALUM).rra_percentage == Decimal("4")
        assert [s.version for s in store.history(MineralCategory.TANTALUM)] == [1, 2]

    def test_categories_are_independent(self):
        store = InMemoryFeeScheduleStore()
        store.publish(SCHEDULE)
        assert store.current(MineralCategory.TIN) is None

    def test_resolve_from_store(self):
        store = InMemoryFeeScheduleStore()
        with pytest.raises(ConfigurationError):
            resolve_from_store(_lot(), store)
        store.publish(SCHEDULE)
        assert resolve_from_store(_lot(), store).schedule_version == 1

    def test_schedules_from_settings(self):
        schedules = schedules_from_settings({
            "TIN": {
                "rra_percentage": "3",
                "rma_per_ton": "125",
                "inkomane_fee_per_kg": "40",
                "rra_price_per_percentage": "500",
            },
        }, published_at=NOW)
        assert len(schedules) == 1
        assert schedules[0].category == MineralCategory.TIN
        assert schedules[0].published_at == NOW

    def test_bootstrap_only_fills_empty_categories(self):
        store = InMemoryFeeScheduleStore()
        store.publish(replace(SCHEDULE, rra_percentage="4"))
        defaults = {
            name: {
                "rra_percentage": "3",
                "rma_per_ton": "125",
                "inkomane_fee_per_kg": "40",
                "rra_price_per_percentage": "500",
            }
            for name in ("TANTALUM", "TIN", "TUNGSTEN")
        }
        published = bootstrap_schedules(store, defaults, published_at=NOW)
        assert [s.category for s in published] == [MineralCategory.TIN, MineralCategory.TUNGSTEN]
        assert store.current(MineralCategory.TANTALUM).rra_percentage == Decimal("4")
        assert bootstrap_schedules(store, defaults) == []


# ══════════════════════════════════════════════════════════════
# UNIT: SettlementCalculator
# ══════════════════════════════════════════════════════════════

class TestSettlement:
    def test_reference_lot(self):
        result = settle(_lot(), resolve(_lot(), SCHEDULE))
        assert isinstance(result, SettlementResult)
        assert result.unit_price == Decimal("200")
        assert result.total_amount == Decimal("20000")
        assert result.rra == Decimal("600")
        assert result.rma == Decimal("12.5")
        assert result.inkomane_fee == Decimal("4000")
        assert result.advance == Decimal("1000")
        # 600 + 12.5 + 3.076923 + 0.769231
        assert result.total_charge == Decimal("616.346154")
        assert result.net_amount == Decimal("19383.653846")

    def test_net_is_exact_difference(self):
        lot = _lot(price_per_percentage="7.13", purchased_percentage="33.3",
                   exchange_rate="1287.77", tag_price_per_kg="11.9",
                   transport_charge="17.25", external_assay_charge="120")
        result = settle(lot, resolve(lot, SCHEDULE))
        assert result.net_amount == result.total_amount - result.total_charge

    def test_total_charge_includes_optional_charges(self):
        plain = settle(_lot(), resolve(_lot(), SCHEDULE))
        lot = _lot(transport_charge="50", external_assay_charge="150")
        charged = settle(lot, resolve(lot, SCHEDULE))
        assert charged.total_charge - plain.total_charge == Decimal("200")
        assert plain.net_amount - charged.net_amount == Decimal("200")

    def test_outputs_carry_six_decimal_places(self):
        result = settle(_lot(), resolve(_lot(), SCHEDULE))
        for value in result.to_dict().values():
            assert len(value.split(".")[1]) == 6

    def test_idempotent(self):
        fees = resolve(_lot(), SCHEDULE)
        first = settle(_lot(), fees)
        second = settle(_lot(), fees)
        assert first == second
        assert first.to_dict() == second.to_dict()

    @pytest.mark.parametrize("missing", [
        "price_per_percentage",
        "purchased_percentage",
        "exchange_rate",
        "tag_price_per_kg",
    ])
    def test_missing_input_is_incomplete(self, missing):
        lot = _lot(**{missing: None})
        result = settle(lot, resolve(_lot(), SCHEDULE))
        assert isinstance(result, Incomplete)
        assert result.missing == (missing,)
        assert result.to_dict() == {
            "unit_price": None, "total_amount": None, "rra": None, "rma": None,
            "inkomane_fee": None, "advance": None, "total_charge": None, "net_amount": None,
        }

    def test_zero_exchange_rate_is_incomplete_not_infinite(self):
        lot = _lot(exchange_rate="0")
        result = settle(lot, resolve(lot, SCHEDULE))
        assert isinstance(result, Incomplete)
        assert result.missing == ("exchange_rate",)

    def test_free_tag_is_a_real_zero(self):
        lot = _lot(tag_price_per_kg="0")
        result = settle(lot, resolve(lot, SCHEDULE))
        assert isinstance(result, SettlementResult)
        assert result.advance == Decimal("0")

    def test_settlement_or_none(self):
        fees = resolve(_lot(), SCHEDULE)
        assert settlement_or_none(_lot(), fees) is not None
        assert settlement_or_none(_lot(exchange_rate=None), fees) is None


# ══════════════════════════════════════════════════════════════
# UNIT: field validation
# ══════════════════════════════════════════════════════════════

class TestLotValidation:
    def test_non_positive_weight_rejected(self):
        with pytest.raises(ValidationError) as exc:
            MineralLot(lot_id="X", category=MineralCategory.TIN, supplier_id="S", net_weight="0")
        assert exc.value.codes == ("MUST_BE_POSITIVE",)

    def test_empty_string_is_not_zero(self):
        with pytest.raises(ValidationError) as exc:
            PricingInputs(price_per_percentage="")
        assert exc.value.codes == ("NOT_A_NUMBER",)

    def test_all_offending_fields_reported(self):
        with pytest.raises(ValidationError) as exc:
            PricingInputs(price_per_percentage="-5", purchased_percentage="140")
        assert set(exc.value.fields) == {"price_per_percentage", "purchased_percentage"}

    def test_partial_settlement_rejected(self):
        with pytest.raises(ValidationError) as exc:
            MineralLot(
                lot_id="X", category=MineralCategory.TIN, supplier_id="S",
                net_weight="10", settlement=Incomplete(("exchange_rate",)),
            )
        assert exc.value.codes == ("PARTIAL_SETTLEMENT",)

    def test_external_assay_takes_precedence(self):
        lab = LabResults(internal_assay="38", external_assay="41.5")
        assert lab.effective_assay() == Decimal("41.5")
        assert lab.effective_assay(AssaySource.INTERNAL) == Decimal("38")
        assert LabResults(internal_assay="38").effective_assay() == Decimal("38")

    def test_lot_dict_uses_explicit_nulls(self):
        data = _lot(tag_price_per_kg=None).to_dict()
        assert data["pricing"]["tag_price_per_kg"] is None
        assert data["settlement"]["net_amount"] is None
        assert data["lab"]["external_assay"] is None
