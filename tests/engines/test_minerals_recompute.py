"""
MTS Minerals - Cancel-and-Replace Recompute Tests
==================================================
"""

from dataclasses import replace
from decimal import Decimal

from engines.minerals.fees import resolve
from engines.minerals.models import (
    FeeSchedule,
    Incomplete,
    MineralCategory,
    MineralLot,
    PricingInputs,
    lot_key,
)
from engines.minerals.recompute import SettlementRecomputer
from engines.minerals.settlement import settle

TA = MineralCategory.TANTALUM

SCHEDULE = FeeSchedule(
    category=TA,
    rra_percentage="3",
    rma_per_ton="125",
    inkomane_fee_per_kg="40",
    rra_price_per_percentage="500",
)

BASE = MineralLot(
    lot_id="TA-001",
    category=TA,
    supplier_id="SUP-1",
    net_weight="100",
    pricing=PricingInputs(
        price_per_percentage="5",
        purchased_percentage="40",
        exchange_rate="1300",
        tag_price_per_kg="10",
    ),
)
FEES = resolve(BASE, SCHEDULE)


class TestRecompute:
    def test_newest_submission_wins(self):
        published = []
        recomputer = SettlementRecomputer(on_publish=lambda key, result: published.append(result))
        recomputer.submit(BASE, FEES)
        recomputer.submit(replace(BASE, net_weight="200"), FEES)
        assert recomputer.pending_count == 1

        results = recomputer.drain()
        assert results[lot_key(BASE)].total_amount == Decimal("40000")
        assert len(published) == 1
        assert recomputer.displayed(lot_key(BASE)).total_amount == Decimal("40000")
        assert recomputer.pending_count == 0

    def test_stale_ticket_cannot_publish(self):
        recomputer = SettlementRecomputer()
        old = recomputer.submit(BASE, FEES)
        new = recomputer.submit(replace(BASE, net_weight="200"), FEES)
        assert not recomputer.is_current(old)
        assert recomputer.publish(old, settle(BASE, FEES)) is False
        assert recomputer.displayed(lot_key(BASE)) is None
        assert recomputer.publish(new, settle(replace(BASE, net_weight="200"), FEES)) is True

    def test_cancel_drops_pending_and_in_flight(self):
        recomputer = SettlementRecomputer()
        ticket = recomputer.submit(BASE, FEES)
        recomputer.cancel(lot_key(BASE))
        assert recomputer.drain() == {}
        assert recomputer.publish(ticket, settle(BASE, FEES)) is False

    def test_lots_are_independent(self):
        recomputer = SettlementRecomputer()
        other = replace(BASE, lot_id="TA-002")
        recomputer.submit(BASE, FEES)
        recomputer.submit(other, FEES)
        assert set(recomputer.drain()) == {lot_key(BASE), lot_key(other)}

    def test_incomplete_result_is_published_too(self):
        recomputer = SettlementRecomputer()
        lot = replace(BASE, pricing=replace(BASE.pricing, exchange_rate=None))
        recomputer.submit(lot, FEES)
        result = recomputer.drain()[lot_key(lot)]
        assert isinstance(result, Incomplete)
