"""
MTS Minerals Engine - Settlement Calculator
============================================
Pure function: lot inputs + effective fees -> SettlementResult | Incomplete.

Formulas, in evaluation order:
    1. unit_price    = price_per_percentage * purchased_percentage
    2. total_amount  = unit_price * net_weight
    3. rra           = purchased_percentage * net_weight
                       * price_per_percentage_rate * rra_rate
    4. rma           = per_ton_rate * net_weight
    5. inkomane_fee  = per_kg_flat_fee * net_weight
    6. advance       = tag_price_per_kg * net_weight
    7. total_charge  = rra + rma + inkomane_fee / exchange_rate
                       + advance / exchange_rate
                       + transport_charge + external_assay_charge
    8. net_amount    = total_amount - total_charge

Each exposed figure is quantised to 6 dp. total_charge is the sum of the
quantised terms and net_amount their exact difference, so
net_amount == total_amount - total_charge with no drift.

No I/O. No clock. Same inputs -> identical output.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from core.primitives.amounts import ZERO, add, mul, quantize, safe_divide, sub
from engines.minerals.models import (
    EffectiveFees,
    Incomplete,
    MineralLot,
    SettlementResult,
)

logger = logging.getLogger("mts.settlement")

REQUIRED_INPUTS = (
    "price_per_percentage",
    "purchased_percentage",
    "net_weight",
    "exchange_rate",
    "tag_price_per_kg",
)

Settlement = Union[SettlementResult, Incomplete]


def missing_inputs(lot: MineralLot) -> tuple:
    pricing = lot.pricing
    values = {
        "price_per_percentage": pricing.price_per_percentage,
        "purchased_percentage": pricing.purchased_percentage,
        "net_weight": lot.net_weight,
        "exchange_rate": pricing.exchange_rate,
        "tag_price_per_kg": pricing.tag_price_per_kg,
    }
    return tuple(name for name in REQUIRED_INPUTS if values[name] is None)


def settle(lot: MineralLot, fees: EffectiveFees) -> Settlement:
    missing = missing_inputs(lot)
    if missing:
        return Incomplete(missing=missing)

    pricing = lot.pricing
    weight = lot.net_weight

    unit_price = mul(pricing.price_per_percentage, pricing.purchased_percentage)
    total_amount = mul(unit_price, weight)
    rra = mul(pricing.purchased_percentage, weight,
              fees.price_per_percentage_rate, fees.rra_rate)
    rma = mul(fees.per_ton_rate, weight)
    inkomane_fee = mul(fees.per_kg_flat_fee, weight)
    advance = mul(pricing.tag_price_per_kg, weight)

    inkomane_converted = safe_divide(inkomane_fee, pricing.exchange_rate)
    advance_converted = safe_divide(advance, pricing.exchange_rate)
    if inkomane_converted is None or advance_converted is None:
        logger.debug("Lot %s: exchange rate is zero; settlement incomplete.", lot.lot_id)
        return Incomplete(missing=("exchange_rate",))

    q_rra = quantize(rra)
    q_rma = quantize(rma)
    total_charge = add(
        q_rra,
        q_rma,
        quantize(inkomane_converted),
        quantize(advance_converted),
        quantize(_or_zero(pricing.transport_charge)),
        quantize(_or_zero(pricing.external_assay_charge)),
    )
    q_total_amount = quantize(total_amount)

    result = SettlementResult(
        unit_price=quantize(unit_price),
        total_amount=q_total_amount,
        rra=q_rra,
        rma=q_rma,
        inkomane_fee=quantize(inkomane_fee),
        advance=quantize(advance),
        total_charge=total_charge,
        net_amount=sub(q_total_amount, total_charge),
    )
    logger.debug(
        "Lot %s/%s settled: net_amount=%s (fees=%s)",
        lot.category.value, lot.lot_id, result.net_amount, fees.source,
    )
    return result


def settlement_or_none(lot: MineralLot, fees: EffectiveFees) -> Optional[SettlementResult]:
    """Stored form of a settlement: all fields populated, or None."""
    result = settle(lot, fees)
    return result if isinstance(result, SettlementResult) else None


def _or_zero(value):
    return ZERO if value is None else value
