"""
MTS Payments Engine - Payment Aggregator
=========================================
Combines a supplier's selected lots (any mix of categories) and unpaid
advances into one set of totals.

    total_weight            = sum of net_weight over all selected lots
    weighted_avg_percentage = sum(pct_i * w_i) / sum(w_i), per category,
                              over lots that have a percentage
                              (undefined when no weight or no percentage)
    total_amount            = sum of net_amount over selected lots
    advance_amount          = sum of amount over selected advances
    payable_amount          = total_amount - advance_amount (not clamped)
    mineral_types           = categories with at least one selected lot

Pure: lookups are passed in, nothing is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from core.commands.rejection import RejectionReason
from core.errors import ValidationError
from core.primitives.amounts import add, mul, quantize, safe_divide, sub, total
from engines.minerals.models import AssaySource, MineralCategory, MineralLot
from engines.payments.models import (
    SETTLEMENT_CURRENCY,
    AdvancePayment,
    AggregateResult,
    CategoryAggregate,
    PaymentLine,
    PaymentSelection,
)
from engines.payments.policies import (
    advance_currency_policy,
    advance_eligibility_policy,
    lot_eligibility_policy,
    selection_has_lots_policy,
    selection_unique_ids_policy,
)

logger = logging.getLogger("mts.payments")

LotLookup = Callable[[MineralCategory, str], Optional[MineralLot]]
AdvanceLookup = Callable[[str], Optional[AdvancePayment]]


def selection_field(category: Optional[MineralCategory]) -> str:
    if category is None:
        return "advance_ids"
    return f"{category.value.lower()}_ids"


# ══════════════════════════════════════════════════════════════
# ELIGIBILITY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EligibilityReport:
    """Outcome of checking every selected id against current state."""
    lots: Tuple[MineralLot, ...]
    advances: Tuple[AdvancePayment, ...]
    structural: Tuple[Tuple[str, RejectionReason], ...]
    ineligible: Tuple[Tuple[str, RejectionReason], ...]

    @property
    def ok(self) -> bool:
        return not self.structural and not self.ineligible

    @property
    def stale_ids(self) -> Tuple[str, ...]:
        return tuple(sorted({r.subject_id for _, r in self.ineligible}))

    def to_validation_error(self) -> ValidationError:
        return ValidationError(
            reason.to_field_issue(field)
            for field, reason in self.structural + self.ineligible
        )


def check_eligibility(
    supplier_id: str,
    lot_ids_by_category: Dict[MineralCategory, Sequence[str]],
    advance_ids: Sequence[str],
    lot_lookup: LotLookup,
    advance_lookup: AdvanceLookup,
    settlement_currency: str = SETTLEMENT_CURRENCY,
) -> EligibilityReport:
    selection = PaymentSelection.of(supplier_id, lot_ids_by_category, tuple(advance_ids))

    structural: List[Tuple[str, RejectionReason]] = []
    if not supplier_id:
        structural.append(("supplier_id", RejectionReason(
            code="SUPPLIER_REQUIRED",
            message="supplier_id must be non-empty.",
            policy_name="selection_supplier_policy",
        )))
    empty = selection_has_lots_policy(selection)
    if empty is not None:
        structural.append(("selection", empty))
    for reason in selection_unique_ids_policy(selection):
        structural.append(("selection", reason))

    lots: List[MineralLot] = []
    ineligible: List[Tuple[str, RejectionReason]] = []
    for category in MineralCategory:
        for lot_id in sorted(set(selection.lot_ids(category))):
            lot = lot_lookup(category, lot_id)
            reason = lot_eligibility_policy(category, lot_id, lot, supplier_id)
            if reason is not None:
                ineligible.append((selection_field(category), reason))
            else:
                lots.append(lot)

    advances: List[AdvancePayment] = []
    for advance_id in sorted(set(selection.advance_ids)):
        advance = advance_lookup(advance_id)
        reason = (
            advance_eligibility_policy(advance_id, advance, supplier_id)
            or advance_currency_policy(advance, settlement_currency)
        )
        if reason is not None:
            ineligible.append((selection_field(None), reason))
        else:
            advances.append(advance)

    return EligibilityReport(
        lots=tuple(lots),
        advances=tuple(advances),
        structural=tuple(structural),
        ineligible=tuple(ineligible),
    )


# ══════════════════════════════════════════════════════════════
# TOTALS
# ══════════════════════════════════════════════════════════════

def weighted_average(pairs: Iterable[Tuple[Optional[Decimal], Decimal]]) -> Optional[Decimal]:
    """
    Weighted mean of (percentage, weight) pairs. Pairs without a
    percentage are skipped. Returns None when nothing is left to weigh.
    """
    weighed = [(pct, weight) for pct, weight in pairs if pct is not None]
    numerator = total(mul(pct, weight) for pct, weight in weighed)
    denominator = total(weight for _, weight in weighed)
    average = safe_divide(numerator, denominator)
    return None if average is None else quantize(average)


def compute_totals(
    supplier_id: str,
    lots: Sequence[MineralLot],
    advances: Sequence[AdvancePayment],
    assay_source: AssaySource = AssaySource.EXTERNAL,
) -> AggregateResult:
    """Totals over lots already known to be eligible and settled."""
    by_category: Dict[MineralCategory, List[MineralLot]] = {c: [] for c in MineralCategory}
    for lot in lots:
        by_category[lot.category].append(lot)
    for bucket in by_category.values():
        bucket.sort(key=lambda lot: lot.lot_id)

    lines: List[PaymentLine] = []
    categories: List[CategoryAggregate] = []
    for category, bucket in by_category.items():
        for lot in bucket:
            lines.append(PaymentLine(
                category=category,
                lot_id=lot.lot_id,
                lot_number=lot.lot_number,
                net_weight=lot.net_weight,
                assay_percentage=lot.effective_assay(assay_source),
                settlement=lot.settlement,
            ))
        categories.append(CategoryAggregate(
            category=category,
            lot_count=len(bucket),
            total_weight=quantize(total(lot.net_weight for lot in bucket)),
            weighted_avg_percentage=weighted_average(
                (lot.effective_assay(assay_source), lot.net_weight) for lot in bucket
            ),
            total_amount=total(lot.settlement.net_amount for lot in bucket),
        ))

    total_weight = quantize(total(lot.net_weight for lot in lots))
    total_amount = add(*(entry.total_amount for entry in categories))
    advance_amount = quantize(total(advance.amount for advance in advances))
    supplier_name = next((lot.supplier_name for lot in lots if lot.supplier_name), "")

    return AggregateResult(
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        lot_ids=tuple(
            (category, tuple(lot.lot_id for lot in bucket))
            for category, bucket in by_category.items()
        ),
        advance_ids=tuple(sorted(advance.advance_id for advance in advances)),
        lines=tuple(lines),
        categories=tuple(categories),
        total_weight=total_weight,
        total_amount=total_amount,
        advance_amount=advance_amount,
        payable_amount=sub(total_amount, advance_amount),
        mineral_types=tuple(c for c, bucket in by_category.items() if bucket),
        assay_source=assay_source,
    )


# ══════════════════════════════════════════════════════════════
# ENTRY POINTS
# ══════════════════════════════════════════════════════════════

def aggregate(
    supplier_id: str,
    lot_ids_by_category: Dict[MineralCategory, Sequence[str]],
    advance_ids: Sequence[str],
    lot_lookup: LotLookup,
    advance_lookup: AdvanceLookup,
    assay_source: AssaySource = AssaySource.EXTERNAL,
) -> AggregateResult:
    """Validate the selection and total it. Raises ValidationError."""
    report = check_eligibility(
        supplier_id, lot_ids_by_category, advance_ids, lot_lookup, advance_lookup,
    )
    if not report.ok:
        raise report.to_validation_error()
    result = compute_totals(supplier_id, report.lots, report.advances, assay_source)
    logger.debug(
        "Aggregated %d lots, %d advances for supplier %s: payable=%s",
        len(report.lots), len(report.advances), supplier_id, result.payable_amount,
    )
    return result


def aggregate_selection(
    selection: PaymentSelection,
    lot_lookup: LotLookup,
    advance_lookup: AdvanceLookup,
) -> AggregateResult:
    return aggregate(
        selection.supplier_id,
        selection.lot_ids_by_category(),
        selection.advance_ids,
        lot_lookup,
        advance_lookup,
        selection.assay_source,
    )
