"""
MTS Payments Engine - Domain Model
===================================
Advances paid to suppliers ahead of settlement, the selection a caller
submits for aggregation, the aggregate it produces, and the immutable
Payment created by a successful commit.

RULES (NON-NEGOTIABLE):
- Advance amount > 0, currency is a 3-letter code
- Only Unpaid advances in the settlement currency are eligible; Paid is final
- A Payment never changes after creation
- Payment lines are a snapshot of each lot's settlement at commit time
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.errors import FieldIssue, ValidationError
from core.primitives.amounts import ZERO, to_decimal
from core.primitives.fingerprint import fingerprint
from engines.minerals.models import (
    AssaySource,
    MineralCategory,
    SettlementResult,
)

# Lot net amounts are in this currency; advances must match it.
SETTLEMENT_CURRENCY = "USD"


# ══════════════════════════════════════════════════════════════
# ADVANCE PAYMENTS
# ══════════════════════════════════════════════════════════════

class AdvanceStatus(Enum):
    UNPAID = "Unpaid"
    PAID = "Paid"


class PaymentMethod(Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    MOBILE_MONEY = "MOBILE_MONEY"


@dataclass(frozen=True)
class AdvancePayment:
    """Cash handed to a supplier before settlement; deducted later."""
    advance_id: str
    supplier_id: str
    amount: Decimal
    currency: str = SETTLEMENT_CURRENCY
    method: PaymentMethod = PaymentMethod.CASH
    paid_on: Optional[date] = None
    status: AdvanceStatus = AdvanceStatus.UNPAID
    supplier_name: str = ""
    note: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        issues: List[FieldIssue] = []
        if not self.advance_id:
            issues.append(FieldIssue("advance_id", "REQUIRED", "advance_id must be non-empty."))
        if not self.supplier_id:
            issues.append(FieldIssue("supplier_id", "REQUIRED", "supplier_id must be non-empty."))
        try:
            amount = to_decimal(self.amount)
        except ValueError as exc:
            issues.append(FieldIssue("amount", "NOT_A_NUMBER", str(exc)))
            amount = None
        else:
            if amount is None:
                issues.append(FieldIssue("amount", "REQUIRED", "amount is required."))
            elif amount <= ZERO:
                issues.append(FieldIssue("amount", "MUST_BE_POSITIVE", "amount must be > 0."))
        if not isinstance(self.currency, str) or len(self.currency) != 3 or not self.currency.isalpha():
            issues.append(FieldIssue("currency", "INVALID_CURRENCY", "currency must be a 3-letter code."))
        if not isinstance(self.method, PaymentMethod):
            issues.append(FieldIssue("method", "INVALID_METHOD", "method must be a PaymentMethod."))
        if not isinstance(self.status, AdvanceStatus):
            issues.append(FieldIssue("status", "INVALID_STATUS", "status must be an AdvanceStatus."))
        if issues:
            raise ValidationError(issues)
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency", self.currency.upper())

    @property
    def is_paid(self) -> bool:
        return self.status == AdvanceStatus.PAID

    def to_dict(self) -> dict:
        return {
            "advance_id": self.advance_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "amount": str(self.amount),
            "currency": self.currency,
            "method": self.method.value,
            "paid_on": self.paid_on.isoformat() if self.paid_on else None,
            "status": self.status.value,
            "note": self.note,
        }


# ══════════════════════════════════════════════════════════════
# SELECTION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaymentSelection:
    """
    What the caller wants paid: lot ids per category plus advance ids,
    all for one supplier. Lists are normalised to tuples.
    """
    supplier_id: str
    tantalum_ids: Tuple[str, ...] = ()
    tin_ids: Tuple[str, ...] = ()
    tungsten_ids: Tuple[str, ...] = ()
    advance_ids: Tuple[str, ...] = ()
    assay_source: AssaySource = AssaySource.EXTERNAL

    def __post_init__(self):
        for name in ("tantalum_ids", "tin_ids", "tungsten_ids", "advance_ids"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @classmethod
    def of(
        cls,
        supplier_id: str,
        lots: Dict[MineralCategory, Tuple[str, ...]],
        advance_ids: Tuple[str, ...] = (),
        assay_source: AssaySource = AssaySource.EXTERNAL,
    ) -> "PaymentSelection":
        return cls(
            supplier_id=supplier_id,
            tantalum_ids=tuple(lots.get(MineralCategory.TANTALUM, ())),
            tin_ids=tuple(lots.get(MineralCategory.TIN, ())),
            tungsten_ids=tuple(lots.get(MineralCategory.TUNGSTEN, ())),
            advance_ids=tuple(advance_ids),
            assay_source=assay_source,
        )

    def lot_ids(self, category: MineralCategory) -> Tuple[str, ...]:
        return {
            MineralCategory.TANTALUM: self.tantalum_ids,
            MineralCategory.TIN: self.tin_ids,
            MineralCategory.TUNGSTEN: self.tungsten_ids,
        }[category]

    def lot_ids_by_category(self) -> Dict[MineralCategory, Tuple[str, ...]]:
        return {c: self.lot_ids(c) for c in MineralCategory}

    @property
    def lot_count(self) -> int:
        return sum(len(ids) for ids in self.lot_ids_by_category().values())

    def to_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "tantalum_ids": list(self.tantalum_ids),
            "tin_ids": list(self.tin_ids),
            "tungsten_ids": list(self.tungsten_ids),
            "advance_ids": list(self.advance_ids),
            "assay_source": self.assay_source.value,
        }


# ══════════════════════════════════════════════════════════════
# AGGREGATE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaymentLine:
    """One lot inside a payment, with its settlement as of aggregation."""
    category: MineralCategory
    lot_id: str
    lot_number: str
    net_weight: Decimal
    assay_percentage: Optional[Decimal]
    settlement: SettlementResult

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "lot_id": self.lot_id,
            "lot_number": self.lot_number,
            "net_weight": str(self.net_weight),
            "assay_percentage": None if self.assay_percentage is None else str(self.assay_percentage),
            "settlement": self.settlement.to_dict(),
        }


@dataclass(frozen=True)
class CategoryAggregate:
    category: MineralCategory
    lot_count: int
    total_weight: Decimal
    weighted_avg_percentage: Optional[Decimal]
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "element": self.category.element,
            "lot_count": self.lot_count,
            "total_weight": str(self.total_weight),
            "weighted_avg_percentage": (
                None if self.weighted_avg_percentage is None
                else str(self.weighted_avg_percentage)
            ),
            "total_amount": str(self.total_amount),
        }


@dataclass(frozen=True)
class AggregateResult:
    """
    Totals for one supplier's selection. payable_amount may be negative
    when advances exceed the settled value.
    """
    supplier_id: str
    supplier_name: str
    lot_ids: Tuple[Tuple[MineralCategory, Tuple[str, ...]], ...]
    advance_ids: Tuple[str, ...]
    lines: Tuple[PaymentLine, ...]
    categories: Tuple[CategoryAggregate, ...]
    total_weight: Decimal
    total_amount: Decimal
    advance_amount: Decimal
    payable_amount: Decimal
    mineral_types: Tuple[MineralCategory, ...]
    assay_source: AssaySource = AssaySource.EXTERNAL

    def ids_for(self, category: MineralCategory) -> Tuple[str, ...]:
        return dict(self.lot_ids).get(category, ())

    def category(self, category: MineralCategory) -> CategoryAggregate:
        for entry in self.categories:
            if entry.category == category:
                return entry
        raise KeyError(category)

    def content_dict(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "lot_ids": {c.value: list(ids) for c, ids in self.lot_ids},
            "advance_ids": list(self.advance_ids),
            "lines": [line.to_dict() for line in self.lines],
            "categories": [entry.to_dict() for entry in self.categories],
            "total_weight": str(self.total_weight),
            "total_amount": str(self.total_amount),
            "advance_amount": str(self.advance_amount),
            "payable_amount": str(self.payable_amount),
            "mineral_types": [c.value for c in self.mineral_types],
            "assay_source": self.assay_source.value,
        }

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.content_dict())

    def to_dict(self) -> dict:
        data = self.content_dict()
        data["fingerprint"] = self.fingerprint
        return data


# ══════════════════════════════════════════════════════════════
# PAYMENT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Payment:
    """Immutable record created by a successful commit."""
    payment_id: str
    created_at: datetime
    aggregate: AggregateResult

    @property
    def supplier_id(self) -> str:
        return self.aggregate.supplier_id

    @property
    def payable_amount(self) -> Decimal:
        return self.aggregate.payable_amount

    @property
    def fingerprint(self) -> str:
        return self.aggregate.fingerprint

    def to_dict(self) -> dict:
        data = self.aggregate.to_dict()
        data["payment_id"] = self.payment_id
        data["created_at"] = self.created_at.isoformat()
        return data


# ══════════════════════════════════════════════════════════════
# REBUILD FROM STORED CONTENT
# ══════════════════════════════════════════════════════════════

def _dec(value) -> Optional[Decimal]:
    return to_decimal(value)


def aggregate_from_dict(data: dict) -> AggregateResult:
    """Inverse of AggregateResult.content_dict(); used by persistent stores."""
    lines = tuple(
        PaymentLine(
            category=MineralCategory(line["category"]),
            lot_id=line["lot_id"],
            lot_number=line["lot_number"],
            net_weight=_dec(line["net_weight"]),
            assay_percentage=_dec(line["assay_percentage"]),
            settlement=SettlementResult.from_dict(line["settlement"]),
        )
        for line in data["lines"]
    )
    categories = tuple(
        CategoryAggregate(
            category=MineralCategory(entry["category"]),
            lot_count=entry["lot_count"],
            total_weight=_dec(entry["total_weight"]),
            weighted_avg_percentage=_dec(entry["weighted_avg_percentage"]),
            total_amount=_dec(entry["total_amount"]),
        )
        for entry in data["categories"]
    )
    return AggregateResult(
        supplier_id=data["supplier_id"],
        supplier_name=data["supplier_name"],
        lot_ids=tuple(
            (MineralCategory(name), tuple(ids)) for name, ids in data["lot_ids"].items()
        ),
        advance_ids=tuple(data["advance_ids"]),
        lines=lines,
        categories=categories,
        total_weight=_dec(data["total_weight"]),
        total_amount=_dec(data["total_amount"]),
        advance_amount=_dec(data["advance_amount"]),
        payable_amount=_dec(data["payable_amount"]),
        mineral_types=tuple(MineralCategory(name) for name in data["mineral_types"]),
        assay_source=AssaySource(data["assay_source"]),
    )
