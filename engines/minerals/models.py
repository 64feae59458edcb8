"""
MTS Minerals Engine - Domain Model
===================================
Lots of raw mineral delivered by suppliers, tracked per category.

Categories and the element each one is assayed and priced on:
    TANTALUM  - Ta2O5
    TIN       - Sn
    TUNGSTEN  - WO3

RULES (NON-NEGOTIABLE):
- All numbers are Decimal (see core.primitives.amounts)
- Absent values are None, never zero and never ""
- net_weight > 0; price_per_percentage > 0; purchased_percentage in (0, 100]
- Assay percentages in [0, 100]
- A lot's settlement is either a full SettlementResult or None
- Records are immutable; edits produce new snapshots via dataclasses.replace
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.errors import FieldIssue, ValidationError
from core.primitives.amounts import HUNDRED, ZERO, to_decimal


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class MineralCategory(Enum):
    TANTALUM = "TANTALUM"
    TIN = "TIN"
    TUNGSTEN = "TUNGSTEN"

    @property
    def element(self) -> str:
        return _CATEGORY_ELEMENTS[self]


_CATEGORY_ELEMENTS = {
    MineralCategory.TANTALUM: "Ta2O5",
    MineralCategory.TIN: "Sn",
    MineralCategory.TUNGSTEN: "WO3",
}


class StockStatus(Enum):
    IN_STOCK = "in-stock"
    WITHDRAWN = "withdrawn"
    RESAMPLED = "resampled"


class FinanceStatus(Enum):
    UNPAID = "unpaid"
    INVOICED = "invoiced"
    PAID = "paid"
    EXPORTED = "exported"


class AssaySource(Enum):
    EXTERNAL = "external"   # independent lab; wins when present
    INTERNAL = "internal"   # explicit caller choice only


# ══════════════════════════════════════════════════════════════
# FIELD VALIDATION
# ══════════════════════════════════════════════════════════════

def _check_number(
    issues: List[FieldIssue],
    name: str,
    value: Any,
    *,
    required: bool = False,
    positive: bool = False,
    non_negative: bool = False,
    maximum: Optional[Decimal] = None,
) -> Optional[Decimal]:
    """Convert one field and append any FieldIssue. Returns the Decimal."""
    try:
        number = to_decimal(value)
    except ValueError as exc:
        issues.append(FieldIssue(name, "NOT_A_NUMBER", str(exc)))
        return None
    if number is None:
        if required:
            issues.append(FieldIssue(name, "REQUIRED", f"{name} is required."))
        return None
    if positive and number <= ZERO:
        issues.append(FieldIssue(name, "MUST_BE_POSITIVE", f"{name} must be > 0, got {number}."))
    elif non_negative and number < ZERO:
        issues.append(FieldIssue(name, "MUST_NOT_BE_NEGATIVE", f"{name} must be >= 0, got {number}."))
    if maximum is not None and number > maximum:
        issues.append(FieldIssue(name, "OUT_OF_RANGE", f"{name} must be <= {maximum}, got {number}."))
    return number


def _raise_if(issues: List[FieldIssue]) -> None:
    if issues:
        raise ValidationError(issues)


# ══════════════════════════════════════════════════════════════
# LAB RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LabResults:
    """
    Assay results for the category's priced element.

    internal_assay: in-house lab percentage.
    external_assay: independent lab percentage (takes precedence).
    secondary:      other element percentages, e.g. (("Nb2O5", 12.1), ("Fe", 3)).
    """
    internal_assay: Optional[Decimal] = None
    external_assay: Optional[Decimal] = None
    external_assayed_on: Optional[date] = None
    secondary: Tuple[Tuple[str, Decimal], ...] = ()

    def __post_init__(self):
        issues: List[FieldIssue] = []
        internal = _check_number(issues, "internal_assay", self.internal_assay,
                                 non_negative=True, maximum=HUNDRED)
        external = _check_number(issues, "external_assay", self.external_assay,
                                 non_negative=True, maximum=HUNDRED)
        secondary = []
        for element, pct in self.secondary:
            value = _check_number(issues, f"secondary.{element}", pct,
                                  required=True, non_negative=True, maximum=HUNDRED)
            secondary.append((element, value))
        _raise_if(issues)
        object.__setattr__(self, "internal_assay", internal)
        object.__setattr__(self, "external_assay", external)
        object.__setattr__(self, "secondary", tuple(sorted(secondary)))

    def effective_assay(self, source: AssaySource = AssaySource.EXTERNAL) -> Optional[Decimal]:
        if source == AssaySource.INTERNAL:
            return self.internal_assay
        if self.external_assay is not None:
            return self.external_assay
        return self.internal_assay

    def to_dict(self) -> dict:
        return {
            "internal_assay": _s(self.internal_assay),
            "external_assay": _s(self.external_assay),
            "external_assayed_on": self.external_assayed_on.isoformat() if self.external_assayed_on else None,
            "secondary": {k: str(v) for k, v in self.secondary},
        }


# ══════════════════════════════════════════════════════════════
# PRICING INPUTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingInputs:
    """
    Financial inputs entered per lot. Any may be None until known.

    exchange_rate converts local-currency fees (inkomane, tag advance)
    into the settlement currency. Zero is accepted here and handled by
    the calculator's division guard.
    """
    price_per_percentage: Optional[Decimal] = None
    purchased_percentage: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    tag_price_per_kg: Optional[Decimal] = None
    transport_charge: Optional[Decimal] = None
    external_assay_charge: Optional[Decimal] = None

    def __post_init__(self):
        issues: List[FieldIssue] = []
        values = {
            "price_per_percentage": _check_number(
                issues, "price_per_percentage", self.price_per_percentage, positive=True),
            "purchased_percentage": _check_number(
                issues, "purchased_percentage", self.purchased_percentage,
                positive=True, maximum=HUNDRED),
            "exchange_rate": _check_number(
                issues, "exchange_rate", self.exchange_rate, non_negative=True),
            "tag_price_per_kg": _check_number(
                issues, "tag_price_per_kg", self.tag_price_per_kg, non_negative=True),
            "transport_charge": _check_number(
                issues, "transport_charge", self.transport_charge, non_negative=True),
            "external_assay_charge": _check_number(
                issues, "external_assay_charge", self.external_assay_charge, non_negative=True),
        }
        _raise_if(issues)
        for name, value in values.items():
            object.__setattr__(self, name, value)

    def to_dict(self) -> dict:
        return {
            "price_per_percentage": _s(self.price_per_percentage),
            "purchased_percentage": _s(self.purchased_percentage),
            "exchange_rate": _s(self.exchange_rate),
            "tag_price_per_kg": _s(self.tag_price_per_kg),
            "transport_charge": _s(self.transport_charge),
            "external_assay_charge": _s(self.external_assay_charge),
        }


# ══════════════════════════════════════════════════════════════
# FEES
# ══════════════════════════════════════════════════════════════

FEE_FIELDS = (
    "rra_percentage",
    "rma_per_ton",
    "inkomane_fee_per_kg",
    "rra_price_per_percentage",
)


def _check_fee_numbers(obj, *, required: bool) -> None:
    issues: List[FieldIssue] = []
    values = {
        name: _check_number(issues, name, getattr(obj, name),
                            required=required, non_negative=True)
        for name in FEE_FIELDS
    }
    if values["rra_percentage"] is not None and values["rra_percentage"] > HUNDRED:
        issues.append(FieldIssue("rra_percentage", "OUT_OF_RANGE", "rra_percentage must be <= 100."))
    _raise_if(issues)
    for name, value in values.items():
        object.__setattr__(obj, name, value)


@dataclass(frozen=True)
class FeeSchedule:
    """
    Admin-configured fees for one category, as entered:

        rra_percentage            3      -> RRA rate 0.03
        rma_per_ton             125      -> 0.125 per kg
        inkomane_fee_per_kg      40      -> flat local-currency fee per kg
        rra_price_per_percentage 500     -> 5 per percentage point

    The highest version per category is the current schedule.
    """
    category: MineralCategory
    rra_percentage: Decimal
    rma_per_ton: Decimal
    inkomane_fee_per_kg: Decimal
    rra_price_per_percentage: Decimal
    version: int = 1
    published_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.category, MineralCategory):
            raise ValidationError.single("category", "INVALID_CATEGORY", "category must be a MineralCategory.")
        if not isinstance(self.version, int) or self.version < 1:
            raise ValidationError.single("version", "OUT_OF_RANGE", "version must be a positive integer.")
        _check_fee_numbers(self, required=True)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "rra_percentage": str(self.rra_percentage),
            "rma_per_ton": str(self.rma_per_ton),
            "inkomane_fee_per_kg": str(self.inkomane_fee_per_kg),
            "rra_price_per_percentage": str(self.rra_price_per_percentage),
            "version": self.version,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }


@dataclass(frozen=True)
class FeeOverride:
    """Per-lot replacement for the four schedule numbers."""
    enabled: bool = False
    rra_percentage: Optional[Decimal] = None
    rma_per_ton: Optional[Decimal] = None
    inkomane_fee_per_kg: Optional[Decimal] = None
    rra_price_per_percentage: Optional[Decimal] = None

    def __post_init__(self):
        _check_fee_numbers(self, required=False)

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, name) is not None for name in FEE_FIELDS)

    @property
    def applies(self) -> bool:
        return self.enabled and self.is_complete

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {"enabled": self.enabled}
        data.update({name: _s(getattr(self, name)) for name in FEE_FIELDS})
        return data


@dataclass(frozen=True)
class EffectiveFees:
    """
    Normalised rates consumed by the calculator.

    rra_rate                  fraction (0.03)
    per_ton_rate              per kg (0.125)
    per_kg_flat_fee           per kg, local currency
    price_per_percentage_rate per percentage point per kg
    """
    rra_rate: Decimal
    per_ton_rate: Decimal
    per_kg_flat_fee: Decimal
    price_per_percentage_rate: Decimal
    source: str            # "global" | "override"
    schedule_version: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "rra_rate": str(self.rra_rate),
            "per_ton_rate": str(self.per_ton_rate),
            "per_kg_flat_fee": str(self.per_kg_flat_fee),
            "price_per_percentage_rate": str(self.price_per_percentage_rate),
            "source": self.source,
            "schedule_version": self.schedule_version,
        }


# ══════════════════════════════════════════════════════════════
# SETTLEMENT OUTPUT
# ══════════════════════════════════════════════════════════════

SETTLEMENT_FIELDS = (
    "unit_price",
    "total_amount",
    "rra",
    "rma",
    "inkomane_fee",
    "advance",
    "total_charge",
    "net_amount",
)


@dataclass(frozen=True)
class SettlementResult:
    """Computed settlement of one lot. Every field is populated."""
    unit_price: Decimal
    total_amount: Decimal
    rra: Decimal
    rma: Decimal
    inkomane_fee: Decimal
    advance: Decimal
    total_charge: Decimal
    net_amount: Decimal

    is_complete = True

    def to_dict(self) -> dict:
        return {name: str(getattr(self, name)) for name in SETTLEMENT_FIELDS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["SettlementResult"]:
        """None when any field is absent; partial results are never built."""
        values = {name: data.get(name) for name in SETTLEMENT_FIELDS}
        if any(v is None for v in values.values()):
            return None
        return cls(**{name: to_decimal(v) for name, v in values.items()})


@dataclass(frozen=True)
class Incomplete:
    """Settlement not yet computable. `missing` names the blocking inputs."""
    missing: Tuple[str, ...]

    is_complete = False

    def to_dict(self) -> dict:
        return {name: None for name in SETTLEMENT_FIELDS}


# ══════════════════════════════════════════════════════════════
# MINERAL LOT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MineralLot:
    """
    One delivered batch from a supplier.

    Field groups edited independently:
        stock      net_weight, date_of_delivery, date_of_sampling
        lab        lab
        financial  pricing, fee_override
    settlement is derived and never hand-edited.
    """
    lot_id: str
    category: MineralCategory
    supplier_id: str
    net_weight: Decimal
    lot_number: str = ""
    supplier_name: str = ""
    date_of_delivery: Optional[date] = None
    date_of_sampling: Optional[date] = None
    lab: LabResults = field(default_factory=LabResults)
    pricing: PricingInputs = field(default_factory=PricingInputs)
    fee_override: FeeOverride = field(default_factory=FeeOverride)
    settlement: Optional[SettlementResult] = None
    stock_status: StockStatus = StockStatus.IN_STOCK
    finance_status: FinanceStatus = FinanceStatus.UNPAID
    previous_finance_status: Optional[FinanceStatus] = None
    stock_status_changed_at: Optional[datetime] = None
    finance_status_changed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        issues: List[FieldIssue] = []
        if not self.lot_id or not isinstance(self.lot_id, str):
            issues.append(FieldIssue("lot_id", "REQUIRED", "lot_id must be a non-empty string."))
        if not self.supplier_id or not isinstance(self.supplier_id, str):
            issues.append(FieldIssue("supplier_id", "REQUIRED", "supplier_id must be a non-empty string."))
        if not isinstance(self.category, MineralCategory):
            issues.append(FieldIssue("category", "INVALID_CATEGORY", "category must be a MineralCategory."))
        weight = _check_number(issues, "net_weight", self.net_weight, required=True, positive=True)
        if self.settlement is not None and not isinstance(self.settlement, SettlementResult):
            issues.append(FieldIssue("settlement", "PARTIAL_SETTLEMENT",
                                     "settlement must be a complete SettlementResult or None."))
        _raise_if(issues)
        object.__setattr__(self, "net_weight", weight)

    @property
    def is_settled(self) -> bool:
        return self.settlement is not None

    @property
    def has_external_assay(self) -> bool:
        return self.lab.external_assay is not None

    def effective_assay(self, source: AssaySource = AssaySource.EXTERNAL) -> Optional[Decimal]:
        return self.lab.effective_assay(source)

    def to_dict(self) -> dict:
        settlement = self.settlement.to_dict() if self.settlement else Incomplete(()).to_dict()
        return {
            "lot_id": self.lot_id,
            "category": self.category.value,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "lot_number": self.lot_number,
            "net_weight": str(self.net_weight),
            "date_of_delivery": _iso(self.date_of_delivery),
            "date_of_sampling": _iso(self.date_of_sampling),
            "lab": self.lab.to_dict(),
            "has_external_assay": self.has_external_assay,
            "pricing": self.pricing.to_dict(),
            "fee_override": self.fee_override.to_dict(),
            "settlement": settlement,
            "stock_status": self.stock_status.value,
            "finance_status": self.finance_status.value,
            "previous_finance_status": (
                self.previous_finance_status.value if self.previous_finance_status else None
            ),
            "stock_status_changed_at": _iso(self.stock_status_changed_at),
            "finance_status_changed_at": _iso(self.finance_status_changed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


LotKey = Tuple[MineralCategory, str]


def lot_key(lot: MineralLot) -> LotKey:
    return (lot.category, lot.lot_id)


def secondary_from_mapping(values: Mapping[str, Any]) -> Tuple[Tuple[str, Any], ...]:
    return tuple(sorted(values.items()))


def _s(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _iso(value) -> Optional[str]:
    return None if value is None else value.isoformat()
