"""
MTS Minerals Engine - Request Commands
=======================================
Typed lot requests, one per independently editable field group.
Each request declares the capability it requires.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from core.errors import ValidationError
from core.security.access import Capability
from engines.minerals.models import (
    FeeOverride,
    FinanceStatus,
    LabResults,
    MineralCategory,
    PricingInputs,
    StockStatus,
)


# ══════════════════════════════════════════════════════════════
# REQUEST TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

LOT_REGISTER_REQUEST = "minerals.lot.register.request"
LOT_STOCK_UPDATE_REQUEST = "minerals.lot.stock.update.request"
LOT_LAB_UPDATE_REQUEST = "minerals.lot.lab.update.request"
LOT_FINANCIAL_UPDATE_REQUEST = "minerals.lot.financial.update.request"
LOT_STOCK_STATUS_CHANGE_REQUEST = "minerals.lot.stock_status.change.request"
LOT_FINANCE_STATUS_CHANGE_REQUEST = "minerals.lot.finance_status.change.request"

MINERALS_REQUEST_TYPES = frozenset({
    LOT_REGISTER_REQUEST,
    LOT_STOCK_UPDATE_REQUEST,
    LOT_LAB_UPDATE_REQUEST,
    LOT_FINANCIAL_UPDATE_REQUEST,
    LOT_STOCK_STATUS_CHANGE_REQUEST,
    LOT_FINANCE_STATUS_CHANGE_REQUEST,
})


def _require_lot_ref(category, lot_id) -> None:
    if not isinstance(category, MineralCategory):
        raise ValidationError.single("category", "INVALID_CATEGORY", "category must be a MineralCategory.")
    if not lot_id:
        raise ValidationError.single("lot_id", "REQUIRED", "lot_id must be non-empty.")


# ══════════════════════════════════════════════════════════════
# REQUEST COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LotRegisterRequest:
    """Record a new delivery. Field-level rules are enforced by MineralLot."""
    category: MineralCategory
    lot_id: str
    supplier_id: str
    net_weight: Decimal
    supplier_name: str = ""
    lot_number: str = ""
    date_of_delivery: Optional[date] = None
    date_of_sampling: Optional[date] = None

    request_type = LOT_REGISTER_REQUEST
    required_capability = Capability.LOT_STOCK_EDIT

    def __post_init__(self):
        _require_lot_ref(self.category, self.lot_id)


@dataclass(frozen=True)
class LotStockUpdateRequest:
    """Stock group. Fields left as None keep their current value."""
    category: MineralCategory
    lot_id: str
    net_weight: Optional[Decimal] = None
    lot_number: Optional[str] = None
    date_of_delivery: Optional[date] = None
    date_of_sampling: Optional[date] = None

    request_type = LOT_STOCK_UPDATE_REQUEST
    required_capability = Capability.LOT_STOCK_EDIT

    def __post_init__(self):
        _require_lot_ref(self.category, self.lot_id)
        if all(v is None for v in (
            self.net_weight, self.lot_number, self.date_of_delivery, self.date_of_sampling,
        )):
            raise ValidationError.single("stock", "NO_CHANGES", "At least one stock field must be given.")

    @property
    def touches_settlement(self) -> bool:
        return self.net_weight is not None


@dataclass(frozen=True)
class LotLabUpdateRequest:
    """Lab group: replaces the lot's assay results as a whole."""
    category: MineralCategory
    lot_id: str
    lab: LabResults

    request_type = LOT_LAB_UPDATE_REQUEST
    required_capability = Capability.LOT_LAB_EDIT

    def __post_init__(self):
        _require_lot_ref(self.category, self.lot_id)
        if not isinstance(self.lab, LabResults):
            raise ValidationError.single("lab", "INVALID_TYPE", "lab must be LabResults.")


@dataclass(frozen=True)
class LotFinancialUpdateRequest:
    """Financial group: pricing inputs and the optional fee override."""
    category: MineralCategory
    lot_id: str
    pricing: PricingInputs
    fee_override: FeeOverride = FeeOverride()

    request_type = LOT_FINANCIAL_UPDATE_REQUEST
    required_capability = Capability.LOT_FINANCIAL_EDIT

    def __post_init__(self):
        _require_lot_ref(self.category, self.lot_id)
        if not isinstance(self.pricing, PricingInputs):
            raise ValidationError.single("pricing", "INVALID_TYPE", "pricing must be PricingInputs.")
        if not isinstance(self.fee_override, FeeOverride):
            raise ValidationError.single("fee_override", "INVALID_TYPE", "fee_override must be FeeOverride.")


@dataclass(frozen=True)
class LotStockStatusChangeRequest:
    category: MineralCategory
    lot_id: str
    to_status: StockStatus
    reason: str = ""

    request_type = LOT_STOCK_STATUS_CHANGE_REQUEST
    required_capability = Capability.LOT_STOCK_STATUS_CHANGE

    def __post_init__(self):
        _require_lot_ref(self.category, self.lot_id)
        if not isinstance(self.to_status, StockStatus):
            raise ValidationError.single("to_status", "INVALID_STATUS", "to_status must be a StockStatus.")


@dataclass(frozen=True)
class LotFinanceStatusChangeRequest:
    category: MineralCategory
    lot_id: str
    to_status: FinanceStatus
    reason: str = ""

    request_type = LOT_FINANCE_STATUS_CHANGE_REQUEST
    required_capability = Capability.LOT_FINANCE_STATUS_CHANGE

    def __post_init__(self):
        _require_lot_ref(self.category, self.lot_id)
        if not isinstance(self.to_status, FinanceStatus):
            raise ValidationError.single("to_status", "INVALID_STATUS", "to_status must be a FinanceStatus.")
