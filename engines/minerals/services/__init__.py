"""
MTS Minerals Engine - Application Service
==========================================
Applies lot requests: capability check, field-group update, settlement
recompute, persistence, event emission.

A settlement is recomputed only when one of its inputs changed (net
weight, pricing, fee override). Lots already paid or exported keep
their settlement inputs frozen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.errors import ValidationError
from core.primitives.workflow import StateTransition
from core.security.access import Capability, CapabilitySet
from core.time.clock import Clock, SystemClock
from engines.minerals.commands import (
    LOT_FINANCE_STATUS_CHANGE_REQUEST,
    LOT_FINANCIAL_UPDATE_REQUEST,
    LOT_LAB_UPDATE_REQUEST,
    LOT_REGISTER_REQUEST,
    LOT_STOCK_STATUS_CHANGE_REQUEST,
    LOT_STOCK_UPDATE_REQUEST,
    MINERALS_REQUEST_TYPES,
)
from engines.minerals.events import build_lot_payload, resolve_minerals_event_type
from engines.minerals.fees import FeeScheduleStore, resolve_from_store
from engines.minerals.lifecycle import (
    change_finance_status,
    change_stock_status,
    is_lot_frozen,
)
from engines.minerals.models import FeeSchedule, MineralCategory, MineralLot
from engines.minerals.settlement import missing_inputs, settlement_or_none

if TYPE_CHECKING:
    from engines.payments.storage import LotStore

logger = logging.getLogger("mts.settlement")

EventSink = Callable[[str, dict], None]


# ══════════════════════════════════════════════════════════════
# EXECUTION RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LotExecutionResult:
    event_type: str
    payload: dict
    lot: MineralLot
    transition: Optional[StateTransition] = None


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class MineralLotService:
    """Lot edits, status changes and fee schedule publishing."""

    def __init__(
        self,
        *,
        lot_store: "LotStore",
        fee_store: FeeScheduleStore,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
    ):
        self._lots = lot_store
        self._fees = fee_store
        self._clock = clock or SystemClock()
        self._event_sink = event_sink
        self._handlers: Dict[str, Callable[[Any], tuple]] = {
            LOT_REGISTER_REQUEST: self._register,
            LOT_STOCK_UPDATE_REQUEST: self._update_stock,
            LOT_LAB_UPDATE_REQUEST: self._update_lab,
            LOT_FINANCIAL_UPDATE_REQUEST: self._update_financials,
            LOT_STOCK_STATUS_CHANGE_REQUEST: self._change_stock_status,
            LOT_FINANCE_STATUS_CHANGE_REQUEST: self._change_finance_status,
        }

    def execute(self, request, capabilities: CapabilitySet) -> LotExecutionResult:
        request_type = getattr(request, "request_type", None)
        if request_type not in MINERALS_REQUEST_TYPES:
            raise ValueError(f"Unsupported lot request type: {request_type}")
        capabilities.require(request.required_capability)

        handler = self._handlers[request_type]
        event_type = resolve_minerals_event_type(request_type)

        lot, transition, groups = handler(request)
        self._lots.save(lot, groups=groups)

        payload = build_lot_payload(lot, transition)
        if self._event_sink is not None:
            self._event_sink(event_type, payload)
        return LotExecutionResult(
            event_type=event_type, payload=payload, lot=lot, transition=transition,
        )

    # ── settlement ───────────────────────────────────────────

    def resettle(self, lot: MineralLot) -> MineralLot:
        """
        Recompute and attach the lot's settlement.

        Needs a fee schedule only when every input is present; an
        incomplete lot stores no settlement without consulting fees.
        """
        if missing_inputs(lot):
            return replace(lot, settlement=None)
        fees = resolve_from_store(lot, self._fees)
        return replace(lot, settlement=settlement_or_none(lot, fees))

    def publish_fee_schedule(
        self, schedule: FeeSchedule, capabilities: CapabilitySet,
    ) -> FeeSchedule:
        capabilities.require(Capability.FEE_SCHEDULE_PUBLISH)
        return self._fees.publish(replace(schedule, published_at=self._clock.now_utc()))

    # ── handlers ─────────────────────────────────────────────

    def _load(self, category: MineralCategory, lot_id: str) -> MineralLot:
        lot = self._lots.get(category, lot_id)
        if lot is None:
            raise ValidationError((RejectionReason(
                code=ReasonCode.LOT_NOT_FOUND,
                message=f"Lot {category.value}/{lot_id} not found.",
                policy_name="lot_exists",
                subject_id=lot_id,
            ).to_field_issue("lot_id"),))
        return lot

    def _reject_if_frozen(self, lot: MineralLot, field: str) -> None:
        if is_lot_frozen(lot):
            raise ValidationError((RejectionReason(
                code=ReasonCode.LOT_FINANCIALS_FROZEN,
                message=(
                    f"Lot {lot.lot_id} is {lot.finance_status.value}; "
                    f"settlement inputs can no longer change."
                ),
                policy_name="lot_financials_frozen",
                subject_id=lot.lot_id,
            ).to_field_issue(field),))

    def _register(self, request):
        if self._lots.get(request.category, request.lot_id) is not None:
            raise ValidationError.single(
                "lot_id", "DUPLICATE", f"Lot {request.category.value}/{request.lot_id} already exists.",
            )
        now = self._clock.now_utc()
        lot = MineralLot(
            lot_id=request.lot_id,
            category=request.category,
            supplier_id=request.supplier_id,
            supplier_name=request.supplier_name,
            lot_number=request.lot_number,
            net_weight=request.net_weight,
            date_of_delivery=request.date_of_delivery,
            date_of_sampling=request.date_of_sampling,
            created_at=now,
            updated_at=now,
        )
        logger.info("Lot registered: %s/%s", lot.category.value, lot.lot_id)
        return lot, None, None

    def _update_stock(self, request):
        lot = self._load(request.category, request.lot_id)
        if request.touches_settlement:
            self._reject_if_frozen(lot, "net_weight")
        changes = {
            name: getattr(request, name)
            for name in ("net_weight", "lot_number", "date_of_delivery", "date_of_sampling")
            if getattr(request, name) is not None
        }
        updated = replace(lot, updated_at=self._clock.now_utc(), **changes)
        if request.touches_settlement:
            updated = self.resettle(updated)
            return updated, None, ("stock", "settlement")
        return updated, None, ("stock",)

    def _update_lab(self, request):
        lot = self._load(request.category, request.lot_id)
        updated = replace(lot, lab=request.lab, updated_at=self._clock.now_utc())
        return updated, None, ("lab",)

    def _update_financials(self, request):
        lot = self._load(request.category, request.lot_id)
        self._reject_if_frozen(lot, "pricing")
        updated = replace(
            lot,
            pricing=request.pricing,
            fee_override=request.fee_override,
            updated_at=self._clock.now_utc(),
        )
        return self.resettle(updated), None, ("financial", "settlement")

    def _change_stock_status(self, request):
        lot = self._load(request.category, request.lot_id)
        updated, transition = change_stock_status(
            lot, request.to_status, self._clock.now_utc(), request.reason,
        )
        return updated, transition, ("stock_status",)

    def _change_finance_status(self, request):
        lot = self._load(request.category, request.lot_id)
        updated, transition = change_finance_status(
            lot, request.to_status, self._clock.now_utc(), request.reason,
        )
        return updated, transition, ("finance_status",)
