"""
MTS Payments Engine - Preview / Commit Coordinator
===================================================
Two-phase protocol for turning a selection into a Payment.

Preview:
    Aggregate the current selection. No status changes, no Payment,
    no event. Repeatable.

Commit, inside one storage unit of work:
    1. Re-check eligibility of every selected id.
       Any failure -> ConsistencyError before anything is written.
    2. Aggregate afresh; if the caller passed the preview fingerprint
       and it differs -> ConsistencyError.
    3. Create the Payment.
    4. Conditionally flip every lot to paid and every advance to Paid.
       A row count short of the selection means another commit won
       the race -> ConsistencyError, and the unit of work rolls back.

This coordinator is the only writer of "paid".
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from core.commands.rejection import ReasonCode
from core.errors import ConsistencyError, ValidationError
from core.security.access import Capability, CapabilitySet
from core.time.clock import Clock, SystemClock
from engines.minerals.models import MineralCategory, MineralLot
from engines.payments.aggregator import aggregate_selection, check_eligibility, compute_totals
from engines.payments.commands import (
    AdvanceCreateRequest,
    PaymentCommitRequest,
    PaymentPreviewRequest,
)
from engines.payments.events import (
    build_advance_created_payload,
    build_payment_committed_payload,
    resolve_payments_event_type,
)
from engines.payments.models import (
    AdvancePayment,
    AggregateResult,
    Payment,
    PaymentSelection,
)
from engines.payments.policies import advance_currency_policy
from engines.payments.storage import Storage

logger = logging.getLogger("mts.payments")

EventSink = Callable[[str, dict], None]


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaymentCandidates:
    """What a supplier could be paid for right now."""
    supplier_id: str
    lots: Tuple[Tuple[MineralCategory, Tuple[MineralLot, ...]], ...]
    advances: Tuple[AdvancePayment, ...]

    def lots_for(self, category: MineralCategory) -> Tuple[MineralLot, ...]:
        return dict(self.lots).get(category, ())


@dataclass(frozen=True)
class CommitResult:
    event_type: str
    payload: dict
    payment: Payment


# ══════════════════════════════════════════════════════════════
# COORDINATOR
# ══════════════════════════════════════════════════════════════

class PreviewCommitCoordinator:

    def __init__(
        self,
        *,
        storage: Storage,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
        event_sink: EventSink | None = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._event_sink = event_sink

    # ── queries ──────────────────────────────────────────────

    def candidates(self, supplier_id: str, capabilities: CapabilitySet) -> PaymentCandidates:
        capabilities.require(Capability.PAYMENT_PREVIEW)
        return PaymentCandidates(
            supplier_id=supplier_id,
            lots=tuple(
                (category, tuple(self._storage.lots.list_payable(category, supplier_id)))
                for category in MineralCategory
            ),
            advances=tuple(
                advance for advance in self._storage.advances.list_unpaid(supplier_id)
                if advance_currency_policy(advance) is None
            ),
        )

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        return self._storage.payments.get(payment_id)

    def list_payments(self, supplier_id: str) -> List[Payment]:
        return self._storage.payments.list_for_supplier(supplier_id)

    # ── advances ─────────────────────────────────────────────

    def create_advance(
        self, request: AdvanceCreateRequest, capabilities: CapabilitySet,
    ) -> AdvancePayment:
        capabilities.require(request.required_capability)
        if self._storage.advances.get(request.advance_id) is not None:
            raise ValidationError.single(
                "advance_id", "DUPLICATE", f"Advance '{request.advance_id}' already exists.",
            )
        advance = request.to_advance(self._clock.now_utc())
        self._storage.advances.save(advance)
        logger.info(
            "Advance %s recorded for supplier %s: %s %s",
            advance.advance_id, advance.supplier_id, advance.amount, advance.currency,
        )
        self._emit(
            resolve_payments_event_type(request.request_type),
            build_advance_created_payload(advance),
        )
        return advance

    # ── preview / commit ─────────────────────────────────────

    def preview(self, selection: PaymentSelection, capabilities: CapabilitySet) -> AggregateResult:
        capabilities.require(Capability.PAYMENT_PREVIEW)
        return aggregate_selection(
            selection, self._storage.lots.get, self._storage.advances.get,
        )

    def commit(
        self,
        selection: PaymentSelection,
        capabilities: CapabilitySet,
        *,
        expected_fingerprint: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> CommitResult:
        capabilities.require(Capability.PAYMENT_COMMIT)
        storage = self._storage

        with storage.atomic():
            report = check_eligibility(
                selection.supplier_id,
                selection.lot_ids_by_category(),
                selection.advance_ids,
                storage.lots.get,
                storage.advances.get,
            )
            if report.structural:
                raise report.to_validation_error()
            if report.ineligible:
                logger.warning(
                    "Commit refused for supplier %s: stale %s",
                    selection.supplier_id, ", ".join(report.stale_ids),
                )
                raise ConsistencyError(
                    report.stale_ids,
                    reason="; ".join(r.message for _, r in report.ineligible),
                )

            aggregate = compute_totals(
                selection.supplier_id, report.lots, report.advances, selection.assay_source,
            )
            if expected_fingerprint is not None and expected_fingerprint != aggregate.fingerprint:
                logger.warning(
                    "Commit refused for supplier %s: %s",
                    selection.supplier_id, ReasonCode.PREVIEW_OUTDATED,
                )
                raise ConsistencyError(
                    (), reason="Totals changed since the preview was taken.",
                )

            now = self._clock.now_utc()
            payment = storage.payments.create(Payment(
                payment_id=payment_id or self._id_factory(),
                created_at=now,
                aggregate=aggregate,
            ))
            self._flip_consumed(aggregate, now)

        logger.info(
            "Payment %s committed for supplier %s: %d lots, %d advances, payable=%s",
            payment.payment_id, payment.supplier_id,
            len(aggregate.lines), len(aggregate.advance_ids), aggregate.payable_amount,
        )
        event_type = resolve_payments_event_type(PaymentCommitRequest.request_type)
        payload = build_payment_committed_payload(payment)
        self._emit(event_type, payload)
        return CommitResult(
            event_type=event_type, payload=payload, payment=payment,
        )

    def execute_preview(
        self, request: PaymentPreviewRequest, capabilities: CapabilitySet,
    ) -> AggregateResult:
        return self.preview(request.selection, capabilities)

    def execute_commit(
        self, request: PaymentCommitRequest, capabilities: CapabilitySet,
    ) -> CommitResult:
        return self.commit(
            request.selection,
            capabilities,
            expected_fingerprint=request.expected_fingerprint,
            payment_id=request.payment_id,
        )

    # ── internals ────────────────────────────────────────────

    def _flip_consumed(self, aggregate: AggregateResult, now) -> None:
        lost: Dict[str, None] = {}
        for category in MineralCategory:
            ids = aggregate.ids_for(category)
            if not ids:
                continue
            flipped = self._storage.lots.mark_paid(category, ids, now)
            if flipped != len(ids):
                lost.update(dict.fromkeys(ids))
        if aggregate.advance_ids:
            flipped = self._storage.advances.mark_paid(aggregate.advance_ids, now)
            if flipped != len(aggregate.advance_ids):
                lost.update(dict.fromkeys(aggregate.advance_ids))
        if lost:
            raise ConsistencyError(
                lost.keys(), reason="Consumed by a concurrent commit.",
            )

    def _emit(self, event_type: str, payload: dict) -> None:
        if self._event_sink is not None:
            self._event_sink(event_type, payload)
