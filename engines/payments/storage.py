"""
MTS Payments Engine - Storage Collaborators
============================================
Protocols the engines consume, plus dict-backed implementations for
tests and bootstrap. adapters.django_store provides the ORM versions.

Double-spend rule: mark_paid is a conditional update. It flips only
rows still in an eligible status and returns how many it flipped; the
caller compares against the number it expected and aborts on mismatch.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from engines.minerals.fees import FeeScheduleStore, InMemoryFeeScheduleStore
from engines.minerals.lifecycle import ELIGIBLE_FINANCE_STATUSES
from engines.minerals.models import FinanceStatus, LotKey, MineralCategory, MineralLot
from engines.payments.models import AdvancePayment, AdvanceStatus, Payment

logger = logging.getLogger("mts.storage")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class LotStore(Protocol):

    def get(self, category: MineralCategory, lot_id: str) -> Optional[MineralLot]:
        ...  # pragma: no cover

    def list_payable(self, category: MineralCategory, supplier_id: str) -> List[MineralLot]:
        """Unpaid or invoiced lots of one supplier, ordered by lot_id."""
        ...  # pragma: no cover

    def save(self, lot: MineralLot, groups: Optional[Iterable[str]] = None) -> None:
        """Upsert. groups limits an update to those field groups."""
        ...  # pragma: no cover

    def mark_paid(
        self, category: MineralCategory, lot_ids: Iterable[str], at: datetime,
    ) -> int:
        ...  # pragma: no cover


class AdvanceStore(Protocol):

    def get(self, advance_id: str) -> Optional[AdvancePayment]:
        ...  # pragma: no cover

    def list_unpaid(self, supplier_id: str) -> List[AdvancePayment]:
        ...  # pragma: no cover

    def save(self, advance: AdvancePayment) -> None:
        ...  # pragma: no cover

    def mark_paid(self, advance_ids: Iterable[str], at: datetime) -> int:
        ...  # pragma: no cover


class PaymentStore(Protocol):

    def create(self, payment: Payment) -> Payment:
        ...  # pragma: no cover

    def get(self, payment_id: str) -> Optional[Payment]:
        ...  # pragma: no cover

    def list_for_supplier(self, supplier_id: str) -> List[Payment]:
        ...  # pragma: no cover


class Storage(Protocol):
    """All collaborators plus one unit of work spanning them."""

    lots: LotStore
    advances: AdvanceStore
    payments: PaymentStore
    fee_schedules: FeeScheduleStore

    def atomic(self):
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY IMPLEMENTATIONS (for testing / bootstrap)
# ══════════════════════════════════════════════════════════════

class InMemoryLotStore:

    def __init__(self) -> None:
        self._lots: Dict[LotKey, MineralLot] = {}

    def get(self, category: MineralCategory, lot_id: str) -> Optional[MineralLot]:
        return self._lots.get((category, lot_id))

    def list_payable(self, category: MineralCategory, supplier_id: str) -> List[MineralLot]:
        return sorted(
            (
                lot for (c, _), lot in self._lots.items()
                if c == category
                and lot.supplier_id == supplier_id
                and lot.finance_status in ELIGIBLE_FINANCE_STATUSES
            ),
            key=lambda lot: lot.lot_id,
        )

    def save(self, lot: MineralLot, groups: Optional[Iterable[str]] = None) -> None:
        self._lots[(lot.category, lot.lot_id)] = lot

    def mark_paid(
        self, category: MineralCategory, lot_ids: Iterable[str], at: datetime,
    ) -> int:
        flipped = 0
        for lot_id in sorted(set(lot_ids)):
            lot = self._lots.get((category, lot_id))
            if lot is None or lot.finance_status not in ELIGIBLE_FINANCE_STATUSES:
                continue
            self._lots[(category, lot_id)] = replace(
                lot,
                finance_status=FinanceStatus.PAID,
                previous_finance_status=lot.finance_status,
                finance_status_changed_at=at,
                updated_at=at,
            )
            flipped += 1
        return flipped


class InMemoryAdvanceStore:

    def __init__(self) -> None:
        self._advances: Dict[str, AdvancePayment] = {}

    def get(self, advance_id: str) -> Optional[AdvancePayment]:
        return self._advances.get(advance_id)

    def list_unpaid(self, supplier_id: str) -> List[AdvancePayment]:
        return sorted(
            (
                a for a in self._advances.values()
                if a.supplier_id == supplier_id and not a.is_paid
            ),
            key=lambda a: a.advance_id,
        )

    def save(self, advance: AdvancePayment) -> None:
        self._advances[advance.advance_id] = advance

    def mark_paid(self, advance_ids: Iterable[str], at: datetime) -> int:
        flipped = 0
        for advance_id in sorted(set(advance_ids)):
            advance = self._advances.get(advance_id)
            if advance is None or advance.is_paid:
                continue
            self._advances[advance_id] = replace(
                advance, status=AdvanceStatus.PAID, updated_at=at,
            )
            flipped += 1
        return flipped


class InMemoryPaymentStore:

    def __init__(self) -> None:
        self._payments: Dict[str, Payment] = {}

    def create(self, payment: Payment) -> Payment:
        if payment.payment_id in self._payments:
            raise ValueError(f"Payment '{payment.payment_id}' already exists.")
        self._payments[payment.payment_id] = payment
        return payment

    def get(self, payment_id: str) -> Optional[Payment]:
        return self._payments.get(payment_id)

    def list_for_supplier(self, supplier_id: str) -> List[Payment]:
        return sorted(
            (p for p in self._payments.values() if p.supplier_id == supplier_id),
            key=lambda p: (p.created_at, p.payment_id),
        )

    def __len__(self) -> int:
        return len(self._payments)


class InMemoryStorage:
    """
    Dict-backed storage. atomic() snapshots every store and restores
    the snapshot if the block raises, so a failed commit leaves no trace.
    """

    def __init__(self) -> None:
        self.lots = InMemoryLotStore()
        self.advances = InMemoryAdvanceStore()
        self.payments = InMemoryPaymentStore()
        self.fee_schedules = InMemoryFeeScheduleStore()

    def _snapshot(self) -> Tuple[dict, dict, dict, dict]:
        return (
            copy.copy(self.lots._lots),
            copy.copy(self.advances._advances),
            copy.copy(self.payments._payments),
            self.fee_schedules.snapshot(),
        )

    def _restore(self, snapshot: Tuple[dict, dict, dict, dict]) -> None:
        lots, advances, payments, fees = snapshot
        self.lots._lots = lots
        self.advances._advances = advances
        self.payments._payments = payments
        self.fee_schedules.restore(fees)

    @contextmanager
    def atomic(self) -> Iterator["InMemoryStorage"]:
        snapshot = self._snapshot()
        try:
            yield self
        except BaseException:
            self._restore(snapshot)
            logger.warning("In-memory unit of work rolled back.")
            raise
