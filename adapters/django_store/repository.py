"""
MTS Django Store - Repository
==============================
ORM implementations of the engine storage protocols.

Double-spend protection: mark_paid issues one conditional UPDATE that
only matches rows still in an eligible status. Two racing commits
cannot both flip the same row; the loser sees a short row count and
its unit of work rolls back.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F

from adapters.django_store.models import (
    AdvancePaymentRecord,
    FeeScheduleRecord,
    MineralLotRecord,
    PaymentRecord,
)
from engines.minerals.fees import bootstrap_schedules
from engines.minerals.lifecycle import ELIGIBLE_FINANCE_STATUSES
from engines.minerals.models import (
    FeeOverride,
    FeeSchedule,
    FinanceStatus,
    LabResults,
    MineralCategory,
    MineralLot,
    PricingInputs,
    SettlementResult,
    StockStatus,
    secondary_from_mapping,
)
from engines.payments.models import (
    AdvancePayment,
    AdvanceStatus,
    Payment,
    PaymentMethod,
    aggregate_from_dict,
)

logger = logging.getLogger("mts.storage")

_ELIGIBLE = sorted(status.value for status in ELIGIBLE_FINANCE_STATUSES)


# ══════════════════════════════════════════════════════════════
# LOTS
# ══════════════════════════════════════════════════════════════

GROUP_COLUMNS = {
    "stock": ("lot_number", "net_weight", "date_of_delivery", "date_of_sampling"),
    "lab": ("internal_assay", "external_assay", "external_assayed_on", "secondary_assays"),
    "financial": (
        "price_per_percentage", "purchased_percentage", "exchange_rate",
        "tag_price_per_kg", "transport_charge", "external_assay_charge",
        "fee_override_enabled", "override_rra_percentage", "override_rma_per_ton",
        "override_inkomane_fee_per_kg", "override_rra_price_per_percentage",
    ),
    "settlement": (
        "unit_price", "total_amount", "rra", "rma", "inkomane_fee",
        "advance", "total_charge", "net_amount",
    ),
    "stock_status": ("stock_status", "stock_status_changed_at"),
    "finance_status": (
        "finance_status", "previous_finance_status", "finance_status_changed_at",
    ),
}


def lot_to_columns(lot: MineralLot) -> dict:
    settlement = lot.settlement
    return {
        "supplier_id": lot.supplier_id,
        "supplier_name": lot.supplier_name,
        "lot_number": lot.lot_number,
        "net_weight": lot.net_weight,
        "date_of_delivery": lot.date_of_delivery,
        "date_of_sampling": lot.date_of_sampling,
        "internal_assay": lot.lab.internal_assay,
        "external_assay": lot.lab.external_assay,
        "external_assayed_on": lot.lab.external_assayed_on,
        "secondary_assays": {k: str(v) for k, v in lot.lab.secondary},
        "price_per_percentage": lot.pricing.price_per_percentage,
        "purchased_percentage": lot.pricing.purchased_percentage,
        "exchange_rate": lot.pricing.exchange_rate,
        "tag_price_per_kg": lot.pricing.tag_price_per_kg,
        "transport_charge": lot.pricing.transport_charge,
        "external_assay_charge": lot.pricing.external_assay_charge,
        "fee_override_enabled": lot.fee_override.enabled,
        "override_rra_percentage": lot.fee_override.rra_percentage,
        "override_rma_per_ton": lot.fee_override.rma_per_ton,
        "override_inkomane_fee_per_kg": lot.fee_override.inkomane_fee_per_kg,
        "override_rra_price_per_percentage": lot.fee_override.rra_price_per_percentage,
        "unit_price": _settled(settlement, "unit_price"),
        "total_amount": _settled(settlement, "total_amount"),
        "rra": _settled(settlement, "rra"),
        "rma": _settled(settlement, "rma"),
        "inkomane_fee": _settled(settlement, "inkomane_fee"),
        "advance": _settled(settlement, "advance"),
        "total_charge": _settled(settlement, "total_charge"),
        "net_amount": _settled(settlement, "net_amount"),
        "stock_status": lot.stock_status.value,
        "finance_status": lot.finance_status.value,
        "previous_finance_status": (
            lot.previous_finance_status.value if lot.previous_finance_status else None
        ),
        "stock_status_changed_at": lot.stock_status_changed_at,
        "finance_status_changed_at": lot.finance_status_changed_at,
        "created_at": lot.created_at,
        "updated_at": lot.updated_at,
    }


def _settled(settlement: Optional[SettlementResult], name: str):
    return getattr(settlement, name) if settlement is not None else None


def lot_from_record(record: MineralLotRecord) -> MineralLot:
    return MineralLot(
        lot_id=record.lot_id,
        category=MineralCategory(record.category),
        supplier_id=record.supplier_id,
        supplier_name=record.supplier_name,
        lot_number=record.lot_number,
        net_weight=record.net_weight,
        date_of_delivery=record.date_of_delivery,
        date_of_sampling=record.date_of_sampling,
        lab=LabResults(
            internal_assay=record.internal_assay,
            external_assay=record.external_assay,
            external_assayed_on=record.external_assayed_on,
            secondary=secondary_from_mapping(record.secondary_assays),
        ),
        pricing=PricingInputs(
            price_per_percentage=record.price_per_percentage,
            purchased_percentage=record.purchased_percentage,
            exchange_rate=record.exchange_rate,
            tag_price_per_kg=record.tag_price_per_kg,
            transport_charge=record.transport_charge,
            external_assay_charge=record.external_assay_charge,
        ),
        fee_override=FeeOverride(
            enabled=record.fee_override_enabled,
            rra_percentage=record.override_rra_percentage,
            rma_per_ton=record.override_rma_per_ton,
            inkomane_fee_per_kg=record.override_inkomane_fee_per_kg,
            rra_price_per_percentage=record.override_rra_price_per_percentage,
        ),
        settlement=SettlementResult.from_dict({
            name: getattr(record, name) for name in GROUP_COLUMNS["settlement"]
        }),
        stock_status=StockStatus(record.stock_status),
        finance_status=FinanceStatus(record.finance_status),
        previous_finance_status=(
            FinanceStatus(record.previous_finance_status)
            if record.previous_finance_status else None
        ),
        stock_status_changed_at=record.stock_status_changed_at,
        finance_status_changed_at=record.finance_status_changed_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class DjangoLotStore:

    def get(self, category: MineralCategory, lot_id: str) -> Optional[MineralLot]:
        record = MineralLotRecord.objects.filter(category=category.value, lot_id=lot_id).first()
        return lot_from_record(record) if record else None

    def list_payable(self, category: MineralCategory, supplier_id: str) -> List[MineralLot]:
        records = MineralLotRecord.objects.filter(
            category=category.value,
            supplier_id=supplier_id,
            finance_status__in=_ELIGIBLE,
        ).order_by("lot_id")
        return [lot_from_record(r) for r in records]

    def save(self, lot: MineralLot, groups: Optional[Iterable[str]] = None) -> None:
        columns = lot_to_columns(lot)
        query = MineralLotRecord.objects.filter(category=lot.category.value, lot_id=lot.lot_id)
        if groups is not None and query.exists():
            names = {"updated_at"}
            for group in groups:
                names.update(GROUP_COLUMNS[group])
            query.update(**{name: columns[name] for name in sorted(names)})
            return
        MineralLotRecord.objects.update_or_create(
            category=lot.category.value, lot_id=lot.lot_id, defaults=columns,
        )

    def mark_paid(
        self, category: MineralCategory, lot_ids: Iterable[str], at: datetime,
    ) -> int:
        ids = sorted(set(lot_ids))
        return MineralLotRecord.objects.filter(
            category=category.value,
            lot_id__in=ids,
            finance_status__in=_ELIGIBLE,
        ).update(
            previous_finance_status=F("finance_status"),
            finance_status=FinanceStatus.PAID.value,
            finance_status_changed_at=at,
            updated_at=at,
        )


# ══════════════════════════════════════════════════════════════
# ADVANCES
# ══════════════════════════════════════════════════════════════

def advance_from_record(record: AdvancePaymentRecord) -> AdvancePayment:
    return AdvancePayment(
        advance_id=record.advance_id,
        supplier_id=record.supplier_id,
        supplier_name=record.supplier_name,
        amount=record.amount,
        currency=record.currency,
        method=PaymentMethod(record.method),
        paid_on=record.paid_on,
        status=AdvanceStatus(record.status),
        note=record.note,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class DjangoAdvanceStore:

    def get(self, advance_id: str) -> Optional[AdvancePayment]:
        record = AdvancePaymentRecord.objects.filter(advance_id=advance_id).first()
        return advance_from_record(record) if record else None

    def list_unpaid(self, supplier_id: str) -> List[AdvancePayment]:
        records = AdvancePaymentRecord.objects.filter(
            supplier_id=supplier_id, status=AdvanceStatus.UNPAID.value,
        ).order_by("advance_id")
        return [advance_from_record(r) for r in records]

    def save(self, advance: AdvancePayment) -> None:
        AdvancePaymentRecord.objects.update_or_create(
            advance_id=advance.advance_id,
            defaults={
                "supplier_id": advance.supplier_id,
                "supplier_name": advance.supplier_name,
                "amount": advance.amount,
                "currency": advance.currency,
                "method": advance.method.value,
                "paid_on": advance.paid_on,
                "status": advance.status.value,
                "note": advance.note,
                "created_at": advance.created_at,
                "updated_at": advance.updated_at,
            },
        )

    def mark_paid(self, advance_ids: Iterable[str], at: datetime) -> int:
        return AdvancePaymentRecord.objects.filter(
            advance_id__in=sorted(set(advance_ids)),
            status=AdvanceStatus.UNPAID.value,
        ).update(status=AdvanceStatus.PAID.value, updated_at=at)


# ══════════════════════════════════════════════════════════════
# PAYMENTS
# ══════════════════════════════════════════════════════════════

def payment_from_record(record: PaymentRecord) -> Payment:
    return Payment(
        payment_id=record.payment_id,
        created_at=record.created_at,
        aggregate=aggregate_from_dict(record.content),
    )


class DjangoPaymentStore:

    def create(self, payment: Payment) -> Payment:
        aggregate = payment.aggregate
        PaymentRecord.objects.create(
            payment_id=payment.payment_id,
            supplier_id=aggregate.supplier_id,
            supplier_name=aggregate.supplier_name,
            tantalum_ids=list(aggregate.ids_for(MineralCategory.TANTALUM)),
            tin_ids=list(aggregate.ids_for(MineralCategory.TIN)),
            tungsten_ids=list(aggregate.ids_for(MineralCategory.TUNGSTEN)),
            advance_ids=list(aggregate.advance_ids),
            mineral_types=[c.value for c in aggregate.mineral_types],
            total_weight=aggregate.total_weight,
            total_amount=aggregate.total_amount,
            advance_amount=aggregate.advance_amount,
            payable_amount=aggregate.payable_amount,
            fingerprint=aggregate.fingerprint,
            content=aggregate.content_dict(),
            created_at=payment.created_at,
        )
        return payment

    def get(self, payment_id: str) -> Optional[Payment]:
        record = PaymentRecord.objects.filter(payment_id=payment_id).first()
        return payment_from_record(record) if record else None

    def list_for_supplier(self, supplier_id: str) -> List[Payment]:
        records = PaymentRecord.objects.filter(supplier_id=supplier_id).order_by(
            "created_at", "payment_id",
        )
        return [payment_from_record(r) for r in records]


# ══════════════════════════════════════════════════════════════
# FEE SCHEDULES
# ══════════════════════════════════════════════════════════════

def schedule_from_record(record: FeeScheduleRecord) -> FeeSchedule:
    return FeeSchedule(
        category=MineralCategory(record.category),
        rra_percentage=record.rra_percentage,
        rma_per_ton=record.rma_per_ton,
        inkomane_fee_per_kg=record.inkomane_fee_per_kg,
        rra_price_per_percentage=record.rra_price_per_percentage,
        version=record.version,
        published_at=record.published_at,
    )


class DjangoFeeScheduleStore:

    def current(self, category: MineralCategory) -> Optional[FeeSchedule]:
        record = (
            FeeScheduleRecord.objects.filter(category=category.value)
            .order_by("-version")
            .first()
        )
        return schedule_from_record(record) if record else None

    def publish(self, schedule: FeeSchedule) -> FeeSchedule:
        with transaction.atomic():
            latest = (
                FeeScheduleRecord.objects.select_for_update()
                .filter(category=schedule.category.value)
                .order_by("-version")
                .first()
            )
            record = FeeScheduleRecord.objects.create(
                category=schedule.category.value,
                version=(latest.version if latest else 0) + 1,
                rra_percentage=schedule.rra_percentage,
                rma_per_ton=schedule.rma_per_ton,
                inkomane_fee_per_kg=schedule.inkomane_fee_per_kg,
                rra_price_per_percentage=schedule.rra_price_per_percentage,
                published_at=schedule.published_at,
            )
        logger.info("Fee schedule published: %s v%d", record.category, record.version)
        return schedule_from_record(record)

    def history(self, category: MineralCategory) -> List[FeeSchedule]:
        records = FeeScheduleRecord.objects.filter(category=category.value).order_by("version")
        return [schedule_from_record(r) for r in records]


# ══════════════════════════════════════════════════════════════
# UNIT OF WORK
# ══════════════════════════════════════════════════════════════

class DjangoStorage:
    """All ORM stores behind one transaction.atomic() unit of work."""

    def __init__(self) -> None:
        self.lots = DjangoLotStore()
        self.advances = DjangoAdvanceStore()
        self.payments = DjangoPaymentStore()
        self.fee_schedules = DjangoFeeScheduleStore()

    @contextmanager
    def atomic(self) -> Iterator["DjangoStorage"]:
        with transaction.atomic():
            yield self

    def bootstrap_fee_schedules(self, published_at: Optional[datetime] = None) -> List[FeeSchedule]:
        """Seed empty categories from settings.MTS_DEFAULT_FEE_SCHEDULES."""
        defaults = getattr(settings, "MTS_DEFAULT_FEE_SCHEDULES", {})
        return bootstrap_schedules(self.fee_schedules, defaults, published_at)
