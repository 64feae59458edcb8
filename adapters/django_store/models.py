"""
MTS Django Store - Relational Models
=====================================
Amounts are DecimalField with 6 decimal places, matching the engine's
quantisation, so a stored figure equals the previewed figure.

Absent values are NULL, never 0 and never "".
"""

from __future__ import annotations

from django.db import models

AMOUNT = {"max_digits": 24, "decimal_places": 6}
PERCENT = {"max_digits": 9, "decimal_places": 6}


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class Category(models.TextChoices):
    TANTALUM = "TANTALUM", "Tantalum (Ta2O5)"
    TIN = "TIN", "Tin (Sn)"
    TUNGSTEN = "TUNGSTEN", "Tungsten (WO3)"


class StockStatusChoice(models.TextChoices):
    IN_STOCK = "in-stock", "In stock"
    WITHDRAWN = "withdrawn", "Withdrawn"
    RESAMPLED = "resampled", "Resampled"


class FinanceStatusChoice(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    INVOICED = "invoiced", "Invoiced"
    PAID = "paid", "Paid"
    EXPORTED = "exported", "Exported"


class AdvanceStatusChoice(models.TextChoices):
    UNPAID = "Unpaid", "Unpaid"
    PAID = "Paid", "Paid"


class MethodChoice(models.TextChoices):
    CASH = "CASH", "Cash"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"
    CHEQUE = "CHEQUE", "Cheque"
    MOBILE_MONEY = "MOBILE_MONEY", "Mobile money"


# ══════════════════════════════════════════════════════════════
# MINERAL LOT
# ══════════════════════════════════════════════════════════════

class MineralLotRecord(models.Model):
    """
    One lot. Field groups mirror the engine's independently edited
    groups so each can be written without touching the others.
    """

    # ── Identity ──────────────────────────────────────────────
    category = models.CharField(max_length=16, choices=Category.choices)
    lot_id = models.CharField(max_length=64)
    supplier_id = models.CharField(max_length=64)
    supplier_name = models.CharField(max_length=255, blank=True, default="")

    # ── Stock ─────────────────────────────────────────────────
    lot_number = models.CharField(max_length=64, blank=True, default="")
    net_weight = models.DecimalField(**AMOUNT)
    date_of_delivery = models.DateField(null=True, blank=True)
    date_of_sampling = models.DateField(null=True, blank=True)

    # ── Lab ───────────────────────────────────────────────────
    internal_assay = models.DecimalField(null=True, blank=True, **PERCENT)
    external_assay = models.DecimalField(null=True, blank=True, **PERCENT)
    external_assayed_on = models.DateField(null=True, blank=True)
    secondary_assays = models.JSONField(default=dict, blank=True)

    # ── Financial ─────────────────────────────────────────────
    price_per_percentage = models.DecimalField(null=True, blank=True, **AMOUNT)
    purchased_percentage = models.DecimalField(null=True, blank=True, **PERCENT)
    exchange_rate = models.DecimalField(null=True, blank=True, **AMOUNT)
    tag_price_per_kg = models.DecimalField(null=True, blank=True, **AMOUNT)
    transport_charge = models.DecimalField(null=True, blank=True, **AMOUNT)
    external_assay_charge = models.DecimalField(null=True, blank=True, **AMOUNT)
    fee_override_enabled = models.BooleanField(default=False)
    override_rra_percentage = models.DecimalField(null=True, blank=True, **PERCENT)
    override_rma_per_ton = models.DecimalField(null=True, blank=True, **AMOUNT)
    override_inkomane_fee_per_kg = models.DecimalField(null=True, blank=True, **AMOUNT)
    override_rra_price_per_percentage = models.DecimalField(null=True, blank=True, **AMOUNT)

    # ── Settlement (all set or all NULL) ──────────────────────
    unit_price = models.DecimalField(null=True, blank=True, **AMOUNT)
    total_amount = models.DecimalField(null=True, blank=True, **AMOUNT)
    rra = models.DecimalField(null=True, blank=True, **AMOUNT)
    rma = models.DecimalField(null=True, blank=True, **AMOUNT)
    inkomane_fee = models.DecimalField(null=True, blank=True, **AMOUNT)
    advance = models.DecimalField(null=True, blank=True, **AMOUNT)
    total_charge = models.DecimalField(null=True, blank=True, **AMOUNT)
    net_amount = models.DecimalField(null=True, blank=True, **AMOUNT)

    # ── Status ────────────────────────────────────────────────
    stock_status = models.CharField(
        max_length=16, choices=StockStatusChoice.choices, default=StockStatusChoice.IN_STOCK,
    )
    finance_status = models.CharField(
        max_length=16, choices=FinanceStatusChoice.choices, default=FinanceStatusChoice.UNPAID,
    )
    previous_finance_status = models.CharField(
        max_length=16, choices=FinanceStatusChoice.choices, null=True, blank=True,
    )
    stock_status_changed_at = models.DateTimeField(null=True, blank=True)
    finance_status_changed_at = models.DateTimeField(null=True, blank=True)

    # ── Temporal ──────────────────────────────────────────────
    created_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "mts_mineral_lots"
        ordering = ["category", "lot_id"]
        indexes = [
            models.Index(
                fields=["category", "supplier_id", "finance_status"],
                name="idx_lot_payable",
            ),
        ]
        constraints = [
            models.UniqueConstraint(fields=["category", "lot_id"], name="uq_lot_category_id"),
        ]

    def __str__(self) -> str:
        return f"{self.category}:{self.lot_id}"


# ══════════════════════════════════════════════════════════════
# ADVANCE PAYMENT
# ══════════════════════════════════════════════════════════════

class AdvancePaymentRecord(models.Model):
    advance_id = models.CharField(max_length=64, unique=True)
    supplier_id = models.CharField(max_length=64)
    supplier_name = models.CharField(max_length=255, blank=True, default="")
    amount = models.DecimalField(**AMOUNT)
    currency = models.CharField(max_length=3)
    method = models.CharField(max_length=16, choices=MethodChoice.choices)
    paid_on = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=8, choices=AdvanceStatusChoice.choices, default=AdvanceStatusChoice.UNPAID,
    )
    note = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "mts_advance_payments"
        ordering = ["advance_id"]
        indexes = [
            models.Index(fields=["supplier_id", "status"], name="idx_advance_supplier_status"),
        ]

    def __str__(self) -> str:
        return self.advance_id


# ══════════════════════════════════════════════════════════════
# PAYMENT
# ══════════════════════════════════════════════════════════════

class PaymentRecord(models.Model):
    """
    Immutable once written. `content` holds the full aggregate snapshot
    (lines and per-category figures); the scalar columns are for queries.
    """

    payment_id = models.CharField(max_length=64, unique=True)
    supplier_id = models.CharField(max_length=64)
    supplier_name = models.CharField(max_length=255, blank=True, default="")
    tantalum_ids = models.JSONField(default=list)
    tin_ids = models.JSONField(default=list)
    tungsten_ids = models.JSONField(default=list)
    advance_ids = models.JSONField(default=list)
    mineral_types = models.JSONField(default=list)
    total_weight = models.DecimalField(**AMOUNT)
    total_amount = models.DecimalField(**AMOUNT)
    advance_amount = models.DecimalField(**AMOUNT)
    payable_amount = models.DecimalField(**AMOUNT)
    fingerprint = models.CharField(max_length=64)
    content = models.JSONField()
    created_at = models.DateTimeField()

    class Meta:
        db_table = "mts_payments"
        ordering = ["created_at", "payment_id"]
        indexes = [
            models.Index(fields=["supplier_id", "created_at"], name="idx_payment_supplier"),
        ]

    def __str__(self) -> str:
        return self.payment_id


# ══════════════════════════════════════════════════════════════
# FEE SCHEDULE
# ══════════════════════════════════════════════════════════════

class FeeScheduleRecord(models.Model):
    category = models.CharField(max_length=16, choices=Category.choices)
    version = models.PositiveIntegerField()
    rra_percentage = models.DecimalField(**PERCENT)
    rma_per_ton = models.DecimalField(**AMOUNT)
    inkomane_fee_per_kg = models.DecimalField(**AMOUNT)
    rra_price_per_percentage = models.DecimalField(**AMOUNT)
    published_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "mts_fee_schedules"
        ordering = ["category", "version"]
        constraints = [
            models.UniqueConstraint(fields=["category", "version"], name="uq_fee_schedule_version"),
        ]

    def __str__(self) -> str:
        return f"{self.category} v{self.version}"
