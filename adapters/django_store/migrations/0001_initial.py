from django.db import migrations, models


def _amount(**kwargs):
    return models.DecimalField(max_digits=24, decimal_places=6, **kwargs)


def _percent(**kwargs):
    return models.DecimalField(max_digits=9, decimal_places=6, **kwargs)


CATEGORY_CHOICES = [
    ("TANTALUM", "Tantalum (Ta2O5)"),
    ("TIN", "Tin (Sn)"),
    ("TUNGSTEN", "Tungsten (WO3)"),
]

FINANCE_CHOICES = [
    ("unpaid", "Unpaid"),
    ("invoiced", "Invoiced"),
    ("paid", "Paid"),
    ("exported", "Exported"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="MineralLotRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("category", models.CharField(choices=CATEGORY_CHOICES, max_length=16)),
                ("lot_id", models.CharField(max_length=64)),
                ("supplier_id", models.CharField(max_length=64)),
                ("supplier_name", models.CharField(blank=True, default="", max_length=255)),
                ("lot_number", models.CharField(blank=True, default="", max_length=64)),
                ("net_weight", _amount()),
                ("date_of_delivery", models.DateField(blank=True, null=True)),
                ("date_of_sampling", models.DateField(blank=True, null=True)),
                ("internal_assay", _percent(blank=True, null=True)),
                ("external_assay", _percent(blank=True, null=True)),
                ("external_assayed_on", models.DateField(blank=True, null=True)),
                ("secondary_assays", models.JSONField(blank=True, default=dict)),
                ("price_per_percentage", _amount(blank=True, null=True)),
                ("purchased_percentage", _percent(blank=True, null=True)),
                ("exchange_rate", _amount(blank=True, null=True)),
                ("tag_price_per_kg", _amount(blank=True, null=True)),
                ("transport_charge", _amount(blank=True, null=True)),
                ("external_assay_charge", _amount(blank=True, null=True)),
                ("fee_override_enabled", models.BooleanField(default=False)),
                ("override_rra_percentage", _percent(blank=True, null=True)),
                ("override_rma_per_ton", _amount(blank=True, null=True)),
                ("override_inkomane_fee_per_kg", _amount(blank=True, null=True)),
                ("override_rra_price_per_percentage", _amount(blank=True, null=True)),
                ("unit_price", _amount(blank=True, null=True)),
                ("total_amount", _amount(blank=True, null=True)),
                ("rra", _amount(blank=True, null=True)),
                ("rma", _amount(blank=True, null=True)),
                ("inkomane_fee", _amount(blank=True, null=True)),
                ("advance", _amount(blank=True, null=True)),
                ("total_charge", _amount(blank=True, null=True)),
                ("net_amount", _amount(blank=True, null=True)),
                (
                    "stock_status",
                    models.CharField(
                        choices=[
                            ("in-stock", "In stock"),
                            ("withdrawn", "Withdrawn"),
                            ("resampled", "Resampled"),
                        ],
                        default="in-stock",
                        max_length=16,
                    ),
                ),
                (
                    "finance_status",
                    models.CharField(choices=FINANCE_CHOICES, default="unpaid", max_length=16),
                ),
                (
                    "previous_finance_status",
                    models.CharField(blank=True, choices=FINANCE_CHOICES, max_length=16, null=True),
                ),
                ("stock_status_changed_at", models.DateTimeField(blank=True, null=True)),
                ("finance_status_changed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "mts_mineral_lots",
                "ordering": ["category", "lot_id"],
                "indexes": [
                    models.Index(
                        fields=["category", "supplier_id", "finance_status"],
                        name="idx_lot_payable",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("category", "lot_id"),
                        name="uq_lot_category_id",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AdvancePaymentRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("advance_id", models.CharField(max_length=64, unique=True)),
                ("supplier_id", models.CharField(max_length=64)),
                ("supplier_name", models.CharField(blank=True, default="", max_length=255)),
                ("amount", _amount()),
                ("currency", models.CharField(max_length=3)),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("CASH", "Cash"),
                            ("BANK_TRANSFER", "Bank transfer"),
                            ("CHEQUE", "Cheque"),
                            ("MOBILE_MONEY", "Mobile money"),
                        ],
                        max_length=16,
                    ),
                ),
                ("paid_on", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("Unpaid", "Unpaid"), ("Paid", "Paid")],
                        default="Unpaid",
                        max_length=8,
                    ),
                ),
                ("note", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "mts_advance_payments",
                "ordering": ["advance_id"],
                "indexes": [
                    models.Index(
                        fields=["supplier_id", "status"],
                        name="idx_advance_supplier_status",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("payment_id", models.CharField(max_length=64, unique=True)),
                ("supplier_id", models.CharField(max_length=64)),
                ("supplier_name", models.CharField(blank=True, default="", max_length=255)),
                ("tantalum_ids", models.JSONField(default=list)),
                ("tin_ids", models.JSONField(default=list)),
                ("tungsten_ids", models.JSONField(default=list)),
                ("advance_ids", models.JSONField(default=list)),
                ("mineral_types", models.JSONField(default=list)),
                ("total_weight", _amount()),
                ("total_amount", _amount()),
                ("advance_amount", _amount()),
                ("payable_amount", _amount()),
                ("fingerprint", models.CharField(max_length=64)),
                ("content", models.JSONField()),
                ("created_at", models.DateTimeField()),
            ],
            options={
                "db_table": "mts_payments",
                "ordering": ["created_at", "payment_id"],
                "indexes": [
                    models.Index(
                        fields=["supplier_id", "created_at"],
                        name="idx_payment_supplier",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FeeScheduleRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("category", models.CharField(choices=CATEGORY_CHOICES, max_length=16)),
                ("version", models.PositiveIntegerField()),
                ("rra_percentage", _percent()),
                ("rma_per_ton", _amount()),
                ("inkomane_fee_per_kg", _amount()),
                ("rra_price_per_percentage", _amount()),
                ("published_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "mts_fee_schedules",
                "ordering": ["category", "version"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("category", "version"),
                        name="uq_fee_schedule_version",
                    ),
                ],
            },
        ),
    ]
