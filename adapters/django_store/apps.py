"""
MTS Django Store - App Configuration
=====================================
Relational persistence for lots, advances, payments and fee schedules.

This app:
- Maps engine records to tables and back
- Serialises commits through conditional status updates

This app does NOT:
- Compute settlements or totals
- Decide eligibility
"""

from django.apps import AppConfig


class DjangoStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "adapters.django_store"
    label = "mts_store"
    verbose_name = "MTS Settlement Store"
