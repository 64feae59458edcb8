"""
MTS – Django Settings (Infrastructure Only)
============================================
Django serves as the persistence container for MTS.
The settlement and payment engines do not import Django; only
adapters.django_store does.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("MTS_SECRET_KEY", "mts-dev-key-replace-before-deployment")

DEBUG = os.environ.get("MTS_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── MTS Modules ───────────────────────────────────────
    "adapters.django_store.apps.DjangoStoreConfig",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("MTS_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Time ──────────────────────────────────────────────────────
TIME_ZONE = "UTC"
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
# One logger per engine area: mts.fees, mts.settlement,
# mts.lifecycle, mts.payments, mts.storage.
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "mts": {
            "handlers": ["console"],
            "level": os.environ.get("MTS_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

# ── Fee Schedule Bootstrap ────────────────────────────────────
# Published as version 1 per category when a store is empty.
# Values are entered the way administrators enter them:
#   rra_percentage 3 -> 3 %, rma_per_ton in USD per tonne,
#   inkomane_fee_per_kg in local currency,
#   rra_price_per_percentage entered x100 and normalised /100 on resolve.
MTS_DEFAULT_FEE_SCHEDULES = {
    "TANTALUM": {
        "rra_percentage": "3",
        "rma_per_ton": "125",
        "inkomane_fee_per_kg": "40",
        "rra_price_per_percentage": "500",
    },
    "TIN": {
        "rra_percentage": "3",
        "rma_per_ton": "125",
        "inkomane_fee_per_kg": "40",
        "rra_price_per_percentage": "500",
    },
    "TUNGSTEN": {
        "rra_percentage": "3",
        "rma_per_ton": "125",
        "inkomane_fee_per_kg": "40",
        "rra_price_per_percentage": "500",
    },
}
