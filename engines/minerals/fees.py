"""
MTS Minerals Engine - Fee Configuration
========================================
Resolves the fee parameters that apply to one lot.

Rule: a lot's own override wins only when its flag is set AND all four
numbers are present. Otherwise the category's current global schedule
applies. When neither exists the lot cannot be settled: ConfigurationError,
never a silent fallback to zero.

Normalisation of admin-entered numbers:
    rra_rate                  = rra_percentage / 100
    per_ton_rate (per kg)     = rma_per_ton / 1000
    per_kg_flat_fee           = inkomane_fee_per_kg
    price_per_percentage_rate = rra_price_per_percentage / 100
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol

from core.errors import ConfigurationError
from core.primitives.amounts import HUNDRED, THOUSAND, safe_divide
from engines.minerals.models import (
    EffectiveFees,
    FeeOverride,
    FeeSchedule,
    MineralCategory,
    MineralLot,
)

logger = logging.getLogger("mts.fees")

SOURCE_GLOBAL = "global"
SOURCE_OVERRIDE = "override"


def _normalise(raw, source: str, version: Optional[int]) -> EffectiveFees:
    return EffectiveFees(
        rra_rate=safe_divide(raw.rra_percentage, HUNDRED),
        per_ton_rate=safe_divide(raw.rma_per_ton, THOUSAND),
        per_kg_flat_fee=raw.inkomane_fee_per_kg,
        price_per_percentage_rate=safe_divide(raw.rra_price_per_percentage, HUNDRED),
        source=source,
        schedule_version=version,
    )


def resolve(lot: MineralLot, schedule: Optional[FeeSchedule]) -> EffectiveFees:
    """Pure: pick override or global schedule and normalise it."""
    override: FeeOverride = lot.fee_override
    if override.applies:
        logger.debug("Lot %s/%s uses its fee override.", lot.category.value, lot.lot_id)
        return _normalise(override, SOURCE_OVERRIDE, None)

    if schedule is None:
        raise ConfigurationError(lot.category.value)
    if schedule.category != lot.category:
        raise ConfigurationError(
            lot.category.value,
            detail=f"Schedule supplied is for '{schedule.category.value}'.",
        )
    return _normalise(schedule, SOURCE_GLOBAL, schedule.version)


# ══════════════════════════════════════════════════════════════
# FEE SCHEDULE STORE PROTOCOL
# ══════════════════════════════════════════════════════════════

class FeeScheduleStore(Protocol):
    """
    Admin-configured fee schedules, one current version per category.

    Implementations: InMemoryFeeScheduleStore (tests / bootstrap),
    adapters.django_store.repository.DjangoFeeScheduleStore.
    """

    def current(self, category: MineralCategory) -> Optional[FeeSchedule]:
        ...  # pragma: no cover

    def publish(self, schedule: FeeSchedule) -> FeeSchedule:
        """Store as the next version for its category and return it."""
        ...  # pragma: no cover

    def history(self, category: MineralCategory) -> List[FeeSchedule]:
        ...  # pragma: no cover


class InMemoryFeeScheduleStore:
    """Versioned in-memory schedule store."""

    def __init__(self) -> None:
        self._versions: Dict[MineralCategory, List[FeeSchedule]] = {}

    def current(self, category: MineralCategory) -> Optional[FeeSchedule]:
        versions = self._versions.get(category)
        return versions[-1] if versions else None

    def publish(self, schedule: FeeSchedule) -> FeeSchedule:
        versions = self._versions.setdefault(schedule.category, [])
        stored = replace(schedule, version=len(versions) + 1)
        versions.append(stored)
        logger.info(
            "Fee schedule published: %s v%d", stored.category.value, stored.version,
        )
        return stored

    def history(self, category: MineralCategory) -> List[FeeSchedule]:
        return list(self._versions.get(category, ()))

    def snapshot(self) -> Dict[MineralCategory, List[FeeSchedule]]:
        return {k: list(v) for k, v in self._versions.items()}

    def restore(self, snapshot: Dict[MineralCategory, List[FeeSchedule]]) -> None:
        self._versions = {k: list(v) for k, v in snapshot.items()}


def schedules_from_settings(
    defaults: Mapping[str, Mapping[str, Any]],
    published_at: Optional[datetime] = None,
) -> List[FeeSchedule]:
    """
    Build schedules from a settings mapping such as MTS_DEFAULT_FEE_SCHEDULES:

        {"TANTALUM": {"rra_percentage": "3", "rma_per_ton": "125", ...}}
    """
    schedules = []
    for category_name, values in sorted(defaults.items()):
        schedules.append(FeeSchedule(
            category=MineralCategory(category_name),
            rra_percentage=values["rra_percentage"],
            rma_per_ton=values["rma_per_ton"],
            inkomane_fee_per_kg=values["inkomane_fee_per_kg"],
            rra_price_per_percentage=values["rra_price_per_percentage"],
            published_at=published_at,
        ))
    return schedules


def resolve_from_store(lot: MineralLot, store: FeeScheduleStore) -> EffectiveFees:
    """Resolve against the store's current schedule for the lot's category."""
    return resolve(lot, store.current(lot.category))


def bootstrap_schedules(
    store: FeeScheduleStore,
    defaults: Mapping[str, Mapping[str, Any]],
    published_at: Optional[datetime] = None,
) -> List[FeeSchedule]:
    """Publish a default schedule for every category the store has none for."""
    published = []
    for schedule in schedules_from_settings(defaults, published_at):
        if store.current(schedule.category) is None:
            published.append(store.publish(schedule))
    return published
