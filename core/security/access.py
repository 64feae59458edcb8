"""
MTS Core Security - Capability Checks
======================================
Authentication and roles live outside the engine. Callers present the
set of capabilities they were granted; each operation declares the one
capability it requires. No inheritance, no role lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable

from core.errors import CapabilityDenied


# ══════════════════════════════════════════════════════════════
# CAPABILITY CONSTANTS
# ══════════════════════════════════════════════════════════════

class Capability:
    """
    Atomic capability names.

    Convention: engine.resource.action
    """

    # Lot field groups
    LOT_STOCK_EDIT = "lots.stock.edit"
    LOT_LAB_EDIT = "lots.lab.edit"
    LOT_FINANCIAL_EDIT = "lots.financial.edit"

    # Lot status machines
    LOT_STOCK_STATUS_CHANGE = "lots.stock_status.change"
    LOT_FINANCE_STATUS_CHANGE = "lots.finance_status.change"

    # Payments
    PAYMENT_PREVIEW = "payments.payment.preview"
    PAYMENT_COMMIT = "payments.payment.commit"
    ADVANCE_CREATE = "payments.advance.create"

    # Settings
    FEE_SCHEDULE_PUBLISH = "settings.fee_schedule.publish"


ALL_CAPABILITIES = frozenset(
    value for name, value in vars(Capability).items() if name.isupper()
)


# ══════════════════════════════════════════════════════════════
# ACCESS DECISION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AccessDecision:
    """Result of a capability check."""

    capability: str
    granted: bool


@dataclass(frozen=True)
class CapabilitySet:
    """Capabilities granted to the current caller."""

    granted: FrozenSet[str] = frozenset()

    @classmethod
    def of(cls, *capabilities: str) -> "CapabilitySet":
        return cls(granted=frozenset(capabilities))

    @classmethod
    def full(cls) -> "CapabilitySet":
        return cls(granted=ALL_CAPABILITIES)

    def check(self, capability: str) -> AccessDecision:
        return AccessDecision(capability=capability, granted=capability in self.granted)

    def allows(self, capability: str) -> bool:
        return self.check(capability).granted

    def require(self, capability: str) -> None:
        if not self.allows(capability):
            raise CapabilityDenied(capability)

    def require_all(self, capabilities: Iterable[str]) -> None:
        for capability in sorted(capabilities):
            self.require(capability)
