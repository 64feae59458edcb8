"""
MTS Core Security - Public API
===============================
Capability-set checks consumed by the engines.
"""

from core.security.access import (
    ALL_CAPABILITIES,
    AccessDecision,
    Capability,
    CapabilitySet,
)

__all__ = [
    "ALL_CAPABILITIES",
    "AccessDecision",
    "Capability",
    "CapabilitySet",
]
