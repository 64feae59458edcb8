"""
MTS Command Layer
==================
Rejections are first-class: policies explain refusals with a
RejectionReason instead of raising.
"""

from core.commands.rejection import ReasonCode, RejectionReason

__all__ = [
    "ReasonCode",
    "RejectionReason",
]
