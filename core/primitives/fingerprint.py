"""
MTS Primitive - Content Fingerprint
====================================
SHA-256 over a canonical JSON rendering.

Used to prove that a committed Payment carries exactly the figures
the caller previewed.

Rules:
- Canonical JSON: sorted keys, fixed separators, ASCII only
- Decimals and dates render through str()
- Same content ALWAYS produces the same fingerprint
"""

import hashlib
import json
from typing import Any


def canonical_serialize(payload: Any) -> str:
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    )


def fingerprint(payload: Any) -> str:
    """64-character lowercase hex SHA-256 of canonical_serialize(payload)."""
    return hashlib.sha256(canonical_serialize(payload).encode("utf-8")).hexdigest()
