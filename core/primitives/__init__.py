"""
MTS Core Primitives - Reusable Building Blocks
===============================================
Primitives are shared, engine-agnostic building blocks:

- Pure Python (no Django dependency)
- Immutable (frozen dataclasses)
- Deterministic (same input -> same output)

Primitives:
    amounts      - Decimal context, quantisation and the division guard
    workflow     - Generic finite state machine definitions
    fingerprint  - Canonical JSON + SHA-256 content fingerprint
"""
