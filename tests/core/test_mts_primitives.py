"""
Tests for core primitives: amounts, workflow, fingerprint, clock,
capabilities and the error hierarchy.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from core.errors import (
    CapabilityDenied,
    ConsistencyError,
    SettlementError,
    TransitionError,
    ValidationError,
)
from core.primitives.amounts import (
    ZERO,
    add,
    mul,
    quantize,
    safe_divide,
    sub,
    to_decimal,
    total,
)
from core.primitives.fingerprint import canonical_serialize, fingerprint
from core.primitives.workflow import WorkflowDefinition
from core.security.access import Capability, CapabilitySet
from core.time.clock import FixedClock, SystemClock

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


# ── Amounts ──────────────────────────────────────────────────

class TestToDecimal:
    def test_none_stays_none(self):
        assert to_decimal(None) is None

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("bad", ["", "   ", "abc", "NaN", "Infinity", True, [1]])
    def test_rejected_values(self, bad):
        with pytest.raises(ValueError):
            to_decimal(bad)


class TestArithmetic:
    def test_quantize_rounds_half_up_to_six_places(self):
        assert str(quantize(Decimal("1.0000005"))) == "1.000001"
        assert str(quantize(Decimal("2"))) == "2.000000"

    def test_helpers(self):
        assert mul(Decimal("2"), Decimal("3.5")) == Decimal("7")
        assert add(Decimal("1"), Decimal("2"), Decimal("3")) == Decimal("6")
        assert sub(Decimal("1"), Decimal("3")) == Decimal("-2")
        assert total([]) == ZERO

    def test_safe_divide_zero_is_undefined(self):
        assert safe_divide(Decimal("5"), ZERO) is None
        assert safe_divide(Decimal("5"), None) is None
        assert safe_divide(None, Decimal("5")) is None
        assert safe_divide(Decimal("1"), Decimal("4")) == Decimal("0.25")


# ── Workflow ─────────────────────────────────────────────────

DOOR = WorkflowDefinition(
    name="door",
    initial_state="closed",
    terminal_states=frozenset({"welded"}),
    transitions={
        "closed": frozenset({"open", "welded"}),
        "open": frozenset({"closed"}),
        "welded": frozenset(),
    },
)


class TestWorkflow:
    def test_valid_transition_is_recorded(self):
        record = DOOR.transition("closed", "open", NOW, reason="airing")
        assert record.to_dict() == {
            "machine": "door",
            "from_state": "closed",
            "to_state": "open",
            "transitioned_at": NOW.isoformat(),
            "reason": "airing",
        }

    @pytest.mark.parametrize("from_state,to_state", [
        ("open", "welded"),
        ("welded", "closed"),
        ("closed", "ajar"),
        ("ajar", "closed"),
    ])
    def test_invalid_transitions(self, from_state, to_state):
        with pytest.raises(TransitionError) as exc:
            DOOR.transition(from_state, to_state, NOW)
        assert exc.value.codes == ("INVALID_TRANSITION",)
        assert isinstance(exc.value, ValidationError)

    def test_coerce(self):
        assert DOOR.coerce(None) == "closed"
        with pytest.raises(ValueError):
            DOOR.coerce("ajar")

    def test_terminal_state_must_not_declare_transitions(self):
        with pytest.raises(ValueError):
            WorkflowDefinition(
                name="bad",
                initial_state="a",
                terminal_states=frozenset({"a"}),
                transitions={"a": frozenset({"a"})},
            )


# ── Fingerprint ──────────────────────────────────────────────

class TestFingerprint:
    def test_key_order_does_not_matter(self):
        assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})

    def test_decimals_render_as_strings(self):
        assert canonical_serialize({"x": Decimal("1.500000")}) == '{"x":"1.500000"}'

    def test_is_sha256_hex(self):
        digest = fingerprint({"a": 1})
        assert len(digest) == 64
        assert digest == digest.lower()


# ── Clock ────────────────────────────────────────────────────

class TestClock:
    def test_system_clock_is_utc(self):
        assert SystemClock().now_utc().tzinfo == timezone.utc

    def test_fixed_clock_advances_on_request(self):
        clock = FixedClock(NOW)
        assert clock.now_utc() == NOW
        clock.advance(30)
        assert (clock.now_utc() - NOW).total_seconds() == 30

    def test_fixed_clock_requires_timezone(self):
        with pytest.raises(ValueError):
            FixedClock(datetime(2026, 3, 2))


# ── Capabilities and errors ──────────────────────────────────

class TestCapabilities:
    def test_require(self):
        caps = CapabilitySet.of(Capability.PAYMENT_PREVIEW)
        caps.require(Capability.PAYMENT_PREVIEW)
        with pytest.raises(CapabilityDenied) as exc:
            caps.require(Capability.PAYMENT_COMMIT)
        assert exc.value.capability == Capability.PAYMENT_COMMIT
        assert isinstance(exc.value, SettlementError)

    def test_full_set_allows_everything(self):
        full = CapabilitySet.full()
        full.require_all([Capability.PAYMENT_COMMIT, Capability.FEE_SCHEDULE_PUBLISH])


class TestErrors:
    def test_validation_error_lists_fields_and_codes(self):
        error = ValidationError.single("amount", "MUST_BE_POSITIVE", "amount must be > 0.")
        assert error.fields == ("amount",)
        assert error.codes == ("MUST_BE_POSITIVE",)

    def test_consistency_error_sorts_stale_ids(self):
        error = ConsistencyError(["b", "a"], reason="raced")
        assert error.stale_ids == ("a", "b")
        assert "a, b" in str(error)
        assert "raced" in str(error)
