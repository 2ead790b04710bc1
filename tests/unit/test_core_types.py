"""
test_core_types.py - Unit tests for core data structures

Tests:
- Move: creation, validation, immutability, edge cases
- Checked u64 arithmetic
- Error taxonomy: codes and messages
- PendingTransaction: intent ids and nonces
- Unit: frozen state, native currency factory
"""

import pytest
from datetime import datetime
from trackledger import (
    Move, Transaction, Unit, UnitStateChange, PendingTransaction,
    TransactionOrigin, OriginType,
    native_currency,
    checked_add, checked_sub, checked_mul, checked_div,
    LedgerError, TrackError, TrackAlreadyTokenized, TrackNotTokenized,
    UnauthorizedArtist, InsufficientTokenSupply, MathOverflow, InvalidTrackParameter,
    U64_MAX, NATIVE_SYMBOL, UNIT_TYPE_NATIVE,
)
from trackledger.core import _freeze_state


# Helper for creating test origins
def _test_origin(nonce=None) -> TransactionOrigin:
    return TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id="test",
        nonce=nonce,
    )


class TestMoveCreation:
    """Tests for Move creation and validation."""

    def test_create_valid_move(self):
        move = Move(100, "NATIVE", "label", "artist", "tx_001")
        assert move.source == "label"
        assert move.dest == "artist"
        assert move.quantity == 100
        assert move.metadata is None

    def test_move_at_u64_max(self):
        move = Move(U64_MAX, "NATIVE", "label", "artist", "tx_001")
        assert move.quantity == U64_MAX

    @pytest.mark.parametrize("quantity", [0, -1, U64_MAX + 1])
    def test_move_quantity_out_of_range(self, quantity):
        with pytest.raises(ValueError):
            Move(quantity, "NATIVE", "label", "artist", "tx_001")

    @pytest.mark.parametrize("quantity", [1.5, 100.0, True])
    def test_move_quantity_must_be_int(self, quantity):
        with pytest.raises(ValueError, match="must be int"):
            Move(quantity, "NATIVE", "label", "artist", "tx_001")

    def test_move_same_source_dest(self):
        with pytest.raises(ValueError, match="different"):
            Move(1, "NATIVE", "label", "label", "tx_001")

    def test_move_empty_fields(self):
        with pytest.raises(ValueError):
            Move(1, "", "label", "artist", "tx_001")
        with pytest.raises(ValueError):
            Move(1, "NATIVE", " ", "artist", "tx_001")

    def test_move_is_frozen(self):
        move = Move(1, "NATIVE", "label", "artist", "tx_001")
        with pytest.raises(AttributeError):
            move.quantity = 2


class TestCheckedArithmetic:
    """Checked u64 arithmetic raises MathOverflow instead of wrapping."""

    def test_in_range(self):
        assert checked_add(2, 3) == 5
        assert checked_sub(5, 3) == 2
        assert checked_mul(4, 5) == 20
        assert checked_div(7, 2) == 3

    def test_add_overflow(self):
        assert checked_add(U64_MAX - 1, 1) == U64_MAX
        with pytest.raises(MathOverflow):
            checked_add(U64_MAX, 1)

    def test_sub_underflow(self):
        with pytest.raises(MathOverflow):
            checked_sub(1, 2)

    def test_mul_overflow(self):
        with pytest.raises(MathOverflow):
            checked_mul(U64_MAX, 10_000)

    def test_div_by_zero(self):
        with pytest.raises(MathOverflow, match="div by zero"):
            checked_div(10, 0)

    @pytest.mark.parametrize("operand", [-1, U64_MAX + 1, 1.0, True, "1"])
    def test_operand_outside_u64(self, operand):
        with pytest.raises(MathOverflow):
            checked_add(operand, 0)


class TestErrorTaxonomy:
    """Program errors carry stable codes and default messages."""

    @pytest.mark.parametrize("error_cls,code,message", [
        (TrackAlreadyTokenized, 6000, "Track is already tokenized"),
        (TrackNotTokenized, 6001, "Track is not tokenized yet"),
        (UnauthorizedArtist, 6002, "Unauthorized artist"),
        (InsufficientTokenSupply, 6003, "Insufficient token supply"),
        (MathOverflow, 6004, "Math overflow"),
    ])
    def test_codes_and_messages(self, error_cls, code, message):
        err = error_cls()
        assert err.code == code
        assert str(err) == message
        assert isinstance(err, TrackError)
        assert isinstance(err, LedgerError)

    def test_custom_message(self):
        assert str(MathOverflow("mul result too large")) == "mul result too large"

    def test_invalid_parameter_is_value_error(self):
        assert issubclass(InvalidTrackParameter, ValueError)
        assert issubclass(InvalidTrackParameter, TrackError)


class TestPendingTransaction:
    """Intent ids are content hashes that include the nonce."""

    def _pending(self, nonce=None, quantity=100):
        return PendingTransaction(
            moves=(Move(quantity, "NATIVE", "label", "artist", "royalty"),),
            state_changes=(),
            origin=_test_origin(nonce),
            timestamp=datetime(2025, 1, 1),
        )

    def test_same_content_same_intent(self):
        assert self._pending().intent_id == self._pending().intent_id

    def test_timestamp_not_in_intent(self):
        a = self._pending()
        b = PendingTransaction(a.moves, a.state_changes, a.origin, datetime(2030, 1, 1))
        assert a.intent_id == b.intent_id

    def test_nonce_distinguishes_identical_content(self):
        assert self._pending("n1").intent_id != self._pending("n2").intent_id

    def test_content_changes_intent(self):
        assert self._pending(quantity=100).intent_id != self._pending(quantity=101).intent_id

    def test_is_empty(self):
        empty = PendingTransaction((), (), _test_origin(), datetime(2025, 1, 1))
        assert empty.is_empty()
        assert not self._pending().is_empty()

    def test_transaction_requires_content(self):
        with pytest.raises(ValueError):
            Transaction(
                moves=(), state_changes=(), origin=_test_origin(),
                timestamp=datetime(2025, 1, 1), intent_id="x", exec_id="e",
                ledger_name="test", execution_time=datetime(2025, 1, 1), sequence_number=0,
            )

    def test_state_key_order_does_not_change_intent(self):
        def pending(state):
            return PendingTransaction(
                (), (UnitStateChange("REC", None, state),), _test_origin(), datetime(2025, 1, 1),
            )
        assert pending({"a": 1, "b": (2, 3)}).intent_id == pending({"b": (2, 3), "a": 1}).intent_id
        assert pending({"a": 1}).intent_id != pending({"a": True}).intent_id

    def test_origin_types(self):
        assert [origin.value for origin in OriginType] == ["user_action", "program"]

    def test_transaction_repr_lists_effects(self):
        tx = Transaction(
            moves=(Move(5, "NATIVE", "label", "artist", "p"),),
            state_changes=(UnitStateChange("REC", {"a": 1}, {"a": 2}),),
            origin=_test_origin(), timestamp=datetime(2025, 1, 1), intent_id="i", exec_id="e",
            ledger_name="test", execution_time=datetime(2025, 1, 1), sequence_number=0,
        )
        assert repr(tx).splitlines() == [
            "Transaction e (intent i, Origin(user_action:test))",
            "    5 NATIVE: label → artist",
            "    REC.a: 1 → 2",
        ]


class TestUnitStateChange:

    def test_changed_fields(self):
        sc = UnitStateChange("T", {"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4})
        assert sc.changed_fields() == {"b": (2, 3), "c": (None, 4)}


class TestUnit:

    def test_state_is_a_copy(self):
        unit = Unit("T", "Track", "TRACK_RECORD", _frozen_state=_freeze_state({"x": 1}))
        state = unit.state
        state["x"] = 2
        assert unit.state == {"x": 1}

    def test_native_currency(self):
        unit = native_currency()
        assert unit.symbol == NATIVE_SYMBOL
        assert unit.unit_type == UNIT_TYPE_NATIVE
        assert unit.min_balance == 0
        assert unit.max_balance == U64_MAX
        assert unit.transfer_rule is None
