"""
Core types and pure functions for the track royalty ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError, storage errors and the track program error codes
4. Checked u64 arithmetic that raises instead of wrapping
5. Unit factories: native currency

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance (minting) and redemption.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Symbol of the native currency moved by the value-transfer capability.
NATIVE_SYMBOL = "NATIVE"

UNIT_TYPE_NATIVE = "NATIVE"
UNIT_TYPE_TRACK_RECORD = "TRACK_RECORD"
UNIT_TYPE_TRACK_TOKEN = "TRACK_TOKEN"

# Fixed-width integer bounds
U8_MAX = 2**8 - 1
U16_MAX = 2**16 - 1
U64_MAX = 2**64 - 1

# Royalty percentages are basis points: 10000 = 100%
BASIS_POINTS = 10_000
DEFAULT_ROYALTY_BPS = 1_000

# Field bounds on the track record, in UTF-8 bytes
MAX_TITLE_LEN = 100
MAX_METADATA_URI_LEN = 200

# The zero address marks an unset identifier (e.g. token_mint before tokenization)
UNSET_ADDRESS = "0" * 64

# Identity of the track program; part of every derived record address
DEFAULT_PROGRAM_ID = "FPZCujxx2DPXL2rURe2yqvTKMwzJWcVmaDmq4MRQAhQ"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Internal state for a unit (track record fields, mint configuration, etc.)
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Operations, transfer rules and queries use this protocol to inspect ledger
    state without the ability to modify it. The Ledger class implements it and
    also provides mutation methods; FakeView in the tests is a truly immutable
    implementation.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Return the balance of a specific unit in a wallet.

        Returns 0 if the wallet holds none of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def list_units(self) -> List[str]:
        """Return the sorted list of registered unit symbols."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was successfully validated and applied to the ledger.
    ALREADY_APPLIED: Transaction ID was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation; the ledger is unchanged and
              Ledger.last_rejection holds the reason.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Signed instruction submitted by a user
    PROGRAM = "program"                   # Instruction built by the track program


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a move would cause a wallet balance to fall below the unit's minimum."""
    pass


class BalanceConstraintViolation(LedgerError):
    """Raised when a move would cause a wallet balance to exceed the unit's maximum."""
    pass


class TransferRuleViolation(LedgerError):
    """Raised when a move violates the unit's transfer rule."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class DuplicateRecord(LedgerError):
    """Raised when allocating a unit at an address that is already occupied."""
    pass


class StaleUnitState(LedgerError):
    """Raised when a state change was built against state that has since changed."""
    pass


class MissingRequiredSignature(LedgerError):
    """Raised when an instruction requires a signer that was not supplied."""
    pass


class TrackError(LedgerError):
    """
    Base class for track program errors.

    Each subclass carries a stable numeric code and a default message, so
    callers can match on the type or report the code.
    """
    code: int = 6000
    msg: str = "Track program error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.msg)


class TrackAlreadyTokenized(TrackError):
    code = 6000
    msg = "Track is already tokenized"


class TrackNotTokenized(TrackError):
    """Reserved: no current operation requires a tokenized track."""
    code = 6001
    msg = "Track is not tokenized yet"


class UnauthorizedArtist(TrackError):
    code = 6002
    msg = "Unauthorized artist"


class InsufficientTokenSupply(TrackError):
    """Reserved for sale logic; not raised by current operations."""
    code = 6003
    msg = "Insufficient token supply"


class MathOverflow(TrackError):
    code = 6004
    msg = "Math overflow"


class InvalidTrackParameter(TrackError, ValueError):
    """Raised when an instruction argument is outside its declared range."""
    code = 6005
    msg = "Invalid track parameter"


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================
#
# Every operation works on unsigned 64-bit values and raises MathOverflow
# when the exact result falls outside [0, U64_MAX]. Nothing wraps.
#

def _require_u64_operand(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MathOverflow(f"Operand must be an integer, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise MathOverflow(f"Operand {value} is outside the u64 range")
    return value


def _check_u64_result(value: int, op: str) -> int:
    if value < 0 or value > U64_MAX:
        raise MathOverflow(f"{op} result {value} is outside the u64 range")
    return value


def checked_add(a: int, b: int) -> int:
    """Return a + b, or raise MathOverflow."""
    return _check_u64_result(_require_u64_operand(a) + _require_u64_operand(b), "add")


def checked_sub(a: int, b: int) -> int:
    """Return a - b, or raise MathOverflow on underflow."""
    return _check_u64_result(_require_u64_operand(a) - _require_u64_operand(b), "sub")


def checked_mul(a: int, b: int) -> int:
    """Return a * b, or raise MathOverflow."""
    return _check_u64_result(_require_u64_operand(a) * _require_u64_operand(b), "mul")


def checked_div(a: int, b: int) -> int:
    """Return floor(a / b), or raise MathOverflow when b is zero."""
    _require_u64_operand(a)
    if _require_u64_operand(b) == 0:
        raise MathOverflow("div by zero")
    return a // b


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the specific source (signer, program id, etc.)
        unit_symbol: Symbol of the unit the instruction targets (if applicable)
        event_type: Instruction name (e.g., "INITIALIZE_TRACK", "TOKENIZE_TRACK")
        nonce: Submission nonce. Two instructions with identical content but
               different nonces are distinct transactions; resubmitting the
               same nonce is detected as a duplicate.
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None
    nonce: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        if self.nonce:
            parts.append(f"nonce={self.nonce}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change for transaction logging and rollback.

    Stores complete before/after state snapshots. old_state doubles as the
    optimistic-concurrency guard: the ledger rejects the change if the unit's
    current state no longer equals it.

    Attributes:
        unit: Symbol of the unit whose state changed
        old_state: Complete state before the change (dict or None)
        new_state: Complete state after the change (dict)
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """
        Compute fields that differ between old and new state.

        Returns:
            Dict mapping field name to (old_value, new_value) tuples.
        """
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer, an integer in (0, U64_MAX].
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the instruction generating this move.
        metadata: Optional additional information (e.g. a mint Authority).
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.quantity > U64_MAX:
            raise ValueError(f"Move quantity exceeds u64 range: {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _state_key(value: Any) -> Any:
    """Order-independent form of a unit state, whose repr feeds the intent hash."""
    if isinstance(value, dict):
        return tuple(sorted((str(k), _state_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_state_key(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted((_state_key(item) for item in value), key=repr))
    return value


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
    units_to_create: Tuple['Unit', ...] = ()
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Based solely on the semantic content of the transaction (moves,
    state_changes, origin including its nonce, units_to_create), NOT on
    timestamps. Same inputs always produce the same intent_id, which the
    ledger uses to detect duplicate submissions.
    """
    sorted_moves = tuple(sorted(
        moves,
        key=lambda m: (m.quantity, m.unit_symbol, m.source, m.dest, m.contract_id)
    ))

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")
    if origin.nonce:
        content_parts.append(f"nonce:{origin.nonce}")

    for unit in sorted(units_to_create, key=lambda u: u.symbol):
        content_parts.append(f"unit_create:{unit.symbol}|{unit.unit_type}")

    for m in sorted_moves:
        content_parts.append(f"move:{m.quantity}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        content_parts.append(f"state_change:{sc.unit}|{_state_key(sc.old_state)!r}|{_state_key(sc.new_state)!r}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Created by the track operations and submitted to the ledger. Contains
    everything needed to describe what should happen, but no execution
    metadata (exec_id, ledger_name, execution_time).

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
        units_to_create: Units to allocate; allocation fails if the symbol exists
        events: Notification records published when the transaction applies
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    units_to_create: Tuple['Unit', ...] = ()
    events: Tuple[Any, ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.origin, self.units_to_create
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves, no state deltas, and no units to create."""
        return not self.moves and not self.state_changes and not self.units_to_create

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
    events: Optional[Tuple[Any, ...]] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state deltas.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: List of moves to include in the transaction
        state_changes: Optional list of UnitStateChange objects
        origin: Transaction origin (defaults to PROGRAM origin)
        units_to_create: Optional tuple of Unit objects to allocate
        events: Optional tuple of notification records

    Returns:
        A PendingTransaction ready for execution

    Example:
        moves = [Move(1000, "NATIVE", "payer", "artist", "royalty_transfer")]
        old_state = view.get_unit_state(record)
        new_state = {**old_state, "total_royalties_collected": 1000}
        changes = [UnitStateChange(unit=record, old_state=old_state, new_state=new_state)]
        pending = build_transaction(view, moves, changes)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.PROGRAM,
            source_id="program",
        )

    # Deep copy state changes to prevent mutation
    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=units_to_create or (),
        events=tuple(events or ()),
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Created by the ledger when executing a PendingTransaction.

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger (for ordering)
        units_to_create: Units allocated by this transaction
        events: Notification records published by this transaction
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    units_to_create: Tuple['Unit', ...] = ()
    events: Tuple[Any, ...] = ()

    def __post_init__(self):
        if not self.moves and not self.state_changes and not self.units_to_create:
            raise ValueError("Transaction must have moves, state_changes, or units_to_create")

    def __repr__(self) -> str:
        lines = [f"Transaction {self.exec_id} (intent {self.intent_id}, {self.origin})"]
        for unit in self.units_to_create:
            lines.append(f"    + {unit.unit_type} {unit.symbol} ({unit.name})")
        for move in self.moves:
            lines.append(f"    {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}")
        for sc in self.state_changes:
            for name, (old, new) in sorted(sc.changed_fields().items()):
                lines.append(f"    {sc.unit}.{name}: {old!r} → {new!r}")
        for event in self.events:
            lines.append(f"    {event!r}")
        return "\n".join(lines)


# Transfer rules validate moves and raise TransferRuleViolation if invalid.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a mutable state dict to a tuple of (key, value) pairs sorted by key."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a mutable dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit held in the ledger: a currency, a token mint, or a
    data record addressed by its symbol.

    Attributes:
        symbol: Unique identifier (currency code or derived address).
        name: Human-readable name for the unit.
        unit_type: Category of the unit (NATIVE, TRACK_RECORD, TRACK_TOKEN).
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Display precision; balances are always integers.
        transfer_rule: Optional function to validate moves involving this unit.
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: int = 0
    max_balance: int = U64_MAX
    decimal_places: int = 0
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Get the unit's state as a new mutable dictionary."""
        return _thaw_state(self._frozen_state)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def native_currency(symbol: str = NATIVE_SYMBOL, name: str = "Native Currency", decimal_places: int = 9) -> Unit:
    """
    Create the native currency unit moved by the value-transfer capability.

    Balances are integer base units (like lamports) and may not go negative,
    so a transfer from an underfunded payer is rejected by the ledger.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_NATIVE,
        min_balance=0,
        max_balance=U64_MAX,
        decimal_places=decimal_places,
    )
