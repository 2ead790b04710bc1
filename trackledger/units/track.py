"""
track.py - Track Records, Tokenization and Royalty Distribution

This module holds the track lifecycle using the pure function architecture
of the unit modules: typed frozen dataclasses, one adapter that reads the
ledger, pure calculations, and compute_* functions that return a
PendingTransaction without touching ledger state.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - TrackRecord: the full record, addressed by (creator, title)
   - RoyaltySplit: result of splitting one royalty payment

2. PURE CALCULATION FUNCTIONS:
   - validate_track_parameters(): argument ranges
   - calculate_royalty_split(): checked u64 split

3. ADAPTER FUNCTIONS:
   - load_track(): the ONLY place that reads a record from LedgerView
   - to_state_dict(): inverse of load_track, used for state changes

4. COMPUTE FUNCTIONS (view in, PendingTransaction out):
   - compute_initialize_track()
   - compute_tokenize_track()
   - compute_distribute_royalties()

Lifecycle:
    INITIALIZED (is_tokenized=False, token_mint unset)
        -> TOKENIZED (is_tokenized=True, token_mint set; never reverts)
    Royalties may be distributed in either state, any number of times.

Key Formulas:
    token_holders_share = floor(royalty_amount * royalty_percentage / 10000)
    artist_share = royalty_amount - token_holders_share
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from ..core import (
    LedgerView, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    UNIT_TYPE_TRACK_RECORD, UNSET_ADDRESS, DEFAULT_PROGRAM_ID, DEFAULT_ROYALTY_BPS,
    BASIS_POINTS, MAX_TITLE_LEN, MAX_METADATA_URI_LEN, U16_MAX, U64_MAX,
    LedgerError, TrackAlreadyTokenized, UnauthorizedArtist, InvalidTrackParameter,
    checked_add, checked_sub, checked_mul, checked_div,
    build_transaction, _freeze_state,
)
from ..authority import (
    Signer, require_signer, find_track_address, mint_address_for, track_authority,
)
from ..events import RoyaltyDistributed
from .native import compute_transfer_moves
from .track_token import create_track_token_unit, compute_mint_to


EVENT_INITIALIZE_TRACK = "INITIALIZE_TRACK"
EVENT_TOKENIZE_TRACK = "TOKENIZE_TRACK"
EVENT_DISTRIBUTE_ROYALTIES = "DISTRIBUTE_ROYALTIES"


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class TrackRecord:
    """
    Authoritative state of one track.

    creator, title, metadata_uri, total_supply, price_per_token,
    royalty_percentage and salt are fixed at creation. tokens_sold and
    price_per_token are carried for sale logic but no operation uses them.
    """
    address: str
    creator: str
    title: str
    metadata_uri: str
    total_supply: int
    tokens_sold: int
    price_per_token: int
    royalty_percentage: int       # basis points, 0-10000
    token_mint: str               # UNSET_ADDRESS until tokenized
    total_royalties_collected: int
    is_tokenized: bool
    salt: int                     # derivation salt of `address`


@dataclass(frozen=True, slots=True)
class RoyaltySplit:
    """How one royalty payment divides between the token holders and the artist."""
    total_amount: int
    token_holders_share: int
    artist_share: int


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_track(view: LedgerView, address: str) -> TrackRecord:
    """
    Load a track record from ledger state.

    Raises:
        UnitNotRegistered: If nothing lives at address
        LedgerError: If the unit at address is not a track record
    """
    raw = view.get_unit_state(address)
    if raw.get('unit_type') != UNIT_TYPE_TRACK_RECORD:
        raise LedgerError(f"{address} is not a track record")

    return TrackRecord(
        address=address,
        creator=raw['creator'],
        title=raw['title'],
        metadata_uri=raw.get('metadata_uri', ''),
        total_supply=raw.get('total_supply', 0),
        tokens_sold=raw.get('tokens_sold', 0),
        price_per_token=raw.get('price_per_token', 0),
        royalty_percentage=raw.get('royalty_percentage', 0),
        token_mint=raw.get('token_mint', UNSET_ADDRESS),
        total_royalties_collected=raw.get('total_royalties_collected', 0),
        is_tokenized=raw.get('is_tokenized', False),
        salt=raw['salt'],
    )


def to_state_dict(record: TrackRecord) -> Dict[str, Any]:
    """Convert a TrackRecord to the state dict stored on its unit."""
    return {
        'unit_type': UNIT_TYPE_TRACK_RECORD,
        'creator': record.creator,
        'title': record.title,
        'metadata_uri': record.metadata_uri,
        'total_supply': record.total_supply,
        'tokens_sold': record.tokens_sold,
        'price_per_token': record.price_per_token,
        'royalty_percentage': record.royalty_percentage,
        'token_mint': record.token_mint,
        'total_royalties_collected': record.total_royalties_collected,
        'is_tokenized': record.is_tokenized,
        'salt': record.salt,
    }


def create_track_record_unit(address: str, record: TrackRecord) -> Unit:
    """
    Wrap a track record as a ledger unit living at its derived address.

    Nobody holds a balance of a record; min and max balance are both 0.
    """
    return Unit(
        symbol=address,
        name=record.title,
        unit_type=UNIT_TYPE_TRACK_RECORD,
        min_balance=0,
        max_balance=0,
        decimal_places=0,
        transfer_rule=None,
        _frozen_state=_freeze_state(to_state_dict(record)),
    )


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def _require_int(name: str, value: Any, upper: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
        raise InvalidTrackParameter(f"{name} must be an integer in [0, {upper}], got {value!r}")


def validate_track_parameters(
    title: str,
    metadata_uri: str,
    total_supply: int,
    price_per_token: int,
    royalty_percentage: int,
) -> None:
    """
    Check initialize_track arguments.

    Lengths are measured in UTF-8 bytes.

    Raises:
        InvalidTrackParameter: On the first argument out of range
    """
    if not isinstance(title, str) or not title:
        raise InvalidTrackParameter("title cannot be empty")
    if len(title.encode()) > MAX_TITLE_LEN:
        raise InvalidTrackParameter(f"title exceeds {MAX_TITLE_LEN} bytes")
    if not isinstance(metadata_uri, str):
        raise InvalidTrackParameter("metadata_uri must be a string")
    if len(metadata_uri.encode()) > MAX_METADATA_URI_LEN:
        raise InvalidTrackParameter(f"metadata_uri exceeds {MAX_METADATA_URI_LEN} bytes")
    _require_int("total_supply", total_supply, U64_MAX)
    _require_int("price_per_token", price_per_token, U64_MAX)
    _require_int("royalty_percentage", royalty_percentage, U16_MAX)
    if royalty_percentage > BASIS_POINTS:
        raise InvalidTrackParameter(
            f"royalty_percentage must be at most {BASIS_POINTS} basis points, got {royalty_percentage}"
        )


def calculate_royalty_split(royalty_amount: int, royalty_percentage: int) -> RoyaltySplit:
    """
    Split a royalty payment.

    Every step is checked; nothing wraps.

    Raises:
        MathOverflow: If royalty_amount * royalty_percentage exceeds U64_MAX,
                      or any operand is outside the u64 range

    Example:
        >>> calculate_royalty_split(1_000_000, 1000)
        RoyaltySplit(total_amount=1000000, token_holders_share=100000, artist_share=900000)
    """
    token_holders_share = checked_div(checked_mul(royalty_amount, royalty_percentage), BASIS_POINTS)
    artist_share = checked_sub(royalty_amount, token_holders_share)
    return RoyaltySplit(
        total_amount=royalty_amount,
        token_holders_share=token_holders_share,
        artist_share=artist_share,
    )


# ============================================================================
# COMPUTE FUNCTIONS
# ============================================================================

def compute_initialize_track(
    view: LedgerView,
    creator: Signer,
    title: str,
    metadata_uri: str,
    total_supply: int,
    price_per_token: int,
    royalty_percentage: int = DEFAULT_ROYALTY_BPS,
    program_id: str = DEFAULT_PROGRAM_ID,
    nonce: Optional[str] = None,
) -> PendingTransaction:
    """
    Create a new track record at the address derived from (creator, title).

    The record starts untokenized with nothing sold and nothing collected.
    A second record for the same creator and title lands on the same
    address, so the ledger rejects it with DuplicateRecord.

    Raises:
        MissingRequiredSignature: If creator is not a Signer
        InvalidTrackParameter: If any argument is out of range
    """
    creator = require_signer(creator, "creator")
    validate_track_parameters(title, metadata_uri, total_supply, price_per_token, royalty_percentage)

    address, salt = find_track_address(creator.key, title, program_id, reserved=view.list_wallets())
    record = TrackRecord(
        address=address,
        creator=creator.key,
        title=title,
        metadata_uri=metadata_uri,
        total_supply=total_supply,
        tokens_sold=0,
        price_per_token=price_per_token,
        royalty_percentage=royalty_percentage,
        token_mint=UNSET_ADDRESS,
        total_royalties_collected=0,
        is_tokenized=False,
        salt=salt,
    )

    origin = TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=creator.key,
        unit_symbol=address,
        event_type=EVENT_INITIALIZE_TRACK,
        nonce=nonce,
    )
    return build_transaction(
        view, [], origin=origin,
        units_to_create=(create_track_record_unit(address, record),),
    )


def compute_tokenize_track(
    view: LedgerView,
    address: str,
    creator: Signer,
    program_id: str = DEFAULT_PROGRAM_ID,
    nonce: Optional[str] = None,
) -> PendingTransaction:
    """
    Tokenize a track: create its mint and mint total_supply to the creator.

    The mint move carries the record's mint-scoped Authority, rebuilt from
    (creator, title, salt), which the mint's transfer rule verifies.

    Raises:
        MissingRequiredSignature: If creator is not a Signer
        TrackAlreadyTokenized: If the record is already tokenized
        UnauthorizedArtist: If creator is not the record's creator
    """
    creator = require_signer(creator, "creator")
    old_state = view.get_unit_state(address)
    record = load_track(view, address)

    if record.is_tokenized:
        raise TrackAlreadyTokenized()
    if creator.key != record.creator:
        raise UnauthorizedArtist()

    mint = mint_address_for(address, program_id)
    authority = track_authority(record.creator, record.title, record.salt, program_id)
    token_unit = create_track_token_unit(mint, address, record.total_supply, record.title)
    moves = compute_mint_to(mint, creator.key, record.total_supply, authority)

    tokenized = replace(record, token_mint=mint, is_tokenized=True)
    state_changes = [UnitStateChange(unit=address, old_state=old_state, new_state=to_state_dict(tokenized))]

    origin = TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=creator.key,
        unit_symbol=address,
        event_type=EVENT_TOKENIZE_TRACK,
        nonce=nonce,
    )
    return build_transaction(view, moves, state_changes, origin=origin, units_to_create=(token_unit,))


def compute_distribute_royalties(
    view: LedgerView,
    address: str,
    creator: Signer,
    payer: Signer,
    royalty_amount: int,
    nonce: Optional[str] = None,
) -> PendingTransaction:
    """
    Split a royalty payment, pay the artist share and record the payment.

    token_holders_share is not paid out; it is kept in the emitted
    RoyaltyDistributed event. The record does not need to be tokenized.

    Raises:
        MissingRequiredSignature: If creator or payer is not a Signer
        UnauthorizedArtist: If creator is not the record's creator
        InvalidTrackParameter: If royalty_amount is not a u64
        MathOverflow: If the split or the running total overflows
    """
    creator = require_signer(creator, "creator")
    payer = require_signer(payer, "payer")
    old_state = view.get_unit_state(address)
    record = load_track(view, address)

    if creator.key != record.creator:
        raise UnauthorizedArtist()
    _require_int("royalty_amount", royalty_amount, U64_MAX)

    split = calculate_royalty_split(royalty_amount, record.royalty_percentage)
    collected = checked_add(record.total_royalties_collected, royalty_amount)

    moves = compute_transfer_moves(payer, record.creator, split.artist_share, contract_id="royalty_transfer")
    updated = replace(record, total_royalties_collected=collected)
    state_changes = [UnitStateChange(unit=address, old_state=old_state, new_state=to_state_dict(updated))]
    event = RoyaltyDistributed(
        track=address,
        total_amount=split.total_amount,
        token_holders_share=split.token_holders_share,
        artist_share=split.artist_share,
    )

    origin = TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=payer.key,
        unit_symbol=address,
        event_type=EVENT_DISTRIBUTE_ROYALTIES,
        nonce=nonce,
    )
    return build_transaction(view, moves, state_changes, origin=origin, events=(event,))


def transact(
    view: LedgerView,
    address: str,
    event_type: str,
    **kwargs
) -> PendingTransaction:
    """
    Route a track lifecycle event to its compute function.

    Args:
        view: Read-only ledger access
        address: Track record address
        event_type: Type of event:
            - TOKENIZE_TRACK: requires 'creator'
            - DISTRIBUTE_ROYALTIES: requires 'creator', 'payer', 'royalty_amount'
        **kwargs: Event-specific parameters; 'program_id' and 'nonce' are optional

    Example:
        pending = transact(view, address, "DISTRIBUTE_ROYALTIES",
                           creator=Signer("artist"), payer=Signer("label"),
                           royalty_amount=1_000_000)
    """
    nonce = kwargs.get('nonce')

    if event_type == EVENT_TOKENIZE_TRACK:
        creator = kwargs.get('creator')
        if creator is None:
            raise ValueError(f"Missing 'creator' parameter for TOKENIZE_TRACK event on {address}")
        program_id = kwargs.get('program_id', DEFAULT_PROGRAM_ID)
        return compute_tokenize_track(view, address, creator, program_id, nonce=nonce)

    elif event_type == EVENT_DISTRIBUTE_ROYALTIES:
        for name in ('creator', 'payer', 'royalty_amount'):
            if kwargs.get(name) is None:
                raise ValueError(f"Missing '{name}' parameter for DISTRIBUTE_ROYALTIES event on {address}")
        return compute_distribute_royalties(
            view, address, kwargs['creator'], kwargs['payer'], kwargs['royalty_amount'], nonce=nonce,
        )

    else:
        raise ValueError(f"Unknown event type '{event_type}' for track {address}")


# ============================================================================
# QUERIES
# ============================================================================

def get_track(view: LedgerView, address: str) -> TrackRecord:
    """Read a track record."""
    return load_track(view, address)


def list_tracks(view: LedgerView, creator: Optional[str] = None) -> List[TrackRecord]:
    """All track records, optionally only those of one creator, ordered by address."""
    tracks = []
    for symbol in view.list_units():
        if view.get_unit(symbol).unit_type != UNIT_TYPE_TRACK_RECORD:
            continue
        record = load_track(view, symbol)
        if creator is None or record.creator == creator:
            tracks.append(record)
    return tracks
