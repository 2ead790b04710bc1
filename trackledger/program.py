"""
program.py - Track Program Instruction Surface

TrackProgram binds the pure track operations to one Ledger. Each instruction
holds the ledger lock while it reads state, builds its PendingTransaction and
executes it, so no other instruction can change the record in between. A
rejected transaction is re-raised as the ledger's typed error.

Example:
    ledger = Ledger("main", verbose=False)
    ledger.register_unit(native_currency())
    ledger.register_wallet("artist")
    ledger.register_wallet("label")

    program = TrackProgram(ledger)
    artist = Signer("artist")
    track = program.initialize_track(artist, "First Light", "ipfs://meta", 1_000_000, 10, 1000)
    program.tokenize_track(track, artist)
    event = program.distribute_royalties(track, artist, Signer("label"), 1_000_000)
"""

from __future__ import annotations
from typing import Dict, List, Optional

from .core import (
    PendingTransaction, ExecuteResult,
    DEFAULT_PROGRAM_ID, DEFAULT_ROYALTY_BPS,
)
from .authority import Signer
from .authority import find_track_address as _find_track_address
from .events import RoyaltyDistributed
from .ledger import Ledger
from .units.track import (
    TrackRecord,
    compute_initialize_track, compute_tokenize_track, compute_distribute_royalties,
    get_track as _get_track, list_tracks as _list_tracks,
)
from .units.track_token import get_token_holders as _get_token_holders


class TrackProgram:
    """
    Instruction entry points for track records on a Ledger.

    Args:
        ledger: The ledger that stores records, mints and native balances
        program_id: Identity the record addresses are derived under
        verbose: Print instruction results (default: the ledger's verbose flag)
    """

    def __init__(self, ledger: Ledger, program_id: str = DEFAULT_PROGRAM_ID, verbose: Optional[bool] = None):
        self.ledger = ledger
        self.program_id = program_id
        self.verbose = ledger.verbose if verbose is None else verbose

    def _nonce(self) -> str:
        return f"{self.ledger.name}:{self.ledger.next_sequence}"

    def _submit(self, pending: PendingTransaction) -> ExecuteResult:
        result = self.ledger.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise self.ledger.last_rejection
        return result

    # ========================================================================
    # INSTRUCTIONS
    # ========================================================================

    def initialize_track(
        self,
        creator: Signer,
        title: str,
        metadata_uri: str,
        total_supply: int,
        price_per_token: int,
        royalty_percentage: int = DEFAULT_ROYALTY_BPS,
    ) -> str:
        """
        Create a track record and return its address.

        Raises:
            DuplicateRecord: If the creator already has a track with this title
            InvalidTrackParameter: If an argument is out of range
        """
        with self.ledger.lock:
            pending = compute_initialize_track(
                self.ledger, creator, title, metadata_uri, total_supply,
                price_per_token, royalty_percentage,
                program_id=self.program_id, nonce=self._nonce(),
            )
            self._submit(pending)
        address = pending.units_to_create[0].symbol
        if self.verbose:
            print(f"🎵 Track initialized: {title!r} by {creator.key} at {address}")
        return address

    def tokenize_track(self, address: str, creator: Signer) -> None:
        """
        Mint the track's total supply to its creator.

        Raises:
            TrackAlreadyTokenized: On the second call for the same record
            UnauthorizedArtist: If creator did not create the record
        """
        with self.ledger.lock:
            pending = compute_tokenize_track(
                self.ledger, address, creator, self.program_id, nonce=self._nonce(),
            )
            self._submit(pending)
        if self.verbose:
            record = self.get_track(address)
            print(f"🪙 Track tokenized: {record.title!r}, {record.total_supply} tokens minted to {record.creator}")

    def distribute_royalties(
        self,
        address: str,
        creator: Signer,
        payer: Signer,
        royalty_amount: int,
    ) -> RoyaltyDistributed:
        """
        Pay the artist share of a royalty payment and return the emitted event.

        Raises:
            UnauthorizedArtist: If creator did not create the record
            MathOverflow: If the split or the running total overflows
            InsufficientFunds: If the payer cannot cover the artist share
        """
        with self.ledger.lock:
            pending = compute_distribute_royalties(
                self.ledger, address, creator, payer, royalty_amount, nonce=self._nonce(),
            )
            self._submit(pending)
        event = pending.events[0]
        if self.verbose:
            print(f"💰 Royalties distributed: {event}")
        return event

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_track(self, address: str) -> TrackRecord:
        return _get_track(self.ledger, address)

    def find_track_address(self, creator: str, title: str) -> str:
        """Address a track by this creator and title has (or would have)."""
        address, _ = _find_track_address(creator, title, self.program_id, reserved=self.ledger.list_wallets())
        return address

    def list_tracks(self, creator: Optional[str] = None) -> List[TrackRecord]:
        return _list_tracks(self.ledger, creator)

    def get_token_holders(self, address: str) -> Dict[str, int]:
        """Holders of a tokenized track's mint; empty before tokenization."""
        record = self.get_track(address)
        if not record.is_tokenized:
            return {}
        return _get_token_holders(self.ledger, record.token_mint)
