"""
test_track_lifecycle.py - End-to-end track lifecycle on a Ledger

Covers:
- Initialization read-back
- Tokenization: one-shot, creator-only, mint configuration and holders
- Royalty distribution: split, payout, running total, overflow, authorization
- Rejections leave the record byte-for-byte unchanged
- Time travel over a track's history
"""

import pytest
from datetime import datetime

from trackledger import (
    TrackProgram, Signer,
    TrackAlreadyTokenized, UnauthorizedArtist, MathOverflow, InsufficientFunds,
    NATIVE_SYMBOL, SYSTEM_WALLET, UNSET_ADDRESS, U64_MAX,
    UNIT_TYPE_TRACK_TOKEN, mint_address_for,
)
from tests.conftest import LABEL_FUNDS, snapshot


class TestInitialize:

    def test_fresh_record(self, program, track):
        record = program.get_track(track)
        assert record.is_tokenized is False
        assert record.tokens_sold == 0
        assert record.total_royalties_collected == 0
        assert record.token_mint == UNSET_ADDRESS
        assert record.creator == "artist"
        assert record.title == "First Light"
        assert record.metadata_uri == "ipfs://meta/first-light"
        assert record.total_supply == 1_000_000
        assert record.price_per_token == 10
        assert record.royalty_percentage == 1000

    def test_address_rederives_from_salt(self, program, track):
        from trackledger import derive_address, track_seeds
        record = program.get_track(track)
        assert derive_address(track_seeds(record.creator, record.title), record.salt) == track


class TestTokenize:

    def test_tokenize(self, program, artist, track):
        program.tokenize_track(track, artist)
        record = program.get_track(track)
        assert record.is_tokenized is True
        assert record.token_mint == mint_address_for(track)

        ledger = program.ledger
        mint = ledger.get_unit(record.token_mint)
        assert mint.unit_type == UNIT_TYPE_TRACK_TOKEN
        assert mint.decimal_places == 0
        assert ledger.get_unit_state(record.token_mint)['mint_authority'] == track
        assert ledger.get_balance("artist", record.token_mint) == 1_000_000
        assert ledger.get_balance(SYSTEM_WALLET, record.token_mint) == -1_000_000

    def test_second_tokenize_fails(self, program, artist, tokenized_track):
        mint = program.get_track(tokenized_track).token_mint
        before = snapshot(program.ledger)
        with pytest.raises(TrackAlreadyTokenized):
            program.tokenize_track(tokenized_track, artist)
        assert program.get_track(tokenized_track).token_mint == mint
        assert snapshot(program.ledger) == before

    def test_non_creator_cannot_tokenize(self, program, track):
        before = snapshot(program.ledger)
        with pytest.raises(UnauthorizedArtist):
            program.tokenize_track(track, Signer("fan"))
        assert snapshot(program.ledger) == before
        assert program.get_track(track).is_tokenized is False

    def test_zero_supply(self, program, artist):
        track = program.initialize_track(artist, "Silence", "u", 0, 0, 0)
        program.tokenize_track(track, artist)
        record = program.get_track(track)
        assert record.is_tokenized
        assert program.get_token_holders(track) == {}

    def test_holders_can_trade_tokens(self, program, artist, tokenized_track):
        from trackledger import Move, ExecuteResult, build_transaction
        ledger = program.ledger
        mint = program.get_track(tokenized_track).token_mint
        tx = build_transaction(ledger, [Move(250_000, mint, "artist", "fan", "sale")])
        assert ledger.execute(tx) == ExecuteResult.APPLIED
        assert program.get_token_holders(tokenized_track) == {"artist": 750_000, "fan": 250_000}


class TestDistributeRoyalties:

    def test_ten_percent_of_one_million(self, program, artist, label, tokenized_track):
        event = program.distribute_royalties(tokenized_track, artist, label, 1_000_000)
        assert event.token_holders_share == 100_000
        assert event.artist_share == 900_000
        assert program.get_track(tokenized_track).total_royalties_collected == 1_000_000
        assert program.ledger.get_balance("artist", NATIVE_SYMBOL) == 900_000
        assert program.ledger.get_balance("label", NATIVE_SYMBOL) == LABEL_FUNDS - 900_000
        assert program.ledger.event_sink.for_track(tokenized_track) == [event]

    def test_overflow_leaves_record_unchanged(self, program, artist, label):
        track = program.initialize_track(artist, "Max", "u", 1, 1, 10_000)
        before = snapshot(program.ledger)
        with pytest.raises(MathOverflow):
            program.distribute_royalties(track, artist, label, U64_MAX)
        assert program.get_track(track).total_royalties_collected == 0
        assert snapshot(program.ledger) == before

    @pytest.mark.parametrize("amount", [0, 1, 1_000_000, U64_MAX])
    def test_wrong_creator(self, program, label, track, amount):
        before = snapshot(program.ledger)
        with pytest.raises(UnauthorizedArtist):
            program.distribute_royalties(track, Signer("fan"), label, amount)
        assert snapshot(program.ledger) == before

    def test_distributions_accumulate(self, program, artist, label, track):
        program.distribute_royalties(track, artist, label, 500_000)
        program.distribute_royalties(track, artist, label, 500_000)
        assert program.get_track(track).total_royalties_collected == 1_000_000
        assert program.ledger.event_sink.total_distributed(track) == 1_000_000

    def test_untokenized_track_can_receive_royalties(self, program, artist, label, track):
        program.distribute_royalties(track, artist, label, 10)
        record = program.get_track(track)
        assert record.total_royalties_collected == 10
        assert record.is_tokenized is False

    def test_failed_transfer_rolls_back(self, program, artist, track):
        program.ledger.register_wallet("broke")
        before = snapshot(program.ledger)
        with pytest.raises(InsufficientFunds):
            program.distribute_royalties(track, artist, Signer("broke"), 1_000)
        assert snapshot(program.ledger) == before

    def test_running_total_overflow(self, program, artist):
        track = program.initialize_track(artist, "Hit", "u", 1, 1, 0)
        # The artist paying itself moves no value, so the payer needs no funds
        program.distribute_royalties(track, artist, artist, U64_MAX)
        assert program.get_track(track).total_royalties_collected == U64_MAX
        before = snapshot(program.ledger)
        with pytest.raises(MathOverflow):
            program.distribute_royalties(track, artist, artist, 1)
        assert snapshot(program.ledger) == before


class TestHistory:

    def test_clone_at_before_tokenization(self, program, artist, label, track):
        ledger = program.ledger
        ledger.advance_time(datetime(2025, 6, 1))
        program.tokenize_track(track, artist)
        program.distribute_royalties(track, artist, label, 1_000_000)

        past = ledger.clone_at(datetime(2025, 3, 1))
        past_program = TrackProgram(past)
        record = past_program.get_track(track)
        assert record.is_tokenized is False
        assert record.total_royalties_collected == 0
        assert mint_address_for(track) not in past.units
        assert past.get_balance("artist", NATIVE_SYMBOL) == 0
        assert len(past.event_sink) == 0

        past_program.tokenize_track(track, artist)
        assert past_program.get_track(track).is_tokenized
