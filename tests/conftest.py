"""
conftest.py - Shared pytest fixtures for trackledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, native currency, funded payer)
- Track program setups (initialized track, tokenized track)
- FakeView over a single track record
- Comparison utilities
"""

import pytest
from datetime import datetime
from typing import Any, Dict

from trackledger import (
    Ledger, TrackProgram, Signer, TrackRecord,
    native_currency, find_track_address, to_state_dict,
    NATIVE_SYMBOL, UNSET_ADDRESS,
)

from tests.fake_view import FakeView


LABEL_FUNDS = 10_000_000_000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_record(creator: str = "artist", title: str = "First Light", **overrides: Any) -> TrackRecord:
    """Build a TrackRecord at its derived address, with overridable fields."""
    address, salt = find_track_address(creator, title)
    fields: Dict[str, Any] = dict(
        address=address,
        creator=creator,
        title=title,
        metadata_uri="ipfs://meta/first-light",
        total_supply=1_000_000,
        tokens_sold=0,
        price_per_token=10,
        royalty_percentage=1000,
        token_mint=UNSET_ADDRESS,
        total_royalties_collected=0,
        is_tokenized=False,
        salt=salt,
    )
    fields.update(overrides)
    return TrackRecord(**fields)


def snapshot(ledger: Ledger) -> Dict[str, Any]:
    """Capture everything a rejected transaction must leave untouched."""
    return {
        "balances": {w: dict(b) for w, b in ledger.balances.items()},
        "states": {sym: ledger.get_unit_state(sym) for sym in ledger.units},
        "units": sorted(ledger.units),
        "log_len": len(ledger.transaction_log),
        "events": len(ledger.event_sink),
    }


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def basic_ledger():
    """Ledger with the native currency and artist, label and fan wallets."""
    ledger = Ledger("test", datetime(2025, 1, 1), verbose=False, test_mode=True)
    ledger.register_unit(native_currency())
    ledger.register_wallet("artist")
    ledger.register_wallet("label")
    ledger.register_wallet("fan")
    return ledger


@pytest.fixture
def funded_ledger(basic_ledger):
    """Basic ledger with the label holding LABEL_FUNDS of native value."""
    basic_ledger.set_balance("label", NATIVE_SYMBOL, LABEL_FUNDS)
    return basic_ledger


# =============================================================================
# PROGRAM FIXTURES
# =============================================================================

@pytest.fixture
def artist():
    return Signer("artist")


@pytest.fixture
def label():
    return Signer("label")


@pytest.fixture
def program(funded_ledger):
    """TrackProgram on the funded ledger."""
    return TrackProgram(funded_ledger)


@pytest.fixture
def track(program, artist):
    """Address of an initialized, untokenized track (10% royalty, 1M supply)."""
    return program.initialize_track(artist, "First Light", "ipfs://meta/first-light", 1_000_000, 10, 1000)


@pytest.fixture
def tokenized_track(program, artist, track):
    """Address of a tokenized track."""
    program.tokenize_track(track, artist)
    return track


# =============================================================================
# FAKE VIEW FIXTURES
# =============================================================================

@pytest.fixture
def track_view():
    """FakeView holding one untokenized track record and a funded label."""
    record = make_record()
    return FakeView(
        balances={
            "artist": {},
            "label": {NATIVE_SYMBOL: LABEL_FUNDS},
        },
        states={record.address: to_state_dict(record)},
        time=datetime(2025, 1, 1),
    )
