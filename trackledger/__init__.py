"""
trackledger - Tokenized Track Ownership and Royalty Distribution

Track records, their ownership token mints and native-value royalty payouts,
held in an in-memory ledger that applies every instruction atomically.

Usage:
    from trackledger import (
        Ledger, TrackProgram, Signer, Move, SYSTEM_WALLET,
        build_transaction, native_currency,
    )

    ledger = Ledger("main")
    ledger.register_unit(native_currency())
    ledger.register_wallet("artist")
    ledger.register_wallet("label")

    # Fund the payer via SYSTEM_WALLET (proper issuance)
    funding = build_transaction(ledger, [
        Move(5_000_000, "NATIVE", SYSTEM_WALLET, "label", "initial_balance")
    ])
    ledger.execute(funding)

    program = TrackProgram(ledger)
    artist = Signer("artist")
    track = program.initialize_track(artist, "First Light", "ipfs://meta", 1_000_000, 10, 1000)
    program.tokenize_track(track, artist)
    event = program.distribute_royalties(track, artist, Signer("label"), 1_000_000)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    InsufficientFunds,
    BalanceConstraintViolation,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    DuplicateRecord,
    StaleUnitState,
    MissingRequiredSignature,
    TrackError,
    TrackAlreadyTokenized,
    TrackNotTokenized,
    UnauthorizedArtist,
    InsufficientTokenSupply,
    MathOverflow,
    InvalidTrackParameter,
    checked_add,
    checked_sub,
    checked_mul,
    checked_div,
    native_currency,
    SYSTEM_WALLET,
    NATIVE_SYMBOL,
    UNIT_TYPE_NATIVE,
    UNIT_TYPE_TRACK_RECORD,
    UNIT_TYPE_TRACK_TOKEN,
    U16_MAX,
    U64_MAX,
    BASIS_POINTS,
    DEFAULT_ROYALTY_BPS,
    MAX_TITLE_LEN,
    MAX_METADATA_URI_LEN,
    UNSET_ADDRESS,
    DEFAULT_PROGRAM_ID,
)

# Ledger
from .ledger import Ledger

# Addresses and authority
from .authority import (
    Signer,
    Authority,
    require_signer,
    derive_address,
    find_program_address,
    find_track_address,
    mint_address_for,
    track_seeds,
    track_authority,
    build_authority,
    ACTION_MINT,
    ACTION_FREEZE,
)

# Events
from .events import (
    RoyaltyDistributed,
    EventSink,
    EventLog,
)

# Units
from .units.native import compute_transfer_moves
from .units.track_token import (
    mint_authority_rule,
    create_track_token_unit,
    compute_mint_to,
    compute_freeze_account,
    get_token_holders,
)
from .units.track import (
    TrackRecord,
    RoyaltySplit,
    load_track,
    to_state_dict,
    create_track_record_unit,
    validate_track_parameters,
    calculate_royalty_split,
    compute_initialize_track,
    compute_tokenize_track,
    compute_distribute_royalties,
    get_track,
    list_tracks,
    transact as track_transact,
)

# Program
from .program import TrackProgram

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin', 'OriginType',
    'build_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult',
    'LedgerError', 'InsufficientFunds', 'BalanceConstraintViolation',
    'TransferRuleViolation', 'UnitNotRegistered', 'WalletNotRegistered',
    'DuplicateRecord', 'StaleUnitState', 'MissingRequiredSignature',
    'TrackError', 'TrackAlreadyTokenized', 'TrackNotTokenized', 'UnauthorizedArtist',
    'InsufficientTokenSupply', 'MathOverflow', 'InvalidTrackParameter',
    'checked_add', 'checked_sub', 'checked_mul', 'checked_div',
    'native_currency',
    'SYSTEM_WALLET', 'NATIVE_SYMBOL',
    'UNIT_TYPE_NATIVE', 'UNIT_TYPE_TRACK_RECORD', 'UNIT_TYPE_TRACK_TOKEN',
    'U16_MAX', 'U64_MAX', 'BASIS_POINTS', 'DEFAULT_ROYALTY_BPS',
    'MAX_TITLE_LEN', 'MAX_METADATA_URI_LEN', 'UNSET_ADDRESS', 'DEFAULT_PROGRAM_ID',
    # Ledger
    'Ledger',
    # Authority
    'Signer', 'Authority', 'require_signer', 'derive_address', 'find_program_address',
    'find_track_address', 'mint_address_for', 'track_seeds', 'track_authority',
    'build_authority', 'ACTION_MINT', 'ACTION_FREEZE',
    # Events
    'RoyaltyDistributed', 'EventSink', 'EventLog',
    # Native
    'compute_transfer_moves',
    # Track tokens
    'mint_authority_rule', 'create_track_token_unit', 'compute_mint_to',
    'compute_freeze_account', 'get_token_holders',
    # Track records
    'TrackRecord', 'RoyaltySplit', 'load_track', 'to_state_dict', 'create_track_record_unit',
    'validate_track_parameters', 'calculate_royalty_split',
    'compute_initialize_track', 'compute_tokenize_track', 'compute_distribute_royalties',
    'get_track', 'list_tracks', 'track_transact',
    # Program
    'TrackProgram',
]

__version__ = '1.0.0'
