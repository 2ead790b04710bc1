"""
Units module - Track records, their token mints and native value transfer.

This module provides the unit factories and operations for:
- Native value transfers between signed-off payers and destinations
- Track token mints whose authority is the owning track record
- Track records: initialization, tokenization and royalty distribution

All unit factories and related functions are re-exported here for convenience.
"""

# Native value transfer
from .native import (
    compute_transfer_moves,
)

# Track token mints
from .track_token import (
    mint_authority_rule,
    create_track_token_unit,
    compute_mint_to,
    compute_freeze_account,
    get_token_holders,
)

# Track records
from .track import (
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
    EVENT_INITIALIZE_TRACK,
    EVENT_TOKENIZE_TRACK,
    EVENT_DISTRIBUTE_ROYALTIES,
)

__all__ = [
    # Native
    'compute_transfer_moves',
    # Track tokens
    'mint_authority_rule',
    'create_track_token_unit',
    'compute_mint_to',
    'compute_freeze_account',
    'get_token_holders',
    # Track records
    'TrackRecord',
    'RoyaltySplit',
    'load_track',
    'to_state_dict',
    'create_track_record_unit',
    'validate_track_parameters',
    'calculate_royalty_split',
    'compute_initialize_track',
    'compute_tokenize_track',
    'compute_distribute_royalties',
    'get_track',
    'list_tracks',
    'track_transact',
    'EVENT_INITIALIZE_TRACK',
    'EVENT_TOKENIZE_TRACK',
    'EVENT_DISTRIBUTE_ROYALTIES',
]
