"""
native.py - Native Value Transfer

Moves native currency from a signed-off payer to a destination. The ledger
enforces the rest: the payer wallet must be registered, and the native unit's
min_balance of 0 rejects any transfer the payer cannot cover.
"""

from __future__ import annotations
from typing import List

from ..core import Move, NATIVE_SYMBOL, U64_MAX, InvalidTrackParameter
from ..authority import Signer, require_signer


def compute_transfer_moves(
    payer: Signer,
    dest: str,
    amount: int,
    unit_symbol: str = NATIVE_SYMBOL,
    contract_id: str = "native_transfer",
) -> List[Move]:
    """
    Build the moves that transfer `amount` of native value from payer to dest.

    A zero amount, or a payer paying itself, needs no move and returns [].

    Raises:
        MissingRequiredSignature: If payer is not a Signer
        InvalidTrackParameter: If amount is not an integer in [0, U64_MAX]
    """
    payer = require_signer(payer, "payer")
    if isinstance(amount, bool) or not isinstance(amount, int) or not 0 <= amount <= U64_MAX:
        raise InvalidTrackParameter(f"transfer amount must be in [0, {U64_MAX}], got {amount!r}")

    if amount == 0 or payer.key == dest:
        return []

    return [Move(
        quantity=amount,
        unit_symbol=unit_symbol,
        source=payer.key,
        dest=dest,
        contract_id=contract_id,
    )]
