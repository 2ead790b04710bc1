"""
track_token.py - Ownership Token Mint for a Track

A track token is a fungible unit with no decimal places whose mint and
freeze authority is the track record's derived address. Issuance is a move
out of SYSTEM_WALLET; the transfer rule lets it through only when the move
carries an Authority that re-derives to the mint authority.

State format:
    unit_type: "TRACK_TOKEN"
    track: address of the owning track record
    mint_authority: address allowed to mint
    freeze_authority: address allowed to freeze holder accounts
    supply_cap: maximum quantity that may ever be minted
    decimals: always 0
    frozen_wallets: tuple of wallets barred from transferring
"""

from __future__ import annotations
from typing import Dict, List

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    SYSTEM_WALLET, UNIT_TYPE_TRACK_TOKEN, U64_MAX,
    TransferRuleViolation, InvalidTrackParameter,
    build_transaction, _freeze_state,
)
from ..authority import Authority, ACTION_MINT, ACTION_FREEZE


def mint_authority_rule(view: LedgerView, move: Move) -> None:
    """
    Transfer rule for track tokens.

    - Mints (moves out of SYSTEM_WALLET) need a verified mint Authority in
      move.metadata['authority'] and may not push issuance past supply_cap.
    - Burns (moves into SYSTEM_WALLET) are not supported.
    - Transfers between holders are allowed unless either side is frozen.

    Raises:
        TransferRuleViolation: If any of the above is violated
    """
    state = view.get_unit_state(move.unit_symbol)

    if move.dest == SYSTEM_WALLET:
        raise TransferRuleViolation(f"Track token {move.unit_symbol}: burning is not supported")

    if move.source == SYSTEM_WALLET:
        authority = (move.metadata or {}).get('authority')
        if not isinstance(authority, Authority):
            raise TransferRuleViolation(f"Track token {move.unit_symbol}: mint requires an authority")
        if not authority.verify(state.get('mint_authority'), ACTION_MINT):
            raise TransferRuleViolation(f"Track token {move.unit_symbol}: invalid mint authority")

        minted = -view.get_balance(SYSTEM_WALLET, move.unit_symbol)
        supply_cap = state.get('supply_cap', 0)
        if minted + move.quantity > supply_cap:
            raise TransferRuleViolation(
                f"Track token {move.unit_symbol}: minting {move.quantity} exceeds supply cap "
                f"({minted} of {supply_cap} already minted)"
            )
        return

    frozen = set(state.get('frozen_wallets', ()))
    if move.source in frozen:
        raise TransferRuleViolation(f"Track token {move.unit_symbol}: {move.source} is frozen")
    if move.dest in frozen:
        raise TransferRuleViolation(f"Track token {move.unit_symbol}: {move.dest} is frozen")


def create_track_token_unit(
    mint_address: str,
    record_address: str,
    supply_cap: int,
    title: str,
) -> Unit:
    """
    Create the token mint for a track record.

    Args:
        mint_address: Derived address of the mint (becomes the unit symbol)
        record_address: Address of the track record; both mint and freeze authority
        supply_cap: Maximum quantity ever mintable (the record's total_supply)
        title: Track title, used for the display name
    """
    if isinstance(supply_cap, bool) or not isinstance(supply_cap, int) or not 0 <= supply_cap <= U64_MAX:
        raise InvalidTrackParameter(f"supply_cap must be in [0, {U64_MAX}], got {supply_cap!r}")

    state = {
        'unit_type': UNIT_TYPE_TRACK_TOKEN,
        'track': record_address,
        'mint_authority': record_address,
        'freeze_authority': record_address,
        'supply_cap': supply_cap,
        'decimals': 0,
        'frozen_wallets': (),
    }
    return Unit(
        symbol=mint_address,
        name=f"{title} Token",
        unit_type=UNIT_TYPE_TRACK_TOKEN,
        min_balance=0,
        max_balance=U64_MAX,
        decimal_places=0,
        transfer_rule=mint_authority_rule,
        _frozen_state=_freeze_state(state),
    )


def compute_mint_to(mint: str, dest: str, quantity: int, authority: Authority) -> List[Move]:
    """
    Build the move that mints `quantity` tokens of `mint` to `dest`.

    Minting nothing returns []. The authority is checked by the mint's
    transfer rule when the ledger validates the transaction.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 0 <= quantity <= U64_MAX:
        raise InvalidTrackParameter(f"mint quantity must be in [0, {U64_MAX}], got {quantity!r}")
    if quantity == 0:
        return []
    return [Move(
        quantity=quantity,
        unit_symbol=mint,
        source=SYSTEM_WALLET,
        dest=dest,
        contract_id=f"mint_to_{mint[:16]}",
        metadata={'authority': authority},
    )]


def compute_freeze_account(
    view: LedgerView,
    mint: str,
    wallet: str,
    authority: Authority,
) -> PendingTransaction:
    """
    Freeze a holder account of a track token.

    Raises:
        TransferRuleViolation: If authority does not verify as the freeze authority
        ValueError: If the wallet is already frozen
    """
    state = view.get_unit_state(mint)
    if not isinstance(authority, Authority) or not authority.verify(state.get('freeze_authority'), ACTION_FREEZE):
        raise TransferRuleViolation(f"Track token {mint}: invalid freeze authority")

    frozen = tuple(state.get('frozen_wallets', ()))
    if wallet in frozen:
        raise ValueError(f"{wallet} is already frozen for {mint}")

    new_state = {**state, 'frozen_wallets': tuple(sorted(frozen + (wallet,)))}
    return build_transaction(view, [], [UnitStateChange(unit=mint, old_state=state, new_state=new_state)])


def get_token_holders(view: LedgerView, mint: str) -> Dict[str, int]:
    """Return {wallet: quantity} for every holder of a track token."""
    return {
        wallet: qty
        for wallet, qty in view.get_positions(mint).items()
        if wallet != SYSTEM_WALLET and qty > 0
    }
