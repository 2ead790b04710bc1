"""
authority.py - Deterministic Addresses and Program Signing Authority

A track record is addressed by a hash of (creator, title) plus a one-byte
derivation salt. Nobody holds a private key for that address. Instead, any
component that knows the derivation inputs can build an Authority for it,
and a transfer rule that trusts the address can re-derive it to check the
proof. The Authority is scoped: the track record's authority only covers
minting its own token.

Address format:
    sha256(len(seed_1) || seed_1 || ... || salt || program_id || DOMAIN_TAG), hex

Seeds are length-prefixed so that ("ab", "c") and ("a", "bc") never collide.
"""

from __future__ import annotations
from dataclasses import dataclass
import hashlib
from typing import Collection, FrozenSet, Optional, Tuple

from .core import (
    DEFAULT_PROGRAM_ID, U8_MAX,
    LedgerError, MissingRequiredSignature,
)


TRACK_SEED_PREFIX = b"track"
MINT_SEED_PREFIX = b"mint"
DOMAIN_TAG = b"ProgramDerivedAddress"

# Actions a track record's authority may sign for
ACTION_MINT = "mint"
ACTION_FREEZE = "freeze"


@dataclass(frozen=True, slots=True)
class Signer:
    """
    Proof that an identity signed the submitted instruction.

    Wallet and key management are external; holding a Signer is the
    signature check.
    """
    key: str

    def __post_init__(self):
        if not isinstance(self.key, str) or not self.key.strip():
            raise ValueError("Signer key cannot be empty")


def require_signer(signer, role: str) -> Signer:
    """Return signer if it is a Signer, else raise MissingRequiredSignature."""
    if not isinstance(signer, Signer):
        raise MissingRequiredSignature(f"{role} signature is required")
    return signer


def derive_address(seeds: Tuple[bytes, ...], salt: int, program_id: str = DEFAULT_PROGRAM_ID) -> str:
    """
    Derive the address for a set of seeds and a salt.

    Raises:
        ValueError: If salt is not a single byte
    """
    if isinstance(salt, bool) or not isinstance(salt, int) or not 0 <= salt <= U8_MAX:
        raise ValueError(f"salt must be in [0, {U8_MAX}], got {salt!r}")
    h = hashlib.sha256()
    for seed in seeds:
        h.update(len(seed).to_bytes(4, "big"))
        h.update(seed)
    h.update(bytes([salt]))
    h.update(program_id.encode())
    h.update(DOMAIN_TAG)
    return h.hexdigest()


def find_program_address(
    seeds: Tuple[bytes, ...],
    program_id: str = DEFAULT_PROGRAM_ID,
    reserved: Collection[str] = (),
) -> Tuple[str, int]:
    """
    Find the canonical (address, salt) pair for a set of seeds.

    Salts are tried from 255 downward; the first address that does not
    collide with a key-holding identity in `reserved` wins.

    Raises:
        LedgerError: If every salt collides
    """
    for salt in range(U8_MAX, -1, -1):
        address = derive_address(seeds, salt, program_id)
        if address not in reserved:
            return address, salt
    raise LedgerError("Unable to find a viable program address")


def track_seeds(creator: str, title: str) -> Tuple[bytes, ...]:
    """Seeds that address a track record: (b"track", creator, title)."""
    return (TRACK_SEED_PREFIX, creator.encode(), title.encode())


def find_track_address(
    creator: str,
    title: str,
    program_id: str = DEFAULT_PROGRAM_ID,
    reserved: Collection[str] = (),
) -> Tuple[str, int]:
    """Return (record_address, salt) for a creator's track title."""
    return find_program_address(track_seeds(creator, title), program_id, reserved)


def mint_address_for(record_address: str, program_id: str = DEFAULT_PROGRAM_ID) -> str:
    """Address of the token mint created when a track record is tokenized."""
    address, _ = find_program_address((MINT_SEED_PREFIX, record_address.encode()), program_id)
    return address


@dataclass(frozen=True, slots=True)
class Authority:
    """
    Signing authority of a derived address.

    Built from the address's derivation inputs, and valid only for the
    actions in `scope`.

    Attributes:
        address: The derived address this authority speaks for
        seeds: Derivation seeds
        salt: Derivation salt
        program_id: Program the address is derived under
        scope: Actions this authority may sign for
    """
    address: str
    seeds: Tuple[bytes, ...]
    salt: int
    program_id: str
    scope: FrozenSet[str]

    def verify(self, expected_address: str, action: str) -> bool:
        """
        True if this authority re-derives to expected_address and covers action.
        """
        if action not in self.scope:
            return False
        if self.address != expected_address:
            return False
        try:
            derived = derive_address(self.seeds, self.salt, self.program_id)
        except ValueError:
            return False
        return derived == expected_address

    def __repr__(self) -> str:
        return f"Authority({self.address[:12]}…, scope={sorted(self.scope)})"


def build_authority(
    seeds: Tuple[bytes, ...],
    salt: int,
    program_id: str = DEFAULT_PROGRAM_ID,
    scope: Collection[str] = (ACTION_MINT,),
    address: Optional[str] = None,
) -> Authority:
    """Construct an Authority, deriving its address from the seeds if not given."""
    return Authority(
        address=address if address is not None else derive_address(seeds, salt, program_id),
        seeds=tuple(seeds),
        salt=salt,
        program_id=program_id,
        scope=frozenset(scope),
    )


def track_authority(
    creator: str,
    title: str,
    salt: int,
    program_id: str = DEFAULT_PROGRAM_ID,
    scope: Collection[str] = (ACTION_MINT,),
) -> Authority:
    """Signing authority of a track record, mint-only unless scope says otherwise."""
    return build_authority(track_seeds(creator, title), salt, program_id, scope=scope)

