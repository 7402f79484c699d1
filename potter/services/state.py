"""Decoders for the account layouts the client reads from the ledger.

These are transient views: fetched fresh for every operation, never cached.
"""
import hashlib
import struct
from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from solders.pubkey import Pubkey

logger = structlog.get_logger()

DISCRIMINATOR_SIZE = 8
PUBKEY_SIZE = 32


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: sha256("account:<Name>")[:8]"""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


FACTORY_DISCRIMINATOR = account_discriminator("TokenFactory")
TOKEN_DATA_DISCRIMINATOR = account_discriminator("TokenData")
WHITELIST_DISCRIMINATOR = account_discriminator("Whitelist")

# SPL token account: mint(32) owner(32) amount(u64) ...
TOKEN_ACCOUNT_MIN_SIZE = 72


@dataclass
class FactoryState:
    """Factory account: one per authority"""
    address: Pubkey
    authority: Pubkey
    token_count: int


@dataclass
class TokenState:
    """Token record created by a factory"""
    address: Pubkey
    index: int
    mint: Pubkey
    authority: Pubkey
    total_supply: int
    decimals: int
    is_paused: bool
    is_minting_paused: bool
    name: str
    symbol: str
    uri: str
    whitelist: Pubkey


@dataclass
class WhitelistState:
    """Permitted transfer destinations, in insertion order"""
    address: Pubkey
    addresses: List[Pubkey] = field(default_factory=list)

    def __contains__(self, item: Pubkey) -> bool:
        return item in self.addresses


@dataclass
class TokenAccountState:
    """The fields of an SPL token account the client needs"""
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int


@dataclass
class TokenBalance:
    """Holder balance of one token; ``amount`` is raw units"""
    owner: Pubkey
    account: Pubkey
    amount: int
    decimals: int
    exists: bool = True


def _read_pubkey(data: bytes, offset: int) -> Pubkey:
    # from_bytes panics rather than raising on a short slice
    if offset + PUBKEY_SIZE > len(data):
        raise ValueError(f"pubkey at offset {offset} runs past end of account data")
    return Pubkey.from_bytes(data[offset:offset + PUBKEY_SIZE])


def _read_u64(data: bytes, offset: int) -> int:
    if offset + 8 > len(data):
        raise ValueError(f"u64 at offset {offset} runs past end of account data")
    return struct.unpack_from('<Q', data, offset)[0]


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    length = struct.unpack_from('<I', data, offset)[0]
    offset += 4
    if offset + length > len(data):
        raise ValueError("string runs past end of account data")
    return data[offset:offset + length].decode('utf-8'), offset + length


def _check_discriminator(data: bytes, expected: bytes) -> None:
    if data[:DISCRIMINATOR_SIZE] != expected:
        raise ValueError("account discriminator mismatch")


def parse_factory(address: Pubkey, data: bytes) -> Optional[FactoryState]:
    """Parse TokenFactory account data.

    Layout:
    - discriminator: 8 bytes
    - authority: Pubkey (32 bytes)
    - token_count: u64 (8 bytes)
    """
    try:
        _check_discriminator(data, FACTORY_DISCRIMINATOR)
        offset = DISCRIMINATOR_SIZE
        authority = _read_pubkey(data, offset)
        offset += PUBKEY_SIZE
        token_count = _read_u64(data, offset)
        return FactoryState(address=address, authority=authority, token_count=token_count)
    except Exception as e:
        logger.warning("Failed to parse TokenFactory", address=str(address), error=str(e))
        return None


def parse_token(address: Pubkey, index: int, data: bytes) -> Optional[TokenState]:
    """Parse TokenData account data.

    Layout (field order of the deployed program):
    - discriminator: 8 bytes
    - mint: Pubkey (32 bytes)
    - authority: Pubkey (32 bytes)
    - total_supply: u64 (8 bytes)
    - decimals: u8
    - is_paused: bool
    - is_minting_paused: bool
    - name, symbol, uri: String (4 bytes length + data)
    - whitelist: Pubkey (32 bytes)
    """
    try:
        _check_discriminator(data, TOKEN_DATA_DISCRIMINATOR)
        offset = DISCRIMINATOR_SIZE

        mint = _read_pubkey(data, offset)
        offset += PUBKEY_SIZE

        authority = _read_pubkey(data, offset)
        offset += PUBKEY_SIZE

        total_supply = _read_u64(data, offset)
        offset += 8

        decimals = data[offset]
        is_paused = bool(data[offset + 1])
        is_minting_paused = bool(data[offset + 2])
        offset += 3

        name, offset = _read_string(data, offset)
        symbol, offset = _read_string(data, offset)
        uri, offset = _read_string(data, offset)

        whitelist = _read_pubkey(data, offset)

        return TokenState(
            address=address,
            index=index,
            mint=mint,
            authority=authority,
            total_supply=total_supply,
            decimals=decimals,
            is_paused=is_paused,
            is_minting_paused=is_minting_paused,
            name=name,
            symbol=symbol,
            uri=uri,
            whitelist=whitelist,
        )
    except Exception as e:
        logger.warning("Failed to parse TokenData", address=str(address), index=index, error=str(e))
        return None


def parse_whitelist(address: Pubkey, data: bytes) -> Optional[WhitelistState]:
    """Parse Whitelist account data: discriminator, then Vec<Pubkey>"""
    try:
        _check_discriminator(data, WHITELIST_DISCRIMINATOR)
        offset = DISCRIMINATOR_SIZE
        count = struct.unpack_from('<I', data, offset)[0]
        offset += 4
        if offset + count * PUBKEY_SIZE > len(data):
            raise ValueError("address list runs past end of account data")
        addresses = [
            _read_pubkey(data, offset + i * PUBKEY_SIZE)
            for i in range(count)
        ]
        return WhitelistState(address=address, addresses=addresses)
    except Exception as e:
        logger.warning("Failed to parse Whitelist", address=str(address), error=str(e))
        return None


def parse_token_account(address: Pubkey, data: bytes) -> Optional[TokenAccountState]:
    """Parse the leading fields of an SPL token account"""
    if len(data) < TOKEN_ACCOUNT_MIN_SIZE:
        logger.warning("Token account data too short", address=str(address), size=len(data))
        return None
    return TokenAccountState(
        address=address,
        mint=_read_pubkey(data, 0),
        owner=_read_pubkey(data, 32),
        amount=_read_u64(data, 64),
    )
