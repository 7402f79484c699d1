"""Program-derived address derivation for the token factory.

Every seed tag the on-chain program uses lives here and nowhere else. A tag
that differs by one byte from the program's derives a valid-looking address
that the program will reject, so callers must go through ``AddressDeriver``.
"""
from typing import List, Optional, Sequence, Tuple

from solders.pubkey import Pubkey

from potter.config import Settings, get_settings
from potter.services.amounts import U64_MAX
from potter.services.errors import ErrorKind, OperationError

FACTORY_SEED = b"factory"
TOKEN_SEED = b"token"
WHITELIST_SEED = b"whitelist"
MINT_AUTHORITY_SEED = b"mint_authority"
METADATA_SEED = b"metadata"

# Ledger limits: 32 bytes per seed, 16 seeds including the bump
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
RENT_SYSVAR_ID = Pubkey.from_string("SysvarRent111111111111111111111111111111111")


def encode_index(index: int) -> bytes:
    """Token index as the program hashes it: u64 little-endian, 8 bytes"""
    if isinstance(index, bool) or not isinstance(index, int) or index < 0 or index > U64_MAX:
        raise OperationError(ErrorKind.INVALID_AMOUNT, detail=f"token index {index!r} is outside u64")
    return index.to_bytes(8, "little")


def derive(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Derive (address, bump) for ``seeds`` under ``program_id``"""
    if len(seeds) + 1 > MAX_SEEDS:
        raise OperationError(
            ErrorKind.SEED_TOO_LONG,
            detail=f"{len(seeds)} seeds given, at most {MAX_SEEDS - 1} allowed",
        )
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise OperationError(
                ErrorKind.SEED_TOO_LONG,
                detail=f"seed of {len(seed)} bytes exceeds {MAX_SEED_LENGTH}",
            )
    return Pubkey.find_program_address([bytes(seed) for seed in seeds], program_id)


class AddressDeriver:
    """Derives every account address the factory program and its CPIs touch"""

    def __init__(
        self,
        program_id: Pubkey,
        token_program_id: Pubkey,
        associated_token_program_id: Pubkey,
        metadata_program_id: Pubkey,
    ):
        self.program_id = program_id
        self.token_program_id = token_program_id
        self.associated_token_program_id = associated_token_program_id
        self.metadata_program_id = metadata_program_id

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AddressDeriver":
        settings = settings or get_settings()
        return cls(
            program_id=Pubkey.from_string(settings.factory_program_id),
            token_program_id=Pubkey.from_string(settings.token_program_id),
            associated_token_program_id=Pubkey.from_string(settings.associated_token_program_id),
            metadata_program_id=Pubkey.from_string(settings.token_metadata_program_id),
        )

    def derive_factory_pda(self, authority: Pubkey) -> Tuple[Pubkey, int]:
        """Derive factory PDA (one per authority)"""
        return derive([FACTORY_SEED, bytes(authority)], self.program_id)

    def derive_token_pda(self, authority: Pubkey, index: int) -> Tuple[Pubkey, int]:
        """Derive token record PDA for the authority's ``index``-th token"""
        return derive([TOKEN_SEED, bytes(authority), encode_index(index)], self.program_id)

    def derive_whitelist_pda(self, authority: Pubkey, index: int) -> Tuple[Pubkey, int]:
        """Derive whitelist PDA, same index as its token record"""
        return derive([WHITELIST_SEED, bytes(authority), encode_index(index)], self.program_id)

    def derive_mint_authority_pda(self, authority: Pubkey) -> Tuple[Pubkey, int]:
        """Derive mint authority PDA"""
        return derive([MINT_AUTHORITY_SEED, bytes(authority)], self.program_id)

    def derive_metadata_pda(self, mint: Pubkey) -> Tuple[Pubkey, int]:
        """Derive token metadata PDA (owned by the metadata program)"""
        return derive(
            [METADATA_SEED, bytes(self.metadata_program_id), bytes(mint)],
            self.metadata_program_id,
        )

    def derive_associated_token_address(self, owner: Pubkey, mint: Pubkey) -> Tuple[Pubkey, int]:
        """Derive the associated token account for (owner, mint)"""
        return derive(
            [bytes(owner), bytes(self.token_program_id), bytes(mint)],
            self.associated_token_program_id,
        )

    def derive_token_indexes(self, authority: Pubkey, token_count: int) -> List[Tuple[int, Pubkey]]:
        """(index, token record address) for every token the factory has created"""
        return [
            (index, self.derive_token_pda(authority, index)[0])
            for index in range(token_count)
        ]
