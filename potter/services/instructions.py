"""Instruction builders for every token factory lifecycle operation.

Instruction data is the Anchor sighash (first 8 bytes of
sha256("global:<instruction_name>")) followed by Borsh-encoded arguments.
Every per-token instruction takes the token index as its first argument.
"""
import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from anchorpy.borsh_extension import BorshPubkey
from borsh_construct import CStruct, String, U8, U64, Vec
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from potter.services.account_ensurer import AccountEnsurer
from potter.services.addresses import (
    AddressDeriver,
    RENT_SYSVAR_ID,
    SYSTEM_PROGRAM_ID,
    encode_index,
)
from potter.services.amounts import HumanAmount, require_positive, to_raw
from potter.services.errors import ErrorKind, OperationError
from potter.services.plan import TransactionPlan
from potter.services.state import FactoryState, TokenState


MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200


def sighash(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


CreateTokenLayout = CStruct(
    "total_supply" / U64,
    "decimals" / U8,
    "name" / String,
    "symbol" / String,
    "uri" / String,
    "default_address" / BorshPubkey,
)
TokenIndexLayout = CStruct("token_count" / U64)
TokenAmountLayout = CStruct("token_count" / U64, "amount" / U64)
WhitelistUpdateLayout = CStruct("token_count" / U64, "addresses" / Vec(BorshPubkey))
TransferAuthorityLayout = CStruct("token_count" / U64, "new_authority" / BorshPubkey)

# Argument layout per instruction name; None means no arguments
INSTRUCTION_LAYOUTS: Dict[str, Optional[CStruct]] = {
    "create_factory": None,
    "create_token": CreateTokenLayout,
    "mint_tokens": TokenAmountLayout,
    "burn_tokens": TokenAmountLayout,
    "transfer_token": TokenAmountLayout,
    "add_to_whitelist": WhitelistUpdateLayout,
    "remove_from_whitelist": WhitelistUpdateLayout,
    "pause_minting": TokenIndexLayout,
    "pause_token": TokenIndexLayout,
    "transfer_authority": TransferAuthorityLayout,
}

INSTRUCTION_DISCRIMINATORS: Dict[bytes, str] = {
    sighash(name): name for name in INSTRUCTION_LAYOUTS
}


def encode_instruction_data(instruction_name: str, args: Optional[Dict[str, Any]] = None) -> bytes:
    layout = INSTRUCTION_LAYOUTS[instruction_name]
    if layout is None:
        return sighash(instruction_name)
    return sighash(instruction_name) + layout.build(args or {})


def _check_length(value: str, limit: int, kind: ErrorKind, label: str) -> None:
    # the program compares String::len(), i.e. UTF-8 bytes
    size = len(value.encode("utf-8"))
    if size > limit:
        raise OperationError(kind, detail=f"{label} is {size} bytes, max {limit}")


def _check_index(index: int) -> None:
    encode_index(index)


def _dedupe(addresses: Sequence[Pubkey]) -> Tuple[Pubkey, ...]:
    seen: List[Pubkey] = []
    for address in addresses:
        if address not in seen:
            seen.append(address)
    return tuple(seen)


@dataclass(frozen=True)
class CreateTokenParams:
    authority: Pubkey
    total_supply: HumanAmount
    decimals: int
    name: str
    symbol: str
    uri: str
    initial_whitelisted: Pubkey
    raw_total_supply: int = field(init=False)

    def __post_init__(self):
        _check_length(self.name, MAX_NAME_LENGTH, ErrorKind.NAME_TOO_LONG, "name")
        _check_length(self.symbol, MAX_SYMBOL_LENGTH, ErrorKind.SYMBOL_TOO_LONG, "symbol")
        _check_length(self.uri, MAX_URI_LENGTH, ErrorKind.URI_TOO_LONG, "uri")
        object.__setattr__(self, "raw_total_supply", to_raw(self.total_supply, self.decimals))


@dataclass(frozen=True)
class MintParams:
    authority: Pubkey
    index: int
    amount: HumanAmount
    destination_owner: Pubkey

    def __post_init__(self):
        _check_index(self.index)
        require_positive(self.amount)


@dataclass(frozen=True)
class BurnParams:
    authority: Pubkey
    index: int
    amount: HumanAmount
    source_owner: Pubkey

    def __post_init__(self):
        _check_index(self.index)
        require_positive(self.amount)


@dataclass(frozen=True)
class TransferParams:
    authority: Pubkey
    index: int
    amount: HumanAmount
    from_owner: Pubkey
    to_owner: Pubkey

    def __post_init__(self):
        _check_index(self.index)
        require_positive(self.amount)


@dataclass(frozen=True)
class WhitelistParams:
    authority: Pubkey
    index: int
    addresses: Tuple[Pubkey, ...]

    def __post_init__(self):
        _check_index(self.index)
        object.__setattr__(self, "addresses", _dedupe(self.addresses))


@dataclass(frozen=True)
class TokenIndexParams:
    authority: Pubkey
    index: int

    def __post_init__(self):
        _check_index(self.index)


@dataclass(frozen=True)
class TransferAuthorityParams:
    authority: Pubkey
    index: int
    new_authority: Pubkey

    def __post_init__(self):
        _check_index(self.index)


def _scaled(amount: HumanAmount, decimals: int) -> int:
    raw = to_raw(amount, decimals)
    if raw == 0:
        raise OperationError(
            ErrorKind.INVALID_AMOUNT,
            detail=f"{amount} rounds to zero at {decimals} decimals",
        )
    return raw


class InstructionBuilder:
    """Builds fully-addressed instructions and appends them to a plan"""

    def __init__(self, deriver: AddressDeriver, ensurer: AccountEnsurer):
        self.deriver = deriver
        self.ensurer = ensurer

    def _instruction(self, instruction_name: str, accounts: List[AccountMeta], **args) -> Instruction:
        return Instruction(
            program_id=self.deriver.program_id,
            data=encode_instruction_data(instruction_name, args),
            accounts=accounts,
        )

    def create_factory(self, plan: TransactionPlan, authority: Pubkey) -> Pubkey:
        factory, _ = self.deriver.derive_factory_pda(authority)
        plan.add(self._instruction("create_factory", [
            AccountMeta(pubkey=factory, is_signer=False, is_writable=True),
            AccountMeta(pubkey=authority, is_signer=True, is_writable=True),
            AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ]))
        plan.context["factory"] = str(factory)
        return factory

    def create_token(
        self,
        plan: TransactionPlan,
        params: CreateTokenParams,
        factory: FactoryState,
        mint: Pubkey,
    ) -> int:
        """Derive every account at the factory's current token_count.

        Returns the index the new token will occupy.
        """
        index = factory.token_count
        authority = params.authority
        token_data, _ = self.deriver.derive_token_pda(authority, index)
        whitelist, _ = self.deriver.derive_whitelist_pda(authority, index)
        mint_authority, _ = self.deriver.derive_mint_authority_pda(authority)
        metadata, _ = self.deriver.derive_metadata_pda(mint)
        ata, _ = self.deriver.derive_associated_token_address(authority, mint)

        plan.add(self._instruction(
            "create_token",
            [
                AccountMeta(pubkey=factory.address, is_signer=False, is_writable=True),
                AccountMeta(pubkey=token_data, is_signer=False, is_writable=True),
                AccountMeta(pubkey=whitelist, is_signer=False, is_writable=True),
                AccountMeta(pubkey=mint, is_signer=True, is_writable=True),
                AccountMeta(pubkey=mint_authority, is_signer=False, is_writable=False),
                AccountMeta(pubkey=ata, is_signer=False, is_writable=True),
                AccountMeta(pubkey=metadata, is_signer=False, is_writable=True),
                AccountMeta(pubkey=authority, is_signer=True, is_writable=True),
                AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(pubkey=self.deriver.token_program_id, is_signer=False, is_writable=False),
                AccountMeta(pubkey=self.deriver.associated_token_program_id, is_signer=False, is_writable=False),
                AccountMeta(pubkey=RENT_SYSVAR_ID, is_signer=False, is_writable=False),
                AccountMeta(pubkey=self.deriver.metadata_program_id, is_signer=False, is_writable=False),
            ],
            total_supply=params.raw_total_supply,
            decimals=params.decimals,
            name=params.name,
            symbol=params.symbol,
            uri=params.uri,
            default_address=params.initial_whitelisted,
        ))
        plan.context.update({
            "token_index": index,
            "token_data": str(token_data),
            "whitelist": str(whitelist),
            "mint": str(mint),
            "raw_total_supply": params.raw_total_supply,
        })
        return index

    async def mint_tokens(self, plan: TransactionPlan, params: MintParams, token: TokenState) -> int:
        raw_amount = _scaled(params.amount, token.decimals)
        destination = await self.ensurer.ensure(params.destination_owner, token.mint, plan)
        mint_authority, _ = self.deriver.derive_mint_authority_pda(params.authority)
        token_data, _ = self.deriver.derive_token_pda(params.authority, params.index)

        plan.add(self._instruction(
            "mint_tokens",
            [
                AccountMeta(pubkey=token_data, is_signer=False, is_writable=True),
                AccountMeta(pubkey=token.mint, is_signer=False, is_writable=True),
                AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
                AccountMeta(pubkey=mint_authority, is_signer=False, is_writable=False),
                AccountMeta(pubkey=params.authority, is_signer=True, is_writable=False),
                AccountMeta(pubkey=self.deriver.token_program_id, is_signer=False, is_writable=False),
            ],
            token_count=params.index,
            amount=raw_amount,
        ))
        plan.context.update({"raw_amount": raw_amount, "destination": str(destination)})
        return raw_amount

    def burn_tokens(self, plan: TransactionPlan, params: BurnParams, token: TokenState) -> int:
        raw_amount = _scaled(params.amount, token.decimals)
        source, _ = self.deriver.derive_associated_token_address(params.source_owner, token.mint)
        token_data, _ = self.deriver.derive_token_pda(params.authority, params.index)

        plan.add(self._instruction(
            "burn_tokens",
            [
                AccountMeta(pubkey=token_data, is_signer=False, is_writable=True),
                AccountMeta(pubkey=token.mint, is_signer=False, is_writable=True),
                AccountMeta(pubkey=source, is_signer=False, is_writable=True),
                AccountMeta(pubkey=params.authority, is_signer=True, is_writable=False),
                AccountMeta(pubkey=self.deriver.token_program_id, is_signer=False, is_writable=False),
            ],
            token_count=params.index,
            amount=raw_amount,
        ))
        plan.context.update({"raw_amount": raw_amount, "source": str(source)})
        return raw_amount

    async def transfer_token(self, plan: TransactionPlan, params: TransferParams, token: TokenState) -> int:
        """Whitelist membership of the destination is checked on-chain only"""
        raw_amount = _scaled(params.amount, token.decimals)
        source = await self.ensurer.ensure(params.from_owner, token.mint, plan)
        destination = await self.ensurer.ensure(params.to_owner, token.mint, plan)
        token_data, _ = self.deriver.derive_token_pda(params.authority, params.index)
        whitelist, _ = self.deriver.derive_whitelist_pda(params.authority, params.index)

        plan.add(self._instruction(
            "transfer_token",
            [
                AccountMeta(pubkey=params.authority, is_signer=False, is_writable=False),
                AccountMeta(pubkey=token_data, is_signer=False, is_writable=False),
                AccountMeta(pubkey=whitelist, is_signer=False, is_writable=False),
                AccountMeta(pubkey=source, is_signer=False, is_writable=True),
                AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
                AccountMeta(pubkey=params.from_owner, is_signer=True, is_writable=False),
                AccountMeta(pubkey=self.deriver.token_program_id, is_signer=False, is_writable=False),
            ],
            token_count=params.index,
            amount=raw_amount,
        ))
        plan.context.update({
            "raw_amount": raw_amount,
            "source": str(source),
            "destination": str(destination),
        })
        return raw_amount

    def add_to_whitelist(self, plan: TransactionPlan, params: WhitelistParams) -> None:
        self._whitelist_update(plan, "add_to_whitelist", params, with_system_program=True)

    def remove_from_whitelist(self, plan: TransactionPlan, params: WhitelistParams) -> None:
        self._whitelist_update(plan, "remove_from_whitelist", params, with_system_program=False)

    def _whitelist_update(
        self,
        plan: TransactionPlan,
        name: str,
        params: WhitelistParams,
        with_system_program: bool,
    ) -> None:
        if not params.addresses:
            return
        token_data, _ = self.deriver.derive_token_pda(params.authority, params.index)
        whitelist, _ = self.deriver.derive_whitelist_pda(params.authority, params.index)
        accounts = [
            AccountMeta(pubkey=token_data, is_signer=False, is_writable=True),
            AccountMeta(pubkey=whitelist, is_signer=False, is_writable=True),
            AccountMeta(pubkey=params.authority, is_signer=True, is_writable=True),
        ]
        # add reallocates the whitelist account, so the program needs System
        if with_system_program:
            accounts.append(AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False))
        plan.add(self._instruction(
            name,
            accounts,
            token_count=params.index,
            addresses=list(params.addresses),
        ))
        plan.context["addresses"] = [str(address) for address in params.addresses]

    def pause_minting(self, plan: TransactionPlan, params: TokenIndexParams) -> None:
        self._toggle(plan, "pause_minting", params)

    def pause_token(self, plan: TransactionPlan, params: TokenIndexParams) -> None:
        self._toggle(plan, "pause_token", params)

    def _toggle(self, plan: TransactionPlan, name: str, params: TokenIndexParams) -> None:
        token_data, _ = self.deriver.derive_token_pda(params.authority, params.index)
        plan.add(self._instruction(
            name,
            [
                AccountMeta(pubkey=token_data, is_signer=False, is_writable=True),
                AccountMeta(pubkey=params.authority, is_signer=True, is_writable=False),
            ],
            token_count=params.index,
        ))

    def transfer_authority(self, plan: TransactionPlan, params: TransferAuthorityParams) -> None:
        token_data, _ = self.deriver.derive_token_pda(params.authority, params.index)
        plan.add(self._instruction(
            "transfer_authority",
            [
                AccountMeta(pubkey=token_data, is_signer=False, is_writable=True),
                AccountMeta(pubkey=params.authority, is_signer=True, is_writable=False),
            ],
            token_count=params.index,
            new_authority=params.new_authority,
        ))
        plan.context["new_authority"] = str(params.new_authority)
