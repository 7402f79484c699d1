"""Token factory operations: fresh ledger reads, validation, build, submit.

Every write returns an OperationResult and never raises. Reads raise
OperationError (``AccountNotFound`` when the account is absent).
"""
from typing import List, Optional, Sequence

import structlog
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from potter.services.account_ensurer import AccountEnsurer
from potter.services.addresses import AddressDeriver
from potter.services.amounts import HumanAmount
from potter.services.errors import ErrorKind, OperationError, translate
from potter.services.instructions import (
    BurnParams,
    CreateTokenParams,
    InstructionBuilder,
    MintParams,
    TokenIndexParams,
    TransferAuthorityParams,
    TransferParams,
    WhitelistParams,
)
from potter.services.orchestrator import OperationResult, TransactionOrchestrator
from potter.services.plan import TransactionPlan
from potter.services.signer import TransactionSubmitter
from potter.services.solana_client import LedgerReader
from potter.services.state import (
    FactoryState,
    TokenBalance,
    TokenState,
    WhitelistState,
    parse_factory,
    parse_token,
    parse_token_account,
    parse_whitelist,
)

logger = structlog.get_logger()


class TokenFactoryService:
    """Operations on behalf of the submitter's keypair, the factory authority"""

    def __init__(
        self,
        reader: LedgerReader,
        submitter: TransactionSubmitter,
        deriver: AddressDeriver,
    ):
        self.reader = reader
        self.submitter = submitter
        self.deriver = deriver
        self.ensurer = AccountEnsurer(reader, deriver)
        self.builder = InstructionBuilder(deriver, self.ensurer)
        self.orchestrator = TransactionOrchestrator(submitter)

    @property
    def authority(self) -> Pubkey:
        return self.submitter.public_key

    # Reads

    async def _read(self, address: Pubkey) -> Optional[bytes]:
        try:
            return await self.reader.read_account(address)
        except Exception as e:
            raise translate(e) from e

    async def get_factory(self, authority: Optional[Pubkey] = None) -> FactoryState:
        authority = authority or self.authority
        address, _ = self.deriver.derive_factory_pda(authority)
        data = await self._read(address)
        if data is None:
            raise OperationError(
                ErrorKind.ACCOUNT_NOT_FOUND,
                detail=f"no factory for authority {authority}",
            )
        factory = parse_factory(address, data)
        if factory is None:
            raise OperationError(ErrorKind.UNKNOWN_FAILURE, detail=f"factory {address} could not be decoded")
        return factory

    async def get_token(self, index: int, authority: Optional[Pubkey] = None) -> TokenState:
        authority = authority or self.authority
        address, _ = self.deriver.derive_token_pda(authority, index)
        data = await self._read(address)
        if data is None:
            raise OperationError(ErrorKind.ACCOUNT_NOT_FOUND, detail=f"no token at index {index}")
        token = parse_token(address, index, data)
        if token is None:
            raise OperationError(ErrorKind.UNKNOWN_FAILURE, detail=f"token {address} could not be decoded")
        return token

    async def list_tokens(self, authority: Optional[Pubkey] = None) -> List[TokenState]:
        """Every token the factory has created, in index order.

        Records that cannot be read or decoded are skipped.
        """
        authority = authority or self.authority
        factory = await self.get_factory(authority)
        tokens = []
        for index, address in self.deriver.derive_token_indexes(authority, factory.token_count):
            data = await self._read(address)
            if data is None:
                logger.warning("Token record missing", index=index, address=str(address))
                continue
            token = parse_token(address, index, data)
            if token is not None:
                tokens.append(token)
        return tokens

    async def get_whitelist(self, index: int, authority: Optional[Pubkey] = None) -> WhitelistState:
        authority = authority or self.authority
        address, _ = self.deriver.derive_whitelist_pda(authority, index)
        data = await self._read(address)
        if data is None:
            raise OperationError(ErrorKind.ACCOUNT_NOT_FOUND, detail=f"no whitelist at index {index}")
        whitelist = parse_whitelist(address, data)
        if whitelist is None:
            raise OperationError(ErrorKind.UNKNOWN_FAILURE, detail=f"whitelist {address} could not be decoded")
        return whitelist

    async def get_balance(self, index: int, owner: Pubkey, authority: Optional[Pubkey] = None) -> TokenBalance:
        """Balance of ``owner``; zero when the owner has no token account yet"""
        token = await self.get_token(index, authority)
        account, _ = self.deriver.derive_associated_token_address(owner, token.mint)
        data = await self._read(account)
        if data is None:
            return TokenBalance(owner=owner, account=account, amount=0, decimals=token.decimals, exists=False)
        state = parse_token_account(account, data)
        if state is None:
            raise OperationError(ErrorKind.UNKNOWN_FAILURE, detail=f"token account {account} could not be decoded")
        return TokenBalance(owner=owner, account=account, amount=state.amount, decimals=token.decimals)

    # Writes

    async def create_factory(self) -> OperationResult:
        async def build(plan: TransactionPlan) -> None:
            address, _ = self.deriver.derive_factory_pda(self.authority)
            if await self._read(address) is not None:
                raise OperationError(
                    ErrorKind.ACCOUNT_ALREADY_EXISTS,
                    detail=f"factory {address} already exists",
                )
            self.builder.create_factory(plan, self.authority)

        return await self.orchestrator.execute("create_factory", build)

    async def create_token(
        self,
        total_supply: HumanAmount,
        decimals: int,
        name: str,
        symbol: str,
        uri: str,
        initial_whitelisted: Optional[Pubkey] = None,
    ) -> OperationResult:
        """Create the next token; the result context carries its index and mint.

        Two concurrent calls read the same token_count; the ledger rejects the
        loser with AccountAlreadyExists and it is not retried at a new index.
        """
        async def build(plan: TransactionPlan) -> None:
            params = CreateTokenParams(
                authority=self.authority,
                total_supply=total_supply,
                decimals=decimals,
                name=name,
                symbol=symbol,
                uri=uri,
                initial_whitelisted=initial_whitelisted or self.authority,
            )
            # read immediately before deriving the new token's addresses
            factory = await self.get_factory()
            mint = Keypair()
            plan.signers.append(mint)
            self.builder.create_token(plan, params, factory, mint.pubkey())

        return await self.orchestrator.execute("create_token", build)

    async def mint_tokens(self, index: int, amount: HumanAmount, destination_owner: Pubkey) -> OperationResult:
        async def build(plan: TransactionPlan) -> None:
            params = MintParams(
                authority=self.authority,
                index=index,
                amount=amount,
                destination_owner=destination_owner,
            )
            token = await self.get_token(index)
            await self.builder.mint_tokens(plan, params, token)

        return await self.orchestrator.execute("mint_tokens", build)

    async def burn_tokens(self, index: int, amount: HumanAmount, source_owner: Optional[Pubkey] = None) -> OperationResult:
        async def build(plan: TransactionPlan) -> None:
            params = BurnParams(
                authority=self.authority,
                index=index,
                amount=amount,
                source_owner=source_owner or self.authority,
            )
            token = await self.get_token(index)
            self.builder.burn_tokens(plan, params, token)

        return await self.orchestrator.execute("burn_tokens", build)

    async def transfer_tokens(
        self,
        index: int,
        amount: HumanAmount,
        to_owner: Pubkey,
        from_owner: Optional[Pubkey] = None,
    ) -> OperationResult:
        """Transfer between holders; ``from_owner`` signs and defaults to the authority"""
        async def build(plan: TransactionPlan) -> None:
            params = TransferParams(
                authority=self.authority,
                index=index,
                amount=amount,
                from_owner=from_owner or self.authority,
                to_owner=to_owner,
            )
            token = await self.get_token(index)
            await self.builder.transfer_token(plan, params, token)

        return await self.orchestrator.execute("transfer_token", build)

    async def add_to_whitelist(self, index: int, addresses: Sequence[Pubkey]) -> OperationResult:
        """Add addresses not already listed; nothing left to add is a no-op"""
        async def build(plan: TransactionPlan) -> None:
            params = WhitelistParams(authority=self.authority, index=index, addresses=tuple(addresses))
            if not params.addresses:
                return
            whitelist = await self.get_whitelist(index)
            missing = tuple(a for a in params.addresses if a not in whitelist)
            skipped = len(params.addresses) - len(missing)
            if skipped:
                logger.info("Skipping already whitelisted addresses", index=index, count=skipped)
            self.builder.add_to_whitelist(
                plan,
                WhitelistParams(authority=self.authority, index=index, addresses=missing),
            )

        return await self.orchestrator.execute("add_to_whitelist", build)

    async def remove_from_whitelist(self, index: int, addresses: Sequence[Pubkey]) -> OperationResult:
        """Remove listed addresses; nothing listed to remove is a no-op"""
        async def build(plan: TransactionPlan) -> None:
            params = WhitelistParams(authority=self.authority, index=index, addresses=tuple(addresses))
            if not params.addresses:
                return
            whitelist = await self.get_whitelist(index)
            present = tuple(a for a in params.addresses if a in whitelist)
            self.builder.remove_from_whitelist(
                plan,
                WhitelistParams(authority=self.authority, index=index, addresses=present),
            )

        return await self.orchestrator.execute("remove_from_whitelist", build)

    async def pause_minting(self, index: int) -> OperationResult:
        """Flip is_minting_paused; callers re-read the token for the new value"""
        async def build(plan: TransactionPlan) -> None:
            params = TokenIndexParams(authority=self.authority, index=index)
            await self.get_token(index)
            self.builder.pause_minting(plan, params)

        return await self.orchestrator.execute("pause_minting", build)

    async def pause_token(self, index: int) -> OperationResult:
        """Flip is_paused; callers re-read the token for the new value"""
        async def build(plan: TransactionPlan) -> None:
            params = TokenIndexParams(authority=self.authority, index=index)
            await self.get_token(index)
            self.builder.pause_token(plan, params)

        return await self.orchestrator.execute("pause_token", build)

    async def transfer_authority(self, index: int, new_authority: Pubkey) -> OperationResult:
        """Hand the token to ``new_authority``. There is no way back from here."""
        async def build(plan: TransactionPlan) -> None:
            params = TransferAuthorityParams(authority=self.authority, index=index, new_authority=new_authority)
            await self.get_token(index)
            self.builder.transfer_authority(plan, params)

        return await self.orchestrator.execute("transfer_authority", build)
