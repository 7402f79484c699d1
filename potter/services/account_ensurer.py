"""Lazy, idempotent creation of associated token accounts"""
from typing import Optional

import structlog
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from potter.services.addresses import AddressDeriver, SYSTEM_PROGRAM_ID
from potter.services.plan import TransactionPlan
from potter.services.solana_client import LedgerReader

logger = structlog.get_logger()


class AccountEnsurer:
    """Makes sure an (owner, mint) token account exists by the time the
    plan's later instructions run.

    The creation instruction rides in the same transaction as the operation
    that needs the account. If another client creates the account first, the
    ledger rejects our creation with "already in use" and the orchestrator
    treats that as already satisfied.
    """

    def __init__(self, reader: LedgerReader, deriver: AddressDeriver):
        self.reader = reader
        self.deriver = deriver

    async def ensure(self, owner: Pubkey, mint: Pubkey, plan: TransactionPlan) -> Pubkey:
        """Return the account address, scheduling its creation if absent"""
        address, _ = self.deriver.derive_associated_token_address(owner, mint)

        if plan.schedules_creation_of(address):
            return address

        if await self.reader.read_account(address) is not None:
            logger.debug("Token account exists", owner=str(owner), account=str(address))
            return address

        plan.add(self.create_instruction(plan.fee_payer, owner, mint, address))
        plan.ensured_accounts.append(address)
        logger.info(
            "Scheduled token account creation",
            operation=plan.operation,
            owner=str(owner),
            mint=str(mint),
            account=str(address),
        )
        return address

    def create_instruction(
        self,
        payer: Pubkey,
        owner: Pubkey,
        mint: Pubkey,
        address: Optional[Pubkey] = None,
    ) -> Instruction:
        """Associated token program ``Create`` (fails if the account exists)"""
        if address is None:
            address, _ = self.deriver.derive_associated_token_address(owner, mint)
        accounts = [
            AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
            AccountMeta(pubkey=address, is_signer=False, is_writable=True),
            AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
            AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
            AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(pubkey=self.deriver.token_program_id, is_signer=False, is_writable=False),
        ]
        return Instruction(
            program_id=self.deriver.associated_token_program_id,
            data=bytes([0]),
            accounts=accounts,
        )
