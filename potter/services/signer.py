"""Signing and submission capability"""
import json
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

import structlog
from anchorpy import Provider, Wallet
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from potter.config import get_settings
from potter.services.solana_client import SolanaClient

logger = structlog.get_logger()
settings = get_settings()


class TransactionSubmitter(Protocol):
    """Signs one atomic transaction and submits it.

    Returns the signature once the transaction is confirmed; raises with the
    ledger's failure (message and program logs) otherwise.
    """

    @property
    def public_key(self) -> Pubkey:
        ...

    async def sign_and_submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair] = (),
    ) -> str:
        ...


class TransactionRejected(Exception):
    """A submitted transaction executed and failed on the ledger"""

    def __init__(self, message: str, logs: Optional[List[str]] = None):
        super().__init__(message)
        self.logs = logs or []


def load_keypair(path: str) -> Keypair:
    """Load a solana-keygen JSON keypair file"""
    keypair_file = Path(path).expanduser()
    with keypair_file.open() as f:
        secret = json.load(f)
    return Keypair.from_bytes(bytes(secret))


class KeypairSubmitter:
    """Signs with a local keypair, which is also the fee payer"""

    def __init__(self, solana: SolanaClient, keypair: Keypair):
        self.solana = solana
        self.wallet = Wallet(keypair)
        self.opts = TxOpts(
            skip_confirmation=True,
            preflight_commitment=solana.commitment,
        )

    @classmethod
    def from_settings(cls, solana: SolanaClient) -> "KeypairSubmitter":
        return cls(solana, load_keypair(settings.keypair_path))

    @property
    def public_key(self) -> Pubkey:
        return self.wallet.public_key

    async def sign_and_submit(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair] = (),
    ) -> str:
        provider = Provider(self.solana.client, self.wallet, self.opts)
        blockhash = await self.solana.get_latest_blockhash()
        message = MessageV0.try_compile(
            payer=self.public_key,
            instructions=list(instructions),
            address_lookup_table_accounts=[],
            recent_blockhash=blockhash,
        )
        tx = VersionedTransaction(message, [self.wallet.payer, *signers])

        # Preflight rejections raise RPCException here with the simulation logs
        signature = await provider.send(tx)
        logger.info("Transaction sent", signature=str(signature))

        await self._confirm(signature)
        return str(signature)

    async def _confirm(self, signature: Signature) -> None:
        response = await self.solana.client.confirm_transaction(
            signature,
            commitment=self.solana.commitment,
        )
        status = response.value[0] if response.value else None
        if status is None or status.err is None:
            return

        logs = await self._fetch_logs(signature)
        raise TransactionRejected(f"Transaction {signature} failed: {status.err!r}", logs)

    async def _fetch_logs(self, signature: Signature) -> List[str]:
        try:
            response = await self.solana.client.get_transaction(
                signature,
                commitment=self.solana.commitment,
                max_supported_transaction_version=0,
            )
        except Exception as e:
            logger.warning("Could not fetch logs for failed transaction", signature=str(signature), error=str(e))
            return []
        if response.value is None or response.value.transaction.meta is None:
            return []
        return list(response.value.transaction.meta.log_messages or [])
