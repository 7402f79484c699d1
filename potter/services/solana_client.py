"""Solana RPC client wrapper: the ledger-read capability"""
from typing import Optional, Protocol

import structlog
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solders.hash import Hash
from solders.pubkey import Pubkey

from potter.config import get_settings

logger = structlog.get_logger()
settings = get_settings()


class LedgerReader(Protocol):
    """Reads raw account bytes; None when the account does not exist"""

    async def read_account(self, address: Pubkey) -> Optional[bytes]:
        ...


class SolanaClient:
    """Async Solana RPC client"""

    def __init__(self, rpc_url: Optional[str] = None, commitment: Optional[str] = None):
        self.rpc_url = rpc_url or settings.solana_rpc_url
        self.commitment = Commitment(commitment or settings.solana_commitment)
        self._client: Optional[AsyncClient] = None

    async def connect(self) -> None:
        """Establish connection to Solana RPC"""
        if self._client is None:
            self._client = AsyncClient(self.rpc_url, commitment=self.commitment)
            logger.info("Connected to Solana RPC", url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close RPC connection"""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Disconnected from Solana RPC")

    @property
    def client(self) -> AsyncClient:
        """Get the async client, raise if not connected"""
        if self._client is None:
            raise RuntimeError("Solana client not connected. Call connect() first.")
        return self._client

    async def get_slot(self) -> int:
        """Get current slot"""
        response = await self.client.get_slot(commitment=self.commitment)
        return response.value

    async def read_account(self, address: Pubkey) -> Optional[bytes]:
        """Get raw account data, None if the account does not exist"""
        response = await self.client.get_account_info(
            address,
            commitment=self.commitment,
            encoding="base64",
        )
        if response.value is None:
            return None
        return bytes(response.value.data)

    async def get_latest_blockhash(self) -> Hash:
        """Get a recent blockhash for transaction building"""
        response = await self.client.get_latest_blockhash(commitment=self.commitment)
        return response.value.blockhash


# Singleton instance
_solana_client: Optional[SolanaClient] = None


async def get_solana_client() -> SolanaClient:
    """Get or create Solana client singleton"""
    global _solana_client
    if _solana_client is None:
        _solana_client = SolanaClient()
        await _solana_client.connect()
    return _solana_client


async def close_solana_client() -> None:
    """Close Solana client singleton"""
    global _solana_client
    if _solana_client is not None:
        await _solana_client.disconnect()
        _solana_client = None
