"""Shared API dependencies and error mapping"""
from typing import Optional

from fastapi import HTTPException
from solders.pubkey import Pubkey

from potter.services.addresses import AddressDeriver
from potter.services.errors import ErrorKind, OperationError
from potter.services.factory_service import TokenFactoryService
from potter.services.orchestrator import OperationResult
from potter.services.signer import KeypairSubmitter
from potter.services.solana_client import get_solana_client

_STATUS_BY_KIND = {
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.ACCOUNT_ALREADY_EXISTS: 409,
    ErrorKind.USER_DECLINED: 403,
    ErrorKind.INSUFFICIENT_FUNDS: 402,
    ErrorKind.UNKNOWN_FAILURE: 502,
}

# Singleton instance
_factory_service: Optional[TokenFactoryService] = None


async def get_factory_service() -> TokenFactoryService:
    """Get or create the service signing with the configured keypair"""
    global _factory_service
    if _factory_service is None:
        solana_client = await get_solana_client()
        _factory_service = TokenFactoryService(
            reader=solana_client,
            submitter=KeypairSubmitter.from_settings(solana_client),
            deriver=AddressDeriver.from_settings(),
        )
    return _factory_service


def reset_factory_service() -> None:
    """Drop the singleton (the Solana client it wraps is being closed)"""
    global _factory_service
    _factory_service = None


def parse_pubkey(value: str, field: str = "address") -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except Exception:
        raise HTTPException(status_code=400, detail=f"Invalid {field} format")


def status_for(error: OperationError) -> int:
    if error.kind in _STATUS_BY_KIND:
        return _STATUS_BY_KIND[error.kind]
    if not error.remote:
        return 400
    return 422


def error_response(error: OperationError) -> HTTPException:
    return HTTPException(status_code=status_for(error), detail=error.to_dict())


def operation_response(result: OperationResult) -> dict:
    """Response body for a write, raising HTTPException when it failed"""
    if not result.ok:
        raise error_response(result.error)
    return {
        "operation": result.operation,
        "signature": result.signature,
        "context": result.context,
    }
