"""Whitelist API endpoints"""
from fastapi import APIRouter, Depends, Path

from potter.api.deps import error_response, get_factory_service, operation_response, parse_pubkey
from potter.schemas.operation import OperationResponse
from potter.schemas.whitelist import WhitelistResponse, WhitelistUpdateRequest
from potter.services.errors import OperationError
from potter.services.factory_service import TokenFactoryService

router = APIRouter()


@router.get("", response_model=WhitelistResponse)
async def get_whitelist(
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Get whitelisted transfer destinations in insertion order"""
    try:
        whitelist = await service.get_whitelist(token_index)
    except OperationError as e:
        raise error_response(e)

    return WhitelistResponse(
        token_index=token_index,
        address=str(whitelist.address),
        addresses=[str(a) for a in whitelist.addresses],
    )


@router.post("/add", response_model=OperationResponse)
async def add_to_whitelist(
    request: WhitelistUpdateRequest,
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Whitelist addresses; already listed ones are skipped"""
    addresses = [parse_pubkey(a, "wallet address") for a in request.addresses]
    result = await service.add_to_whitelist(token_index, addresses)
    return operation_response(result)


@router.post("/remove", response_model=OperationResponse)
async def remove_from_whitelist(
    request: WhitelistUpdateRequest,
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Remove addresses from the whitelist; unlisted ones are ignored"""
    addresses = [parse_pubkey(a, "wallet address") for a in request.addresses]
    result = await service.remove_from_whitelist(token_index, addresses)
    return operation_response(result)
