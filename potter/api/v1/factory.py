"""Factory API endpoints"""
from fastapi import APIRouter, Depends
from typing import List

from potter.api.deps import error_response, get_factory_service, operation_response, parse_pubkey
from potter.schemas.factory import (
    FactoryInfo,
    TokenListResponse,
    CreateTokenRequest,
    CreateTokenResponse,
)
from potter.schemas.operation import OperationResponse
from potter.services.errors import OperationError
from potter.services.factory_service import TokenFactoryService

router = APIRouter()


@router.get("", response_model=FactoryInfo)
async def get_factory_info(service: TokenFactoryService = Depends(get_factory_service)):
    """Get the factory owned by the configured authority"""
    try:
        factory = await service.get_factory()
    except OperationError as e:
        raise error_response(e)

    return FactoryInfo(
        address=str(factory.address),
        authority=str(factory.authority),
        token_count=factory.token_count,
    )


@router.post("", response_model=OperationResponse)
async def create_factory(service: TokenFactoryService = Depends(get_factory_service)):
    """Create the factory; fails with 409 if it already exists"""
    result = await service.create_factory()
    return operation_response(result)


@router.get("/tokens", response_model=List[TokenListResponse])
async def list_tokens(service: TokenFactoryService = Depends(get_factory_service)):
    """List all tokens created by the factory"""
    try:
        tokens = await service.list_tokens()
    except OperationError as e:
        raise error_response(e)

    return [
        TokenListResponse(
            token_index=t.index,
            address=str(t.address),
            mint_address=str(t.mint),
            symbol=t.symbol,
            name=t.name,
            decimals=t.decimals,
            total_supply=t.total_supply,
            is_paused=t.is_paused,
            is_minting_paused=t.is_minting_paused,
        )
        for t in tokens
    ]


@router.post("/tokens", response_model=CreateTokenResponse)
async def create_token(request: CreateTokenRequest, service: TokenFactoryService = Depends(get_factory_service)):
    """Create a new token at the factory's next index"""
    initial_whitelisted = None
    if request.initial_whitelisted:
        initial_whitelisted = parse_pubkey(request.initial_whitelisted, "initial_whitelisted")

    result = await service.create_token(
        total_supply=request.total_supply,
        decimals=request.decimals,
        name=request.name,
        symbol=request.symbol,
        uri=request.uri,
        initial_whitelisted=initial_whitelisted,
    )
    body = operation_response(result)

    return CreateTokenResponse(
        token_index=body["context"]["token_index"],
        mint_address=body["context"]["mint"],
        raw_total_supply=body["context"]["raw_total_supply"],
        transaction_signature=body["signature"],
    )
