"""Token operations API endpoints"""
from fastapi import APIRouter, Depends, Path

from potter.api.deps import error_response, get_factory_service, operation_response, parse_pubkey
from potter.schemas.operation import OperationResponse
from potter.schemas.token import (
    MintRequest, BurnRequest, TransferRequest, TransferAuthorityRequest,
    TokenInfoResponse, BalanceResponse,
)
from potter.services.amounts import to_ui_amount
from potter.services.errors import OperationError
from potter.services.factory_service import TokenFactoryService

router = APIRouter()


@router.get("/{token_index}", response_model=TokenInfoResponse)
async def get_token_info(
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Get the on-chain token record"""
    try:
        token = await service.get_token(token_index)
    except OperationError as e:
        raise error_response(e)

    return TokenInfoResponse(
        token_index=token.index,
        address=str(token.address),
        mint_address=str(token.mint),
        authority=str(token.authority),
        symbol=token.symbol,
        name=token.name,
        uri=token.uri,
        decimals=token.decimals,
        total_supply=token.total_supply,
        ui_total_supply=to_ui_amount(token.total_supply, token.decimals),
        is_paused=token.is_paused,
        is_minting_paused=token.is_minting_paused,
        whitelist_address=str(token.whitelist),
    )


@router.get("/{token_index}/balance/{address}", response_model=BalanceResponse)
async def get_balance(
    token_index: int = Path(..., ge=0),
    address: str = Path(...),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Get a holder's balance (zero if the holder has no token account)"""
    owner = parse_pubkey(address, "wallet address")
    try:
        balance = await service.get_balance(token_index, owner)
    except OperationError as e:
        raise error_response(e)

    return BalanceResponse(
        address=address,
        token_account=str(balance.account),
        token_index=token_index,
        balance=balance.amount,
        ui_balance=to_ui_amount(balance.amount, balance.decimals),
        account_exists=balance.exists,
    )


@router.post("/{token_index}/mint", response_model=OperationResponse)
async def mint_tokens(
    request: MintRequest,
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Mint tokens to a recipient, creating its token account if needed"""
    recipient = parse_pubkey(request.recipient, "recipient address")
    result = await service.mint_tokens(token_index, request.amount, recipient)
    return operation_response(result)


@router.post("/{token_index}/burn", response_model=OperationResponse)
async def burn_tokens(
    request: BurnRequest,
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Burn tokens from a holder's account"""
    owner = parse_pubkey(request.owner, "owner address") if request.owner else None
    result = await service.burn_tokens(token_index, request.amount, owner)
    return operation_response(result)


@router.post("/{token_index}/transfer", response_model=OperationResponse)
async def transfer_tokens(
    request: TransferRequest,
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Transfer tokens; the recipient must be whitelisted on-chain"""
    recipient = parse_pubkey(request.recipient, "recipient address")
    sender = parse_pubkey(request.sender, "sender address") if request.sender else None
    result = await service.transfer_tokens(token_index, request.amount, recipient, from_owner=sender)
    return operation_response(result)


@router.post("/{token_index}/pause", response_model=OperationResponse)
async def pause_token(
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Toggle the transfer pause flag"""
    result = await service.pause_token(token_index)
    return operation_response(result)


@router.post("/{token_index}/pause-minting", response_model=OperationResponse)
async def pause_minting(
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Toggle the minting pause flag"""
    result = await service.pause_minting(token_index)
    return operation_response(result)


@router.post("/{token_index}/authority", response_model=OperationResponse)
async def transfer_authority(
    request: TransferAuthorityRequest,
    token_index: int = Path(..., ge=0),
    service: TokenFactoryService = Depends(get_factory_service),
):
    """Hand the token to a new authority. Irreversible."""
    new_authority = parse_pubkey(request.new_authority, "authority address")
    result = await service.transfer_authority(token_index, new_authority)
    return operation_response(result)
