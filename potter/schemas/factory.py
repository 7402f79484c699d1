"""Factory schemas"""
from decimal import Decimal
from pydantic import BaseModel
from typing import Optional


class FactoryInfo(BaseModel):
    address: str
    authority: str
    token_count: int


class TokenListResponse(BaseModel):
    token_index: int
    address: str
    mint_address: str
    symbol: str
    name: str
    decimals: int
    total_supply: int
    is_paused: bool
    is_minting_paused: bool


class CreateTokenRequest(BaseModel):
    """Create a token; ``total_supply`` is in human units"""
    name: str
    symbol: str
    uri: str = ""
    decimals: int = 6
    total_supply: Decimal
    initial_whitelisted: Optional[str] = None


class CreateTokenResponse(BaseModel):
    token_index: int
    mint_address: str
    raw_total_supply: int
    transaction_signature: str
