"""Token operation schemas"""
from decimal import Decimal
from pydantic import BaseModel
from typing import Optional


class MintRequest(BaseModel):
    recipient: str
    amount: Decimal


class BurnRequest(BaseModel):
    """Burn from ``owner``'s account, the authority's when omitted"""
    owner: Optional[str] = None
    amount: Decimal


class TransferRequest(BaseModel):
    sender: Optional[str] = None
    recipient: str
    amount: Decimal


class TransferAuthorityRequest(BaseModel):
    new_authority: str


class TokenInfoResponse(BaseModel):
    token_index: int
    address: str
    mint_address: str
    authority: str
    symbol: str
    name: str
    uri: str
    decimals: int
    total_supply: int
    ui_total_supply: float
    is_paused: bool
    is_minting_paused: bool
    whitelist_address: str


class BalanceResponse(BaseModel):
    address: str
    token_account: str
    token_index: int
    balance: int
    ui_balance: float
    account_exists: bool
