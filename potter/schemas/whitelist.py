"""Whitelist schemas"""
from pydantic import BaseModel
from typing import List


class WhitelistResponse(BaseModel):
    token_index: int
    address: str
    addresses: List[str]


class WhitelistUpdateRequest(BaseModel):
    """Addresses to add or remove; duplicates are ignored"""
    addresses: List[str]
