"""API v1 router aggregation"""
from fastapi import APIRouter

from potter.api.v1 import factory, tokens, whitelist

api_router = APIRouter()

# Combined tokens router: base endpoints plus per-token sub-routers
tokens_router = APIRouter()
tokens_router.include_router(tokens.router, tags=["Tokens"])
tokens_router.include_router(whitelist.router, prefix="/{token_index}/whitelist", tags=["Whitelist"])

api_router.include_router(factory.router, prefix="/factory", tags=["Factory"])
api_router.include_router(tokens_router, prefix="/tokens")
