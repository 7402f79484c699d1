"""Pytest configuration and fixtures for Potter tests"""
import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from dotenv import load_dotenv

from fake_ledger import FakeLedger
from potter.main import app
from potter.api.deps import get_factory_service
from potter.services.addresses import AddressDeriver
from potter.services.factory_service import TokenFactoryService

# Load environment variables
load_dotenv()

FACTORY_PROGRAM_ID = Pubkey.from_string("A3jca3XyW52j1aMdpE75affvCtgyN4UwNc1Sn2ahLzo6")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")


@pytest.fixture
def deriver() -> AddressDeriver:
    """Deriver pinned to the deployed program ids, independent of .env"""
    return AddressDeriver(
        program_id=FACTORY_PROGRAM_ID,
        token_program_id=TOKEN_PROGRAM_ID,
        associated_token_program_id=ASSOCIATED_TOKEN_PROGRAM_ID,
        metadata_program_id=METADATA_PROGRAM_ID,
    )


@pytest.fixture
def ledger(deriver: AddressDeriver) -> FakeLedger:
    return FakeLedger(deriver)


@pytest.fixture
def authority(ledger: FakeLedger) -> Pubkey:
    return ledger.public_key


@pytest.fixture
def service(ledger: FakeLedger, deriver: AddressDeriver) -> TokenFactoryService:
    return TokenFactoryService(reader=ledger, submitter=ledger, deriver=deriver)


@pytest_asyncio.fixture
async def token_service(service: TokenFactoryService) -> TokenFactoryService:
    """Service whose factory already holds token 0 (1000 POT, 6 decimals)"""
    result = await service.create_factory()
    assert result.ok, result.error
    result = await service.create_token(
        total_supply=1000,
        decimals=6,
        name="Potter Token",
        symbol="POT",
        uri="https://example.com/pot.json",
    )
    assert result.ok, result.error
    return service


@pytest.fixture
def wallet() -> Pubkey:
    """A fresh holder address"""
    return Keypair().pubkey()


@pytest_asyncio.fixture(scope="function")
async def client(service: TokenFactoryService) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client backed by the fake ledger"""

    async def override_get_factory_service():
        return service

    app.dependency_overrides[get_factory_service] = override_get_factory_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
