"""MongoDB/Beanie fixtures for testing."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.schemas import BEANIE_MODELS, init_beanie_odm


@pytest.fixture(scope="session")
def mongo_url() -> str:
    """
    Get MongoDB URL for testing.

    Tests that need MongoDB are skipped unless MONGO_URL_RESTREAM_PRIMARY is set.
    """
    url = os.environ.get("MONGO_URL_RESTREAM_PRIMARY")
    if not url:
        pytest.skip("MONGO_URL_RESTREAM_PRIMARY not set")
    return url


@pytest.fixture(scope="session")
def test_db_name() -> str:
    """Get test database name."""
    return "restream_test_db"


@pytest_asyncio.fixture(scope="function")
async def mongo_client(mongo_url: str) -> AsyncGenerator[AsyncIOMotorClient]:
    """Create MongoDB client for testing (function-scoped to avoid event loop issues)."""
    client: AsyncIOMotorClient = AsyncIOMotorClient(mongo_url)
    yield client
    client.close()


@pytest_asyncio.fixture(scope="function")
async def beanie_db(
    mongo_client: AsyncIOMotorClient,
    test_db_name: str,
) -> AsyncGenerator[AsyncIOMotorDatabase]:
    """Initialize Beanie with all document models on the test database."""
    db = mongo_client[test_db_name]
    await init_beanie_odm(db)
    yield db


@pytest_asyncio.fixture
async def clean_beanie_db(beanie_db: AsyncIOMotorDatabase) -> AsyncIOMotorDatabase:
    """Provide Beanie database with cleared collections."""
    for model in BEANIE_MODELS:
        await model.get_pymongo_collection().delete_many({})
    return beanie_db
