"""
Test configuration and fixtures.
Uses an in-memory fake of the boto3 S3 client, no network or real bucket needed.
"""
import os

# Set test environment before any imports
os.environ["S3_BUCKET_NAME"] = "test-bucket"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from app.storage.gateway import StorageGateway
from tests.fakes import FakeS3Client, TEST_BUCKET


@pytest.fixture
def fake_s3() -> FakeS3Client:
    """Empty in-memory bucket."""
    return FakeS3Client()


@pytest.fixture
def gateway(fake_s3: FakeS3Client) -> StorageGateway:
    """Gateway wired to the fake client."""
    return StorageGateway(fake_s3, TEST_BUCKET, read_concurrency=2)


@pytest.fixture
def mock_gateway() -> AsyncMock:
    """Gateway mock for asserting what the API layer passes through."""
    mock = AsyncMock(spec=StorageGateway)
    mock.bucket = TEST_BUCKET
    return mock


def get_test_app(gateway) -> FastAPI:
    """Create a test FastAPI app with the storage gateway overridden."""
    from app.main import app
    from app.storage.gateway import get_storage_gateway

    app.dependency_overrides[get_storage_gateway] = lambda: gateway
    return app


@pytest.fixture(scope="function")
async def client(gateway: StorageGateway) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the app, backed by the fake bucket."""
    app = get_test_app(gateway)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def mock_client(mock_gateway: AsyncMock) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the app, backed by a gateway mock."""
    app = get_test_app(mock_gateway)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
