"""
Shared fixtures.

Everything runs against the in-memory store and the mock Snowflake
connection; nothing here touches the network.
"""

from pathlib import Path

import pytest

from s3field.core.files import FieldConfig, GatewayUrlBuilder, RemoteFileField
from s3field.infrastructure.snowflake.client import MockSnowflakeConnection
from s3field.infrastructure.snowflake.repositories.owners import OwnerRepository
from s3field.infrastructure.storage import MockStorageClient

OWNER_ID = "42"


@pytest.fixture
def store() -> MockStorageClient:
    return MockStorageClient(region="us-east-1", bucket="mybucket")


@pytest.fixture
def connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def repository(connection) -> OwnerRepository:
    repository = OwnerRepository(connection)
    repository.create_owner(OWNER_ID)
    return repository


@pytest.fixture
def staging_root(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture
def field(store, repository, staging_root) -> RemoteFileField:
    return RemoteFileField(
        FieldConfig(name="files"),
        store,
        repository,
        staging_root=staging_root,
        url_builder=GatewayUrlBuilder("https://cms.example.com"),
    )


@pytest.fixture
def collection(field):
    return field.load(OWNER_ID)


@pytest.fixture
def stage(collection):
    """Write a file into the owner's staging directory; returns its path."""
    def _stage(name: str, content: bytes = b"hello world") -> Path:
        path = collection.staging_path() / name
        path.write_bytes(content)
        return path
    return _stage
