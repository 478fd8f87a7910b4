"""
FastAPI dependency injection.

Dependencies provide instances of clients, repositories and file fields
to route handlers. Routes never instantiate their own dependencies, so
tests can swap any of them through app.dependency_overrides.
"""

import logging
from typing import Annotated, Generator

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.files import (
    GATEWAY_PATH,
    GatewayUrlBuilder,
    ObjectStoreClient,
    RemoteFileField,
    UrlResolutionGateway,
)
from ..infrastructure.snowflake.client import MockSnowflakeConnection, create_snowflake_connection
from ..infrastructure.snowflake.repositories.owners import OwnerRepository, SnowflakeConfig
from ..infrastructure.storage.client import StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# Global mock instances (shared across requests for local development)
_mock_storage_client = None
_mock_snowflake_connection = None


def reset_mock_backends() -> None:
    """Forget the shared mock instances (for test isolation)."""
    global _mock_storage_client, _mock_snowflake_connection
    _mock_storage_client = None
    _mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Infrastructure Dependencies
# ---------------------------------------------------------------------------

def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStoreClient:
    """
    Provide the object store client bound to the default bucket.

    In mock mode, we reuse the same client across requests so that
    uploaded files persist during the development session.

    Raises:
        ConfigurationError: S3 credentials, region or bucket are missing.
    """
    global _mock_storage_client

    if settings.s3_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client for session")
        return _mock_storage_client

    config = StorageConfig(
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        region=settings.aws_region,
        bucket_name=settings.aws_s3_default_bucket,
        endpoint_url=settings.s3_endpoint_url,
        default_ttl_seconds=settings.signed_url_ttl_seconds,
    )
    return create_storage_client(config=config)


def get_owner_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[OwnerRepository, None, None]:
    """
    Provide OwnerRepository with database connection.

    A generator, so the connection is closed after the request. In mock
    mode the same in-memory connection is reused across requests so that
    data persists during the session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection for session")
        yield OwnerRepository(_mock_snowflake_connection)
    else:
        config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

        with create_snowflake_connection(config=config) as conn:
            yield OwnerRepository(conn)


# ---------------------------------------------------------------------------
# File Field Dependencies
# ---------------------------------------------------------------------------

def get_file_fields(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ObjectStoreClient, Depends(get_storage_client)],
    repository: Annotated[OwnerRepository, Depends(get_owner_repository)],
) -> dict[str, RemoteFileField]:
    """
    Provide the configured remote file fields, keyed by name.

    Fields cache the collections they load, so they are built per request.
    """
    url_builder = GatewayUrlBuilder(settings.public_root_url, GATEWAY_PATH)
    return {
        config.name: RemoteFileField(
            config,
            store,
            repository,
            staging_root=settings.staging_root,
            url_builder=url_builder,
        )
        for config in settings.field_configs()
    }


def get_gateway(
    fields: Annotated[dict[str, RemoteFileField], Depends(get_file_fields)],
) -> UrlResolutionGateway:
    return UrlResolutionGateway(fields)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageClientDep = Annotated[ObjectStoreClient, Depends(get_storage_client)]
OwnerRepositoryDep = Annotated[OwnerRepository, Depends(get_owner_repository)]
FileFieldsDep = Annotated[dict[str, RemoteFileField], Depends(get_file_fields)]
GatewayDep = Annotated[UrlResolutionGateway, Depends(get_gateway)]
