"""
Object storage integration for remote file fields.

Supports AWS S3 via boto3, plus an in-memory mock for local development
without credentials.
"""

from .client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    create_storage_client,
    is_valid_bucket_name,
)

__all__ = [
    "MockStorageClient",
    "S3StorageClient",
    "StorageConfig",
    "create_storage_client",
    "is_valid_bucket_name",
]
