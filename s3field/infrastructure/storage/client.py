"""
Object storage client for remote file fields.

Talks to AWS S3 through boto3, with a mock mode for local development.
A client is bound to one region and bucket; files whose persisted location
points elsewhere get a view bound to their own region and bucket, sharing
the same underlying boto3 clients.

Mock mode stores objects in memory, enabling API testing without
provisioning actual object storage.
"""

import io
import logging
import mimetypes
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from os import PathLike
from typing import BinaryIO, Optional, Union

from ...core.files.errors import ConfigurationError, StoreError, StoreErrorKind
from ...core.files.store import ObjectStoreClient

logger = logging.getLogger(__name__)

_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_IP_ADDRESS = re.compile(r"^\d+\.\d+\.\d+\.\d+$")

_UNAUTHORIZED_CODES = {
    "403", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch",
    "ExpiredToken", "InvalidToken",
}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def is_valid_bucket_name(name: str) -> bool:
    """S3 bucket naming rules: 3-63 chars, lowercase, no IPs, no '..'."""
    return bool(
        _BUCKET_NAME.match(name)
        and ".." not in name
        and ".-" not in name
        and "-." not in name
        and not _IP_ADDRESS.match(name)
    )


@dataclass
class StorageConfig:
    """
    Configuration for S3 storage.

    Validated at construction time: a client must never be built from
    half a configuration.
    """
    access_key_id: str
    secret_access_key: str
    region: str
    bucket_name: str
    endpoint_url: Optional[str] = None
    default_ttl_seconds: int = 600

    def __post_init__(self) -> None:
        missing = [
            name for name in ("access_key_id", "secret_access_key", "region", "bucket_name")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"Bucket is not configured: missing {', '.join(missing)}")
        if not is_valid_bucket_name(self.bucket_name):
            raise ConfigurationError(f"Invalid bucket name: {self.bucket_name!r}")
        if self.default_ttl_seconds <= 0:
            raise ConfigurationError("default_ttl_seconds must be positive")


class S3StorageClient:
    """
    AWS S3 object storage client.

    Uses boto3 with SigV4 signatures. boto3 clients are created lazily,
    one per region, and shared by every view derived from this client.
    """

    def __init__(
        self,
        config: StorageConfig,
        *,
        region: Optional[str] = None,
        bucket: Optional[str] = None,
        _clients: Optional[dict] = None,
    ) -> None:
        """
        Initialize the client with boto3.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config
        self.region = region or config.region
        self.bucket = bucket or config.bucket_name
        self._clients = _clients if _clients is not None else {}
        self._boto3 = boto3
        self._boto_config = Config(signature_version="s3v4")

        if _clients is None:
            logger.info(
                "Initialized S3 storage client",
                extra={"bucket": self.bucket, "region": self.region}
            )

    # -----------------------------------------------------------------------
    # Views
    # -----------------------------------------------------------------------

    def with_region(self, region: str) -> "S3StorageClient":
        return self.with_location(region, self.bucket)

    def with_bucket(self, bucket: str) -> "S3StorageClient":
        return self.with_location(self.region, bucket)

    def with_location(self, region: str, bucket: str) -> "S3StorageClient":
        if region == self.region and bucket == self.bucket:
            return self
        return S3StorageClient(self._config, region=region, bucket=bucket, _clients=self._clients)

    def defaults(self) -> "S3StorageClient":
        return self.with_location(self._config.region, self._config.bucket_name)

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    def put(self, local_path: Union[str, PathLike], key: str) -> None:
        """Upload a local file as a single PUT."""
        content_type = mimetypes.guess_type(os.fspath(local_path))[0] or "application/octet-stream"
        with open(local_path, "rb") as body:
            try:
                self._client().put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )
            except Exception as e:
                raise self._translate(e, "upload", key) from e

        logger.debug(
            "Uploaded object",
            extra={"bucket": self.bucket, "region": self.region, "key": key}
        )

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate(e, "head", key) from e
        except Exception as e:
            raise self._translate(e, "head", key) from e

    def get(self, key: str) -> BinaryIO:
        """Open the object; the returned body streams from S3."""
        try:
            response = self._client().get_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise self._translate(e, "download", key) from e
        return response["Body"]

    def delete(self, key: str) -> None:
        try:
            self._client().delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise self._translate(e, "delete", key) from e

    def signed_url(self, key: str, ttl: Optional[int] = None) -> tuple[str, datetime]:
        """
        Generate a presigned GET URL.

        Signing happens locally; no request reaches S3 until the URL is
        used. The expiry returned is the literal expiry of the signature.
        """
        ttl = ttl or self._config.default_ttl_seconds
        issued = datetime.now(timezone.utc)
        try:
            url = self._client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl,
            )
        except Exception as e:
            raise self._translate(e, "presign", key) from e
        return url, issued + timedelta(seconds=ttl)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _client(self):
        client = self._clients.get(self.region)
        if client is None:
            client = self._boto3.client(
                "s3",
                endpoint_url=self._config.endpoint_url,
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=self._config.secret_access_key,
                region_name=self.region,
                config=self._boto_config,
            )
            self._clients[self.region] = client
        return client

    def _translate(self, error: Exception, operation: str, key: str) -> StoreError:
        """Map a boto3/botocore failure onto a StoreError kind."""
        from botocore.exceptions import (
            ClientError,
            ConnectionError as BotoConnectionError,
            HTTPClientError,
            NoCredentialsError,
        )

        if isinstance(error, ClientError):
            code = _error_code(error)
            if code in _UNAUTHORIZED_CODES:
                kind = StoreErrorKind.UNAUTHORIZED
            elif code in _NOT_FOUND_CODES:
                kind = StoreErrorKind.NOT_FOUND
            else:
                kind = StoreErrorKind.UNKNOWN
        elif isinstance(error, NoCredentialsError):
            kind = StoreErrorKind.UNAUTHORIZED
        elif isinstance(error, (BotoConnectionError, HTTPClientError)):
            kind = StoreErrorKind.NETWORK
        else:
            kind = StoreErrorKind.UNKNOWN

        logger.error(
            f"S3 {operation} failed",
            extra={
                "bucket": self.bucket,
                "region": self.region,
                "key": key,
                "kind": kind.value,
                "error": str(error),
            }
        )
        return StoreError(kind, f"S3 {operation} failed for {key}: {error}", key)


def _error_code(error) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory object storage for local development.

    Objects are stored per (region, bucket, key) in a dictionary shared by
    all views, and "signed URLs" are mock URIs. Every operation is appended
    to ``operations`` so tests can assert on what reached the store.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        bucket: str = "mock-bucket",
        default_ttl_seconds: int = 600,
        *,
        _objects: Optional[dict] = None,
        _operations: Optional[list] = None,
        _defaults: Optional[tuple[str, str]] = None,
    ) -> None:
        self.region = region
        self.bucket = bucket
        self.default_ttl_seconds = default_ttl_seconds
        self._objects: dict[tuple[str, str, str], bytes] = _objects if _objects is not None else {}
        self.operations: list[tuple[str, str, str, str]] = _operations if _operations is not None else []
        self._defaults = _defaults or (region, bucket)

        if _objects is None:
            logger.info("Initialized mock storage client (in-memory)")

    def with_region(self, region: str) -> "MockStorageClient":
        return self.with_location(region, self.bucket)

    def with_bucket(self, bucket: str) -> "MockStorageClient":
        return self.with_location(self.region, bucket)

    def with_location(self, region: str, bucket: str) -> "MockStorageClient":
        if region == self.region and bucket == self.bucket:
            return self
        return MockStorageClient(
            region,
            bucket,
            self.default_ttl_seconds,
            _objects=self._objects,
            _operations=self.operations,
            _defaults=self._defaults,
        )

    def defaults(self) -> "MockStorageClient":
        return self.with_location(*self._defaults)

    def put(self, local_path: Union[str, PathLike], key: str) -> None:
        with open(local_path, "rb") as source:
            self._objects[(self.region, self.bucket, key)] = source.read()
        self._record("put", key)

    def exists(self, key: str) -> bool:
        self._record("exists", key)
        return (self.region, self.bucket, key) in self._objects

    def get(self, key: str) -> BinaryIO:
        self._record("get", key)
        try:
            return io.BytesIO(self._objects[(self.region, self.bucket, key)])
        except KeyError:
            raise StoreError(StoreErrorKind.NOT_FOUND, f"Object not found: {key}", key)

    def delete(self, key: str) -> None:
        # S3 deletes are idempotent, so a missing key is not an error
        self._objects.pop((self.region, self.bucket, key), None)
        self._record("delete", key)

    def signed_url(self, key: str, ttl: Optional[int] = None) -> tuple[str, datetime]:
        ttl = ttl or self.default_ttl_seconds
        expires = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        self._record("signed_url", key)
        return f"mock://{self.region}/{self.bucket}/{key}?expires={int(expires.timestamp())}", expires

    # Helper methods for testing
    def count(self, operation: str) -> int:
        """Number of recorded calls of operation."""
        return sum(1 for op in self.operations if op[0] == operation)

    def object_keys(self) -> list[tuple[str, str, str]]:
        return sorted(self._objects)

    def _record(self, operation: str, key: str) -> None:
        self.operations.append((operation, self.region, self.bucket, key))


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStoreClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStoreClient implementation (S3 or Mock)
    """
    if mock_mode:
        if config is None:
            return MockStorageClient()
        return MockStorageClient(config.region, config.bucket_name, config.default_ttl_seconds)

    if config is None:
        raise ConfigurationError("config is required when not in mock mode")

    return S3StorageClient(config)
