"""
Unit tests for the object storage clients.

The S3 client is exercised through botocore's Stubber, so no request
leaves the process. Signing happens locally and needs no stub.
"""

from datetime import datetime, timedelta, timezone

import pytest
from botocore.stub import Stubber

from s3field.core.files import ConfigurationError, StoreError, StoreErrorKind
from s3field.infrastructure.storage import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    create_storage_client,
    is_valid_bucket_name,
)


def _config(**overrides) -> StorageConfig:
    values = {
        "access_key_id": "AKIATEST",
        "secret_access_key": "secret",
        "region": "us-east-1",
        "bucket_name": "mybucket",
    }
    values.update(overrides)
    return StorageConfig(**values)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestStorageConfig:
    """A client is never built from half a configuration."""

    @pytest.mark.parametrize("missing", ["access_key_id", "secret_access_key", "region", "bucket_name"])
    def test_missing_value(self, missing):
        with pytest.raises(ConfigurationError, match="Bucket is not configured"):
            _config(**{missing: ""})

    def test_invalid_bucket(self):
        with pytest.raises(ConfigurationError, match="Invalid bucket name"):
            _config(bucket_name="My_Bucket")

    def test_invalid_ttl(self):
        with pytest.raises(ConfigurationError):
            _config(default_ttl_seconds=0)

    @pytest.mark.parametrize("name, valid", [
        ("mybucket", True),
        ("my.bucket-1", True),
        ("ab", False),
        ("a" * 64, False),
        ("MyBucket", False),
        ("my..bucket", False),
        ("my.-bucket", False),
        ("-bucket", False),
        ("192.168.1.1", False),
    ])
    def test_bucket_names(self, name, valid):
        assert is_valid_bucket_name(name) is valid


class TestCreateStorageClient:

    def test_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)

    def test_mock_mode_uses_config(self):
        client = create_storage_client(_config(region="eu-west-1"), mock_mode=True)

        assert client.region == "eu-west-1"
        assert client.bucket == "mybucket"

    def test_real_mode_requires_config(self):
        with pytest.raises(ConfigurationError):
            create_storage_client()

    def test_real_mode(self):
        assert isinstance(create_storage_client(_config()), S3StorageClient)


# ---------------------------------------------------------------------------
# S3 Client
# ---------------------------------------------------------------------------

@pytest.fixture
def s3_client() -> S3StorageClient:
    return S3StorageClient(_config())


@pytest.fixture
def stubber(s3_client):
    with Stubber(s3_client._client()) as stub:
        yield stub
        stub.assert_no_pending_responses()


class TestS3StorageClient:
    """Tests for S3StorageClient against a stubbed boto3 client."""

    def test_exists(self, s3_client, stubber):
        stubber.add_response("head_object", {}, {"Bucket": "mybucket", "Key": "PW_files_42_a.txt"})

        assert s3_client.exists("PW_files_42_a.txt") is True

    def test_missing_object_does_not_exist(self, s3_client, stubber):
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

        assert s3_client.exists("PW_files_42_a.txt") is False

    def test_forbidden_head_is_unauthorized(self, s3_client, stubber):
        stubber.add_client_error("head_object", service_error_code="403", http_status_code=403)

        with pytest.raises(StoreError) as excinfo:
            s3_client.exists("PW_files_42_a.txt")

        assert excinfo.value.kind is StoreErrorKind.UNAUTHORIZED
        assert excinfo.value.key == "PW_files_42_a.txt"

    def test_get_missing_key(self, s3_client, stubber):
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

        with pytest.raises(StoreError) as excinfo:
            s3_client.get("PW_files_42_a.txt")

        assert excinfo.value.kind is StoreErrorKind.NOT_FOUND

    def test_put(self, s3_client, stubber, tmp_path):
        source = tmp_path / "a.txt"
        source.write_bytes(b"hello")
        stubber.add_response("put_object", {"ETag": '"abc"'})

        s3_client.put(source, "PW_files_42_a.txt")

    def test_put_failure(self, s3_client, stubber, tmp_path):
        source = tmp_path / "a.txt"
        source.write_bytes(b"hello")
        stubber.add_client_error("put_object", service_error_code="InternalError", http_status_code=500)

        with pytest.raises(StoreError) as excinfo:
            s3_client.put(source, "PW_files_42_a.txt")

        assert excinfo.value.kind is StoreErrorKind.UNKNOWN

    def test_delete(self, s3_client, stubber):
        stubber.add_response("delete_object", {}, {"Bucket": "mybucket", "Key": "PW_files_42_a.txt"})

        s3_client.delete("PW_files_42_a.txt")

    def test_signed_url(self, s3_client):
        before = datetime.now(timezone.utc)

        url, expires = s3_client.signed_url("PW_files_42_a.txt", 600)

        assert "PW_files_42_a.txt" in url
        assert "X-Amz-Expires=600" in url
        assert before + timedelta(seconds=600) <= expires
        assert expires <= datetime.now(timezone.utc) + timedelta(seconds=600)

    def test_views_share_clients(self, s3_client):
        """A view on another bucket in the same region reuses the boto3 client."""
        view = s3_client.with_bucket("otherbucket")

        assert view.bucket == "otherbucket"
        assert view.region == "us-east-1"
        assert view._client() is s3_client._client()
        assert view.defaults().bucket == "mybucket"

    def test_same_location_view_is_self(self, s3_client):
        assert s3_client.with_location("us-east-1", "mybucket") is s3_client

    def test_region_view(self, s3_client):
        view = s3_client.with_region("eu-west-1")

        assert view.region == "eu-west-1"
        assert view.bucket == "mybucket"


# ---------------------------------------------------------------------------
# Mock Client
# ---------------------------------------------------------------------------

class TestMockStorageClient:

    def test_put_get(self, tmp_path):
        source = tmp_path / "a.txt"
        source.write_bytes(b"hello")
        client = MockStorageClient()

        client.put(source, "k")

        assert client.exists("k")
        assert client.get("k").read() == b"hello"

    def test_get_missing(self):
        with pytest.raises(StoreError) as excinfo:
            MockStorageClient().get("missing")

        assert excinfo.value.kind is StoreErrorKind.NOT_FOUND

    def test_views_are_isolated_by_bucket(self, tmp_path):
        source = tmp_path / "a.txt"
        source.write_bytes(b"hello")
        client = MockStorageClient(bucket="first")

        client.put(source, "k")

        assert not client.with_bucket("second").exists("k")
        assert client.with_bucket("second").defaults().exists("k")

    def test_delete_is_idempotent(self):
        client = MockStorageClient()

        client.delete("missing")

        assert client.count("delete") == 1

    def test_same_location_view_is_self(self):
        client = MockStorageClient(region="us-east-1", bucket="mybucket")

        assert client.with_location("us-east-1", "mybucket") is client
        assert client.with_bucket("other").defaults() is not client
