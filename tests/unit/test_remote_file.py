"""
Unit tests for remote files.

These cover the installation state machine (fresh files install exactly
once, rehydrated files never) and the signed URL cache. The in-memory
store records every call, so tests can assert on what reached it.
"""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from s3field.core.files import (
    ExtensionNotAllowedError,
    FieldConfig,
    FileNotInstalledError,
    FreshRemoteFile,
    InstallNotAllowedError,
    KeyExhaustedError,
    RehydratedRemoteFile,
    RemoteLocation,
    SourceUnreadableError,
    StoreError,
    StoreErrorKind,
    UnsupportedOperationError,
)
from s3field.core.files.models import utc_now

OWNER_ID = "42"


# ---------------------------------------------------------------------------
# Installation
# ---------------------------------------------------------------------------

class TestInstall:
    """Tests for FreshRemoteFile.install."""

    def test_install_staged_file(self, collection, stage, store):
        """A staged report.pdf lands under a key naming field and owner."""
        content = b"%PDF" + b"x" * 2044
        staged = stage("report.pdf", content)

        file = FreshRemoteFile(collection)
        file.install("report.pdf")

        assert file.installed
        assert file.basename == "report.pdf"
        assert file.size == len(content)
        assert file.location == RemoteLocation("us-east-1", "mybucket", "PW_files_42_report.pdf")
        assert "files" in file.location.key
        assert OWNER_ID in file.location.key
        assert file.created is not None
        assert file.modified == file.created
        assert store.get(file.location.key).read() == content
        assert not staged.exists()

    def test_staging_directory_removed_when_empty(self, collection, stage):
        """The owner's staging directory goes once its last upload is installed."""
        staged = stage("a.txt")

        FreshRemoteFile(collection).install("a.txt")

        assert not staged.parent.exists()

    def test_staging_directory_kept_while_not_empty(self, collection, stage):
        """Other staged uploads keep the directory alive."""
        stage("a.txt")
        other = stage("b.txt")

        FreshRemoteFile(collection).install("a.txt")

        assert other.exists()

    def test_explicit_path_is_kept(self, collection, tmp_path):
        """A file given by full path belongs to the caller and is not removed."""
        source = tmp_path / "upload.txt"
        source.write_bytes(b"keep me")

        file = FreshRemoteFile(collection)
        file.install(source)

        assert file.installed
        assert source.exists()

    def test_transient_overrides_default(self, collection, tmp_path):
        """transient=True removes even an explicit path."""
        source = tmp_path / "upload.txt"
        source.write_bytes(b"remove me")

        FreshRemoteFile(collection).install(source, transient=True)

        assert not source.exists()

    def test_basename_is_sanitized(self, collection, stage):
        """The installed basename is cleaned even if the staged name is not."""
        stage("My Report (final).PDF")

        file = FreshRemoteFile(collection)
        file.install("My Report (final).PDF")

        assert file.basename == "my_report_final.pdf"

    def test_attributes_survive_install(self, collection, stage):
        """Description and tags given at construction are kept."""
        stage("a.txt")

        file = FreshRemoteFile(collection, description="Quarterly", tags="finance q3")
        file.install("a.txt")

        assert file.description == "Quarterly"
        assert file.tags == "finance q3"

    def test_location_cannot_be_preset(self, collection):
        """A fresh file ignores a location passed at construction."""
        file = FreshRemoteFile(collection, location=RemoteLocation("us-east-1", "b-1", "k"))

        assert not file.installed


class TestInstallOnce:
    """A file is uploaded at most once, and never on wakeup."""

    def test_second_install_rejected(self, collection, stage, store):
        """Installing an installed file raises and does not upload again."""
        stage("a.txt")
        stage("b.txt")
        file = FreshRemoteFile(collection)
        file.install("a.txt")

        with pytest.raises(InstallNotAllowedError):
            file.install("b.txt")

        assert store.count("put") == 1
        assert file.basename == "a.txt"

    def test_rehydrated_install_rejected(self, collection, stage, store):
        """Rehydrated files refuse installation whatever the source."""
        staged = stage("a.txt")
        file = RehydratedRemoteFile(
            collection,
            "a.txt",
            location=RemoteLocation("us-east-1", "mybucket", "PW_files_42_a.txt"),
        )

        with pytest.raises(InstallNotAllowedError):
            file.install("a.txt")

        assert store.count("put") == 0
        assert staged.exists()

    def test_rehydrated_requires_location(self, collection):
        """A rehydrated file without a location cannot exist."""
        with pytest.raises(FileNotInstalledError):
            RehydratedRemoteFile(collection, "a.txt", location=None)

    def test_rehydrated_flag(self, collection):
        fresh = FreshRemoteFile(collection)
        woken = RehydratedRemoteFile(
            collection, "a.txt", location=RemoteLocation("us-east-1", "mybucket", "k"),
        )

        assert not fresh.rehydrated
        assert woken.rehydrated


class TestInstallFailures:
    """Failed installs leave nothing behind."""

    def test_missing_source(self, collection):
        """An unreadable source cancels installation."""
        file = FreshRemoteFile(collection)

        with pytest.raises(SourceUnreadableError):
            file.install("missing.txt")

        assert not file.installed
        assert file.basename == ""

    def test_store_failure_cleans_up(self, collection, stage, store):
        """When the upload fails the staged file is still removed."""
        staged = stage("a.txt")
        file = FreshRemoteFile(collection)

        with patch.object(store, "put", side_effect=StoreError(StoreErrorKind.NETWORK, "timed out")):
            with pytest.raises(StoreError):
                file.install("a.txt")

        assert not staged.exists()
        assert not file.installed
        assert file.location is None

    def test_store_failure_keeps_explicit_path(self, collection, tmp_path, store):
        source = tmp_path / "upload.txt"
        source.write_bytes(b"data")

        with patch.object(store, "put", side_effect=StoreError(StoreErrorKind.UNAUTHORIZED, "denied")):
            with pytest.raises(StoreError):
                FreshRemoteFile(collection).install(source)

        assert source.exists()

    def test_key_collision_gets_suffix(self, collection, stage, store, tmp_path):
        """A taken key is retried with a random suffix."""
        other = tmp_path / "other.pdf"
        other.write_bytes(b"someone else's")
        store.put(other, "PW_files_42_report.pdf")
        stage("report.pdf")

        file = FreshRemoteFile(collection)
        file.install("report.pdf")

        assert file.basename == "report.pdf"
        assert file.location.key.startswith("PW_files_42_report.pdf_")
        assert len(file.location.key) == len("PW_files_42_report.pdf_") + 13
        assert store.get("PW_files_42_report.pdf").read() == b"someone else's"

    def test_key_attempts_are_bounded(self, collection, stage, store):
        """After max_key_attempts taken keys the install gives up."""
        staged = stage("a.txt")

        with patch.object(store, "exists", return_value=True) as exists:
            with pytest.raises(KeyExhaustedError):
                FreshRemoteFile(collection).install("a.txt")

        assert exists.call_count == collection.field.max_key_attempts
        assert store.count("put") == 0
        assert not staged.exists()

    def test_extension_not_allowed(self, collection, stage, store):
        staged = stage("run.exe")
        file = FreshRemoteFile(collection)

        with pytest.raises(ExtensionNotAllowedError):
            file.install("run.exe")

        assert not file.installed
        assert store.count("put") == 0
        assert not staged.exists()

    def test_extension_check_ignores_case(self, collection, stage):
        stage("Scan.PDF")

        file = collection.add_file("Scan.PDF")

        assert file.basename == "scan.pdf"

    def test_empty_allow_list_accepts_any(self, collection, stage, store):
        collection.field = FieldConfig(name="files", extensions=())
        stage("run.exe")

        file = collection.add_file("run.exe")

        assert file.installed
        assert store.count("put") == 1


# ---------------------------------------------------------------------------
# Signed URLs
# ---------------------------------------------------------------------------

@pytest.fixture
def installed(collection, stage):
    stage("report.pdf", b"x" * 1024)
    return collection.add_file("report.pdf")


class TestSignedUrl:
    """Tests for the signed URL cache."""

    def test_empty_url_is_expired(self, installed):
        assert installed.signed_url == ""
        assert installed.signed_url_expired()

    def test_first_access_refreshes_once(self, installed, store):
        """The first access signs; later accesses reuse the cached URL."""
        first = installed.get_signed_url()
        second = installed.get_signed_url()

        assert first == second
        assert first.startswith("mock://us-east-1/mybucket/PW_files_42_report.pdf")
        assert store.count("signed_url") == 1

    def test_expiry_recorded_with_skew(self, installed):
        """Expiry is the store's expiry minus 30 seconds, at second precision."""
        before = utc_now()
        installed.refresh_signed_url()
        after = utc_now()

        ttl = timedelta(seconds=installed.collection.field.signed_url_ttl - 30)
        assert before + ttl <= installed.signed_url_expires <= after + ttl
        assert installed.signed_url_expires.microsecond == 0

    def test_expired_url_is_refreshed(self, installed, store):
        installed.signed_url = "mock://stale"
        installed.signed_url_expires = utc_now() - timedelta(seconds=1)

        url = installed.get_signed_url()

        assert url != "mock://stale"
        assert store.count("signed_url") == 1

    def test_valid_url_is_reused(self, installed, store):
        installed.signed_url = "mock://cached"
        installed.signed_url_expires = utc_now() + timedelta(minutes=5)

        assert installed.get_signed_url() == "mock://cached"
        assert store.count("signed_url") == 0

    def test_expiry_boundary_counts_as_expired(self, installed):
        now = utc_now()
        installed.signed_url = "mock://cached"
        installed.signed_url_expires = now

        assert installed.signed_url_expired(now)
        assert not installed.signed_url_expired(now - timedelta(seconds=1))

    def test_refresh_is_persisted(self, installed, connection):
        """A refreshed URL is saved on the owner record."""
        url = installed.refresh_signed_url()

        items = json.loads(connection._get_field(OWNER_ID, "files"))
        assert items[0]["content_reference"] == "report.pdf"
        assert items[0]["signed_url"] == url
        assert items[0]["signed_url_expires"] != ""

    def test_uninstalled_file_cannot_sign(self, collection):
        with pytest.raises(FileNotInstalledError):
            collection.make_blank().refresh_signed_url()


# ---------------------------------------------------------------------------
# Remote operations
# ---------------------------------------------------------------------------

class TestRemoteOperations:
    """Read and delete go to the file's own region and bucket."""

    def test_read(self, installed):
        assert installed.read().read() == b"x" * 1024

    def test_read_from_other_location(self, collection, store, tmp_path):
        """A file stored before a bucket change is read from where it lives."""
        source = tmp_path / "old.txt"
        source.write_bytes(b"old bucket")
        store.with_location("eu-west-1", "old-bucket").put(source, "PW_files_42_old.txt")

        file = RehydratedRemoteFile(
            collection,
            "old.txt",
            location=RemoteLocation("eu-west-1", "old-bucket", "PW_files_42_old.txt"),
        )

        assert file.read().read() == b"old bucket"
        assert store.operations[-1] == ("get", "eu-west-1", "old-bucket", "PW_files_42_old.txt")

    def test_delete(self, installed, store):
        key = installed.location.key

        installed.delete()

        assert not store.exists(key)
        assert installed.location is not None

    def test_uninstalled_file_cannot_be_read(self, collection):
        with pytest.raises(FileNotInstalledError):
            collection.make_blank().read()

    def test_url_goes_through_gateway(self, installed):
        assert installed.url() == (
            "https://cms.example.com/s3wrapper/?page_id=42&field=files&basename=report.pdf"
        )

    def test_filesize_and_ext(self, installed):
        assert installed.filesize() == 1024
        assert installed.ext == "pdf"


class TestUnsupportedOperations:
    """Operations that need a local copy are refused."""

    def test_filename(self, installed):
        with pytest.raises(UnsupportedOperationError):
            installed.filename()

    def test_rename(self, installed):
        with pytest.raises(UnsupportedOperationError):
            installed.rename("other.pdf")

    def test_copy_to_path(self, installed, tmp_path):
        with pytest.raises(UnsupportedOperationError):
            installed.copy_to_path(tmp_path)
