"""
Remote files: one file of a field, stored in the object store.

A remote file behaves like a locally stored file towards its collection
and the persistence layer, but every byte lives in the object store. It
comes in two flavours that share all read-side behaviour:

- FreshRemoteFile: built for a new upload. It must be installed (uploaded)
  exactly once before anything else can be done with it.
- RehydratedRemoteFile: built from persisted metadata. It already has a
  location and refuses installation unconditionally.

Keeping the two as separate types means the "never upload on wakeup" rule
is enforced by which class was constructed, not by a flag someone has to
remember to check.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Optional, Union

from .errors import (
    ExtensionNotAllowedError,
    FileNotInstalledError,
    InstallNotAllowedError,
    KeyExhaustedError,
    SourceUnreadableError,
    UnsupportedOperationError,
)
from .models import RemoteLocation, utc_now

if TYPE_CHECKING:
    from .collection import RemoteFileCollection

logger = logging.getLogger(__name__)

# Signed URL expiry is recorded this much earlier than the store's own
# expiry, so a URL handed out just before it lapses is still honoured.
SIGNED_URL_SKEW = timedelta(seconds=30)


class RemoteFile:
    """
    Metadata and remote operations shared by fresh and rehydrated files.

    Not instantiated directly - use FreshRemoteFile or RehydratedRemoteFile.
    """

    rehydrated: bool = False

    def __init__(
        self,
        collection: "RemoteFileCollection",
        basename: str = "",
        *,
        description: str = "",
        size: int = 0,
        created: Optional[datetime] = None,
        modified: Optional[datetime] = None,
        tags: str = "",
        location: Optional[RemoteLocation] = None,
        signed_url: str = "",
        signed_url_expires: Optional[datetime] = None,
    ) -> None:
        self.collection = collection
        self.basename = basename
        self.description = description
        self.size = size
        self.created = created
        self.modified = modified
        self.tags = tags
        self._location = location
        self.signed_url = signed_url
        self.signed_url_expires = signed_url_expires

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(basename={self.basename!r}, "
            f"location={str(self._location) if self._location else None!r})"
        )

    # -----------------------------------------------------------------------
    # State
    # -----------------------------------------------------------------------

    @property
    def location(self) -> Optional[RemoteLocation]:
        return self._location

    @property
    def installed(self) -> bool:
        return self._location is not None

    @property
    def ext(self) -> str:
        return self.basename.rsplit(".", 1)[-1] if "." in self.basename else ""

    def filesize(self) -> int:
        return self.size

    def install(self, source: Union[str, os.PathLike], *, transient: Optional[bool] = None) -> None:
        raise InstallNotAllowedError(
            f"{type(self).__name__} {self.basename!r} cannot be installed"
        )

    # -----------------------------------------------------------------------
    # Remote operations
    # -----------------------------------------------------------------------

    def read(self) -> BinaryIO:
        """
        Open the object for reading.

        The persisted location may point at a region or bucket other than
        the field's current default (after reconfiguration), so the read
        goes through a store view bound to the file's own location.
        """
        location = self._require_location("read")
        return self._store_view(location).get(location.key)

    def delete(self) -> None:
        """
        Delete the remote object.

        The location is kept - the file is expected to be discarded
        straight after this call.
        """
        location = self._require_location("delete")
        self._store_view(location).delete(location.key)
        logger.info(
            "Deleted remote file",
            extra={
                "owner_id": self.collection.owner_id,
                "field": self.collection.field.name,
                "basename": self.basename,
                "location": str(location),
            }
        )

    def signed_url_expired(self, now: Optional[datetime] = None) -> bool:
        """True when the cached URL is missing or its expiry has passed."""
        if not self.signed_url or self.signed_url_expires is None:
            return True
        return self.signed_url_expires <= (now or utc_now())

    def get_signed_url(self) -> str:
        """Return a valid signed URL, refreshing the cached one if needed."""
        if self.signed_url_expired():
            self.refresh_signed_url()
        return self.signed_url

    def refresh_signed_url(self) -> str:
        """
        Request a new signed URL and persist it.

        The new URL and expiry are written through the owner's save hook
        so the next request can reuse them without calling the store.
        """
        location = self._require_location("sign")
        url, store_expires = self._store_view(location).signed_url(
            location.key,
            self.collection.field.signed_url_ttl,
        )
        self.signed_url = url
        self.signed_url_expires = (store_expires - SIGNED_URL_SKEW).replace(microsecond=0)

        logger.info(
            "Refreshed signed URL",
            extra={
                "owner_id": self.collection.owner_id,
                "field": self.collection.field.name,
                "basename": self.basename,
                "expires": self.signed_url_expires.isoformat(),
            }
        )

        self.collection.save()
        return self.signed_url

    def url(self) -> str:
        """Public URL that resolves through the redirect gateway."""
        return self.collection.url_for(self)

    # -----------------------------------------------------------------------
    # Operations that need a local file
    # -----------------------------------------------------------------------

    def filename(self) -> str:
        raise UnsupportedOperationError("Remote files are never located on the disk")

    def rename(self, basename: str) -> None:
        raise UnsupportedOperationError("Renaming remote files is not supported")

    def copy_to_path(self, path: Union[str, os.PathLike]) -> None:
        raise UnsupportedOperationError("Copying remote files to a local path is not supported")

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _require_location(self, operation: str) -> RemoteLocation:
        if self._location is None:
            raise FileNotInstalledError(
                f"Cannot {operation} {self.basename or 'blank file'!r}: not installed"
            )
        return self._location

    def _store_view(self, location: RemoteLocation):
        return self.collection.store.with_location(location.region, location.bucket)


class RehydratedRemoteFile(RemoteFile):
    """
    A file woken up from persisted metadata.

    Always installed; installation is rejected whatever the arguments.
    """

    rehydrated = True

    def __init__(
        self,
        collection: "RemoteFileCollection",
        basename: str,
        *,
        location: RemoteLocation,
        **attributes,
    ) -> None:
        if location is None:
            raise FileNotInstalledError(
                f"Persisted file {basename!r} has no location"
            )
        super().__init__(collection, basename, location=location, **attributes)


class FreshRemoteFile(RemoteFile):
    """A new file that becomes remote when installed."""

    def __init__(self, collection: "RemoteFileCollection", **attributes) -> None:
        # A fresh file never starts with a location; it gets one from install()
        attributes.pop("location", None)
        super().__init__(collection, "", **attributes)

    def install(self, source: Union[str, os.PathLike], *, transient: Optional[bool] = None) -> None:
        """
        Upload source to the object store; allowed once per instance.

        A bare file name (no directory part) refers to an upload staged in
        the collection's staging directory and is removed afterwards, along
        with the directory when it is left empty. An explicit path belongs
        to the caller and is kept. ``transient`` overrides either default.

        Raises:
            InstallNotAllowedError: The file is already installed.
            SourceUnreadableError: The source cannot be read.
            ExtensionNotAllowedError: The extension is not allowed in the field.
            KeyExhaustedError: No free object key was found.
            StoreError: The upload failed. The file stays uninstalled.
        """
        if self.installed:
            raise InstallNotAllowedError(
                f"{self.basename!r} is already installed at {self.location}"
            )

        source_str = os.fspath(source)
        staged = os.path.basename(source_str) == source_str
        path = self.collection.staging_path() / source_str if staged else Path(source_str)
        if transient is None:
            transient = staged

        try:
            if not path.is_file() or not os.access(path, os.R_OK):
                raise SourceUnreadableError(f"Cannot read {path} - installation cancelled")

            basename = self.collection.resolve_free_name(path.name)
            ext = basename.rsplit(".", 1)[-1] if "." in basename else ""
            if not self.collection.field.allows_extension(ext):
                raise ExtensionNotAllowedError(
                    f"{basename!r}: extension not allowed in {self.collection.field.name!r}"
                )

            store = self.collection.store
            key = self._free_key(basename)
            size = path.stat().st_size

            store.put(path, key)

            now = utc_now()
            self.basename = basename
            self.size = size
            self.created = now
            self.modified = now
            self._location = RemoteLocation(region=store.region, bucket=store.bucket, key=key)

            logger.info(
                "Installed remote file",
                extra={
                    "owner_id": self.collection.owner_id,
                    "field": self.collection.field.name,
                    "basename": basename,
                    "location": str(self._location),
                    "size_bytes": size,
                }
            )
        finally:
            if transient:
                _remove_staged(path)

    def _free_key(self, basename: str) -> str:
        """
        Find an object key that is not taken yet.

        Check-then-put is not atomic, so this avoids collisions on a best
        effort basis only.
        """
        field = self.collection.field
        base_key = f"{field.key_prefix}_{field.name}_{self.collection.owner_id}_{basename}"
        key = base_key

        for _ in range(field.max_key_attempts):
            if not self.collection.store.exists(key):
                return key
            logger.debug("Object key taken", extra={"key": key})
            key = f"{base_key}_{uuid.uuid4().hex[:13]}"

        raise KeyExhaustedError(
            f"No free key for {basename!r} after {field.max_key_attempts} attempts"
        )


def _remove_staged(path: Path) -> None:
    """Remove a staged upload and its directory once that is empty."""
    path.unlink(missing_ok=True)
    directory = path.parent
    if directory.is_dir() and not any(directory.iterdir()):
        directory.rmdir()
