"""
Error taxonomy for remote file fields.

Every error the core raises derives from RemoteFileError, so callers at
the edge (HTTP handlers, scripts) can catch the family in one place while
still telling a missing file apart from a failing object store.
"""

from enum import Enum
from typing import Optional


class RemoteFileError(Exception):
    """Base class for all remote file field errors."""
    pass


class ConfigurationError(RemoteFileError):
    """Store credentials, region or bucket are missing or invalid."""
    pass


class SourceUnreadableError(RemoteFileError):
    """The local upload source is missing or cannot be read."""
    pass


class InstallNotAllowedError(RemoteFileError):
    """
    Installation attempted on a rehydrated or already-installed file.

    This is a programming error. Loading previously saved metadata must
    never cause a new upload.
    """
    pass


class FileNotInstalledError(RemoteFileError):
    """A remote operation was attempted on a file that has no location yet."""
    pass


class DuplicateNameError(RemoteFileError):
    """A basename is already taken inside the collection."""
    pass


class NotFoundError(RemoteFileError):
    """The requested owner, field or file does not exist."""
    pass


class KeyExhaustedError(RemoteFileError):
    """No free object key was found within the allowed number of attempts."""
    pass


class ExtensionNotAllowedError(RemoteFileError):
    """The file extension is not on the field's allow-list."""
    pass


class UnsupportedOperationError(RemoteFileError):
    """The operation makes no sense for a file that never lives on disk."""
    pass


class InvalidRecordError(RemoteFileError):
    """A persisted metadata item cannot be decoded."""
    pass


class StoreErrorKind(Enum):
    """Why an object store call failed."""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    UNKNOWN = "unknown"


class StoreError(RemoteFileError):
    """Raised when an object store operation fails."""

    def __init__(
        self,
        kind: StoreErrorKind,
        message: str,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.key = key
