"""
Remote file field: files whose bytes live in the object store.

- remote_file: one file, with the install-once state machine
- collection: the files of one field on one owner record
- codec: wakeup/sleep between files and persisted records
- field: wires the above to the store and owner persistence
- gateway: resolves public file URLs to signed URLs
"""

from .codec import MetadataCodec
from .collection import RemoteFileCollection, clean_basename
from .errors import (
    ConfigurationError,
    DuplicateNameError,
    ExtensionNotAllowedError,
    FileNotInstalledError,
    InstallNotAllowedError,
    InvalidRecordError,
    KeyExhaustedError,
    NotFoundError,
    RemoteFileError,
    SourceUnreadableError,
    StoreError,
    StoreErrorKind,
    UnsupportedOperationError,
)
from .field import OwnerRecordStore, RemoteFileField
from .gateway import GATEWAY_PATH, GatewayUrlBuilder, UrlResolutionGateway
from .models import FieldConfig, FileSchema, RemoteLocation
from .remote_file import FreshRemoteFile, RehydratedRemoteFile, RemoteFile
from .store import ObjectStoreClient

__all__ = [
    "ConfigurationError",
    "DuplicateNameError",
    "ExtensionNotAllowedError",
    "FieldConfig",
    "FileNotInstalledError",
    "FileSchema",
    "FreshRemoteFile",
    "GATEWAY_PATH",
    "GatewayUrlBuilder",
    "InstallNotAllowedError",
    "InvalidRecordError",
    "KeyExhaustedError",
    "MetadataCodec",
    "NotFoundError",
    "ObjectStoreClient",
    "OwnerRecordStore",
    "RehydratedRemoteFile",
    "RemoteFile",
    "RemoteFileCollection",
    "RemoteFileError",
    "RemoteFileField",
    "RemoteLocation",
    "SourceUnreadableError",
    "StoreError",
    "StoreErrorKind",
    "UnsupportedOperationError",
    "UrlResolutionGateway",
    "clean_basename",
]
