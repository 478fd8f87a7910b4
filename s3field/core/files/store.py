"""
Object store interface used by remote files.

The core only needs a handful of operations from the object store. Keeping
them behind a Protocol means remote files don't know whether they talk to
S3 through boto3 or to an in-memory store in tests.
"""

from datetime import datetime
from os import PathLike
from typing import BinaryIO, Optional, Protocol, Union


class ObjectStoreClient(Protocol):
    """
    Protocol for object store operations.

    A client is bound to one region and bucket. ``with_region``,
    ``with_bucket`` and ``with_location`` return views bound elsewhere
    without changing the client they were called on, so the configured
    defaults stay in place for everyone else.
    """

    region: str
    bucket: str

    def put(self, local_path: Union[str, PathLike], key: str) -> None:
        """Upload the file at local_path under key."""
        ...

    def exists(self, key: str) -> bool:
        """Whether an object exists under key."""
        ...

    def get(self, key: str) -> BinaryIO:
        """Open the object under key for reading."""
        ...

    def delete(self, key: str) -> None:
        """Delete the object under key."""
        ...

    def signed_url(self, key: str, ttl: Optional[int] = None) -> tuple[str, datetime]:
        """Return a presigned GET URL and its absolute expiry."""
        ...

    def with_region(self, region: str) -> "ObjectStoreClient":
        ...

    def with_bucket(self, bucket: str) -> "ObjectStoreClient":
        ...

    def with_location(self, region: str, bucket: str) -> "ObjectStoreClient":
        ...

    def defaults(self) -> "ObjectStoreClient":
        """View bound to the configured default region and bucket."""
        ...
