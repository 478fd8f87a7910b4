"""
Collections of remote files.

A collection holds the files of one field on one owner record, in order.
It keeps basenames unique, owns the local staging directory that uploads
pass through, and knows how to persist itself and render public URLs
through collaborators injected by the field.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol, Union

from .errors import DuplicateNameError, NotFoundError, RemoteFileError
from .models import FieldConfig
from .remote_file import FreshRemoteFile, RemoteFile
from .store import ObjectStoreClient

logger = logging.getLogger(__name__)

# save(owner_id, field_name)
SaveHook = Callable[[str, str], None]

_UNSAFE_STEM = re.compile(r"[^a-z0-9_-]+")
_UNSAFE_EXT = re.compile(r"[^a-z0-9]+")
_REPEATED_UNDERSCORE = re.compile(r"_{2,}")
_PLAIN_OWNER_ID = re.compile(r"^[a-z0-9_-]+$")


class UrlBuilder(Protocol):
    """Renders the public URL of a file."""

    def __call__(self, owner_id: str, field_name: str, basename: str) -> str:
        ...


def clean_basename(candidate: str) -> str:
    """
    Make a file name safe to use as a basename.

    Lowercases, replaces anything outside [a-z0-9_-] in the stem with an
    underscore (dots included, so only the extension dot survives) and
    strips the extension down to [a-z0-9].
    """
    name = Path(candidate.replace("\\", "/")).name.strip().lower()
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""

    stem = _REPEATED_UNDERSCORE.sub("_", _UNSAFE_STEM.sub("_", stem)).strip("_-")
    ext = _UNSAFE_EXT.sub("", ext)

    if not stem:
        stem = "file"
    return f"{stem}.{ext}" if ext else stem


def staging_dirname(owner_id: str) -> str:
    """
    Directory name of an owner's staging area.

    Lowercase ids made of [a-z0-9_-] are used as they are; anything else
    becomes a digest. The two forms use different separators, so they
    never meet.
    """
    owner_id = str(owner_id)
    if _PLAIN_OWNER_ID.match(owner_id):
        return f"owner_{owner_id}"
    return f"owner-{hashlib.sha256(owner_id.encode('utf-8')).hexdigest()[:16]}"


class RemoteFileCollection:
    """
    Ordered set of remote files for one (owner, field) pair.

    Free-name resolution is check-then-act and not coordinated between
    collection instances; a single writer per owner is assumed.
    """

    def __init__(
        self,
        owner_id: str,
        field: FieldConfig,
        store: ObjectStoreClient,
        *,
        staging_root: Union[str, Path],
        save_hook: Optional[SaveHook] = None,
        url_builder: Optional[UrlBuilder] = None,
    ) -> None:
        self.owner_id = str(owner_id)
        self.field = field
        self.store = store
        self._staging_root = Path(staging_root)
        self._save_hook = save_hook
        self._url_builder = url_builder
        self._files: list[RemoteFile] = []

    def __iter__(self) -> Iterator[RemoteFile]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, basename: object) -> bool:
        return self.get(str(basename)) is not None

    def __repr__(self) -> str:
        return (
            f"RemoteFileCollection(owner_id={self.owner_id!r}, "
            f"field={self.field.name!r}, files={self.basenames()!r})"
        )

    def get(self, basename: str) -> Optional[RemoteFile]:
        for file in self._files:
            if file.basename == basename:
                return file
        return None

    def basenames(self) -> list[str]:
        return [file.basename for file in self._files]

    # -----------------------------------------------------------------------
    # Naming
    # -----------------------------------------------------------------------

    def resolve_free_name(self, candidate: str) -> str:
        """
        Sanitize candidate and make it unique within this collection.

        Collisions get -1, -2, ... inserted before the extension:
        with a.txt and a-1.txt present, a.txt resolves to a-2.txt.
        """
        basename = clean_basename(candidate)
        stem, dot, ext = basename.rpartition(".")
        if not dot:
            stem, ext = basename, ""
        suffix = f".{ext}" if ext else ""

        counter = 0
        while basename in self:
            counter += 1
            basename = f"{stem}-{counter}{suffix}"
        return basename

    # -----------------------------------------------------------------------
    # Membership
    # -----------------------------------------------------------------------

    def add(self, file: RemoteFile) -> RemoteFile:
        """Append a file; its basename must be set and unused."""
        if not file.basename:
            raise DuplicateNameError("Cannot add a file without a basename")
        if file.basename in self:
            raise DuplicateNameError(
                f"{file.basename!r} already exists in {self.field.name!r} of owner {self.owner_id}"
            )
        self._files.append(file)
        return file

    def add_file(self, source: Union[str, Path], **attributes) -> FreshRemoteFile:
        """
        Install a new file from source and append it.

        A bare name is looked up in the staging directory (see
        FreshRemoteFile.install). Extra attributes such as description or
        tags are applied before installation.
        """
        file = FreshRemoteFile(self, **attributes)
        file.install(source)
        return self.add(file)

    def remove(self, item: Union[str, RemoteFile]) -> RemoteFile:
        """Delete the remote object of a file and drop it from the collection."""
        file = self.get(item) if isinstance(item, str) else item
        if file is None or file not in self._files:
            raise NotFoundError(f"{item!r} is not part of {self.field.name!r}")

        if file.installed:
            file.delete()
        self._files.remove(file)
        return file

    def discard(self, item: Union[str, RemoteFile]) -> RemoteFile:
        """
        Drop a file from the collection, leaving its remote object alone.

        Callers that persist before deleting the object use this, then
        call delete() on the returned file.
        """
        file = self.get(item) if isinstance(item, str) else item
        if file is None or file not in self._files:
            raise NotFoundError(f"{item!r} is not part of {self.field.name!r}")
        self._files.remove(file)
        return file

    def delete_all(self) -> int:
        """Delete every file of the collection. Returns count deleted."""
        count = 0
        for file in list(self._files):
            self.remove(file)
            count += 1
        return count

    def make_blank(self) -> FreshRemoteFile:
        """An empty fresh file bound to this collection, not yet added."""
        return FreshRemoteFile(self)

    # -----------------------------------------------------------------------
    # Collaborators
    # -----------------------------------------------------------------------

    def staging_path(self) -> Path:
        """
        Directory uploads for this owner are staged in before installation.

        Created on demand. Never used to read or keep file content.
        Distinct owner ids always get distinct directories, also on
        case-insensitive filesystems.
        """
        path = self._staging_root / staging_dirname(self.owner_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def save(self) -> None:
        """Persist the current metadata through the owner's save hook."""
        if self._save_hook is None:
            raise RemoteFileError(
                f"No save hook for {self.field.name!r} of owner {self.owner_id}"
            )
        self._save_hook(self.owner_id, self.field.name)

    def url_for(self, file: RemoteFile) -> str:
        if self._url_builder is None:
            raise RemoteFileError(f"No URL builder for {self.field.name!r}")
        return self._url_builder(self.owner_id, self.field.name, file.basename)
