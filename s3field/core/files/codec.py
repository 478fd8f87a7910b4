"""
Metadata codec: remote files to persisted records and back.

decode() is the wakeup side: it rebuilds files straight from stored
attributes, including their location and cached signed URL, without ever
installing anything. encode() is the sleep side and never touches the
network either.

Persisted item schema:
    content_reference, description, size, location, signed_url,
    signed_url_expires, [modified], [created], [tags]
"""

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from .collection import RemoteFileCollection
from .errors import InvalidRecordError
from .models import FileSchema, RemoteLocation, format_timestamp, parse_timestamp
from .remote_file import RehydratedRemoteFile, RemoteFile

PersistedItem = dict[str, Any]


class MetadataCodec:
    """Translate between remote files and persisted items for one field."""

    def __init__(self, schema: FileSchema = FileSchema.DATE | FileSchema.TAGS) -> None:
        self.schema = schema

    def decode(
        self,
        value: Union[None, Mapping[str, Any], Iterable[Mapping[str, Any]]],
        collection: RemoteFileCollection,
    ) -> list[RehydratedRemoteFile]:
        """
        Rehydrate files from a persisted value.

        Accepts nothing, a single item or a list of items. Items without
        a content reference are skipped. The files are bound to collection
        but not added to it.
        """
        if not value:
            return []
        if isinstance(value, Mapping):
            value = [value]

        files = []
        for item in value:
            if not item.get("content_reference"):
                continue
            files.append(self._decode_item(item, collection))
        return files

    def encode(self, files: Iterable[RemoteFile]) -> list[PersistedItem]:
        """Persisted items for files, in order."""
        return [self._encode_item(file) for file in files]

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _decode_item(
        self,
        item: Mapping[str, Any],
        collection: RemoteFileCollection,
    ) -> RehydratedRemoteFile:
        basename = str(item["content_reference"])
        location = RemoteLocation.parse(item.get("location"))
        if location is None:
            raise InvalidRecordError(f"Persisted file {basename!r} has no location")

        try:
            size = int(item.get("size") or 0)
        except (TypeError, ValueError) as e:
            raise InvalidRecordError(f"Invalid size for {basename!r}: {item.get('size')!r}") from e

        return RehydratedRemoteFile(
            collection,
            basename,
            location=location,
            description=item.get("description") or "",
            size=size,
            created=_timestamp(item, "created", basename),
            modified=_timestamp(item, "modified", basename),
            tags=item.get("tags") or "",
            signed_url=item.get("signed_url") or "",
            signed_url_expires=_timestamp(item, "signed_url_expires", basename),
        )

    def _encode_item(self, file: RemoteFile) -> PersistedItem:
        item: PersistedItem = {
            "content_reference": file.basename,
            "description": file.description,
            "size": file.size,
            "location": str(file.location) if file.location else "",
            "signed_url": file.signed_url,
            "signed_url_expires": format_timestamp(file.signed_url_expires),
        }

        if self.schema & FileSchema.DATE:
            item["modified"] = format_timestamp(file.modified)
            item["created"] = format_timestamp(file.created)

        if self.schema & FileSchema.TAGS:
            item["tags"] = file.tags

        return item


def _timestamp(item: Mapping[str, Any], name: str, basename: str) -> Optional[datetime]:
    try:
        return parse_timestamp(item.get(name))
    except ValueError as e:
        raise InvalidRecordError(f"Invalid {name} for {basename!r}: {item.get(name)!r}") from e
