"""
Field binding for remote file fields.

A RemoteFileField ties one field's configuration to the object store, the
owner record store and the metadata codec. It produces collections that
are fully wired (store, save hook, URL builder) and it is the save hook:
saving writes the field's in-memory collection back to the owner record.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from .codec import MetadataCodec, PersistedItem
from .collection import RemoteFileCollection, UrlBuilder
from .errors import NotFoundError, RemoteFileError
from .models import FieldConfig
from .store import ObjectStoreClient

logger = logging.getLogger(__name__)


class OwnerRecordStore(Protocol):
    """
    Persistence for owner records and their field values.

    Using a protocol means the field doesn't know whether records live in
    Snowflake or in a dictionary in a test.
    """

    def owner_exists(self, owner_id: str) -> bool:
        ...

    def load_field(self, owner_id: str, field_name: str) -> Optional[list[dict[str, Any]]]:
        """Persisted items of a field, or None if the owner does not exist."""
        ...

    def save_field(self, owner_id: str, field_name: str, items: list[dict[str, Any]]) -> None:
        ...


class RemoteFileField:
    """
    One remote file field, as seen by the owner records that carry it.

    Collections loaded through load() are cached per owner; save() persists
    the cached collection. A cache lives as long as the field instance,
    which the API layer creates per request.
    """

    def __init__(
        self,
        config: FieldConfig,
        store: ObjectStoreClient,
        records: OwnerRecordStore,
        *,
        staging_root: Union[str, Path],
        url_builder: Optional[UrlBuilder] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.records = records
        self.codec = MetadataCodec(config.schema)
        self._staging_root = Path(staging_root)
        self._url_builder = url_builder
        self._loaded: dict[str, RemoteFileCollection] = {}

    @property
    def name(self) -> str:
        return self.config.name

    def blank_value(self, owner_id: str) -> RemoteFileCollection:
        """An empty collection for owner_id, wired to this field."""
        return RemoteFileCollection(
            owner_id,
            self.config,
            self.store,
            staging_root=self._staging_root,
            save_hook=self.save,
            url_builder=self._url_builder,
        )

    def wakeup_value(self, owner_id: str, value: Any) -> RemoteFileCollection:
        """
        Rebuild the collection from a persisted value.

        Every file comes back rehydrated, so waking up never uploads.
        """
        collection = self.blank_value(owner_id)
        for file in self.codec.decode(value, collection):
            collection.add(file)
        return collection

    def sleep_value(self, collection: RemoteFileCollection) -> list[PersistedItem]:
        return self.codec.encode(collection)

    def load(self, owner_id: str) -> RemoteFileCollection:
        """
        The collection of owner_id, loaded once per field instance.

        Raises:
            NotFoundError: The owner record does not exist.
        """
        owner_id = str(owner_id)
        if owner_id in self._loaded:
            return self._loaded[owner_id]

        value = self.records.load_field(owner_id, self.name)
        if value is None:
            raise NotFoundError(f"Owner {owner_id} not found")

        collection = self.wakeup_value(owner_id, value)
        self._loaded[owner_id] = collection

        logger.debug(
            "Loaded field value",
            extra={"owner_id": owner_id, "field": self.name, "files": len(collection)}
        )
        return collection

    def save(self, owner_id: str, field_name: str) -> None:
        """Save hook: persist the loaded collection of owner_id."""
        if field_name != self.name:
            raise RemoteFileError(f"Field {self.name!r} cannot save {field_name!r}")

        collection = self._loaded.get(str(owner_id))
        if collection is None:
            raise RemoteFileError(
                f"Nothing loaded for owner {owner_id} in field {self.name!r}"
            )

        items = self.sleep_value(collection)
        self.records.save_field(collection.owner_id, self.name, items)

        logger.info(
            "Saved field value",
            extra={"owner_id": collection.owner_id, "field": self.name, "files": len(items)}
        )

    def delete_value(self, owner_id: str) -> int:
        """
        Delete every remote object of the field and persist the empty value.

        If a delete fails part way, the files removed so far are still
        persisted as gone before the error propagates.
        """
        collection = self.load(owner_id)
        try:
            count = collection.delete_all()
        finally:
            self.save(collection.owner_id, self.name)
        return count
