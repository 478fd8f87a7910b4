"""
URL resolution gateway.

Files are never streamed by this service. A public file URL points at the
gateway, which looks the file up, makes sure its cached signed URL is
still valid and hands that URL back for a redirect - the object store
does the byte transfer.
"""

import logging
from typing import Mapping
from urllib.parse import urlencode

from .errors import NotFoundError
from .field import RemoteFileField

logger = logging.getLogger(__name__)

GATEWAY_PATH = "/s3wrapper/"


class GatewayUrlBuilder:
    """Renders ``{root}{path}?page_id=..&field=..&basename=..`` URLs."""

    def __init__(self, root_url: str = "", path: str = GATEWAY_PATH) -> None:
        self.root_url = root_url.rstrip("/")
        self.path = path

    def __call__(self, owner_id: str, field_name: str, basename: str) -> str:
        query = urlencode({
            "page_id": owner_id,
            "field": field_name,
            "basename": basename,
        })
        return f"{self.root_url}{self.path}?{query}"


class UrlResolutionGateway:
    """Resolve (owner, field, basename) requests to signed URLs."""

    def __init__(self, fields: Mapping[str, RemoteFileField]) -> None:
        self._fields = fields

    def resolve(self, owner_id: str, field_name: str, basename: str) -> str:
        """
        Return a valid signed URL for the file.

        An empty or expired cached URL is refreshed first, which persists
        the new URL on the owner record.

        Raises:
            NotFoundError: Unknown field, owner or file.
            StoreError: The object store could not sign the URL.
        """
        field = self._fields.get(field_name)
        if field is None:
            raise NotFoundError(f"Field {field_name!r} does not exist")

        collection = field.load(owner_id)
        file = collection.get(basename)
        if file is None:
            raise NotFoundError(f"{basename} does not exist")

        if file.signed_url_expired():
            logger.debug(
                "Signed URL needs refreshing",
                extra={"owner_id": owner_id, "field": field_name, "basename": basename}
            )
            file.refresh_signed_url()

        return file.signed_url
