"""
Download gateway.

Public file URLs point here. The gateway looks the file up, refreshes its
signed URL when the cached one has expired, and redirects to S3. Bytes
never pass through this service.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from ...core.files import GATEWAY_PATH, NotFoundError, StoreError
from ..dependencies import GatewayDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    GATEWAY_PATH,
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    summary="Redirect to a file",
    description="Redirects to a time-limited signed URL for the requested file.",
    responses={404: {"description": "Owner, field or file not found"}},
)
def resolve_file(
    gateway: GatewayDep,
    page_id: str = Query(..., description="Owner record ID"),
    field: str = Query(..., description="Remote file field name"),
    basename: str = Query(..., description="File basename"),
) -> RedirectResponse:
    try:
        url = gateway.resolve(page_id, field, basename)
    except NotFoundError as e:
        logger.info(
            "File not found",
            extra={"owner_id": page_id, "field": field, "basename": basename}
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreError as e:
        logger.error(
            "Could not sign file URL",
            extra={"owner_id": page_id, "field": field, "basename": basename, "kind": e.kind.value}
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Object store unavailable")

    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)
