"""
Owner and file management endpoints.

Uploads are staged in the owner's staging directory, installed into S3
and recorded on the owner record in one request. Handlers are plain
functions: every call below blocks on S3 or Snowflake, so FastAPI runs
them in its threadpool.
"""

import logging
import shutil
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.files import (
    ExtensionNotAllowedError,
    KeyExhaustedError,
    NotFoundError,
    RemoteFile,
    RemoteFileCollection,
    RemoteFileField,
    SourceUnreadableError,
    StoreError,
    clean_basename,
)
from ..dependencies import FileFieldsDep, OwnerRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class FileItem(BaseModel):
    """A file of a remote file field."""
    basename: str = Field(description="Unique name within the field")
    description: str = Field(description="Free-form description")
    tags: str = Field(description="Space-separated tags")
    size: int = Field(description="Size in bytes")
    created: Optional[datetime] = Field(None, description="When the file was installed")
    modified: Optional[datetime] = Field(None, description="Last modification time")
    url: str = Field(description="Public URL (resolves through the download gateway)")
    location: str = Field(description="region:bucket:key of the object")


class FileListResponse(BaseModel):
    """All files of one field on one owner."""
    owner_id: str
    field: str
    files: list[FileItem]


class OwnerResponse(BaseModel):
    owner_id: str


class DeleteFieldResponse(BaseModel):
    owner_id: str
    field: str
    deleted: int = Field(description="Number of files deleted")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _file_item(file: RemoteFile) -> FileItem:
    return FileItem(
        basename=file.basename,
        description=file.description,
        tags=file.tags,
        size=file.size,
        created=file.created,
        modified=file.modified,
        url=file.url(),
        location=str(file.location) if file.location else "",
    )


def _load_collection(
    fields: dict[str, RemoteFileField],
    owner_id: str,
    field: str,
) -> RemoteFileCollection:
    file_field = fields.get(field)
    if file_field is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Field {field!r} does not exist")
    try:
        return file_field.load(owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _store_unavailable(error: StoreError, owner_id: str, field: str) -> HTTPException:
    logger.error(
        "Object store operation failed",
        extra={"owner_id": owner_id, "field": field, "kind": error.kind.value, "error": str(error)}
    )
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Object store unavailable")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/{owner_id}",
    response_model=OwnerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an owner record",
)
def create_owner(owner_id: str, repository: OwnerRepositoryDep) -> OwnerResponse:
    repository.create_owner(owner_id)
    logger.info("Registered owner", extra={"owner_id": owner_id})
    return OwnerResponse(owner_id=owner_id)


@router.get(
    "/{owner_id}/fields/{field}/files",
    response_model=FileListResponse,
    summary="List files of a field",
)
def list_files(owner_id: str, field: str, fields: FileFieldsDep) -> FileListResponse:
    collection = _load_collection(fields, owner_id, field)
    return FileListResponse(
        owner_id=owner_id,
        field=field,
        files=[_file_item(file) for file in collection],
    )


@router.post(
    "/{owner_id}/fields/{field}/files",
    response_model=FileItem,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description="Stages the upload, installs it into S3 and saves the owner's field value.",
)
def upload_file(
    owner_id: str,
    field: str,
    fields: FileFieldsDep,
    file: UploadFile = File(...),
    description: str = Form(""),
    tags: str = Form(""),
) -> FileItem:
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="filename is required")

    collection = _load_collection(fields, owner_id, field)

    # The staged copy is removed by installation, whatever the outcome
    staged_name = clean_basename(file.filename)
    with (collection.staging_path() / staged_name).open("wb") as staged:
        shutil.copyfileobj(file.file, staged)

    try:
        remote = collection.add_file(staged_name, description=description, tags=tags)
    except (SourceUnreadableError, ExtensionNotAllowedError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except KeyExhaustedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreError as e:
        raise _store_unavailable(e, owner_id, field)

    try:
        collection.save()
    except Exception:
        # Nothing references the new object once the save has failed
        logger.error(
            "Saving field failed, removing uploaded object",
            extra={"owner_id": owner_id, "field": field, "location": str(remote.location)}
        )
        try:
            remote.delete()
        except StoreError as e:
            logger.warning(
                "Could not remove orphaned object",
                extra={"location": str(remote.location), "error": str(e)}
            )
        raise

    logger.info(
        "Uploaded file",
        extra={"owner_id": owner_id, "field": field, "basename": remote.basename, "size_bytes": remote.size}
    )
    return _file_item(remote)


@router.delete(
    "/{owner_id}/fields/{field}/files/{basename}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a file",
)
def delete_file(owner_id: str, field: str, basename: str, fields: FileFieldsDep) -> Response:
    """
    The record is saved before the object is deleted, so a failure in
    between leaves an unreferenced object rather than a dangling entry.
    """
    collection = _load_collection(fields, owner_id, field)
    try:
        removed = collection.discard(basename)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    collection.save()

    try:
        removed.delete()
    except StoreError as e:
        raise _store_unavailable(e, owner_id, field)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{owner_id}/fields/{field}",
    response_model=DeleteFieldResponse,
    summary="Delete all files of a field",
)
def delete_field_value(owner_id: str, field: str, fields: FileFieldsDep) -> DeleteFieldResponse:
    file_field = fields.get(field)
    if file_field is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Field {field!r} does not exist")

    try:
        deleted = file_field.delete_value(owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreError as e:
        raise _store_unavailable(e, owner_id, field)

    logger.info(
        "Deleted field value",
        extra={"owner_id": owner_id, "field": field, "files": deleted}
    )
    return DeleteFieldResponse(owner_id=owner_id, field=field, deleted=deleted)
