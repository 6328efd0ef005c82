"""
Upload relay endpoints (shared-secret protected)
"""
import asyncio
import hmac
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from starlette.datastructures import UploadFile
from starlette.requests import ClientDisconnect

from ..core.config import settings
from ..schemas import RelayUploadResponse, RelayDeleteResponse
from ..services import (
    InvalidDeleteToken,
    ObjectStore,
    StorageWriteError,
    UploadTooLarge,
    check_delete_token,
    get_object_store,
    relay_upload,
)
from .proxy import InvalidObjectPath, validate_object_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/relay", tags=["relay"])

REQUIRED_FIELDS = ("course_id", "year", "semester")
MB = 1024 * 1024


def too_large_detail(max_bytes: int) -> str:
    """413 message naming the configured ceiling"""
    limit = f"{max_bytes // MB}MB" if max_bytes >= MB else f"{max_bytes} bytes"
    return f"File is too large. Max limit is {limit}."


def verify_upload_secret(
    secret: Annotated[Optional[str], Header(description="Shared upload credential")] = None
) -> None:
    """
    Exact match against UPLOAD_SECRET (constant time).

    Runs before the request body is read, so a wrong secret never uploads.
    """
    expected = settings.UPLOAD_SECRET
    if not expected or not secret or not hmac.compare_digest(secret.encode(), expected.encode()):
        logger.warning("🚫 Relay request with invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid upload secret"
        )


@router.post(
    "/upload",
    response_model=RelayUploadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_upload_secret)]
)
async def upload_to_store(
    request: Request,
    store: Annotated[ObjectStore, Depends(get_object_store)]
):
    """
    Accept multipart `file`, `course_id`, `year`, `semester` and write the
    file to the object store.

    The form is parsed here rather than declared as parameters so the secret
    check above runs before any payload is accepted. Nothing reaches the store
    until the whole body has arrived; a client that disconnects earlier gets
    its upload dropped.
    """
    try:
        form = await request.form(max_files=1, max_fields=10)
    except ClientDisconnect:
        logger.warning("⚠️ Client disconnected mid-upload, nothing stored")
        raise HTTPException(status_code=400, detail="Upload aborted by client")

    try:
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise HTTPException(status_code=400, detail="Missing field: file")

        fields = {name: str(form.get(name) or "").strip() for name in REQUIRED_FIELDS}
        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise HTTPException(status_code=400, detail=f"Missing field: {', '.join(missing)}")

        if upload.size is not None and upload.size > settings.MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail=too_large_detail(settings.MAX_UPLOAD_BYTES))

        logger.info(f"📤 Relay upload: {upload.filename} course={fields['course_id']} year={fields['year']}")

        try:
            return await relay_upload(
                store,
                upload,
                course_id=fields["course_id"],
                year=fields["year"],
                semester=fields["semester"],
                max_bytes=settings.MAX_UPLOAD_BYTES
            )
        except UploadTooLarge:
            raise HTTPException(status_code=413, detail=too_large_detail(settings.MAX_UPLOAD_BYTES))
        except StorageWriteError as e:
            raise HTTPException(status_code=502, detail=f"Upload to storage failed: {e}")
    finally:
        await form.close()


@router.delete(
    "/objects",
    response_model=RelayDeleteResponse,
    dependencies=[Depends(verify_upload_secret)]
)
async def delete_from_store(
    store: Annotated[ObjectStore, Depends(get_object_store)],
    path: Annotated[Optional[str], Query()] = None,
    token: Annotated[Optional[str], Query(description="delete_token returned by the upload")] = None
):
    """
    Remove an object. Compensating action for a failed catalog insert.

    Only the object named by the delete token issued with its upload can be
    removed; 403 otherwise.
    """
    try:
        object_path = validate_object_path(path)
    except InvalidObjectPath as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        check_delete_token(object_path, token)
    except InvalidDeleteToken as e:
        logger.warning(f"🚫 Refused delete of {object_path}: {e}")
        raise HTTPException(status_code=403, detail=str(e))

    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, store.delete, object_path)
    except StorageWriteError as e:
        raise HTTPException(status_code=502, detail=f"Delete from storage failed: {e}")

    return RelayDeleteResponse(status="deleted", hf_path=object_path)
