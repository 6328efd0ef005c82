"""
Upload relay: receive a multipart file and write it to the object store
"""
import asyncio
import hashlib
import logging
from pathlib import PurePosixPath
from typing import Optional
from uuid import uuid4

from fastapi import UploadFile
from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from ..core.config import settings
from ..schemas import RelayUploadResponse
from .storage import ObjectStore

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB
DELETE_TOKEN_SALT = "relay-delete"


class UploadTooLarge(Exception):
    """Payload exceeded the configured ceiling"""


class InvalidDeleteToken(Exception):
    """Delete token missing, forged, expired or issued for another object"""


def _safe_segment(value: str, fallback: str = "_") -> str:
    """Make one path segment: no separators, no dot-only names."""
    cleaned = value.strip().replace("/", "_").replace("\\", "_")
    if cleaned in ("", ".", ".."):
        return fallback
    return cleaned


def _delete_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.RELAY_TOKEN_SECRET, salt=DELETE_TOKEN_SALT)


def issue_delete_token(storage_path: str) -> str:
    """Signed, timestamped token that authorizes deleting exactly this object"""
    return _delete_serializer().dumps(storage_path)


def check_delete_token(storage_path: str, token: Optional[str], max_age: Optional[int] = None) -> None:
    """
    Raise InvalidDeleteToken unless token was issued by this relay for
    storage_path within max_age seconds.
    The upload secret alone never authorizes a delete.
    """
    if not token:
        raise InvalidDeleteToken("Missing delete token")
    max_age = settings.DELETE_TOKEN_MAX_AGE if max_age is None else max_age
    try:
        signed_path = _delete_serializer().loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise InvalidDeleteToken("Delete token expired") from e
    except BadData as e:
        raise InvalidDeleteToken("Invalid delete token") from e
    if signed_path != storage_path:
        raise InvalidDeleteToken("Delete token was issued for another object")


def derive_storage_path(
    course_id: str,
    year: str,
    semester: str,
    filename: str,
    token: Optional[str] = None
) -> str:
    """
    Build the object path for an upload.
    
    Format: {COURSE}/{year}/sem{semester}/{token}/{filename}
    Example: CS F111/2023-24/sem1/3f9a0c1d2e4b/Lecture 1.pdf
    
    The random token keeps concurrent uploads of the same file name (or the
    same bytes) from overwriting each other. The file name stays last so the
    proxy can use it as the download name.
    """
    token = token or uuid4().hex[:12]
    name = PurePosixPath(filename.replace("\\", "/")).name
    return "/".join([
        _safe_segment(course_id.upper()),
        _safe_segment(year),
        f"sem{_safe_segment(semester)}",
        token,
        _safe_segment(name, fallback="upload.bin"),
    ])


async def relay_upload(
    store: ObjectStore,
    upload: UploadFile,
    course_id: str,
    year: str,
    semester: str,
    max_bytes: int
) -> RelayUploadResponse:
    """
    Hash the received bytes, then write them to the store.
    
    The multipart body has already been fully received by the time this runs,
    so an aborted client never reaches the store write.
    
    Raises:
        UploadTooLarge: file exceeds max_bytes
        StorageWriteError: the store refused the write
    """
    hasher = hashlib.sha256()
    size_bytes = 0
    while chunk := await upload.read(CHUNK_SIZE):
        size_bytes += len(chunk)
        if size_bytes > max_bytes:
            raise UploadTooLarge(f"File exceeds {max_bytes} bytes")
        hasher.update(chunk)
    await upload.seek(0)
    
    fingerprint = hasher.hexdigest()
    storage_path = derive_storage_path(course_id, year, semester, upload.filename or "")
    content_type = upload.content_type or "application/octet-stream"
    
    # Blocking MinIO call, run in executor to keep the event loop free
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(
        None,
        store.put_file,
        storage_path,
        upload.file,
        size_bytes,
        content_type
    )
    logger.info(f"📤 Relayed {upload.filename} -> {storage_path} ({size_bytes} bytes, hash: {fingerprint[:8]})")
    
    return RelayUploadResponse(
        hf_path=storage_path,
        fingerprint=fingerprint,
        size_bytes=size_bytes,
        delete_token=issue_delete_token(storage_path)
    )
