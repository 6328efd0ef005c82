"""Upload client: validate, fingerprint, dedupe, relay with progress, catalog."""
import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from ..schemas import ResourceType
from .errors import (
    ArchiveError,
    CatalogWriteError,
    DuplicateResource,
    InvalidRelayResponse,
    InvalidServerResponse,
    MissingResourceType,
    NetworkError,
    NotAuthenticated,
    RelayError,
)
from .hasher import MAX_FILE_BYTES, check_file, fingerprint_file

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
OTHER = "Other"

ProgressCallback = Callable[[int], None]


@dataclass
class UploadMetadata:
    """Descriptive fields of the upload form"""
    course_id: str
    year: str
    semester: int = 1
    prof: str = ""
    resource_type: str = ResourceType.LECTURE_SLIDES.value
    other_type: str = ""  # free-text label when resource_type is "Other"

    @property
    def normalized_course_id(self) -> str:
        return self.course_id.strip().upper()

    @property
    def type_label(self) -> str:
        if self.resource_type == OTHER:
            return self.other_type.strip()
        return self.resource_type

    def validate(self) -> None:
        if self.resource_type == OTHER and not self.other_type.strip():
            raise MissingResourceType()


class ProgressTracker:
    """
    Turns byte counts into integer percentages.

    The callback only fires when the percentage goes up, so callers see a
    monotonically increasing 0..100 sequence.
    """

    def __init__(self, total_bytes: int, callback: Optional[ProgressCallback] = None):
        self.total_bytes = max(total_bytes, 0)
        self.callback = callback
        self.sent_bytes = 0
        self.percent = -1
        self._emit(0)

    def _emit(self, percent: int) -> None:
        percent = min(max(percent, 0), 100)
        if percent > self.percent:
            self.percent = percent
            if self.callback:
                self.callback(percent)

    def advance(self, num_bytes: int) -> None:
        self.sent_bytes += num_bytes
        if self.total_bytes:
            self._emit(round(self.sent_bytes * 100 / self.total_bytes))

    def finish(self) -> None:
        self._emit(100)


def _json_object(response: httpx.Response) -> dict:
    """Body of a 2xx response as a JSON object, else InvalidServerResponse"""
    try:
        payload = response.json()
    except ValueError as e:
        raise InvalidServerResponse() from e
    if not isinstance(payload, dict):
        raise InvalidServerResponse()
    return payload


def _error_message(response: httpx.Response, default: str) -> str:
    """FastAPI `detail`, else the plain body, else default"""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("detail"), str):
        return payload["detail"]
    text = response.text.strip()
    return text or default


class ArchiveClient:
    """
    Client for the archive server.

    Mirrors the browser upload form: every check that can fail without the
    network runs first, the duplicate check runs before any byte is sent, and
    the catalog row is written only after the store write succeeded. A failed
    catalog write deletes the just-stored blob through the relay.

    `upload()` is a coroutine; cancelling the task running it aborts the
    request stream and the relay never commits the partial file.
    """

    def __init__(
        self,
        upload_secret: str,
        base_url: str = API_BASE_URL,
        relay_url: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        session_cookie: Optional[str] = None,
        max_bytes: int = MAX_FILE_BYTES,
        timeout: float = 600.0
    ):
        self.base_url = base_url.rstrip("/")
        self.relay_url = (relay_url or f"{self.base_url}/relay").rstrip("/")
        self.upload_secret = upload_secret
        self.max_bytes = max_bytes
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=self.base_url,
            cookies={"session": session_cookie} if session_cookie else None,
            timeout=timeout
        )

    async def __aenter__(self) -> "ArchiveClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    def _raise_for_auth(self, response: httpx.Response) -> None:
        # The access gate answers with a redirect to /login
        if response.is_redirect or response.status_code in (401, 403):
            raise NotAuthenticated(_error_message(response, "You must be logged in to upload."))

    async def check_duplicate(self, fingerprint: str) -> bool:
        """True if a visible resource already has these bytes"""
        try:
            response = await self.http.get(
                f"{self.base_url}/api/resources/exists",
                params={"fingerprint": fingerprint}
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error during duplicate check: {e}") from e

        self._raise_for_auth(response)
        if not response.is_success:
            raise ArchiveError(_error_message(response, "Could not check for duplicates."))
        payload = _json_object(response)
        if "exists" not in payload:
            raise InvalidServerResponse()
        return bool(payload["exists"])

    async def upload_to_relay(
        self,
        file_path: Path,
        metadata: UploadMetadata,
        on_progress: Optional[ProgressCallback] = None
    ) -> dict:
        """
        Stream the multipart body to the relay, reporting progress as bytes go out.

        Returns the relay's JSON payload (`hf_path` or `path`, plus `delete_token`).
        """
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"

        with open(file_path, "rb") as fh:
            multipart = self.http.build_request(
                "POST",
                f"{self.relay_url}/upload",
                data={
                    "course_id": metadata.normalized_course_id,
                    "year": metadata.year.strip(),
                    "semester": str(metadata.semester),
                },
                files={"file": (file_path.name, fh, content_type)},
                headers={"secret": self.upload_secret}
            )
            total = int(multipart.headers.get("Content-Length") or file_path.stat().st_size)
            tracker = ProgressTracker(total, on_progress)

            async def body():
                async for chunk in multipart.stream:
                    yield chunk
                    tracker.advance(len(chunk))

            # Same headers (Content-Length included), body wrapped for progress
            request = self.http.build_request(
                "POST",
                multipart.url,
                content=body(),
                headers=multipart.headers
            )
            try:
                response = await self.http.send(request)
            except httpx.HTTPError as e:
                logger.error(f"❌ Relay upload failed for {file_path.name}: {e}")
                raise NetworkError() from e

        if not response.is_success:
            raise RelayError(_error_message(response, "Upload to storage failed."), response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidRelayResponse() from e
        if not isinstance(payload, dict) or not (payload.get("hf_path") or payload.get("path")):
            raise InvalidRelayResponse()

        tracker.finish()
        return payload

    async def delete_blob(self, hf_path: str, delete_token: Optional[str]) -> bool:
        """
        Compensating action: remove a just-stored blob. Returns False on failure.

        The relay only honours the delete token it issued for this path.
        """
        if not delete_token:
            logger.error(f"❌ Could not remove orphaned blob {hf_path}: relay issued no delete token")
            return False
        try:
            response = await self.http.delete(
                f"{self.relay_url}/objects",
                params={"path": hf_path, "token": delete_token},
                headers={"secret": self.upload_secret}
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ Could not remove orphaned blob {hf_path}: {e}")
            return False
        if not response.is_success:
            logger.error(f"❌ Could not remove orphaned blob {hf_path}: {response.status_code}")
            return False
        logger.info(f"🧹 Removed orphaned blob {hf_path}")
        return True

    async def create_resource(
        self,
        metadata: UploadMetadata,
        filename: str,
        hf_path: str,
        fingerprint: str,
        delete_token: Optional[str] = None
    ) -> dict:
        """
        Catalog insert. Failure compensates by deleting the blob, then raises.

        A 2xx answer that is not JSON raises InvalidServerResponse without
        compensating, since the row was most likely written.
        """
        failure: Optional[str] = None
        try:
            response = await self.http.post(
                f"{self.base_url}/api/resources",
                json={
                    "course_id": metadata.normalized_course_id,
                    "year": metadata.year.strip(),
                    "semester": metadata.semester,
                    "prof": metadata.prof,
                    "type": metadata.type_label,
                    "filename": filename,
                    "hf_path": hf_path,
                    "file_hash": fingerprint,
                }
            )
        except httpx.HTTPError as e:
            failure = f"Network error while saving the resource: {e}"
        else:
            if response.is_success:
                return _json_object(response)
            failure = _error_message(response, "Could not save the resource.")

        logger.error(f"❌ Catalog insert failed for {hf_path}: {failure}")
        compensated = await self.delete_blob(hf_path, delete_token)
        raise CatalogWriteError(failure, hf_path=hf_path, compensated=compensated)

    async def upload(
        self,
        path: Optional[Union[str, os.PathLike]],
        metadata: UploadMetadata,
        on_progress: Optional[ProgressCallback] = None
    ) -> dict:
        """
        Full upload pipeline. Returns the created catalog resource.

        Raises an ArchiveError subclass at the first failing step.
        """
        metadata.validate()
        file_path = check_file(path, self.max_bytes)
        fingerprint = fingerprint_file(file_path, self.max_bytes)
        logger.info(f"🔍 {file_path.name} fingerprint {fingerprint[:16]}...")

        if await self.check_duplicate(fingerprint):
            raise DuplicateResource(fingerprint)

        payload = await self.upload_to_relay(file_path, metadata, on_progress)
        hf_path = payload.get("hf_path") or payload.get("path")
        delete_token = payload.get("delete_token")

        relayed = payload.get("fingerprint")
        if relayed and relayed != fingerprint:
            await self.delete_blob(hf_path, delete_token)
            raise InvalidRelayResponse("Uploaded content does not match the selected file.")

        resource = await self.create_resource(metadata, file_path.name, hf_path, fingerprint, delete_token)
        logger.info(f"✅ Uploaded {file_path.name} -> {hf_path}")
        return resource


def main():
    """CLI for the upload client."""
    parser = argparse.ArgumentParser(description="Contribute a resource to the course archive")
    parser.add_argument("file")
    parser.add_argument("--course", required=True, help="Course ID, e.g. 'CS F111'")
    parser.add_argument("--year", required=True, help="Academic year, e.g. '2023-24'")
    parser.add_argument("--semester", type=int, choices=[1, 2], default=1)
    parser.add_argument("--prof", default="")
    parser.add_argument("--type", default=ResourceType.LECTURE_SLIDES.value,
                        help=f"One of {[t.value for t in ResourceType]} or '{OTHER}'")
    parser.add_argument("--other-type", default="", help="Label when --type is 'Other'")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    metadata = UploadMetadata(
        course_id=args.course,
        year=args.year,
        semester=args.semester,
        prof=args.prof,
        resource_type=args.type,
        other_type=args.other_type
    )

    def show_progress(percent: int) -> None:
        label = f"Uploading... {percent}%" if percent < 100 else "Processing..."
        print(f"\r{label}", end="", flush=True)

    async def run() -> dict:
        async with ArchiveClient(
            upload_secret=os.getenv("UPLOAD_SECRET", ""),
            relay_url=os.getenv("RELAY_URL"),
            session_cookie=os.getenv("ARCHIVE_SESSION")
        ) as client:
            return await client.upload(args.file, metadata, on_progress=show_progress)

    try:
        resource = asyncio.run(run())
    except ArchiveError as e:
        print(f"\n✗ {e}")
        sys.exit(1)

    print(f"\n✓ Resource uploaded successfully! ({resource['hf_path']})")


if __name__ == "__main__":
    main()
