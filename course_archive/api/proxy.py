"""
Origin proxy: serve object-store files without revealing the store

Stateless per request. The upstream client is shared but carries no
per-request state.
"""
import logging
from typing import Annotated, Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from ..core.config import settings
from .deps import get_upstream_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

NOT_FOUND_BODY = "File not found in Archive"

HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}

# Headers that would reveal which storage provider sits behind the proxy
IDENTIFYING_HEADERS = {
    "x-linked-etag",
    "x-linked-size",
    "x-amz-storage-class",
    "x-repo-commit",
    "x-powered-by",
    "server",
    "via",
    "set-cookie",
    "content-disposition",  # replaced with our own
}
IDENTIFYING_PREFIXES = ("x-amz-", "x-linked-")


class InvalidObjectPath(ValueError):
    pass


def validate_object_path(path: Optional[str]) -> str:
    """
    Check a caller-supplied object path.
    
    The path is otherwise opaque, but it must stay inside the configured
    dataset: no leading slash, no backslashes, no '.' or '..' segments.
    """
    if not path or not path.strip():
        raise InvalidObjectPath("Missing path")
    if path.startswith("/") or "\\" in path:
        raise InvalidObjectPath("Invalid path")
    if any(segment in (".", "..") for segment in path.split("/")):
        raise InvalidObjectPath("Invalid path")
    return path


def build_upstream_url(path: str, base_url: Optional[str] = None) -> str:
    """Base URL + percent-encoded path ('?' and '#' cannot leak into the query)"""
    base_url = base_url or settings.UPSTREAM_BASE_URL
    if not base_url.endswith("/"):
        base_url += "/"
    return base_url + quote(path, safe="/")


def content_disposition(path: str) -> str:
    """attachment header naming the last path segment"""
    filename = path.rstrip("/").split("/")[-1] or "download"
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    if escaped.isascii():
        return f'attachment; filename="{escaped}"'
    fallback = escaped.encode("ascii", "replace").decode("ascii")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def scrub_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Upstream headers minus hop-by-hop and provider-identifying ones"""
    kept = []
    for name, value in headers.multi_items():
        lowered = name.lower()
        if lowered in HOP_BY_HOP_HEADERS or lowered in IDENTIFYING_HEADERS:
            continue
        if lowered.startswith(IDENTIFYING_PREFIXES):
            continue
        kept.append((lowered, value))
    return kept


@router.api_route("/proxy", methods=["GET", "HEAD"])
async def proxy_object(
    request: Request,
    client: Annotated[httpx.AsyncClient, Depends(get_upstream_client)],
    path: Annotated[Optional[str], Query(description="Relative object path inside the archive")] = None
):
    """
    Stream an archived object.

    The caller's method is forwarded upstream, but only GET and HEAD are
    routed; anything else is answered 405 here without an upstream request.

    - 400 if path is missing or escapes the dataset
    - 404 (generic body) if the upstream says no
    - 502/504 if the upstream is unreachable; single attempt, no retry
    """
    try:
        object_path = validate_object_path(path)
    except InvalidObjectPath as e:
        return PlainTextResponse(str(e), status_code=400)
    
    upstream_headers = {"User-Agent": settings.UPSTREAM_USER_AGENT}
    if settings.UPSTREAM_TOKEN:
        upstream_headers["Authorization"] = f"Bearer {settings.UPSTREAM_TOKEN}"
    
    upstream_request = client.build_request(
        request.method,
        build_upstream_url(object_path),
        headers=upstream_headers
    )
    
    try:
        upstream = await client.send(upstream_request, stream=True)
    except httpx.TimeoutException as e:
        logger.error(f"❌ Upstream timeout for {object_path}: {e}")
        return PlainTextResponse("Archive timed out", status_code=504)
    except httpx.HTTPError as e:
        logger.error(f"❌ Upstream unreachable for {object_path}: {e}")
        return PlainTextResponse("Archive unavailable", status_code=502)
    
    if not upstream.is_success:
        logger.info(f"🔍 Upstream returned {upstream.status_code} for {object_path}")
        await upstream.aclose()
        return PlainTextResponse(NOT_FOUND_BODY, status_code=404)
    
    logger.info(f"📥 Proxying {request.method} {object_path}")
    
    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose)
    )
    for name, value in scrub_headers(upstream.headers):
        response.headers.append(name, value)
    response.headers["content-disposition"] = content_disposition(object_path)
    return response
