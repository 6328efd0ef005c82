"""
FastAPI endpoints for the course catalog
"""
import logging
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..models import Resource
from ..schemas import (
    CourseListResponse,
    CourseResourcesResponse,
    CourseSummary,
    DuplicateCheckResponse,
    InteractionRequest,
    InteractionResponse,
    ResourceCreate,
    ResourceGroup,
    ResourceResponse,
    VisibilityRequest,
)
from ..services import (
    AccessForbidden,
    CatalogService,
    Identity,
    ResourceNotFound,
    group_by_type,
    is_archive,
)
from .deps import require_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["catalog"])

Member = Annotated[Identity, Depends(require_member)]
Db = Annotated[AsyncSession, Depends(get_db)]


def download_url(storage_path: str) -> str:
    return f"{settings.PROXY_PUBLIC_URL}?path={quote(storage_path, safe='/')}"


def to_response(resource: Resource) -> ResourceResponse:
    item = ResourceResponse.model_validate(resource)
    item.download_url = download_url(resource.storage_path)
    item.is_archive = is_archive(resource.filename)
    return item


@router.get("/courses", response_model=CourseListResponse)
async def list_courses(
    identity: Member,
    db: Db,
    q: Annotated[Optional[str], Query(description="Search course id or name")] = None
):
    """Courses with visible-resource counts, busiest first"""
    rows = await CatalogService.list_courses(db, query=q)
    items = [CourseSummary(id=course.id, name=course.name, count=count) for course, count in rows]
    return CourseListResponse(items=items, total_count=len(items))


@router.get("/courses/{course_id}/resources", response_model=CourseResourcesResponse)
async def list_course_resources(course_id: str, identity: Member, db: Db):
    """Visible resources of one course grouped by type"""
    normalized = course_id.strip().upper()
    logger.info(f"📋 Listing resources for {normalized}")
    
    resources = await CatalogService.list_course_resources(db, normalized)
    groups = [
        ResourceGroup(type=label, resources=[to_response(r) for r in members])
        for label, members in group_by_type(resources)
    ]
    return CourseResourcesResponse(course_id=normalized, groups=groups, total_count=len(resources))


@router.get("/resources/exists", response_model=DuplicateCheckResponse)
async def check_duplicate(
    identity: Member,
    db: Db,
    fingerprint: Annotated[str, Query(min_length=64, max_length=64, pattern=r"^[0-9a-fA-F]{64}$")]
):
    """Does a visible resource with these bytes already exist?"""
    exists = await CatalogService.fingerprint_exists(db, fingerprint)
    return DuplicateCheckResponse(fingerprint=fingerprint.lower(), exists=exists)


@router.post("/resources", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
async def create_resource(request: ResourceCreate, identity: Member, db: Db):
    """Catalog an uploaded file. Uploader is the session identity."""
    try:
        resource = await CatalogService.add_resource(db, identity, request)
    except AccessForbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    return to_response(resource)


@router.delete("/resources/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_resource(resource_id: str, identity: Member, db: Db):
    """Delete your own resource (catalog row only)"""
    logger.info(f"🗑️  DELETE /api/resources/{resource_id} by {identity.email}")
    try:
        await CatalogService.delete_resource(db, identity, resource_id)
    except ResourceNotFound:
        raise HTTPException(status_code=404, detail="Resource not found")
    except AccessForbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/resources/{resource_id}/interactions", response_model=InteractionResponse)
async def add_interaction(
    resource_id: str,
    request: InteractionRequest,
    identity: Member,
    db: Db
):
    """Upvote or report a resource"""
    try:
        resource, recorded = await CatalogService.record_interaction(db, identity, resource_id, request.action)
    except ResourceNotFound:
        raise HTTPException(status_code=404, detail="Resource not found")
    except AccessForbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    
    return InteractionResponse(
        resource_id=resource.id,
        action=request.action,
        upvotes=resource.upvotes,
        recorded=recorded
    )


@router.patch("/resources/{resource_id}/visibility", response_model=ResourceResponse)
async def set_visibility(
    resource_id: str,
    request: VisibilityRequest,
    identity: Member,
    db: Db
):
    """Moderators hide or restore a resource"""
    try:
        resource = await CatalogService.set_visibility(db, identity, resource_id, request.is_hidden)
    except ResourceNotFound:
        raise HTTPException(status_code=404, detail="Resource not found")
    except AccessForbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    return to_response(resource)
