"""Schemas module exports"""
from .resource import (
    ResourceType,
    InteractionAction,
    ResourceCreate,
    ResourceResponse,
    ResourceGroup,
    CourseResourcesResponse,
    CourseSummary,
    CourseListResponse,
    DuplicateCheckResponse,
    InteractionRequest,
    InteractionResponse,
    VisibilityRequest,
)
from .relay import RelayUploadResponse, RelayDeleteResponse
from .auth import IdentityResponse, LoginInfoResponse

__all__ = [
    "ResourceType",
    "InteractionAction",
    "ResourceCreate",
    "ResourceResponse",
    "ResourceGroup",
    "CourseResourcesResponse",
    "CourseSummary",
    "CourseListResponse",
    "DuplicateCheckResponse",
    "InteractionRequest",
    "InteractionResponse",
    "VisibilityRequest",
    "RelayUploadResponse",
    "RelayDeleteResponse",
    "IdentityResponse",
    "LoginInfoResponse",
]
