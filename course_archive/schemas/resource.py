"""
Pydantic schemas for catalog request/response validation
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ResourceType(str, Enum):
    """Fixed resource categories. Anything else is an "Other" free-text label."""
    LECTURE_SLIDES = "Lecture Slides"
    TUTORIALS = "Tutorials"
    LAB_MANUALS = "Lab Manuals"
    PYQ_WITH_SOLUTIONS = "PYQ (with soln.)"
    PYQ_WITHOUT_SOLUTIONS = "PYQ (without soln.)"


class InteractionAction(str, Enum):
    UPVOTE = "upvote"
    REPORT = "report"


class ResourceCreate(BaseModel):
    """Catalog insert. Uploader identity is NOT accepted here; it comes from the session."""
    course_id: str = Field(..., min_length=1, max_length=32, description="Course code, e.g. 'CS F111'")
    year: str = Field(..., min_length=1, max_length=32, description="Academic year, e.g. '2023-24'")
    semester: int = Field(..., ge=1, le=2)
    prof: str = Field("", max_length=255)
    type: str = Field(..., min_length=1, max_length=100, description="Resource type label")
    filename: str = Field(..., min_length=1, max_length=512)
    hf_path: str = Field(..., min_length=1, max_length=1024, description="Path returned by the upload relay")
    file_hash: str = Field(..., min_length=64, max_length=64, pattern=r"^[0-9a-f]{64}$")
    
    @field_validator("course_id")
    @classmethod
    def normalize_course_id(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("course_id cannot be blank")
        return value
    
    @field_validator("type")
    @classmethod
    def strip_type(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("type cannot be blank")
        return value


class ResourceResponse(BaseModel):
    """Resource metadata as listed on course pages"""
    model_config = ConfigDict(from_attributes=True)
    
    id: str
    course_id: str
    year: str
    semester: int
    prof: str
    type: str
    filename: str
    hf_path: str = Field(validation_alias=AliasChoices("storage_path", "hf_path"))
    file_hash: str
    uploader_name: str
    uploader_email: str
    upvotes: int
    created_at: datetime
    download_url: Optional[str] = None
    is_archive: bool = False


class ResourceGroup(BaseModel):
    """Resources of one type on a course page"""
    type: str
    resources: list[ResourceResponse]


class CourseResourcesResponse(BaseModel):
    course_id: str
    groups: list[ResourceGroup]
    total_count: int


class CourseSummary(BaseModel):
    id: str
    name: Optional[str]
    count: int


class CourseListResponse(BaseModel):
    items: list[CourseSummary]
    total_count: int


class DuplicateCheckResponse(BaseModel):
    fingerprint: str
    exists: bool


class InteractionRequest(BaseModel):
    action: InteractionAction


class InteractionResponse(BaseModel):
    resource_id: str
    action: InteractionAction
    upvotes: int
    recorded: bool = Field(description="False when a repeated upvote was ignored")


class VisibilityRequest(BaseModel):
    is_hidden: bool
