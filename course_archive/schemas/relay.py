"""
Pydantic schemas for the upload relay
"""
from pydantic import BaseModel, Field


class RelayUploadResponse(BaseModel):
    """Successful relay write. `hf_path` is what the catalog stores."""
    hf_path: str = Field(..., description="Relative path of the object inside the store")
    fingerprint: str = Field(..., description="SHA-256 of the bytes the relay received")
    size_bytes: int
    delete_token: str = Field(..., description="Authorizes removing this object if the catalog insert fails")


class RelayDeleteResponse(BaseModel):
    status: str
    hf_path: str
