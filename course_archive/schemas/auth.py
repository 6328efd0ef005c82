"""
Pydantic schemas for session/identity endpoints
"""
from typing import Optional

from pydantic import BaseModel


class IdentityResponse(BaseModel):
    email: str
    name: str


class LoginInfoResponse(BaseModel):
    authorization_path: str
    domain_hint: str
    error: Optional[str] = None
