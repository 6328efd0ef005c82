"""
Domain-restricted access rules

The gate in the API layer uses evaluate_access() to decide redirects. Service
functions call ensure_member() again on their own, because the gate is a
convenience for page flows and not the security boundary.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..core.config import settings


@dataclass(frozen=True)
class Identity:
    """Authenticated viewer as resolved from the session"""
    email: str
    name: str = ""
    
    @property
    def display_name(self) -> str:
        """Full name, else email local part, else 'Student'"""
        if self.name.strip():
            return self.name.strip()
        local_part = self.email.split("@")[0]
        return local_part or "Student"


class AccessDecision(str, Enum):
    ALLOW = "allow"
    LOGIN_REQUIRED = "login_required"
    DOMAIN_REJECTED = "domain_rejected"


class AccessForbidden(Exception):
    """Caller is authenticated but not allowed to perform the operation"""


def email_in_domain(email: str, domain: str) -> bool:
    """
    Case-insensitive domain match.
    
    Accepts user@domain and user@campus.domain, rejects user@evildomain.
    """
    email = email.strip().lower()
    domain = domain.strip().lower().lstrip("@")
    if "@" not in email or not domain:
        return False
    return email.endswith("@" + domain) or email.endswith("." + domain)


def evaluate_access(identity: Optional[Identity], domain: Optional[str] = None) -> AccessDecision:
    domain = domain or settings.ALLOWED_EMAIL_DOMAIN
    if identity is None:
        return AccessDecision.LOGIN_REQUIRED
    if not email_in_domain(identity.email, domain):
        return AccessDecision.DOMAIN_REJECTED
    return AccessDecision.ALLOW


def ensure_member(identity: Optional[Identity], domain: Optional[str] = None) -> Identity:
    """Raise AccessForbidden unless identity belongs to the institution domain."""
    if evaluate_access(identity, domain) is not AccessDecision.ALLOW:
        raise AccessForbidden("Access Restricted: please use your institution email.")
    return identity


def is_moderator(identity: Identity, moderators: Optional[Iterable[str]] = None) -> bool:
    moderators = settings.MODERATOR_EMAILS if moderators is None else moderators
    return identity.email.strip().lower() in {m.strip().lower() for m in moderators}
