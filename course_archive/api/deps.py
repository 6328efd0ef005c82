"""
Shared dependencies for API routes
"""
import logging
from typing import Annotated

import httpx
from fastapi import Depends, Request

from ..services import (
    AccessDecision,
    GoogleIdentityProvider,
    Identity,
    IdentityResolver,
    SessionIdentityResolver,
    evaluate_access,
)

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
DOMAIN_ERROR = "domain-restricted"


class AccessRedirect(Exception):
    """Raised by the access gate; rendered as a redirect to the login page"""
    
    def __init__(self, location: str, reason: AccessDecision):
        super().__init__(location)
        self.location = location
        self.reason = reason


_session_resolver = SessionIdentityResolver()


def get_identity_resolver() -> IdentityResolver:
    """Identity resolution capability, overridable per app (tests, other IdPs)"""
    return _session_resolver


def get_identity_provider(request: Request) -> GoogleIdentityProvider:
    return request.app.state.identity_provider


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """Process-wide HTTP client for the origin proxy (created in the lifespan hook)"""
    return request.app.state.upstream_client


def require_member(
    request: Request,
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)]
) -> Identity:
    """
    Access gate.
    
    - no session -> redirect to login
    - email outside the institution domain -> end the session, redirect with error
    - otherwise return the identity
    """
    identity = resolver.current_identity(request)
    decision = evaluate_access(identity)
    
    if decision is AccessDecision.LOGIN_REQUIRED:
        raise AccessRedirect(LOGIN_PATH, decision)
    
    if decision is AccessDecision.DOMAIN_REJECTED:
        logger.warning(f"🚫 Rejected {identity.email}: outside allowed domain, signing out")
        resolver.sign_out(request)
        raise AccessRedirect(f"{LOGIN_PATH}?error={DOMAIN_ERROR}", decision)
    
    return identity
