"""
Login, OAuth callback, logout and session identity endpoints
"""
import logging
import secrets
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from ..core.config import settings
from ..schemas import IdentityResponse, LoginInfoResponse
from ..services import GoogleIdentityProvider, Identity, IdentityProviderError, IdentityResolver
from .deps import LOGIN_PATH, get_identity_provider, get_identity_resolver, require_member

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

STATE_KEY = "oauth_state"
AUTH_CODE_ERROR = "auth-code-error"


@router.get(LOGIN_PATH, response_model=LoginInfoResponse)
async def login_info(error: Optional[str] = None):
    """Where to start signing in, plus the error indicator from a failed attempt"""
    return LoginInfoResponse(
        authorization_path="/auth/login",
        domain_hint=settings.ALLOWED_EMAIL_DOMAIN,
        error=error
    )


@router.get("/auth/login")
async def start_login(
    request: Request,
    provider: Annotated[GoogleIdentityProvider, Depends(get_identity_provider)]
):
    """Redirect to the identity provider, restricted by the domain hint"""
    state = secrets.token_urlsafe(16)
    request.session[STATE_KEY] = state
    return RedirectResponse(provider.authorization_url(state), status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    provider: Annotated[GoogleIdentityProvider, Depends(get_identity_provider)],
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
    code: Optional[str] = None,
    state: Optional[str] = None
):
    """Exchange the authorization code for a session"""
    failure = RedirectResponse(f"{LOGIN_PATH}?error={AUTH_CODE_ERROR}", status_code=status.HTTP_303_SEE_OTHER)
    
    expected_state = request.session.pop(STATE_KEY, None)
    if not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("⚠️ OAuth callback without a valid code/state")
        return failure
    
    try:
        identity = await provider.exchange_code(code)
    except IdentityProviderError:
        return failure
    
    resolver.sign_in(request, identity)
    logger.info(f"🔑 Signed in {identity.email}")
    return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/auth/logout")
async def logout(
    request: Request,
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)]
):
    resolver.sign_out(request)
    return {"status": "signed_out"}


@router.get("/auth/me", response_model=IdentityResponse)
async def whoami(identity: Annotated[Identity, Depends(require_member)]):
    return IdentityResponse(email=identity.email, name=identity.display_name)
