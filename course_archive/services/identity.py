"""
Identity resolution and the OAuth identity provider

Request handlers receive an IdentityResolver and an identity provider through
FastAPI dependencies instead of reaching for a process-wide auth client.
"""
import logging
from typing import Optional, Protocol
from urllib.parse import urlencode

import httpx
from starlette.requests import Request

from .access import Identity

logger = logging.getLogger(__name__)


class IdentityResolver(Protocol):
    def current_identity(self, request: Request) -> Optional[Identity]: ...

    def sign_in(self, request: Request, identity: Identity) -> None: ...

    def sign_out(self, request: Request) -> None: ...


class SessionIdentityResolver:
    """Identity stored in the signed session cookie (Starlette SessionMiddleware)"""
    
    SESSION_KEY = "identity"
    
    def current_identity(self, request: Request) -> Optional[Identity]:
        data = request.session.get(self.SESSION_KEY)
        if not data or not data.get("email"):
            return None
        return Identity(email=data["email"], name=data.get("name", ""))
    
    def sign_in(self, request: Request, identity: Identity) -> None:
        request.session[self.SESSION_KEY] = {"email": identity.email, "name": identity.name}
    
    def sign_out(self, request: Request) -> None:
        request.session.clear()


class IdentityProviderError(Exception):
    """Code exchange or profile lookup failed"""


class GoogleIdentityProvider:
    """
    Google OAuth 2.0 authorization-code flow.
    
    The hosted-domain hint (hd) only pre-filters the account chooser; the
    access gate still checks the returned email.
    """
    
    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
    
    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        domain_hint: str
    ):
        self.http = http
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.domain_hint = domain_hint
    
    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "hd": self.domain_hint,
            "prompt": "select_account",
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"
    
    async def exchange_code(self, code: str) -> Identity:
        try:
            token_response = await self.http.post(
                self.TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )
            token_response.raise_for_status()
            access_token = token_response.json()["access_token"]
            
            profile_response = await self.http.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            profile_response.raise_for_status()
            profile = profile_response.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning(f"⚠️ OAuth code exchange failed: {e}")
            raise IdentityProviderError("Could not exchange authorization code") from e
        
        email = profile.get("email")
        if not email:
            raise IdentityProviderError("Identity provider returned no email")
        return Identity(email=email, name=profile.get("name", ""))
