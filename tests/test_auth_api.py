"""
Tests for the login flow, session identity and the OAuth provider client
"""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from course_archive.services import GoogleIdentityProvider, Identity, IdentityProviderError

from .conftest import ALICE, OUTSIDER, make_client


@pytest.fixture
async def browser(base_app):
    """Cookie-carrying client using the real session resolver"""
    async with make_client(base_app, None) as c:
        yield c


async def sign_in(browser, code: str = "good-code") -> httpx.Response:
    start = await browser.get("/auth/login")
    state = parse_qs(urlparse(start.headers["location"]).query)["state"][0]
    return await browser.get("/auth/callback", params={"code": code, "state": state})


class TestLoginFlow:
    async def test_login_info(self, browser):
        response = await browser.get("/login", params={"error": "auth-code-error"})

        assert response.status_code == 200
        assert response.json() == {
            "authorization_path": "/auth/login",
            "domain_hint": "bits-pilani.ac.in",
            "error": "auth-code-error",
        }

    async def test_start_redirects_to_provider(self, browser):
        response = await browser.get("/auth/login")

        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("https://idp.test/authorize")
        assert parse_qs(urlparse(location).query)["state"][0]

    async def test_callback_signs_in(self, browser, identity_provider):
        response = await sign_in(browser)

        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert identity_provider.codes == ["good-code"]

        me = await browser.get("/auth/me")
        assert me.status_code == 200
        assert me.json() == {"email": ALICE, "name": "Asha Rao"}

    async def test_signed_in_session_reaches_catalog(self, browser):
        await sign_in(browser)

        response = await browser.get("/api/courses")

        assert response.status_code == 200

    async def test_callback_with_wrong_state(self, browser, identity_provider):
        await browser.get("/auth/login")

        response = await browser.get("/auth/callback", params={"code": "good-code", "state": "forged"})

        assert response.status_code == 303
        assert response.headers["location"] == "/login?error=auth-code-error"
        assert identity_provider.codes == []

    async def test_callback_without_login_start(self, browser):
        response = await browser.get("/auth/callback", params={"code": "good-code", "state": "x"})

        assert response.headers["location"] == "/login?error=auth-code-error"

    async def test_callback_missing_code(self, browser):
        await browser.get("/auth/login")

        response = await browser.get("/auth/callback")

        assert response.headers["location"] == "/login?error=auth-code-error"

    async def test_rejected_code(self, browser):
        response = await sign_in(browser, code="bad-code")

        assert response.headers["location"] == "/login?error=auth-code-error"
        me = await browser.get("/auth/me")
        assert me.headers["location"] == "/login"

    async def test_logout_clears_session(self, browser):
        await sign_in(browser)

        response = await browser.post("/auth/logout")

        assert response.json() == {"status": "signed_out"}
        me = await browser.get("/auth/me")
        assert me.status_code == 303
        assert me.headers["location"] == "/login"

    async def test_outsider_session_ended_by_gate(self, browser, identity_provider):
        identity_provider.identity = Identity(email=OUTSIDER, name="Visitor")
        await sign_in(browser)

        first = await browser.get("/api/courses")
        second = await browser.get("/api/courses")

        assert first.headers["location"] == "/login?error=domain-restricted"
        assert second.headers["location"] == "/login"


def google_transport(token_status: int = 200, profile: dict = None):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == "/token":
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "ya29.token", "token_type": "Bearer"})
        if request.url.path == "/v1/userinfo":
            assert request.headers["authorization"] == "Bearer ya29.token"
            return httpx.Response(200, json=profile if profile is not None else {
                "email": ALICE,
                "name": "Asha Rao",
                "hd": "bits-pilani.ac.in",
            })
        return httpx.Response(404)

    return httpx.MockTransport(handler), calls


def make_provider(transport) -> GoogleIdentityProvider:
    return GoogleIdentityProvider(
        http=httpx.AsyncClient(transport=transport),
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://test/auth/callback",
        domain_hint="bits-pilani.ac.in"
    )


class TestGoogleIdentityProvider:
    def test_authorization_url(self):
        transport, _ = google_transport()
        url = make_provider(transport).authorization_url("state-123")

        params = parse_qs(urlparse(url).query)
        assert url.startswith(GoogleIdentityProvider.AUTHORIZE_URL)
        assert params["hd"] == ["bits-pilani.ac.in"]
        assert params["prompt"] == ["select_account"]
        assert params["state"] == ["state-123"]
        assert params["redirect_uri"] == ["http://test/auth/callback"]
        assert params["response_type"] == ["code"]

    async def test_exchange_code(self):
        transport, calls = google_transport()

        identity = await make_provider(transport).exchange_code("auth-code")

        assert identity == Identity(email=ALICE, name="Asha Rao")
        assert parse_qs(calls[0].content.decode())["code"] == ["auth-code"]

    async def test_rejected_code_raises(self):
        transport, calls = google_transport(token_status=400)

        with pytest.raises(IdentityProviderError):
            await make_provider(transport).exchange_code("expired")
        assert len(calls) == 1

    async def test_profile_without_email_raises(self):
        transport, _ = google_transport(profile={"name": "No Email"})

        with pytest.raises(IdentityProviderError):
            await make_provider(transport).exchange_code("auth-code")
