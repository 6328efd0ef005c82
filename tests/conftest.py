"""
Shared fixtures: temporary SQLite catalog, in-memory object store, mock
upstream origin and header-driven identities.
"""
import os

# Must be set before course_archive.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["UPLOAD_SECRET"] = "test-relay-secret"
os.environ["UPSTREAM_BASE_URL"] = "https://store.test/bucket/"
os.environ["UPSTREAM_TOKEN"] = "store-token"
os.environ["ALLOWED_EMAIL_DOMAIN"] = "bits-pilani.ac.in"
os.environ["MODERATOR_EMAILS"] = "mod@pilani.bits-pilani.ac.in"
os.environ["SESSION_SECRET"] = "test-session-secret"

from typing import Optional
from urllib.parse import unquote

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from course_archive.api.deps import (
    get_identity_provider,
    get_identity_resolver,
    get_upstream_client,
)
from course_archive.core.database import Base, get_db
from course_archive.main import app as archive_app
from course_archive.services import Identity, IdentityProviderError, StorageWriteError, get_object_store

UPLOAD_SECRET = "test-relay-secret"
UPSTREAM_PREFIX = "/bucket/"

ALICE = "f20210001@pilani.bits-pilani.ac.in"
BOB = "f20210002@hyderabad.bits-pilani.ac.in"
OUTSIDER = "someone@gmail.com"


class InMemoryStore:
    """Object store double with the ObjectStore interface"""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.put_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.fail_writes = False

    def put_file(self, storage_key, data, length, content_type="application/octet-stream"):
        self.put_calls.append(storage_key)
        if self.fail_writes:
            raise StorageWriteError("AccessDenied: bucket is read-only")
        content = data.read()
        assert len(content) == length
        self.objects[storage_key] = content
        self.content_types[storage_key] = content_type

    def delete(self, storage_key: str) -> None:
        self.delete_calls.append(storage_key)
        self.objects.pop(storage_key, None)


class HeaderIdentityResolver:
    """Identity taken from X-Test-Email / X-Test-Name request headers"""

    def __init__(self):
        self.signed_out: list[str] = []

    def current_identity(self, request) -> Optional[Identity]:
        email = request.headers.get("x-test-email")
        if not email:
            return None
        return Identity(email=email, name=request.headers.get("x-test-name", ""))

    def sign_in(self, request, identity: Identity) -> None:
        pass

    def sign_out(self, request) -> None:
        self.signed_out.append(request.headers.get("x-test-email", ""))


class FakeIdentityProvider:
    def __init__(self, identity: Identity):
        self.identity = identity
        self.codes: list[str] = []

    def authorization_url(self, state: str) -> str:
        return f"https://idp.test/authorize?hd=bits-pilani.ac.in&state={state}"

    async def exchange_code(self, code: str) -> Identity:
        self.codes.append(code)
        if code == "bad-code":
            raise IdentityProviderError("rejected")
        return self.identity


class Upstream:
    """Mock origin serving the in-memory store over HTTP"""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.requests: list[httpx.Request] = []
        self.error: Optional[Exception] = None
        self.extra_headers = {
            "x-linked-etag": '"abc123"',
            "x-amz-storage-class": "STANDARD",
            "x-amz-request-id": "REQ123",
            "x-repo-commit": "deadbeef",
            "etag": '"abc123"',
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        key = unquote(raw_path[len(UPSTREAM_PREFIX):])
        if key not in self.store.objects:
            return httpx.Response(404, text=f"Entry not found: {key} in private dataset")
        content = self.store.objects[key]
        headers = {
            "content-type": self.store.content_types.get(key, "application/octet-stream"),
            "content-length": str(len(content)),
            **self.extra_headers,
        }
        body = b"" if request.method == "HEAD" else content
        return httpx.Response(200, headers=headers, stream=httpx.ByteStream(body))


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def upstream(store) -> Upstream:
    return Upstream(store)


@pytest.fixture
async def upstream_client(upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
    yield client
    await client.aclose()


@pytest.fixture
def resolver() -> HeaderIdentityResolver:
    return HeaderIdentityResolver()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider(Identity(email=ALICE, name="Asha Rao"))


@pytest.fixture
def base_app(session_maker, store, upstream_client, identity_provider):
    """App with storage, catalog and upstream replaced; real session identity"""
    async def override_get_db():
        async with session_maker() as session:
            yield session

    archive_app.dependency_overrides[get_db] = override_get_db
    archive_app.dependency_overrides[get_object_store] = lambda: store
    archive_app.dependency_overrides[get_upstream_client] = lambda: upstream_client
    archive_app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    yield archive_app
    archive_app.dependency_overrides.clear()


@pytest.fixture
def app(base_app, resolver):
    """App whose identity comes from X-Test-* headers"""
    base_app.dependency_overrides[get_identity_resolver] = lambda: resolver
    return base_app


def make_client(app, email: Optional[str] = ALICE, name: str = "") -> httpx.AsyncClient:
    headers = {}
    if email:
        headers["X-Test-Email"] = email
    if name:
        headers["X-Test-Name"] = name
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        headers=headers
    )


@pytest.fixture
async def client(app):
    async with make_client(app, ALICE, "Asha Rao") as c:
        yield c


@pytest.fixture
async def bob_client(app):
    async with make_client(app, BOB) as c:
        yield c


@pytest.fixture
async def anonymous_client(app):
    async with make_client(app, None) as c:
        yield c
