"""
Main FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from .core import Base, engine, settings
from .api import auth_router, catalog_router, proxy_router, relay_router
from .api.deps import AccessRedirect
from .services import GoogleIdentityProvider, storage_service
from . import models  # noqa: F401  registers tables on Base.metadata

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and the bucket, open shared HTTP clients"""
    # Startup
    logger.info("🚀 Starting Course Archive...")
    
    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Catalog tables ready")
    
    # Initialize MinIO
    storage_service.ensure_bucket_exists()
    
    # One pooled client per process; requests share it without shared state
    app.state.upstream_client = httpx.AsyncClient(
        timeout=settings.UPSTREAM_TIMEOUT,
        follow_redirects=True
    )
    app.state.oauth_client = httpx.AsyncClient(timeout=10.0)
    app.state.identity_provider = GoogleIdentityProvider(
        http=app.state.oauth_client,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.OAUTH_REDIRECT_URL,
        domain_hint=settings.ALLOWED_EMAIL_DOMAIN
    )
    
    logger.info(f"🌐 Server ready at http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")
    logger.info(f"📖 API docs at http://{settings.SERVER_HOST}:{settings.SERVER_PORT}/docs")
    
    yield
    
    # Shutdown
    logger.info("🛑 Shutting down Course Archive...")
    await app.state.upstream_client.aclose()
    await app.state.oauth_client.aclose()
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed cookie session holding the resolved identity
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    same_site="lax"
)


@app.exception_handler(AccessRedirect)
async def access_redirect_handler(request: Request, exc: AccessRedirect):
    return RedirectResponse(exc.location, status_code=303)


# Include routers
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(relay_router)
app.include_router(proxy_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_TITLE,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health")
async def health():
    """Liveness probe"""
    return {"status": "healthy"}


def main():
    import uvicorn
    uvicorn.run(
        "course_archive.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
