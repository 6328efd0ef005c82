"""API routers"""
from .auth import router as auth_router
from .catalog import router as catalog_router
from .proxy import router as proxy_router
from .relay import router as relay_router

__all__ = ["auth_router", "catalog_router", "proxy_router", "relay_router"]
