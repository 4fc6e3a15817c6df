"""REST routes and error handlers."""

from .app import router, system_router

__all__ = ["router", "system_router"]
