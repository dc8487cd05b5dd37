"""API routes package."""

from photobackup.routes.status_routes import router as status_router
from photobackup.routes.upload_routes import router as upload_router

__all__ = ["status_router", "upload_router"]
