"""FastAPI application for the photo backup server."""

import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.logging_config import get_logger, reset_request_id, set_request_id
from photobackup.config import Settings
from photobackup.exceptions import StorageError, ValidationError
from photobackup.routes.status_routes import router as status_router
from photobackup.routes.upload_routes import router as upload_router
from photobackup.schemas import ErrorResponse
from photobackup.storage_layout import StorageLayout
from photobackup.upload_ingestor import UploadIngestor

logger = get_logger(__name__)


def _error(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(),
    )


def create_app(settings: Settings, ingestor: Optional[UploadIngestor] = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        settings: Server settings
        ingestor: Upload ingestor; built from ``settings`` when omitted

    Returns:
        FastAPI app with routes, CORS, request logging and error handlers
    """
    app = FastAPI(
        title="Photo Backup Server",
        description="Local-network photo ingestion service",
        version="1.0.0",
    )

    if ingestor is None:
        ingestor = UploadIngestor(
            StorageLayout(settings.backup_root),
            max_bytes=settings.max_upload_bytes,
        )
    app.state.ingestor = ingestor
    app.state.started_monotonic = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)

        start_time = time.time()
        client = request.client.host if request.client else "unknown"
        logger.info(f"Request started: {request.method} {request.url.path} client={client}")

        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    f"Server error: {exc} path={request.url.path}",
                    exc_info=True
                )
                response = _error(
                    status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error", str(exc)
                )

            duration = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"status={response.status_code} duration={duration:.3f}s"
            )
        finally:
            reset_request_id(token)

        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Upload rejected: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return _error(status.HTTP_400_BAD_REQUEST, "Upload failed", str(exc))

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Storage error: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage error", str(exc))

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Server error: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error", str(exc))

    app.include_router(status_router)
    app.include_router(upload_router)

    return app
