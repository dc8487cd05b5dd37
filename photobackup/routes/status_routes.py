"""Read-only status endpoints."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from fastapi.responses import HTMLResponse

from photobackup.schemas import StatusResponse

router = APIRouter(tags=["Status"])


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_monotonic, 3)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/status", response_model=StatusResponse)
async def status(request: Request):
    """
    Liveness endpoint polled by the companion app.

    Returns:
        - status: always "running"
        - timestamp: current server time, ISO-8601 UTC
        - uptime: seconds since the server was started
    """
    return StatusResponse(status="running", timestamp=_timestamp(), uptime=_uptime(request))


@router.get("/", response_class=HTMLResponse)
async def landing_page(request: Request):
    """Human-readable landing page."""
    return f"""
        <html>
            <body>
                <h1>Photo Backup Server</h1>
                <p>Server is running</p>
                <p>Uptime: {_uptime(request)} seconds</p>
                <p>Timestamp: {_timestamp()}</p>
            </body>
        </html>
    """


@router.options("/{path:path}", include_in_schema=False)
async def preflight(path: str):
    """Answer OPTIONS requests that the CORS middleware did not short-circuit."""
    return Response(status_code=204)
