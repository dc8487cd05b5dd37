"""Pydantic schemas for API responses."""

from pydantic import BaseModel


class StatusResponse(BaseModel):
    """Response model for the status endpoint."""
    status: str
    timestamp: str
    uptime: float


class UploadResponse(BaseModel):
    """Response model for a stored upload."""
    success: bool
    file: str
    path: str


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    details: str
