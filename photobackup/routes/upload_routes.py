"""Photo upload API route."""

from fastapi import APIRouter, Request

from common.constants import FILE_NAME_HEADER
from common.logging_config import get_logger
from photobackup.schemas import UploadResponse

logger = get_logger(__name__)

router = APIRouter(tags=["Upload"])


@router.post("/upload", response_model=UploadResponse)
async def upload_photo(request: Request):
    """
    Store a single photo.

    Parameters:
        - photo: image file part (multipart/form-data)
        - X-File-Name header: optional file name overriding the multipart one

    Returns:
        - success: true
        - file: generated file name
        - path: path relative to the backup root

    Raises:
        - 400: Wrong content type, file too large, missing/unexpected field, malformed body
        - 500: Storage or unexpected server error
    """
    logger.info("Upload request received")
    ingestor = request.app.state.ingestor

    stored = await ingestor.ingest(
        request.headers.get("content-type"),
        request.stream(),
        declared_name=request.headers.get(FILE_NAME_HEADER) or None,
    )

    return UploadResponse(success=True, file=stored.file_name, path=stored.relative_path)
