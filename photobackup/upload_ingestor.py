"""Streams a multipart photo upload to disk, validating type and size."""

from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Callable, Dict, List, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.concurrency import run_in_threadpool

from common.constants import MAX_UPLOAD_BYTES, UPLOAD_FIELD_NAME
from common.logging_config import get_logger
from common.types import StoredFile
from photobackup.exceptions import StorageError, ValidationError
from photobackup.storage_layout import StorageLayout, epoch_millis

logger = get_logger(__name__)

PartHeaders = Dict[bytes, bytes]


class _PartCollector:
    """
    Collects parser callbacks into a list of events.

    The parser is synchronous; events are drained and handled
    asynchronously after each ``write``.
    """

    def __init__(self):
        self.events: List[Tuple] = []
        self._headers: PartHeaders = {}
        self._field = b""
        self._value = b""

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._field.lower()] = self._value
        self._field = b""
        self._value = b""

    def on_headers_finished(self) -> None:
        self.events.append(("begin", self._headers))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self.events.append(("data", data[start:end]))

    def on_part_end(self) -> None:
        self.events.append(("end",))

    def drain(self) -> List[Tuple]:
        events, self.events = self.events, []
        return events


class _IngestSession:
    """State of one upload request: at most one accepted file."""

    def __init__(self):
        self.handle: Optional[BinaryIO] = None
        self.path: Optional[Path] = None
        self.mime_type = ""
        self.file_name = ""
        self.size = 0
        self.skipping = False
        self.completed: Optional[Path] = None

    @property
    def has_file(self) -> bool:
        return self.handle is not None or self.completed is not None

    async def discard(self) -> None:
        """Close and remove whatever this request wrote."""
        if self.handle is not None:
            await run_in_threadpool(self.handle.close)
            self.handle = None
        for path in (self.path, self.completed):
            if path is not None:
                await run_in_threadpool(path.unlink, missing_ok=True)
        self.path = None
        self.completed = None


class UploadIngestor:
    """
    Accepts exactly one image file field per request and writes it under
    the backup root.

    Validation happens while streaming: the part's content type is checked
    before anything is written, the running size is checked on every chunk.
    On any failure the partially written file is removed, so a rejected
    request leaves no file behind.
    """

    def __init__(
        self,
        layout: StorageLayout,
        max_bytes: int = MAX_UPLOAD_BYTES,
        field_name: str = UPLOAD_FIELD_NAME,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.layout = layout
        self.max_bytes = max_bytes
        self.field_name = field_name
        self.clock = clock or datetime.now

    async def ingest(
        self,
        content_type: Optional[str],
        body: AsyncIterator[bytes],
        declared_name: Optional[str] = None,
    ) -> StoredFile:
        """
        Parse a multipart body and store its single photo part.

        Args:
            content_type: Request Content-Type header
            body: Async iterator over the raw request body
            declared_name: Client-declared file name (X-File-Name header), if any

        Returns:
            StoredFile describing the written file

        Raises:
            ValidationError: Wrong content type, too large, missing or
                unexpected file field, malformed body
            StorageError: Date directory or file cannot be created or written
        """
        collector = _PartCollector()
        session = _IngestSession()

        try:
            try:
                parser = MultipartParser(self._boundary(content_type), collector.callbacks())
                async for chunk in body:
                    if not chunk:
                        continue
                    parser.write(chunk)
                    await self._handle_events(collector.drain(), session, declared_name)
                parser.finalize()
                await self._handle_events(collector.drain(), session, declared_name)
            except MultipartParseError as e:
                raise ValidationError(f"malformed multipart body: {e}") from e

            if session.handle is not None:
                raise ValidationError("incomplete multipart body")
            if session.completed is None:
                raise ValidationError("no file received")
        except ValidationError:
            await session.discard()
            # Read the rest of the body so the client gets the 400 response.
            async for _ in body:
                pass
            raise
        except BaseException:
            await session.discard()
            raise

        stored = StoredFile(
            file_name=session.file_name,
            absolute_path=session.completed,
            relative_path=self.layout.relative_path(session.completed),
            size_bytes=session.size,
            mime_type=session.mime_type,
        )
        logger.info(
            f"File saved: path={stored.relative_path} size={stored.size_bytes} mimetype={stored.mime_type}"
        )
        return stored

    def _boundary(self, content_type: Optional[str]) -> bytes:
        media_type, params = parse_options_header(content_type or "")
        if media_type.lower().strip() != b"multipart/form-data":
            raise ValidationError("no file received: expected a multipart/form-data body")
        boundary = params.get(b"boundary")
        if not boundary:
            raise ValidationError("malformed multipart body: missing boundary")
        return boundary

    async def _handle_events(
        self,
        events: List[Tuple],
        session: _IngestSession,
        declared_name: Optional[str],
    ) -> None:
        for event in events:
            kind = event[0]
            if kind == "begin":
                await self._begin_part(event[1], session, declared_name)
            elif kind == "data":
                await self._write_data(event[1], session)
            elif kind == "end":
                await self._end_part(session)

    async def _begin_part(
        self,
        headers: PartHeaders,
        session: _IngestSession,
        declared_name: Optional[str],
    ) -> None:
        _, disposition = parse_options_header(headers.get(b"content-disposition", b""))
        field = disposition.get(b"name", b"").decode("utf-8", errors="replace")
        raw_filename = disposition.get(b"filename")

        if raw_filename is None:
            # Plain form field; its value is not used.
            session.skipping = True
            return
        session.skipping = False

        if field != self.field_name or session.has_file:
            raise ValidationError(f"unexpected field: {field}")

        mime_type = headers.get(b"content-type", b"application/octet-stream").decode(
            "latin-1"
        ).strip()
        if not mime_type.lower().startswith("image/"):
            raise ValidationError(f"unsupported content type: {mime_type}")

        original_name = raw_filename.decode("utf-8", errors="replace")
        now = self.clock()
        directory = await run_in_threadpool(self.layout.resolve_destination, now)
        path, handle = await run_in_threadpool(
            self._create_exclusive, directory, declared_name, original_name, epoch_millis(now)
        )
        session.handle = handle
        session.path = path
        session.file_name = path.name
        session.mime_type = mime_type
        session.size = 0
        logger.debug(f"File name: {path.name}")

    def _create_exclusive(
        self,
        directory: Path,
        declared_name: Optional[str],
        original_name: str,
        millis: int,
    ) -> Tuple[Path, BinaryIO]:
        while True:
            path = directory / self.layout.file_name_for_millis(declared_name, original_name, millis)
            try:
                return path, open(path, "xb")
            except FileExistsError:
                millis += 1
            except OSError as e:
                raise StorageError(f"cannot create {path.name}: {e}") from e

    async def _write_data(self, data: bytes, session: _IngestSession) -> None:
        if session.skipping or session.handle is None:
            return
        session.size += len(data)
        if session.size > self.max_bytes:
            raise ValidationError(f"too large: limit is {self.max_bytes} bytes")
        try:
            await run_in_threadpool(session.handle.write, data)
        except OSError as e:
            raise StorageError(f"cannot write {session.file_name}: {e}") from e

    async def _end_part(self, session: _IngestSession) -> None:
        if session.skipping:
            session.skipping = False
            return
        if session.handle is None:
            return
        try:
            await run_in_threadpool(session.handle.close)
        except OSError as e:
            raise StorageError(f"cannot write {session.file_name}: {e}") from e
        finally:
            session.handle = None
        session.completed = session.path
        session.path = None
