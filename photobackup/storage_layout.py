"""Date-partitioned destination directories and file names for uploads."""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from common.constants import DEFAULT_EXTENSION
from common.logging_config import get_logger
from photobackup.exceptions import StorageError

logger = get_logger(__name__)


def epoch_millis(now: datetime) -> int:
    """Milliseconds since the Unix epoch for ``now``."""
    return int(now.timestamp() * 1000)


def split_client_name(name: str) -> tuple:
    """
    Split a client-supplied file name into (base, extension).

    Directory components are discarded for both separator styles. A name
    without an extension yields an empty extension; a leading dot does not
    start one (".hidden" has no extension).
    """
    bare = name.replace("\\", "/").rsplit("/", 1)[-1]
    base, ext = os.path.splitext(bare)
    return base, ext


class StorageLayout:
    """
    Maps incoming uploads onto ``<backup_root>/<YYYY-MM-DD>/<millis>-<base><ext>``.

    The date partition and the timestamp come from the server clock only.
    """

    def __init__(self, backup_root: Path):
        self.backup_root = Path(backup_root)

    def ensure_root(self) -> Path:
        """
        Create the backup root if absent.

        Raises:
            StorageError: If the directory cannot be created
        """
        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create backup root {self.backup_root}: {e}") from e
        logger.info(f"Upload directory: {self.backup_root}")
        return self.backup_root

    def resolve_destination(self, now: datetime) -> Path:
        """
        Create (if absent) and return the date partition for ``now``.

        Raises:
            StorageError: If the directory cannot be created
        """
        destination = self.backup_root / f"{now.year:04d}-{now.month:02d}-{now.day:02d}"
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create date directory {destination}: {e}") from e
        logger.debug(f"Saving to: {destination}")
        return destination

    def build_file_name(
        self,
        declared_name: Optional[str],
        original_name: Optional[str],
        now: datetime,
    ) -> str:
        """
        Build ``<epochMillis>-<base><ext>`` for an upload.

        The declared name (``X-File-Name``) wins over the multipart file name
        when it is non-empty. The extension falls back to ``.jpg``.
        """
        return self.file_name_for_millis(declared_name, original_name, epoch_millis(now))

    def file_name_for_millis(
        self,
        declared_name: Optional[str],
        original_name: Optional[str],
        millis: int,
    ) -> str:
        name = declared_name if declared_name else (original_name or "")
        base, ext = split_client_name(name)
        if not ext:
            ext = DEFAULT_EXTENSION
        return f"{millis}-{base}{ext}"

    def relative_path(self, path: Path) -> str:
        """POSIX path of ``path`` relative to the backup root."""
        return Path(path).relative_to(self.backup_root).as_posix()
