"""Configuration settings for the photo backup server."""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from common.constants import (
    BACKUP_DIR_NAME,
    DEFAULT_PORT,
    MAX_UPLOAD_BYTES,
    SERVICE_NAME,
    SERVICE_TYPE,
)


def _env_flag(name: str, default: str = "1") -> bool:
    return os.environ.get(name, default).strip().lower() not in ("0", "false", "no", "off")


def _env_backup_root() -> Path:
    return Path(os.environ.get("PHOTOBACKUP_ROOT", str(Path.home() / BACKUP_DIR_NAME))).expanduser()


BACKUP_ROOT = _env_backup_root()

PREFERRED_PORT = int(os.environ.get("PHOTOBACKUP_PORT", str(DEFAULT_PORT)))

UPLOAD_LIMIT_BYTES = int(os.environ.get("PHOTOBACKUP_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES)))

DISCOVERY_SERVICE_NAME = os.environ.get("PHOTOBACKUP_SERVICE_NAME", SERVICE_NAME)

DISCOVERY_ENABLED = _env_flag("PHOTOBACKUP_DISCOVERY")

SHUTDOWN_GRACE_SECONDS = float(os.environ.get("PHOTOBACKUP_SHUTDOWN_GRACE", "5"))


@dataclass(frozen=True)
class Settings:
    """Runtime settings for one server instance."""
    backup_root: Path = BACKUP_ROOT
    preferred_port: int = PREFERRED_PORT
    max_upload_bytes: int = UPLOAD_LIMIT_BYTES
    service_name: str = DISCOVERY_SERVICE_NAME
    service_type: str = SERVICE_TYPE
    discovery_enabled: bool = DISCOVERY_ENABLED
    shutdown_grace_seconds: float = SHUTDOWN_GRACE_SECONDS
    max_port_attempts: Optional[int] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the PHOTOBACKUP_* environment variables as they
        are at call time.
        """
        return cls(
            backup_root=_env_backup_root(),
            preferred_port=int(os.environ.get("PHOTOBACKUP_PORT", str(DEFAULT_PORT))),
            max_upload_bytes=int(
                os.environ.get("PHOTOBACKUP_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES))
            ),
            service_name=os.environ.get("PHOTOBACKUP_SERVICE_NAME", SERVICE_NAME),
            discovery_enabled=_env_flag("PHOTOBACKUP_DISCOVERY"),
            shutdown_grace_seconds=float(os.environ.get("PHOTOBACKUP_SHUTDOWN_GRACE", "5")),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the non-None values in ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
