"""Project-wide constants (default port, storage layout, discovery names)."""

DEFAULT_PORT: int = 3000
MAX_PORT: int = 65535

BACKUP_DIR_NAME: str = "iPhone_Photo_Backup"
MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024  # 50 MiB
UPLOAD_FIELD_NAME: str = "photo"
FILE_NAME_HEADER: str = "X-File-Name"
DEFAULT_EXTENSION: str = ".jpg"

SERVICE_NAME: str = "iPhone Photo Backup"
SERVICE_TYPE: str = "_photobackup._tcp.local."

WILDCARD_HOST: str = "0.0.0.0"
LISTEN_BACKLOG: int = 2048
