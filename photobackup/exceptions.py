"""Custom exception classes for the photo backup server."""


class PhotoBackupError(Exception):
    """
    Base exception class for all photo backup errors.
    """
    pass


class BindError(PhotoBackupError):
    """
    Raised when no listening port can be acquired (permission denied,
    invalid address, or the port range is exhausted). Fatal at startup.
    """
    pass


class StorageError(PhotoBackupError):
    """
    Raised when the backup root, a date directory or an upload file
    cannot be created or written.
    """
    pass


class ValidationError(PhotoBackupError):
    """
    Raised when an upload is rejected: wrong content type, oversized
    payload, missing or unexpected file field, malformed multipart body.
    """
    pass


class DiscoveryError(PhotoBackupError):
    """
    Raised internally when the LAN advertisement cannot be published or
    retracted. Never surfaced to HTTP clients.
    """
    pass
