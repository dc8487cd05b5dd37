"""Shared pytest fixtures for all tests."""

import random
import socket
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from photobackup.app import create_app
from photobackup.config import Settings

BOUNDARY = "photobackupboundary"

Part = Tuple[str, Optional[str], Optional[str], bytes]


def multipart_body(parts: List[Part], boundary: str = BOUNDARY) -> bytes:
    """
    Encode (field, filename, content_type, data) parts as multipart/form-data.
    """
    body = b""
    for field, filename, content_type, data in parts:
        disposition = f'form-data; name="{field}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += f"--{boundary}\r\nContent-Disposition: {disposition}\r\n".encode()
        if content_type is not None:
            body += f"Content-Type: {content_type}\r\n".encode()
        body += b"\r\n" + data + b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return body


def multipart_content_type(boundary: str = BOUNDARY) -> str:
    return f"multipart/form-data; boundary={boundary}"


async def iter_chunks(data: bytes, size: int = 1024):
    """Yield ``data`` in fixed-size pieces, like a request body stream."""
    for offset in range(0, len(data), size):
        yield data[offset:offset + size]


def stored_files(backup_root) -> list:
    """All regular files below the backup root."""
    return sorted(p for p in backup_root.rglob("*") if p.is_file())


def occupy_consecutive(count):
    """
    Find a base port where base..base+count are free, hold base..base+count-1
    listening and leave base+count free.

    Returns:
        (base port, list of held sockets)
    """
    for _ in range(50):
        base = random.randint(20000, 60000)
        held = []
        try:
            for port in range(base, base + count + 1):
                sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
                held.append(sock)
                sock.bind(("0.0.0.0", port))
                sock.listen(1)
        except OSError:
            for sock in held:
                sock.close()
            continue
        held.pop().close()
        return base, held
    pytest.skip("could not find a free run of ports")


@pytest.fixture
def backup_root(tmp_path):
    """
    Backup root inside the pytest temp directory.

    Returns:
        Path to a not-yet-created backup root
    """
    return tmp_path / 'iPhone_Photo_Backup'


@pytest.fixture
def settings(backup_root):
    """Settings pointing at the temporary backup root, discovery disabled."""
    return Settings(
        backup_root=backup_root,
        preferred_port=0,
        discovery_enabled=False,
        shutdown_grace_seconds=1,
    )


@pytest.fixture
def client(settings):
    """Create FastAPI test client."""
    return TestClient(create_app(settings))


@pytest.fixture
def jpeg_bytes():
    """A small JPEG-looking payload."""
    return b'\xff\xd8\xff\xe0' + b'\x00' * 2048 + b'\xff\xd9'
