"""Binds the HTTP listener, probing upward from the preferred port."""

import errno
import socket
import sys
from typing import Callable, Optional, Tuple

from common.constants import LISTEN_BACKLOG, MAX_PORT, WILDCARD_HOST
from common.logging_config import get_logger
from photobackup.exceptions import BindError

logger = get_logger(__name__)

ADDRESS_IN_USE = {errno.EADDRINUSE}
if sys.platform == 'win32':
    ADDRESS_IN_USE.add(getattr(errno, 'WSAEADDRINUSE', 10048))


class PortBinder:
    """
    Linear port probe: try ``preferred``, then ``preferred + 1``, and so on.

    Only "address already in use" moves the probe forward. Any other bind
    error is raised as BindError. The probe is deterministic: no
    randomization, no wrap-around.
    """

    def __init__(
        self,
        host: str = WILDCARD_HOST,
        max_attempts: Optional[int] = None,
        backlog: int = LISTEN_BACKLOG,
        socket_factory: Callable[..., socket.socket] = None,
    ):
        self.host = host
        self.max_attempts = max_attempts
        self.backlog = backlog
        self.socket_factory = socket_factory or socket.socket

    def bind(self, preferred_port: int) -> Tuple[socket.socket, int]:
        """
        Bind and listen on the first free port at or above ``preferred_port``.

        Args:
            preferred_port: First port to try

        Returns:
            (listening socket, bound port)

        Raises:
            BindError: Non-recoverable bind error, or no free port left
        """
        if preferred_port < 0 or preferred_port > MAX_PORT:
            raise BindError(f"Invalid port number: {preferred_port}")

        port = preferred_port
        attempts = 0
        while True:
            if port > MAX_PORT:
                raise BindError(f"no free port between {preferred_port} and {MAX_PORT}")
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise BindError(
                    f"no free port after {attempts} attempts starting at {preferred_port}"
                )
            attempts += 1

            sock = self._try_bind(port)
            if sock is not None:
                actual_port = sock.getsockname()[1]
                logger.info(f"Listener bound on {self.host}:{actual_port}")
                return sock, actual_port

            logger.warning(f"Port {port} is in use, trying {port + 1}...")
            port += 1

    def _try_bind(self, port: int) -> Optional[socket.socket]:
        """
        Returns the listening socket, or None when the port is taken.
        """
        sock = self.socket_factory(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if sys.platform == 'win32':
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)
            else:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, port))
            sock.listen(self.backlog)
        except OSError as e:
            sock.close()
            if e.errno in ADDRESS_IN_USE:
                return None
            raise BindError(f"cannot bind {self.host}:{port}: {e}") from e
        return sock
