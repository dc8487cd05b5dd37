"""Start/stop orchestration for the photo backup server."""

import asyncio
import contextlib
import socket
import time
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI

from common.logging_config import get_logger
from common.types import DiscoveryRecord, LifecyclePhase, ServerState
from photobackup.app import create_app
from photobackup.config import Settings
from photobackup.discovery import DiscoveryAdvertiser, DiscoveryHandle
from photobackup.exceptions import BindError
from photobackup.network import host_identifier
from photobackup.port_binder import PortBinder
from photobackup.storage_layout import StorageLayout

logger = get_logger(__name__)


class EmbeddedServer(uvicorn.Server):
    """
    uvicorn server that leaves signal handling to the host process.
    """

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class ServerLifecycle:
    """
    Owns the single running server: listener, HTTP app and discovery record.

    States: stopped -> starting -> running -> stopping -> stopped.
    ``start`` and ``stop`` are serialized by a lock; ``status`` reads a
    snapshot without taking it.
    """

    def __init__(
        self,
        settings: Settings,
        app: Optional[FastAPI] = None,
        binder: Optional[PortBinder] = None,
        advertiser: Optional[DiscoveryAdvertiser] = None,
    ):
        self.settings = settings
        self.layout = StorageLayout(settings.backup_root)
        self.app = app or create_app(settings)
        self.binder = binder or PortBinder(max_attempts=settings.max_port_attempts)
        self.advertiser = advertiser or DiscoveryAdvertiser()

        self._lock = asyncio.Lock()
        self._state = ServerState(listening=False)
        self._socket: Optional[socket.socket] = None
        self._server: Optional[EmbeddedServer] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._discovery: Optional[DiscoveryHandle] = None

    @property
    def discovery(self) -> Optional[DiscoveryHandle]:
        return self._discovery

    def status(self) -> ServerState:
        """Snapshot of the current state."""
        return self._state

    async def start(self, preferred_port: Optional[int] = None) -> int:
        """
        Start serving, restarting first if already running.

        Args:
            preferred_port: First port to probe; defaults to the configured port

        Returns:
            The bound port

        Raises:
            StorageError: Backup root cannot be created
            BindError: No port could be bound or the server failed to start
        """
        if preferred_port is None:
            preferred_port = self.settings.preferred_port

        async with self._lock:
            if self._state.phase is not LifecyclePhase.STOPPED:
                logger.info("Server already running, restarting")
                await self._stop_locked()

            logger.info("=== Starting Server ===")
            self._state = ServerState(listening=False, phase=LifecyclePhase.STARTING)
            try:
                self.layout.ensure_root()
                sock, port = self.binder.bind(preferred_port)
                self._socket = sock
                self.app.state.started_monotonic = time.monotonic()
                await self._serve(sock)
            except BaseException:
                await self._teardown_listener()
                self._state = ServerState(listening=False)
                raise

            self._state = ServerState(
                listening=True,
                port=port,
                started_at=datetime.now(timezone.utc),
                phase=LifecyclePhase.RUNNING,
            )
            logger.info(f"Server is running on port {port}")

            if self.settings.discovery_enabled:
                self._discovery = self.advertiser.publish(
                    DiscoveryRecord(
                        service_name=self.settings.service_name,
                        service_type=self.settings.service_type,
                        port=port,
                        host_identifier=host_identifier(),
                    )
                )
            return port

    async def stop(self) -> None:
        """Stop serving. No-op when already stopped."""
        async with self._lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        if self._state.phase is LifecyclePhase.STOPPED:
            return

        self._state = ServerState(
            listening=self._state.listening,
            port=self._state.port,
            started_at=self._state.started_at,
            phase=LifecyclePhase.STOPPING,
        )

        discovery, self._discovery = self._discovery, None
        await self.advertiser.retract(discovery)
        await self._teardown_listener()

        self._state = ServerState(listening=False)
        logger.info("Server and discovery service stopped")

    async def _serve(self, sock: socket.socket) -> None:
        config = uvicorn.Config(
            self.app,
            log_config=None,
            lifespan="off",
            access_log=False,
            timeout_graceful_shutdown=self.settings.shutdown_grace_seconds,
        )
        server = EmbeddedServer(config)
        self._server = server
        self._serve_task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started:
            if self._serve_task.done():
                exc = None if self._serve_task.cancelled() else self._serve_task.exception()
                raise BindError(f"HTTP server failed to start: {exc}")
            await asyncio.sleep(0.01)

    async def _teardown_listener(self) -> None:
        server, task, sock = self._server, self._serve_task, self._socket
        self._server = self._serve_task = self._socket = None

        if server is not None:
            server.should_exit = True
        if task is not None:
            try:
                await task
            except Exception as e:
                logger.error(f"HTTP server exited with error: {e}")
        if sock is not None:
            sock.close()
