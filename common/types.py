"""Shared data type definitions (StoredFile, DiscoveryRecord, ServerState)."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class LifecyclePhase(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class StoredFile:
    """
    A photo written to the backup root.
    """
    file_name: str
    absolute_path: Path
    relative_path: str
    size_bytes: int
    mime_type: str


@dataclass(frozen=True)
class DiscoveryRecord:
    """
    LAN advertisement for a listening server.
    """
    service_name: str
    service_type: str
    port: int
    host_identifier: str


@dataclass(frozen=True)
class ServerState:
    """
    Snapshot of the lifecycle state.
    """
    listening: bool
    port: Optional[int] = None
    started_at: Optional[datetime] = None
    phase: LifecyclePhase = LifecyclePhase.STOPPED
