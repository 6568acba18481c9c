"""Persistence boundary for the whole ``{users, spaces}`` document.

The core never talks to storage directly. It asks a gateway for a full
snapshot, mutates it in memory and hands the full snapshot back.
"""
from dataclasses import dataclass
from typing import Optional, Protocol

from schemas.store import Snapshot


class StoreError(RuntimeError):
    """Generic service error raised by any gateway."""


class StoreUnavailable(StoreError):
    """The backing store could not be reached or refused the write."""


class StoreConflict(StoreError):
    """Someone else saved since our snapshot was loaded."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"snapshot version conflict: expected={expected} actual={actual}")
        self.expected = expected
        self.actual = actual


@dataclass
class SaveResult:
    success: bool
    # when set, the store's copy is authoritative from now on
    snapshot: Optional[Snapshot] = None


class SnapshotGateway(Protocol):
    async def load(self) -> Snapshot: ...

    async def save(self, snapshot: Snapshot) -> SaveResult: ...


def build_gateway(settings) -> SnapshotGateway:
    backend = (settings.STORE_BACKEND or "sql").strip().lower()
    if backend == "json":
        from app.storage.json_file import JsonFileGateway
        return JsonFileGateway(settings.STORE_JSON_PATH)
    if backend == "http":
        from app.storage.http import HttpGateway
        return HttpGateway(settings.STORE_HTTP_URL, timeout=settings.STORE_HTTP_TIMEOUT)
    if backend == "memory":
        from app.storage.memory import MemoryGateway
        return MemoryGateway()
    if backend == "sql":
        from app.database import AsyncSessionLocal
        from app.storage.sql import SqlGateway
        return SqlGateway(AsyncSessionLocal)
    raise ValueError(f"unknown STORE_BACKEND: {settings.STORE_BACKEND}")
