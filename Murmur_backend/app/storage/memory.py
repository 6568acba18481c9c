import asyncio

from app.storage.gateway import SaveResult, StoreConflict
from schemas.store import Snapshot


class MemoryGateway:
    """Keeps the document in process. Copies on the way in and out so
    callers never share state with the stored snapshot."""

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self._lock = asyncio.Lock()
        self._snapshot = snapshot.model_copy(deep=True) if snapshot else Snapshot()

    async def load(self) -> Snapshot:
        async with self._lock:
            return self._snapshot.model_copy(deep=True)

    async def save(self, snapshot: Snapshot) -> SaveResult:
        async with self._lock:
            if snapshot.version != self._snapshot.version:
                raise StoreConflict(snapshot.version, self._snapshot.version)
            stored = snapshot.model_copy(deep=True)
            stored.version = snapshot.version + 1
            self._snapshot = stored
            return SaveResult(success=True, snapshot=stored.model_copy(deep=True))
