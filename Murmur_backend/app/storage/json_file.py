import asyncio
import json
import logging
import os
from pathlib import Path

from app.storage.gateway import SaveResult, StoreConflict, StoreUnavailable
from schemas.store import Snapshot

logger = logging.getLogger("murmur.storage")


class JsonFileGateway:
    """Single JSON document with ``users`` and ``spaces`` at the top level,
    the same file the reference demo server reads and writes."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreUnavailable(f"cannot read {self.path}: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreUnavailable(f"corrupt snapshot file {self.path}: {exc}") from exc

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreUnavailable(f"cannot write {self.path}: {exc}") from exc

    async def load(self) -> Snapshot:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return Snapshot.from_wire(data, version=int(data.get("version") or 0))

    async def save(self, snapshot: Snapshot) -> SaveResult:
        async with self._lock:
            current = await asyncio.to_thread(self._read)
            current_version = int(current.get("version") or 0)
            if snapshot.version != current_version:
                raise StoreConflict(snapshot.version, current_version)
            data = snapshot.to_wire()
            data["version"] = current_version + 1
            await asyncio.to_thread(self._write, data)
        logger.debug("SNAPSHOT_SAVE path=%s version=%s", self.path, data["version"])
        return SaveResult(success=True, snapshot=Snapshot.from_wire(data, version=data["version"]))
