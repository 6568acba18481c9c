import logging

import httpx

from app.storage.gateway import SaveResult, StoreUnavailable
from schemas.store import Snapshot

logger = logging.getLogger("murmur.storage")


class HttpGateway:
    """Talks to a read/write snapshot service (``GET /api/read``,
    ``POST /api/write``). The service has no versioning, so this gateway is
    last-write-wins."""

    def __init__(self, base_url: str, *, timeout: float = 8.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def load(self) -> Snapshot:
        try:
            async with self._client() as client:
                resp = await client.get("/api/read")
        except httpx.HTTPError as exc:
            logger.warning("SNAPSHOT_READ_FAIL url=%s error=%s", self.base_url, exc)
            raise StoreUnavailable(f"read failed: {exc}") from exc
        if resp.status_code >= 400:
            raise StoreUnavailable(f"read failed: HTTP {resp.status_code}")
        return Snapshot.from_wire(resp.json())

    async def save(self, snapshot: Snapshot) -> SaveResult:
        try:
            async with self._client() as client:
                resp = await client.post("/api/write", json=snapshot.to_wire())
        except httpx.HTTPError as exc:
            logger.warning("SNAPSHOT_WRITE_FAIL url=%s error=%s", self.base_url, exc)
            raise StoreUnavailable(f"write failed: {exc}") from exc
        if resp.status_code >= 400:
            raise StoreUnavailable(f"write failed: HTTP {resp.status_code}")
        payload = resp.json()
        if not payload.get("success"):
            raise StoreUnavailable("write failed: server reported failure")
        if payload.get("users") is not None:
            return SaveResult(success=True, snapshot=Snapshot.from_wire(payload, version=snapshot.version))
        return SaveResult(success=True)
