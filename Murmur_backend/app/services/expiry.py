import asyncio
import logging

from app.services.rooms import RoomService

logger = logging.getLogger("murmur.expiry")


class ExpiryWatcher:
    """Background tick that ends spaces whose duration has run out.

    The state machine owns no timers; this is the caller-side poll loop
    that evaluates the remaining time on every tick.
    """

    def __init__(self, rooms: RoomService, interval: float = 1.0) -> None:
        self.rooms = rooms
        self.interval = max(0.05, interval)
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self, now: int | None = None) -> list[str]:
        ended = await self.rooms.expire_due(now)
        for space_id in ended:
            logger.info("SPACE_EXPIRED space=%s", space_id)
        return ended

    async def _run(self) -> None:
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                # keep polling; the next tick retries against a fresh snapshot
                logger.exception("EXPIRY_TICK_FAIL")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
