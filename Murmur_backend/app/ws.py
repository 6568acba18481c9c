from typing import Dict, Set
from fastapi import WebSocket

LOBBY = "*"


class ConnectionManager:
    """Fans space events out to websocket subscribers.

    Clients subscribe to one space id, or to ``LOBBY`` for every space.
    """

    def __init__(self):
        self.active: Dict[str, Set[WebSocket]] = {}

    async def connect(self, channel: str, websocket: WebSocket):
        await websocket.accept()
        self.active.setdefault(channel, set()).add(websocket)

    def disconnect(self, channel: str, websocket: WebSocket):
        self.active.get(channel, set()).discard(websocket)

    def subscribers(self, channel: str) -> int:
        return len(self.active.get(channel, set()))

    async def broadcast(self, channel: str, message: dict):
        for ws in list(self.active.get(channel, set())):
            try:
                await ws.send_json(message)
            except Exception:
                # dead socket; drop it and keep going
                self.disconnect(channel, ws)

    async def publish(self, space_id: str, message: dict):
        await self.broadcast(space_id, message)
        await self.broadcast(LOBBY, message)


event_manager = ConnectionManager()
