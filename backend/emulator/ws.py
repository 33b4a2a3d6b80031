import asyncio
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Broadcaster:
    """Fan-out of uplink summaries to every connected WebSocket client."""

    def __init__(self):
        self.clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, ws: WebSocket):
        await ws.accept()
        async with self._lock:
            self.clients.add(ws)

    async def disconnect(self, ws: WebSocket):
        async with self._lock:
            self.clients.discard(ws)

    async def broadcast_json(self, payload: dict) -> int:
        stale = []
        sent = 0
        for ws in list(self.clients):
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as exc:  # noqa: BLE001 - any send failure means the client is gone
                logger.debug("Dropping websocket client: %s", exc)
                stale.append(ws)
        for ws in stale:
            await self.disconnect(ws)
        return sent


broadcaster = Broadcaster()
