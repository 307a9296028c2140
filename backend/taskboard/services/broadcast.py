"""WebSocket broadcaster that pushes board documents to browsers."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class BoardConnection:
    """Represents an active browser WebSocket connection."""
    websocket: WebSocket
    client: str
    connected_at: datetime


class BoardBroadcaster:
    """Manages WebSocket connections that want every board change."""

    def __init__(self):
        self._connections: dict[int, BoardConnection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, initial: dict[str, Any]) -> None:
        """Accept a connection and send it the current document."""
        await websocket.accept()
        client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
        async with self._lock:
            self._connections[id(websocket)] = BoardConnection(
                websocket=websocket,
                client=client,
                connected_at=datetime.now(timezone.utc),
            )
        logger.info(f"Board listener connected: {client}")
        await websocket.send_json({"type": "board", "data": initial})

    async def disconnect(self, websocket: WebSocket) -> None:
        """Handle listener disconnection."""
        async with self._lock:
            conn = self._connections.pop(id(websocket), None)
        if conn:
            logger.info(f"Board listener disconnected: {conn.client}")

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, document: dict[str, Any]) -> None:
        """Send a changed document to every listener, dropping dead ones."""
        message = {"type": "board", "data": document}
        dead = []
        async with self._lock:
            for key, conn in list(self._connections.items()):
                try:
                    await conn.websocket.send_json(message)
                except Exception as e:
                    logger.error(f"Failed to push board to {conn.client}: {e}")
                    dead.append(key)
            for key in dead:
                self._connections.pop(key, None)


# Global singleton instance
_broadcaster: Optional[BoardBroadcaster] = None


def get_broadcaster() -> BoardBroadcaster:
    """Get the global board broadcaster instance."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = BoardBroadcaster()
    return _broadcaster
