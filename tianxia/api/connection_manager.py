import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages active WebSocket connections, keyed by a per-socket connection id."""

    def __init__(self):
        self.active_connections: dict[str, WebSocket] = {}

    def add_connection(self, connection_id: str, websocket: WebSocket):
        """Adds an already accepted WebSocket connection to the manager."""
        self.active_connections[connection_id] = websocket
        logger.info("connection opened: %s (total %d)", connection_id, len(self.active_connections))

    def disconnect(self, connection_id: str):
        if self.active_connections.pop(connection_id, None) is not None:
            logger.info("connection closed: %s (total %d)", connection_id, len(self.active_connections))

    async def send_to_connection(self, connection_id: str, message: dict):
        """Sends a JSON message to one connection. A socket that fails mid-send is dropped."""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except (RuntimeError, OSError):
            logger.warning("send to %s failed; dropping connection", connection_id)
            self.disconnect(connection_id)

    async def deliver(self, outbox: list[tuple[str, dict]]):
        """Sends every (connection_id, message) pair in order."""
        for connection_id, message in outbox:
            await self.send_to_connection(connection_id, message)
