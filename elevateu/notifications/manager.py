from typing import Dict, List, Tuple

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from elevateu.core.logger import socket_logger


class NotificationManager:
    """Live sockets keyed by (role, account id); one account may have several tabs open"""

    def __init__(self):
        self.connections: Dict[Tuple[str, str], List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, role: str, account_id: str):
        await websocket.accept()
        self.connections.setdefault((role, account_id), []).append(websocket)
        socket_logger.info("Socket registered: %s %s", role, account_id)

    def disconnect(self, websocket: WebSocket, role: str, account_id: str):
        key = (role, account_id)
        sockets = self.connections.get(key)
        if not sockets:
            return
        if websocket in sockets:
            sockets.remove(websocket)
        # Drop the entry once the last tab is gone
        if not sockets:
            del self.connections[key]
        socket_logger.info("Socket disconnected: %s %s", role, account_id)

    def is_online(self, role: str, account_id: str) -> bool:
        return bool(self.connections.get((role, account_id)))

    async def send(self, role: str, account_id: str, message: dict) -> int:
        """Push to every socket of one account; returns how many received it"""
        delivered = 0
        for connection in list(self.connections.get((role, account_id), [])):
            if connection.application_state != WebSocketState.CONNECTED:
                self.disconnect(connection, role, account_id)
                continue
            try:
                await connection.send_json(message)
                delivered += 1
            except (RuntimeError, OSError) as e:
                socket_logger.warning("Dropping dead socket for %s %s: %s", role, account_id, e)
                self.disconnect(connection, role, account_id)
        return delivered


manager = NotificationManager()
