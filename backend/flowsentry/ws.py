"""WebSocket connection manager and event broadcasting."""

import json
import logging
from fastapi import WebSocket

log = logging.getLogger(__name__)


def encode_event(event: str, payload: dict) -> str:
    return json.dumps({"event": event, "data": payload})


class ConnectionManager:
    def __init__(self) -> None:
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.connections.append(ws)
        log.info(f"WS connected ({len(self.connections)} total)")

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self.connections:
            self.connections.remove(ws)
        log.info(f"WS disconnected ({len(self.connections)} total)")

    async def send(self, ws: WebSocket, event: str, payload: dict) -> None:
        await ws.send_text(encode_event(event, payload))

    async def broadcast(self, event: str, payload: dict) -> int:
        """Send to every subscriber, dropping dead sockets. Returns deliveries."""
        message = encode_event(event, payload)
        dead: list[WebSocket] = []
        delivered = 0
        for ws in list(self.connections):
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception as exc:
                log.warning(f"WS send failed, dropping connection: {exc}")
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)
        return delivered


manager = ConnectionManager()
