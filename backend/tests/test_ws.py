import json

import pytest

from flowsentry.ws import ConnectionManager


class RecordingSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


@pytest.mark.anyio
async def test_broadcast_counts_deliveries_and_drops_dead_sockets():
    manager = ConnectionManager()
    alive, dead, other = RecordingSocket(), RecordingSocket(fail=True), RecordingSocket()
    manager.connections = [alive, dead, other]

    delivered = await manager.broadcast("graphUpdate", {"nodes": []})

    assert delivered == 2
    assert manager.connections == [alive, other]
    assert alive.sent == [{"event": "graphUpdate", "data": {"nodes": []}}]


@pytest.mark.anyio
async def test_broadcast_without_subscribers_delivers_nothing():
    assert await ConnectionManager().broadcast("graphUpdate", {}) == 0
