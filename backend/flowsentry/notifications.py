"""Compose graph payloads and push them to WebSocket subscribers."""

from __future__ import annotations

from fastapi import WebSocket

from .engine import AnalyticsEngine
from .models import Alert, Transaction
from .ws import ConnectionManager


class Notifier:
    def __init__(self, engine: AnalyticsEngine, manager: ConnectionManager) -> None:
        self.engine = engine
        self.manager = manager

    async def emit_initial_graph(self, ws: WebSocket) -> None:
        await self.engine.communities.initialize_communities_on_startup()
        snapshot = await self.engine.snapshot()
        payload = snapshot.model_dump(mode="json", include={"nodes", "edges", "metrics"})
        await self.manager.send(ws, "initialData", payload)

    async def emit_graph_update(self, transaction: Transaction, alerts: list[Alert] | None = None) -> dict:
        self.engine.metrics.record(transaction, alerts)

        # One call per transaction keeps the N-based threshold meaningful
        await self.engine.communities.maybe_recompute_communities()

        snapshot = await self.engine.snapshot(new_transaction=transaction, alerts=alerts)
        payload = snapshot.model_dump(mode="json")
        await self.manager.broadcast("graphUpdate", payload)
        return payload
