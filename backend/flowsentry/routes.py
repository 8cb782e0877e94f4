import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from .engine import engine, store
from .models import (
    Alert,
    Business,
    BusinessCreate,
    GraphNode,
    GraphSnapshot,
    MetricsRollup,
    Transaction,
    TransactionOut,
)
from .notifications import Notifier
from .ws import manager

log = logging.getLogger(__name__)

router = APIRouter()

notifier = Notifier(engine, manager)


# --- Businesses ---

@router.get("/api/businesses")
async def list_businesses() -> list[Business]:
    return list(store.businesses_by_id.values())


@router.post("/api/businesses", status_code=201)
async def create_business(body: BusinessCreate) -> Business:
    if body.business_id and body.business_id in store.businesses_by_id:
        raise HTTPException(status_code=409, detail=f"Business '{body.business_id}' already exists")
    return store.create_business(body.name, body.industry, body.business_id)


@router.get("/api/entity/{entity_id}")
async def get_entity(entity_id: str) -> GraphNode:
    """Risk projection and community label for one business."""
    businesses = await store.get_businesses_by_ids([entity_id])
    if not businesses:
        raise HTTPException(status_code=404, detail=f"Entity '{entity_id}' not found")
    business = businesses[0]
    node = GraphNode(id=business.business_id, label=business.name, industry=business.industry or None)
    nodes = engine.scorer.augment_nodes_with_risk([node])
    nodes = await engine.communities.augment_nodes_with_communities(nodes)
    return nodes[0]


# --- Transactions ---

@router.get("/api/transactions")
async def list_transactions(
    from_id: Optional[str] = Query(None),
    to_id: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, description="ISO-8601 lower bound"),
    end_date: Optional[str] = Query(None, description="ISO-8601 upper bound"),
    min_amount: Optional[float] = Query(None, ge=0),
    max_amount: Optional[float] = Query(None, ge=0),
) -> list[Transaction]:
    try:
        return await store.find_filtered_edges(
            from_id, to_id, start_date, end_date, min_amount, max_amount
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date filter: {e}")


@router.post("/api/transactions")
async def create_transaction(body: Transaction) -> TransactionOut:
    result = await engine.process_transaction(body)
    try:
        await notifier.emit_graph_update(body, result.alerts)
    except Exception:
        log.exception("Failed to emit graph update")
    return TransactionOut(success=True, data=body, alerts=result.alerts)


# --- Alerts, graph, metrics ---

@router.get("/api/alerts")
async def recent_alerts(limit: int = Query(50, ge=1, le=500)) -> list[Alert]:
    return await engine.alert_log.find_recent_alerts(limit)


@router.get("/api/graph")
async def get_graph() -> GraphSnapshot:
    return await engine.snapshot()


@router.get("/api/communities")
async def get_communities() -> dict:
    if not engine.communities.labels_by_entity:
        await engine.communities.compute_communities()
    groups = engine.communities.groups()
    return {"n_communities": len(groups), "communities": groups}


@router.get("/api/metrics")
async def get_metrics() -> MetricsRollup:
    return engine.metrics.get_rollup()


# --- WebSocket ---

def _is_snapshot_request(message: str) -> bool:
    if message == "requestInitialGraph":
        return True
    try:
        parsed = json.loads(message)
    except json.JSONDecodeError:
        return False
    return isinstance(parsed, dict) and parsed.get("event") == "requestInitialGraph"


@router.websocket("/ws")
async def websocket_stream(ws: WebSocket) -> None:
    await manager.connect(ws)
    try:
        try:
            await notifier.emit_initial_graph(ws)
        except Exception:
            log.exception("Error sending initial data")
        while True:
            message = await ws.receive_text()
            if _is_snapshot_request(message):
                try:
                    await notifier.emit_initial_graph(ws)
                except Exception:
                    log.exception("Error sending snapshot")
    except WebSocketDisconnect:
        manager.disconnect(ws)
