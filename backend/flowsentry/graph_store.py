import json
import logging
import uuid
from pathlib import Path

from .models import Business, GraphEdge, GraphNode, Transaction, parse_timestamp

log = logging.getLogger(__name__)


class GraphStore:
    """In-memory business directory and transaction graph.

    Methods are async so the store can be swapped for a networked graph
    database without touching callers.
    """

    def __init__(self) -> None:
        self.businesses_by_id: dict[str, Business] = {}
        self.transactions: list[Transaction] = []

        # Runtime indices
        self.edge_ids: dict[tuple[str, str], int] = {}
        self.transactions_by_pair: dict[tuple[str, str], list[Transaction]] = {}

    def clear(self) -> None:
        self.businesses_by_id = {}
        self.transactions = []
        self.edge_ids = {}
        self.transactions_by_pair = {}

    def load_businesses(self, path: Path) -> None:
        """Load a JSON list of businesses into the directory."""
        log.info(f"Loading businesses from {path}...")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        for raw in data:
            self.add_business(Business(**raw))

        log.info(f"Loaded: {len(self.businesses_by_id)} businesses")

    def add_business(self, business: Business) -> Business:
        self.businesses_by_id[business.business_id] = business
        return business

    def create_business(self, name: str, industry: str = "", business_id: str | None = None) -> Business:
        return self.add_business(Business(
            business_id=business_id or uuid.uuid4().hex[:12],
            name=name,
            industry=industry,
        ))

    async def get_businesses_by_ids(self, ids: list[str]) -> list[Business]:
        return [self.businesses_by_id[i] for i in ids if i in self.businesses_by_id]

    async def create_or_find_node(self, business_id: str) -> Business:
        existing = self.businesses_by_id.get(business_id)
        if existing:
            return existing
        return self.add_business(Business(business_id=business_id, name=business_id))

    async def get_all_nodes(self) -> list[GraphNode]:
        return [
            GraphNode(id=b.business_id, label=b.name, industry=b.industry or None)
            for b in self.businesses_by_id.values()
        ]

    async def get_all_edges(self) -> list[GraphEdge]:
        edges = []
        for (source, target), txs in self.transactions_by_pair.items():
            edges.append(GraphEdge(
                id=self.edge_ids[(source, target)],
                source=source,
                target=target,
                transaction_count=len(txs),
                transaction_amount=round(sum(t.amount for t in txs), 2),
            ))
        return edges

    async def create_edge(self, from_id: str, to_id: str, amount: float, timestamp: str) -> Transaction:
        await self.create_or_find_node(from_id)
        await self.create_or_find_node(to_id)

        tx = Transaction(from_id=from_id, to_id=to_id, amount=amount, timestamp=timestamp)
        self.transactions.append(tx)

        pair = (from_id, to_id)
        if pair not in self.edge_ids:
            self.edge_ids[pair] = len(self.edge_ids) + 1
        self.transactions_by_pair.setdefault(pair, []).append(tx)
        return tx

    async def find_filtered_edges(
        self,
        from_id: str | None = None,
        to_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        min_amount: float | None = None,
        max_amount: float | None = None,
    ) -> list[Transaction]:
        """Transactions matching every given filter; bounds are inclusive."""
        if from_id is not None and to_id is not None:
            candidates = self.transactions_by_pair.get((from_id, to_id), [])
        else:
            candidates = self.transactions

        start = parse_timestamp(start_date) if start_date else None
        end = parse_timestamp(end_date) if end_date else None

        matched = []
        for tx in candidates:
            if from_id is not None and tx.from_id != from_id:
                continue
            if to_id is not None and tx.to_id != to_id:
                continue
            if min_amount is not None and tx.amount < min_amount:
                continue
            if max_amount is not None and tx.amount > max_amount:
                continue
            if start or end:
                ts = parse_timestamp(tx.timestamp)
                if start and ts < start:
                    continue
                if end and ts > end:
                    continue
            matched.append(tx)
        return matched
