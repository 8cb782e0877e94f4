"""Community detection: weakly-connected components of the full transaction graph.

Labels ("c1", "c2", ...) are assigned to component roots in the order the
graph store returns nodes, so they are only meaningful within one computation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from .config import CommunitySettings
from .models import GraphNode
from .risk.scoring import now_millis

log = logging.getLogger(__name__)


class UnionFind:
    def __init__(self, elements: Iterable[str]) -> None:
        self.parent: dict[str, str] = {}
        self.rank: dict[str, int] = {}
        for element in elements:
            self.parent[element] = element
            self.rank[element] = 0

    def find(self, element: str) -> str:
        if element not in self.parent:
            self.parent[element] = element
            self.rank[element] = 0
            return element

        root = element
        while self.parent[root] != root:
            root = self.parent[root]

        # Path compression
        while self.parent[element] != root:
            self.parent[element], element = root, self.parent[element]
        return root

    def union(self, a: str, b: str) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return

        rank_a = self.rank[root_a]
        rank_b = self.rank[root_b]
        if rank_a < rank_b:
            self.parent[root_a] = root_b
        elif rank_a > rank_b:
            self.parent[root_b] = root_a
        else:
            self.parent[root_b] = root_a
            self.rank[root_a] = rank_a + 1


class CommunityDetector:
    """Caches community labels with count- and time-based invalidation.

    ``graph_store`` must expose async ``get_all_nodes()`` and ``get_all_edges()``.
    """

    def __init__(
        self,
        graph_store,
        settings: CommunitySettings | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.graph_store = graph_store
        self.settings = settings or CommunitySettings()
        self.clock = clock
        self._lock = asyncio.Lock()
        self.reset()

    def reset(self) -> None:
        self.labels_by_entity: dict[str, str] = {}
        self.last_computed_millis = 0
        self.transactions_since_compute = 0

    async def _compute_locked(self) -> None:
        nodes = await self.graph_store.get_all_nodes()
        edges = await self.graph_store.get_all_edges()

        node_ids = [node.id for node in nodes]
        union_find = UnionFind(node_ids)
        # Direction ignored for weak connectivity
        for edge in edges:
            union_find.union(edge.source, edge.target)

        label_by_root: dict[str, str] = {}
        labels: dict[str, str] = {}
        for node_id in node_ids:
            root = union_find.find(node_id)
            if root not in label_by_root:
                label_by_root[root] = f"c{len(label_by_root) + 1}"
            labels[node_id] = label_by_root[root]

        self.labels_by_entity = labels
        self.last_computed_millis = self.clock()
        self.transactions_since_compute = 0

        log.info(f"Recomputed {len(label_by_root)} communities for {len(node_ids)} nodes")

    async def compute_communities(self) -> None:
        async with self._lock:
            await self._compute_locked()

    async def maybe_recompute_communities(self) -> bool:
        """Count one transaction event and recompute if a threshold is reached.

        Call exactly once per observed transaction.
        """
        async with self._lock:
            self.transactions_since_compute += 1
            enough_transactions = (
                self.transactions_since_compute >= self.settings.recompute_every_n_tx
            )
            interval_elapsed = (
                self.clock() - self.last_computed_millis
                >= self.settings.recompute_interval_millis
            )
            if not self.labels_by_entity or enough_transactions or interval_elapsed:
                await self._compute_locked()
                return True
            return False

    async def augment_nodes_with_communities(self, nodes: list[GraphNode]) -> list[GraphNode]:
        async with self._lock:
            if not self.labels_by_entity:
                await self._compute_locked()
            labels = self.labels_by_entity
        return [
            node.model_copy(update={"community_id": labels.get(node.id)})
            for node in nodes
        ]

    async def initialize_communities_on_startup(self) -> None:
        await self.compute_communities()

    def groups(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for entity_id, label in self.labels_by_entity.items():
            grouped.setdefault(label, []).append(entity_id)
        return {label: sorted(members) for label, members in grouped.items()}
