"""Analytics engine: one owner for stats, rules, scores, communities and metrics."""

from __future__ import annotations

import logging
from typing import Callable

from .alerts import alert_repository
from .communities import CommunityDetector
from .config import CommunitySettings, RiskSettings
from .graph_store import GraphStore
from .metrics import MetricsCollector
from .models import Alert, GraphSnapshot, LabeledTransaction, Transaction
from .risk.rules import RuleEngine
from .risk.scoring import EvaluationResult, RiskScorer, now_millis
from .risk.stats import RollingStatsStore

log = logging.getLogger(__name__)


class AnalyticsEngine:
    def __init__(
        self,
        graph_store,
        alert_log,
        risk_settings: RiskSettings | None = None,
        community_settings: CommunitySettings | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.graph_store = graph_store
        self.stats = RollingStatsStore()
        self.rules = RuleEngine(graph_store, risk_settings)
        self.scorer = RiskScorer(self.stats, self.rules, alert_log, risk_settings, clock)
        self.communities = CommunityDetector(graph_store, community_settings, clock)
        self.metrics = MetricsCollector()

    @property
    def alert_log(self):
        return self.scorer.alert_log

    @alert_log.setter
    def alert_log(self, alert_log) -> None:
        self.scorer.alert_log = alert_log

    def reset(self) -> None:
        """Drop all volatile state; it is rebuilt from the graph store on demand."""
        self.scorer.reset()
        self.communities.reset()
        self.metrics.reset()

    async def startup(self) -> None:
        await self.communities.initialize_communities_on_startup()

    async def process_transaction(self, tx: Transaction) -> EvaluationResult:
        """Store the edge, then evaluate rules and update risk scores."""
        stored = await self.graph_store.create_edge(tx.from_id, tx.to_id, tx.amount, tx.timestamp)
        result = await self.scorer.evaluate_and_update(stored)
        if result.alerts:
            log.info(
                "Transaction %s->%s %.2f raised %s",
                tx.from_id,
                tx.to_id,
                tx.amount,
                ", ".join(a.type.value for a in result.alerts),
            )
        return result

    async def label_transaction(self, tx: Transaction) -> LabeledTransaction:
        """Attach business names to both endpoints; ids stay untouched."""
        names = {
            b.business_id: b.name
            for b in await self.graph_store.get_businesses_by_ids([tx.from_id, tx.to_id])
        }
        return LabeledTransaction(
            **tx.model_dump(),
            from_name=names.get(tx.from_id),
            to_name=names.get(tx.to_id),
        )

    async def snapshot(
        self,
        new_transaction: Transaction | None = None,
        alerts: list[Alert] | None = None,
    ) -> GraphSnapshot:
        """Current nodes with risk and community overlays, plus edges and metrics."""
        nodes = await self.graph_store.get_all_nodes()
        edges = await self.graph_store.get_all_edges()
        nodes = self.scorer.augment_nodes_with_risk(nodes)
        nodes = await self.communities.augment_nodes_with_communities(nodes)
        labeled = await self.label_transaction(new_transaction) if new_transaction else None
        return GraphSnapshot(
            nodes=nodes,
            edges=edges,
            new_transaction=labeled,
            alerts=alerts,
            metrics=self.metrics.get_rollup(),
        )


# Singleton
store = GraphStore()
engine = AnalyticsEngine(
    store,
    alert_repository,
    RiskSettings.from_env(),
    CommunitySettings.from_env(),
)
