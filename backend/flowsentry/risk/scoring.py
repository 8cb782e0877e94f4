"""Risk score fusion: rolling stats + rule alerts into explainable 0..100 scores."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable

from ..config import RiskSettings
from ..models import (
    Alert,
    AlertSeverity,
    AlertType,
    GraphNode,
    RiskBreakdown,
    RiskComponents,
    Transaction,
)
from .rules import RuleEngine
from .stats import RollingStatsStore, prune_alert_window

log = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass
class AlertPersistence:
    alert: Alert
    persisted: bool
    error: str | None = None


@dataclass
class EvaluationResult:
    alerts: list[Alert]
    impacted_node_ids: list[str]
    persistence: list[AlertPersistence] = field(default_factory=list)
    failed_rules: list[AlertType] = field(default_factory=list)

    @property
    def all_persisted(self) -> bool:
        return all(p.persisted for p in self.persistence)


class RiskScorer:
    """Maintains per-entity risk scores, recomputed globally after each transaction.

    ``alert_log`` must expose an async ``insert_alert(alert) -> int``.
    """

    def __init__(
        self,
        stats: RollingStatsStore,
        rules: RuleEngine,
        alert_log,
        settings: RiskSettings | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self.stats = stats
        self.rules = rules
        self.alert_log = alert_log
        self.settings = settings or RiskSettings()
        self.clock = clock
        self._lock = asyncio.Lock()

    def reset(self) -> None:
        self.stats.reset()

    async def _persist(self, alert: Alert) -> AlertPersistence:
        try:
            alert.id = await self.alert_log.insert_alert(alert)
        except Exception as exc:
            log.warning("Failed to persist alert %s %s->%s: %s", alert.type.value, alert.from_id, alert.to_id, exc)
            return AlertPersistence(alert=alert, persisted=False, error=str(exc))
        return AlertPersistence(alert=alert, persisted=True)

    def _recompute_scores(self) -> None:
        s = self.settings
        global_max_degree = self.stats.max_degree()
        # Entity-invariant within one pass
        global_max_total_volume = self.stats.max_total_volume()
        log_max_volume = math.log1p(global_max_total_volume)

        for _, stats in self.stats:
            volume_component = clamp01(math.log1p(stats.total_volume) / log_max_volume)
            degree_component = clamp01(stats.degree / global_max_degree)
            alerts_component = clamp01(
                len(stats.alert_timestamps) / max(1, s.alerts_penalty_divisor)
            )

            raw_score = (
                s.weight_volume * volume_component
                + s.weight_degree * degree_component
                + s.weight_alerts * alerts_component
            )
            # Halves round up; raw_score is never negative
            stats.risk_score = math.floor(100 * raw_score * 10 + 0.5) / 10
            stats.last_components = RiskComponents(
                volume_component=volume_component,
                degree_component=degree_component,
                alerts_component=alerts_component,
            )

    async def evaluate_and_update(self, tx: Transaction) -> EvaluationResult:
        """Update stats, evaluate and persist alerts, recompute every risk score."""
        async with self._lock:
            # Step 1: rolling stats
            self.stats.record_transaction(tx.from_id, tx.to_id, tx.amount)

            # Step 2: rules, persistence, alert windows
            evaluation = await self.rules.evaluate(tx)
            now = self.clock()
            persistence: list[AlertPersistence] = []
            for alert in evaluation.alerts:
                persistence.append(await self._persist(alert))
                if alert.severity != AlertSeverity.LOW:
                    self.stats.record_alert_occurrence(alert.from_id, now)
                    self.stats.record_alert_occurrence(alert.to_id, now)

            # Step 3: global decay sweep
            self.stats.prune_all(now, self.settings.alerts_window_millis)

            # Step 4: scores
            self._recompute_scores()

        return EvaluationResult(
            alerts=evaluation.alerts,
            impacted_node_ids=[tx.from_id, tx.to_id],
            persistence=persistence,
            failed_rules=evaluation.failed_rules,
        )

    def augment_nodes_with_risk(self, nodes: list[GraphNode]) -> list[GraphNode]:
        """Project risk fields onto nodes.

        Scores only change in ``evaluate_and_update``; the breakdown reflects the
        last stored components and may lag the live alert count.
        """
        s = self.settings
        now = self.clock()
        weights = s.weights()
        projected = []
        for node in nodes:
            stats = self.stats.get_or_create(node.id)
            prune_alert_window(stats, now, s.alerts_window_millis)

            components = stats.last_components or RiskComponents()
            weighted_score = (
                s.weight_volume * components.volume_component
                + s.weight_degree * components.degree_component
                + s.weight_alerts * components.alerts_component
            )
            projected.append(node.model_copy(update={
                "risk_score": stats.risk_score,
                "alerts_count": len(stats.alert_timestamps),
                "risk_breakdown": RiskBreakdown(
                    components={
                        "volume": components.volume_component,
                        "degree": components.degree_component,
                        "alerts": components.alerts_component,
                    },
                    weights=dict(weights),
                    weighted_score=weighted_score,
                ),
            }))
        return projected
