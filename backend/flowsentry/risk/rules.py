"""Fixed alert rules: self-loop, high value, burst, first-time link."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from ..config import RiskSettings
from ..models import Alert, AlertSeverity, AlertType, Transaction, parse_timestamp

log = logging.getLogger(__name__)


@dataclass
class RuleEvaluation:
    alerts: list[Alert] = field(default_factory=list)
    # rules whose store query failed and were skipped
    failed_rules: list[AlertType] = field(default_factory=list)


def create_alert(alert_type: AlertType, severity: AlertSeverity, tx: Transaction) -> Alert:
    return Alert(
        type=alert_type,
        severity=severity,
        from_id=tx.from_id,
        to_id=tx.to_id,
        amount=tx.amount,
        timestamp=tx.timestamp,
    )


class RuleEngine:
    """Evaluates the rules for one transaction against the graph store.

    The store must expose an async ``find_filtered_edges(from_id, to_id,
    start_date, end_date, min_amount, max_amount)``.
    """

    def __init__(self, graph_store, settings: RiskSettings | None = None) -> None:
        self.graph_store = graph_store
        self.settings = settings or RiskSettings()

    async def _count_recent_for_pair(self, tx: Transaction) -> int:
        window_start = parse_timestamp(tx.timestamp) - timedelta(
            milliseconds=self.settings.burst_window_millis
        )
        edges = await self.graph_store.find_filtered_edges(
            tx.from_id, tx.to_id, window_start.isoformat(), None, None, None
        )
        return len(edges)

    async def _count_all_for_pair(self, tx: Transaction) -> int:
        edges = await self.graph_store.find_filtered_edges(tx.from_id, tx.to_id)
        return len(edges)

    async def evaluate(self, tx: Transaction) -> RuleEvaluation:
        result = RuleEvaluation()

        if tx.from_id == tx.to_id:
            result.alerts.append(create_alert(AlertType.SELF_LOOP, AlertSeverity.HIGH, tx))

        if tx.amount >= self.settings.high_value_threshold:
            result.alerts.append(create_alert(AlertType.HIGH_VALUE, AlertSeverity.HIGH, tx))

        # Both pair queries are independent
        recent, total = await asyncio.gather(
            self._count_recent_for_pair(tx),
            self._count_all_for_pair(tx),
            return_exceptions=True,
        )

        if isinstance(recent, Exception):
            log.warning("BURST rule failed; continuing: %s", recent)
            result.failed_rules.append(AlertType.BURST)
        elif recent >= self.settings.burst_min_count:
            result.alerts.append(create_alert(AlertType.BURST, AlertSeverity.MEDIUM, tx))

        if isinstance(total, Exception):
            log.warning("FIRST_TIME_LINK rule failed; continuing: %s", total)
            result.failed_rules.append(AlertType.FIRST_TIME_LINK)
        elif total == 1:
            result.alerts.append(create_alert(AlertType.FIRST_TIME_LINK, AlertSeverity.LOW, tx))

        return result
