"""Running totals for the dashboard rollup."""

from datetime import datetime, timezone

from .models import Alert, AlertCounts, AlertSeverity, MetricsRollup, Transaction


class MetricsCollector:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.total_transactions = 0
        self.total_amount = 0.0
        self.alert_high = 0
        self.alert_medium = 0
        self.alert_low = 0

    def record(self, transaction: Transaction, alerts: list[Alert] | None = None) -> None:
        self.total_transactions += 1
        self.total_amount += transaction.amount
        for alert in alerts or []:
            if alert.severity == AlertSeverity.HIGH:
                self.alert_high += 1
            elif alert.severity == AlertSeverity.MEDIUM:
                self.alert_medium += 1
            else:
                self.alert_low += 1

    def get_rollup(self) -> MetricsRollup:
        return MetricsRollup(
            total_transactions=self.total_transactions,
            total_amount=self.total_amount,
            alerts=AlertCounts(
                total=self.alert_high + self.alert_medium + self.alert_low,
                high=self.alert_high,
                medium=self.alert_medium,
                low=self.alert_low,
            ),
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
