"""Per-entity rolling aggregates: volume, counterparty degree, alert window."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from ..models import RiskComponents


@dataclass
class NodeStats:
    out_volume: float = 0.0
    in_volume: float = 0.0
    degree_out: set[str] = field(default_factory=set)
    degree_in: set[str] = field(default_factory=set)
    # epoch millis, ascending
    alert_timestamps: list[int] = field(default_factory=list)
    risk_score: float = 0.0
    last_components: RiskComponents | None = None

    @property
    def total_volume(self) -> float:
        return self.out_volume + self.in_volume

    @property
    def degree(self) -> int:
        return len(self.degree_in) + len(self.degree_out)


def prune_alert_window(stats: NodeStats, now_millis: int, window_millis: int) -> int:
    """Drop leading alert timestamps older than ``now - window``.

    Relies on the list being sorted ascending, so one forward scan finds the
    first timestamp still inside the window. Returns the number removed.
    """
    timestamps = stats.alert_timestamps
    if not timestamps:
        return 0
    cutoff = now_millis - window_millis
    first_inside = 0
    while first_inside < len(timestamps) and timestamps[first_inside] < cutoff:
        first_inside += 1
    if first_inside:
        del timestamps[:first_inside]
    return first_inside


class RollingStatsStore:
    """Owns the NodeStats of every entity seen since the last reset."""

    def __init__(self) -> None:
        self._stats_by_id: dict[str, NodeStats] = {}

    def __len__(self) -> int:
        return len(self._stats_by_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._stats_by_id

    def __iter__(self) -> Iterator[tuple[str, NodeStats]]:
        return iter(self._stats_by_id.items())

    def get_or_create(self, entity_id: str) -> NodeStats:
        stats = self._stats_by_id.get(entity_id)
        if stats is None:
            stats = NodeStats()
            self._stats_by_id[entity_id] = stats
        return stats

    def record_transaction(self, from_id: str, to_id: str, amount: float) -> None:
        from_stats = self.get_or_create(from_id)
        to_stats = self.get_or_create(to_id)

        from_stats.out_volume += amount
        to_stats.in_volume += amount

        from_stats.degree_out.add(to_id)
        to_stats.degree_in.add(from_id)

    def record_alert_occurrence(self, entity_id: str, at_millis: int) -> None:
        self.get_or_create(entity_id).alert_timestamps.append(at_millis)

    def prune_all(self, now_millis: int, window_millis: int) -> None:
        for stats in self._stats_by_id.values():
            prune_alert_window(stats, now_millis, window_millis)

    def max_degree(self) -> int:
        return max(1, max((s.degree for s in self._stats_by_id.values()), default=1))

    def max_total_volume(self) -> float:
        return max(1.0, max((s.total_volume for s in self._stats_by_id.values()), default=1.0))

    def reset(self) -> None:
        self._stats_by_id.clear()
