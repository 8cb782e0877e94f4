import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DATA_DIR = Path(os.getenv("FLOWSENTRY_DATA_DIR", str(PROJECT_ROOT / "data")))
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{DATA_DIR / 'flowsentry.db'}")

# Optional JSON list of {business_id, name, industry} loaded into the graph store on startup
SEED_FILE = os.getenv("FLOWSENTRY_SEED_FILE")

FRONTEND_URL = os.getenv("FLOWSENTRY_FRONTEND_URL")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return float(default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class RiskSettings:
    """Rule thresholds and score weights.

    risk = 100 * (weight_volume * volume + weight_degree * degree + weight_alerts * alerts)
    """

    high_value_threshold: float = 95_000
    burst_window_millis: int = 60_000
    burst_min_count: int = 4
    alerts_window_millis: int = 5 * 60_000
    alerts_penalty_divisor: float = 8
    weight_volume: float = 0.2
    weight_degree: float = 0.2
    weight_alerts: float = 0.6

    @classmethod
    def from_env(cls) -> "RiskSettings":
        return cls(
            high_value_threshold=_env_float("HIGH_VALUE_THRESHOLD", 95_000),
            burst_window_millis=_env_int("BURST_WINDOW_MS", 60_000),
            burst_min_count=_env_int("BURST_MIN_COUNT", 4),
            alerts_window_millis=_env_int("ALERTS_WINDOW_MS", 5 * 60_000),
            alerts_penalty_divisor=_env_float("ALERTS_PENALTY_DIVISOR", 8),
            weight_volume=_env_float("RISK_WEIGHT_VOLUME", 0.2),
            weight_degree=_env_float("RISK_WEIGHT_DEGREE", 0.2),
            weight_alerts=_env_float("RISK_WEIGHT_ALERTS", 0.6),
        )

    def weights(self) -> dict[str, float]:
        return {
            "volume": self.weight_volume,
            "degree": self.weight_degree,
            "alerts": self.weight_alerts,
        }


@dataclass(frozen=True)
class CommunitySettings:
    recompute_every_n_tx: int = 5
    recompute_interval_millis: int = 30_000

    @classmethod
    def from_env(cls) -> "CommunitySettings":
        return cls(
            recompute_every_n_tx=_env_int("COMMUNITY_RECOMPUTE_EVERY_N_TX", 5),
            recompute_interval_millis=_env_int("COMMUNITY_RECOMPUTE_INTERVAL_MS", 30_000),
        )
