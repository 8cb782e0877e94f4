from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AlertType(str, Enum):
    HIGH_VALUE = "HIGH_VALUE"
    BURST = "BURST"
    FIRST_TIME_LINK = "FIRST_TIME_LINK"
    SELF_LOOP = "SELF_LOOP"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Transaction(BaseModel):
    from_id: str = Field(min_length=1)
    to_id: str = Field(min_length=1)
    amount: float = Field(ge=0, allow_inf_nan=False)
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, value: str) -> str:
        try:
            parse_timestamp(value)
        except ValueError as exc:
            raise ValueError(f"timestamp is not ISO-8601: {value!r}") from exc
        return value


class LabeledTransaction(Transaction):
    """Transaction with the display names of both endpoints, for broadcast."""

    from_name: str | None = None
    to_name: str | None = None


class Alert(BaseModel):
    id: int | None = None
    type: AlertType
    severity: AlertSeverity
    from_id: str
    to_id: str
    amount: float
    timestamp: str


class RiskComponents(BaseModel):
    volume_component: float = 0.0
    degree_component: float = 0.0
    alerts_component: float = 0.0


class RiskBreakdown(BaseModel):
    components: dict[str, float]
    weights: dict[str, float]
    weighted_score: float


class GraphNode(BaseModel):
    id: str
    label: str | None = None
    industry: str | None = None

    risk_score: float | None = None
    alerts_count: int | None = None
    risk_breakdown: RiskBreakdown | None = None
    community_id: str | None = None


class GraphEdge(BaseModel):
    id: int
    source: str
    target: str
    transaction_count: int
    transaction_amount: float


class Business(BaseModel):
    business_id: str
    name: str
    industry: str = ""


class BusinessCreate(BaseModel):
    name: str = Field(min_length=1)
    industry: str = ""
    business_id: str | None = None


class AlertCounts(BaseModel):
    total: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class MetricsRollup(BaseModel):
    total_transactions: int
    total_amount: float
    alerts: AlertCounts
    generated_at: str


class GraphSnapshot(BaseModel):
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    new_transaction: LabeledTransaction | None = None
    alerts: list[Alert] | None = None
    metrics: MetricsRollup | None = None


class TransactionOut(BaseModel):
    success: bool
    data: Transaction
    alerts: list[Alert] = []
