"""
Analysis types using Pydantic models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def ensure_utc(value: datetime) -> datetime:
    """Timestamps without a timezone are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SourceType(str, Enum):
    """Editorial category of a news source."""

    WIRE = "wire"
    GOVERNMENT = "government"
    INTELLIGENCE = "intelligence"
    MAINSTREAM = "mainstream"
    MARKET = "market"
    TECH = "tech"
    OTHER = "other"


class ThreatLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def priority(self) -> int:
        return THREAT_PRIORITY[self]


THREAT_PRIORITY: dict[ThreatLevel, int] = {
    ThreatLevel.CRITICAL: 5,
    ThreatLevel.HIGH: 4,
    ThreatLevel.MEDIUM: 3,
    ThreatLevel.LOW: 2,
    ThreatLevel.INFO: 1,
}


class ThreatClassification(BaseModel):
    """Threat level and category assigned to a headline or event."""

    model_config = ConfigDict(frozen=True)

    level: ThreatLevel
    category: str
    confidence: float
    source: Literal["keyword", "ml", "llm"] = "keyword"


class NewsItem(BaseModel):
    """A single ingested headline."""

    model_config = ConfigDict(frozen=True)

    source: str
    title: str
    published_at: datetime
    is_alert: bool = False
    link: str = ""
    tier: int | None = None
    source_type: SourceType | None = None
    lat: float | None = None
    lon: float | None = None
    location_name: str | None = None
    language: str | None = None
    threat: ThreatClassification | None = None
    monitor_color: str | None = None

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lon is not None


class TopSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    tier: int
    url: str


class VelocityMetrics(BaseModel):
    """How fast an event is picking up sources."""

    model_config = ConfigDict(frozen=True)

    sources_per_hour: float
    level: Literal["normal", "elevated", "spike"]
    trend: Literal["rising", "stable", "falling"]


class ClusteredEvent(BaseModel):
    """A group of near-duplicate headlines describing one occurrence."""

    model_config = ConfigDict(frozen=True)

    id: str
    primary_title: str
    primary_source: str
    primary_link: str
    member_count: int
    top_sources: list[TopSource] = Field(default_factory=list)
    all_members: list[NewsItem] = Field(default_factory=list)
    first_seen: datetime
    last_updated: datetime
    is_alert: bool = False
    lat: float | None = None
    lon: float | None = None
    lang: str | None = None
    monitor_color: str | None = None
    threat: ThreatClassification | None = None
    velocity: VelocityMetrics | None = None


class PredictionQuote(BaseModel):
    """Prediction market quote, yes price in percent."""

    model_config = ConfigDict(frozen=True)

    title: str
    yes_price: float = Field(ge=0, le=100)
    volume: float | None = None


class MarketQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    display: str
    price: float | None = None
    change_percent: float | None = None


class EntityEntry(BaseModel):
    """An entity the linker can recognise in headlines (usually a ticker)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    keywords: tuple[str, ...] = ()


class EntityContext(BaseModel):
    """Entities recognised in one clustered event."""

    model_config = ConfigDict(frozen=True)

    cluster_id: str
    title: str
    entity_ids: tuple[str, ...] = ()


class NewsReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    cluster_id: str
    title: str


# =============================================================================
# Signals
# =============================================================================


class SignalType(str, Enum):
    PREDICTION_LEADS_NEWS = "prediction_leads_news"
    NEWS_LEADS_MARKETS = "news_leads_markets"
    SILENT_DIVERGENCE = "silent_divergence"
    VELOCITY_SPIKE = "velocity_spike"
    KEYWORD_SPIKE = "keyword_spike"
    CONVERGENCE = "convergence"
    TRIANGULATION = "triangulation"
    FLOW_DROP = "flow_drop"
    FLOW_PRICE_DIVERGENCE = "flow_price_divergence"
    GEO_CONVERGENCE = "geo_convergence"
    EXPLAINED_MARKET_MOVE = "explained_market_move"
    # Reserved, no detector emits these yet
    HOTSPOT_ESCALATION = "hotspot_escalation"
    SECTOR_CASCADE = "sector_cascade"
    MILITARY_SURGE = "military_surge"


class PredictionLeadsNewsData(BaseModel):
    prediction_shift: float
    news_velocity: float
    related_topics: list[str] = Field(default_factory=list)


class VelocitySpikeData(BaseModel):
    news_velocity: float
    related_topics: list[str] = Field(default_factory=list)
    baseline: float
    multiplier: float | None = None
    explanation: str = ""


class ExplainedMarketMoveData(BaseModel):
    market_change: float
    news_velocity: float
    correlated_entities: list[str] = Field(default_factory=list)
    correlated_news: list[str] = Field(default_factory=list)
    explanation: str = ""


class SilentDivergenceData(BaseModel):
    market_change: float
    news_velocity: float
    explanation: str = ""


class FlowPriceDivergenceData(BaseModel):
    market_change: float
    news_velocity: float
    related_topics: list[str] = Field(default_factory=list)


class SourceSpreadData(BaseModel):
    """Payload shared by the source-composition signals."""

    news_velocity: float
    related_topics: list[str] = Field(default_factory=list)


class CorrelationSignal(BaseModel):
    """Base for every emitted signal. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: SignalType
    title: str
    description: str
    confidence: float = Field(ge=0, le=1)
    timestamp: datetime
    data: Any


class PredictionLeadsNewsSignal(CorrelationSignal):
    type: Literal[SignalType.PREDICTION_LEADS_NEWS] = SignalType.PREDICTION_LEADS_NEWS
    data: PredictionLeadsNewsData


class VelocitySpikeSignal(CorrelationSignal):
    type: Literal[SignalType.VELOCITY_SPIKE] = SignalType.VELOCITY_SPIKE
    data: VelocitySpikeData


class ExplainedMarketMoveSignal(CorrelationSignal):
    type: Literal[SignalType.EXPLAINED_MARKET_MOVE] = SignalType.EXPLAINED_MARKET_MOVE
    data: ExplainedMarketMoveData


class SilentDivergenceSignal(CorrelationSignal):
    type: Literal[SignalType.SILENT_DIVERGENCE] = SignalType.SILENT_DIVERGENCE
    data: SilentDivergenceData


class FlowPriceDivergenceSignal(CorrelationSignal):
    type: Literal[SignalType.FLOW_PRICE_DIVERGENCE] = SignalType.FLOW_PRICE_DIVERGENCE
    data: FlowPriceDivergenceData


class ConvergenceSignal(CorrelationSignal):
    type: Literal[SignalType.CONVERGENCE] = SignalType.CONVERGENCE
    data: SourceSpreadData


class TriangulationSignal(CorrelationSignal):
    type: Literal[SignalType.TRIANGULATION] = SignalType.TRIANGULATION
    data: SourceSpreadData


class FlowDropSignal(CorrelationSignal):
    type: Literal[SignalType.FLOW_DROP] = SignalType.FLOW_DROP
    data: SourceSpreadData


AnySignal = Annotated[
    Union[
        PredictionLeadsNewsSignal,
        VelocitySpikeSignal,
        ExplainedMarketMoveSignal,
        SilentDivergenceSignal,
        FlowPriceDivergenceSignal,
        ConvergenceSignal,
        TriangulationSignal,
        FlowDropSignal,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Snapshot and cycle results
# =============================================================================


class VelocityPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    velocity: float

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class StreamSnapshot(BaseModel):
    """State carried from one cycle to the next. Owned by the caller."""

    topic_velocity: dict[str, float] = Field(default_factory=dict)
    market_change: dict[str, float] = Field(default_factory=dict)
    prediction_value: dict[str, float] = Field(default_factory=dict)
    topic_velocity_history: dict[str, list[VelocityPoint]] = Field(
        default_factory=dict
    )
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, payload: str | bytes) -> "StreamSnapshot":
        return cls.model_validate_json(payload)


class CycleSummary(BaseModel):
    """Summary of one correlation cycle."""

    total_signals: int
    status: str
    by_type: dict[str, int] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_signals": self.total_signals,
            "status": self.status,
            "by_type": self.by_type,
        }


class CycleResult(BaseModel):
    """Signals emitted by a cycle plus the snapshot to carry forward."""

    signals: list[AnySignal] = Field(default_factory=list)
    snapshot: StreamSnapshot
    cold_start: bool = False

    @property
    def status(self) -> str:
        if self.cold_start:
            return "COLD START"
        if not self.signals:
            return "MONITORING"
        return f"{len(self.signals)} SIGNALS"

    def summary(self) -> CycleSummary:
        by_type: dict[str, int] = {}
        for signal in self.signals:
            by_type[signal.type.value] = by_type.get(signal.type.value, 0) + 1
        return CycleSummary(
            total_signals=len(self.signals),
            status=self.status,
            by_type=by_type,
        )
