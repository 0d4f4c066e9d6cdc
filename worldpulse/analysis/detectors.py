"""
Correlation signal detectors.

Each detector reads its inputs and returns fresh signals. The only side
effect is marking dedupe keys through the caller's guard, so that a topic
or market oscillating around a threshold does not alert every cycle.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Sequence

from loguru import logger

from worldpulse.analysis.config import (
    DEFAULT_CONFIG,
    EngineConfig,
    find_related_topics,
    includes_any_keyword,
)
from worldpulse.analysis.types import (
    ClusteredEvent,
    ConvergenceSignal,
    CorrelationSignal,
    EntityContext,
    EntityEntry,
    ExplainedMarketMoveData,
    ExplainedMarketMoveSignal,
    FlowDropSignal,
    FlowPriceDivergenceData,
    FlowPriceDivergenceSignal,
    MarketQuote,
    NewsItem,
    NewsReference,
    PredictionLeadsNewsData,
    PredictionLeadsNewsSignal,
    PredictionQuote,
    SignalType,
    SilentDivergenceData,
    SilentDivergenceSignal,
    SourceSpreadData,
    SourceType,
    StreamSnapshot,
    TriangulationSignal,
    VelocityPoint,
    VelocitySpikeData,
    VelocitySpikeSignal,
)
from worldpulse.analysis.velocity import detect_spike
from worldpulse.utils import truncate

SourceTypeLookup = Callable[[str], SourceType | str]
NewsFinder = Callable[[str, Sequence[EntityContext]], list[NewsReference]]
EntityLookup = Callable[[str], EntityEntry | None]


def generate_signal_id() -> str:
    return f"sig-{uuid.uuid4().hex[:12]}"


def generate_dedupe_key(
    signal_type: SignalType | str, subject: str, magnitude: float
) -> str:
    """Deterministic key in (type, subject, magnitude rounded to 0.1)."""
    type_value = (
        signal_type.value if isinstance(signal_type, SignalType) else signal_type
    )
    return f"{type_value}:{subject}:{round(magnitude, 1)}"


@dataclass(frozen=True)
class SignalGate:
    """
    The caller's dedup guard as seen by detectors.

    A key already seen is suppressed without being re-marked. A guard that
    raises counts as "not seen" so a broken store never silences alerts.
    When the guard offers an atomic check_and_mark it is used instead of
    the lookup/mark pair, so concurrent detectors cannot both claim a key.
    """

    is_recent_duplicate: Callable[[str], bool]
    mark_signal_seen: Callable[[str], None]
    check_and_mark: Callable[[str], bool] | None = None

    def claim(self, key: str) -> bool:
        """True when a signal for key may be emitted, marking it seen."""
        if self.check_and_mark is not None:
            try:
                fresh = self.check_and_mark(key)
            except Exception as e:
                logger.warning(f"Dedup guard check failed for {key}: {e}")
                return True
            if not fresh:
                logger.debug(f"Signal suppressed as recent duplicate: {key}")
            return fresh

        try:
            if self.is_recent_duplicate(key):
                logger.debug(f"Signal suppressed as recent duplicate: {key}")
                return False
        except Exception as e:
            logger.warning(f"Dedup guard lookup failed for {key}: {e}")
        try:
            self.mark_signal_seen(key)
        except Exception as e:
            logger.warning(f"Dedup guard mark failed for {key}: {e}")
        return True


def _resolve_source_type(item: NewsItem, source_type_of: SourceTypeLookup) -> SourceType:
    value = item.source_type or source_type_of(item.source)
    try:
        return SourceType(value)
    except ValueError:
        return SourceType.OTHER


def _signed(value: float, digits: int) -> str:
    return f"{'+' if value > 0 else ''}{value:.{digits}f}"


def keyword_news_activity(market: MarketQuote, topic_activity: Mapping[str, float]) -> float:
    """Topic activity whose keyword names this market or contains its symbol."""
    name = market.name.lower()
    symbol = market.symbol.lower()
    return sum(
        score
        for topic, score in topic_activity.items()
        if topic in name or symbol in topic
    )


# =============================================================================
# Prediction markets
# =============================================================================


def detect_prediction_shifts(
    predictions: Sequence[PredictionQuote],
    previous_snapshot: StreamSnapshot,
    topic_activity: Mapping[str, float],
    gate: SignalGate,
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """Prediction markets repricing while related news stays quiet."""
    signals: list[CorrelationSignal] = []
    for prediction in predictions:
        key = prediction.title[: config.prediction_key_length]
        previous = previous_snapshot.prediction_value.get(key)
        if previous is None:
            continue

        delta = prediction.yes_price - previous
        shift = abs(delta)
        if shift < config.prediction_shift_threshold:
            continue

        related = find_related_topics(
            prediction.title, config.topic_keywords, config.suppressed_terms
        )
        news_activity = sum(topic_activity.get(t, 0.0) for t in related)
        if news_activity >= config.news_velocity_threshold:
            continue

        dedupe_key = generate_dedupe_key(SignalType.PREDICTION_LEADS_NEWS, key, shift)
        if not gate.claim(dedupe_key):
            continue

        signals.append(
            PredictionLeadsNewsSignal(
                id=generate_signal_id(),
                title="Prediction Market Shift",
                description=(
                    f'"{truncate(prediction.title, 60)}" moved '
                    f"{_signed(delta, 1)}% with low news coverage"
                ),
                confidence=min(0.9, 0.5 + shift / 20),
                timestamp=now,
                data=PredictionLeadsNewsData(
                    prediction_shift=delta,
                    news_velocity=news_activity,
                    related_topics=related,
                ),
            )
        )
    return signals


# =============================================================================
# News velocity
# =============================================================================


def detect_velocity_spikes(
    topic_activity: Mapping[str, float],
    previous_history: Mapping[str, Sequence[VelocityPoint]],
    gate: SignalGate,
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """Topics whose activity jumped well above their 7-day baseline."""
    signals: list[CorrelationSignal] = []
    for topic, velocity in topic_activity.items():
        if topic in config.suppressed_terms:
            continue

        spike = detect_spike(velocity, previous_history.get(topic, []), now, config)
        if not spike.spiked:
            continue

        dedupe_key = generate_dedupe_key(SignalType.VELOCITY_SPIKE, topic, velocity)
        if not gate.claim(dedupe_key):
            continue

        if spike.multiplier is not None:
            baseline_text = (
                f"{spike.baseline:.1f} baseline ({spike.multiplier:.1f}x)"
            )
            explanation = (
                f"Velocity {velocity:.1f} is {spike.multiplier:.1f}x above "
                f"baseline {spike.baseline:.1f}"
            )
            confidence = min(0.9, 0.45 + spike.multiplier / 8)
        else:
            baseline_text = "cold-start baseline"
            explanation = f"Velocity {velocity:.1f} exceeded cold-start threshold"
            confidence = min(0.9, 0.45 + velocity / 18)

        signals.append(
            VelocitySpikeSignal(
                id=generate_signal_id(),
                title="News Velocity Spike",
                description=(
                    f'"{topic}" coverage surging: {velocity:.1f} activity score '
                    f"vs {baseline_text}"
                ),
                confidence=confidence,
                timestamp=now,
                data=VelocitySpikeData(
                    news_velocity=velocity,
                    related_topics=[topic],
                    baseline=spike.baseline,
                    multiplier=spike.multiplier,
                    explanation=explanation,
                ),
            )
        )
    return signals


# =============================================================================
# Markets
# =============================================================================


def detect_market_moves(
    markets: Sequence[MarketQuote],
    topic_activity: Mapping[str, float],
    entity_contexts: Sequence[EntityContext],
    gate: SignalGate,
    now: datetime,
    find_news_for_symbol: NewsFinder,
    lookup_entity: EntityLookup,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """
    Classify every large market move as explained or silent.

    A move with entity-linked news is explained. Without it, the move is a
    silent divergence only if keyword-linked coverage is also below the floor.
    One symbol yields at most one of the two per cycle.
    """
    signals: list[CorrelationSignal] = []
    for market in markets:
        change = market.change_percent or 0.0
        magnitude = abs(change)
        if magnitude < config.market_move_threshold:
            continue

        related_news = find_news_for_symbol(market.symbol, entity_contexts) or []
        if related_news:
            dedupe_key = generate_dedupe_key(
                SignalType.EXPLAINED_MARKET_MOVE, market.symbol, magnitude
            )
            if not gate.claim(dedupe_key):
                continue
            count = len(related_news)
            signals.append(
                ExplainedMarketMoveSignal(
                    id=generate_signal_id(),
                    title="Market Move Explained",
                    description=(
                        f"{market.name} {_signed(change, 2)}% correlates with: "
                        f'"{truncate(related_news[0].title, 60)}"'
                    ),
                    confidence=min(0.9, 0.5 + count * 0.1 + magnitude / 20),
                    timestamp=now,
                    data=ExplainedMarketMoveData(
                        market_change=change,
                        news_velocity=count,
                        correlated_entities=[market.symbol],
                        correlated_news=[n.cluster_id for n in related_news],
                        explanation=(
                            f"{count} related news item{'s' if count > 1 else ''} found"
                        ),
                    ),
                )
            )
            continue

        keyword_news = keyword_news_activity(market, topic_activity)
        if keyword_news >= config.silent_divergence_news_floor:
            continue

        dedupe_key = generate_dedupe_key(
            SignalType.SILENT_DIVERGENCE, market.symbol, magnitude
        )
        if not gate.claim(dedupe_key):
            continue

        entity = lookup_entity(market.symbol)
        if entity:
            searched = ", ".join(
                [market.symbol, market.name, *entity.keywords[:2]]
            )
        else:
            searched = market.symbol
        signals.append(
            SilentDivergenceSignal(
                id=generate_signal_id(),
                title="Silent Divergence",
                description=(
                    f"{market.name} moved {_signed(change, 2)}% - "
                    f"no news found for: {searched}"
                ),
                confidence=min(0.8, 0.4 + magnitude / 10),
                timestamp=now,
                data=SilentDivergenceData(
                    market_change=change,
                    news_velocity=keyword_news,
                    explanation=f"Searched: {searched}",
                ),
            )
        )
    return signals


def detect_flow_price_divergence(
    markets: Sequence[MarketQuote],
    topic_activity: Mapping[str, float],
    pipeline_flow_mentions: int,
    gate: SignalGate,
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """Energy prices rising with no pipeline disruption to account for it."""
    if pipeline_flow_mentions > 0:
        return []

    signals: list[CorrelationSignal] = []
    for market in markets:
        if market.symbol not in config.energy_symbols:
            continue
        change = market.change_percent or 0.0
        if change < config.flow_price_threshold:
            continue

        related_news = keyword_news_activity(market, topic_activity)
        if related_news >= config.silent_divergence_news_floor:
            continue

        dedupe_key = generate_dedupe_key(
            SignalType.FLOW_PRICE_DIVERGENCE, market.symbol, change
        )
        if not gate.claim(dedupe_key):
            continue

        signals.append(
            FlowPriceDivergenceSignal(
                id=generate_signal_id(),
                title="Flow/Price Divergence",
                description=(
                    f"{market.name} up {change:.2f}% without pipeline flow news"
                ),
                confidence=min(0.85, 0.4 + change / 8),
                timestamp=now,
                data=FlowPriceDivergenceData(
                    market_change=change,
                    news_velocity=related_news,
                    related_topics=["pipeline", market.display],
                ),
            )
        )
    return signals


# =============================================================================
# Source composition
# =============================================================================


def detect_convergence(
    events: Sequence[ClusteredEvent],
    source_type_of: SourceTypeLookup,
    gate: SignalGate,
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """Events picked up by several kinds of source within the last hour."""
    signals: list[CorrelationSignal] = []
    window_minutes = int(config.convergence_window.total_seconds() // 60)
    for event in events:
        if len(event.all_members) < config.convergence_min_members:
            continue

        recent = [
            m
            for m in event.all_members
            if now - m.published_at < config.convergence_window
        ]
        if len(recent) < config.convergence_min_members:
            continue

        source_types: list[SourceType] = []
        for item in recent:
            resolved = _resolve_source_type(item, source_type_of)
            if resolved not in source_types:
                source_types.append(resolved)
        categories = [t.value for t in source_types if t != SourceType.OTHER]
        if len(categories) < config.convergence_min_types:
            continue

        dedupe_key = generate_dedupe_key(
            SignalType.CONVERGENCE, event.id, len(source_types)
        )
        if not gate.claim(dedupe_key):
            continue

        signals.append(
            ConvergenceSignal(
                id=generate_signal_id(),
                title="Source Convergence",
                description=(
                    f'"{truncate(event.primary_title, 50)}" reported by '
                    f"{', '.join(categories)} ({len(recent)} sources in "
                    f"{window_minutes}m)"
                ),
                confidence=min(0.95, 0.6 + len(categories) * 0.1),
                timestamp=now,
                data=SourceSpreadData(
                    news_velocity=len(recent),
                    related_topics=categories,
                ),
            )
        )
    return signals


def detect_triangulation(
    events: Sequence[ClusteredEvent],
    source_type_of: SourceTypeLookup,
    gate: SignalGate,
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """Events confirmed by every critical source type at once."""
    signals: list[CorrelationSignal] = []
    critical = set(config.critical_source_types)
    for event in events:
        if len(event.all_members) < len(critical):
            continue

        present: list[str] = []
        for item in event.all_members:
            resolved = _resolve_source_type(item, source_type_of).value
            if resolved in critical and resolved not in present:
                present.append(resolved)
        if len(present) != len(critical):
            continue

        dedupe_key = generate_dedupe_key(
            SignalType.TRIANGULATION, event.id, len(critical)
        )
        if not gate.claim(dedupe_key):
            continue

        signals.append(
            TriangulationSignal(
                id=generate_signal_id(),
                title="Intel Triangulation",
                description=(
                    f"{' + '.join(t.title() for t in config.critical_source_types)}"
                    f' aligned: "{truncate(event.primary_title, 45)}"'
                ),
                confidence=0.9,
                timestamp=now,
                data=SourceSpreadData(
                    news_velocity=event.member_count,
                    related_topics=present,
                ),
            )
        )
    return signals


def detect_pipeline_flow_drops(
    events: Sequence[ClusteredEvent],
    gate: SignalGate,
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[CorrelationSignal]:
    """Events whose headlines mention both a pipeline and reduced flow."""
    signals: list[CorrelationSignal] = []
    for event in events:
        titles = [event.primary_title, *(m.title for m in event.all_members)]
        titles = [t for t in titles if t]

        has_pipeline = any(
            includes_any_keyword(t, config.pipeline_keywords) for t in titles
        )
        has_flow_drop = any(
            includes_any_keyword(t, config.flow_drop_keywords) for t in titles
        )
        if not (has_pipeline and has_flow_drop):
            continue

        dedupe_key = generate_dedupe_key(
            SignalType.FLOW_DROP, event.id, event.member_count
        )
        if not gate.claim(dedupe_key):
            continue

        signals.append(
            FlowDropSignal(
                id=generate_signal_id(),
                title="Pipeline Flow Drop",
                description=(
                    f'"{truncate(event.primary_title, 70)}" indicates reduced '
                    f"flow or disruption"
                ),
                confidence=min(0.9, 0.4 + event.member_count / 10),
                timestamp=now,
                data=SourceSpreadData(
                    news_velocity=event.member_count,
                    related_topics=["pipeline", "flow"],
                ),
            )
        )
    return signals
