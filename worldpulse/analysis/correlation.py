"""
Correlation engine - detects cross-domain signals between cycles.

Detects:
- Prediction markets moving ahead of news coverage
- Topic velocity spikes against a 7-day baseline
- Market moves with and without explaining news
- Energy price rises without pipeline flow news
- Multi-source convergence, critical-source triangulation, pipeline flow drops

The engine keeps no state between calls. The caller hands in the previous
StreamSnapshot and stores the one returned for the next cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from loguru import logger

from worldpulse.analysis import detectors
from worldpulse.analysis.config import DEFAULT_CONFIG, EngineConfig
from worldpulse.analysis.entities import (
    extract_entities_from_clusters,
    find_news_for_symbol,
    lookup_entity,
)
from worldpulse.analysis.sources import source_type
from worldpulse.analysis.types import (
    ClusteredEvent,
    CorrelationSignal,
    CycleResult,
    EntityContext,
    EntityEntry,
    MarketQuote,
    NewsReference,
    PredictionQuote,
    SourceType,
    StreamSnapshot,
    ensure_utc,
)
from worldpulse.analysis.velocity import extract_topic_activity, update_history
from worldpulse.exceptions import InvalidInputError
from worldpulse.utils import guarded


def _never_seen(key: str) -> bool:
    return False


def _ignore(key: str) -> None:
    return None


@dataclass(frozen=True)
class Collaborators:
    """
    Functions the engine calls but does not own.

    Defaults are the bundled lookup tables and an always-empty dedup guard;
    deployments pass a real guard (see SignalDedupGuard) and their own
    feed registry lookups.
    """

    source_type_of: Callable[[str], SourceType | str] = source_type
    is_recent_duplicate: Callable[[str], bool] = _never_seen
    mark_signal_seen: Callable[[str], None] = _ignore
    extract_entities: Callable[[Sequence[ClusteredEvent]], list[EntityContext]] = (
        extract_entities_from_clusters
    )
    find_news_for_symbol: Callable[
        [str, Sequence[EntityContext]], list[NewsReference]
    ] = find_news_for_symbol
    lookup_entity: Callable[[str], EntityEntry | None] = lookup_entity
    check_and_mark: Callable[[str], bool] | None = None

    @classmethod
    def with_guard(cls, guard, **overrides) -> "Collaborators":
        """
        Build collaborators around an object exposing the guard pair.

        The guard's check_and_mark is picked up when it has one.
        """
        return cls(
            is_recent_duplicate=guard.is_recent_duplicate,
            mark_signal_seen=guard.mark_signal_seen,
            check_and_mark=getattr(guard, "check_and_mark", None),
            **overrides,
        )


@dataclass
class _Detector:
    name: str
    run: Callable[[], list[CorrelationSignal]]
    signals: list[CorrelationSignal] = field(default_factory=list)


def _require_list(name: str, value) -> None:
    if value is None or not isinstance(value, (list, tuple)):
        raise InvalidInputError(name)


class CorrelationEngine:
    """
    Runs every signal detector over one cycle's inputs.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        collaborators: Collaborators | None = None,
    ):
        self.config = config
        self.collaborators = collaborators or Collaborators()

        c = self.collaborators
        self._source_type_of = guarded("source_type_of", c.source_type_of, SourceType.OTHER)
        self._extract_entities = guarded("extract_entities", c.extract_entities, list)
        self._find_news = guarded("find_news_for_symbol", c.find_news_for_symbol, list)
        self._lookup_entity = guarded("lookup_entity", c.lookup_entity, None)
        self._gate = detectors.SignalGate(
            is_recent_duplicate=c.is_recent_duplicate,
            mark_signal_seen=c.mark_signal_seen,
            check_and_mark=c.check_and_mark,
        )

    def build_snapshot(
        self,
        topic_activity: dict[str, float],
        predictions: Sequence[PredictionQuote],
        markets: Sequence[MarketQuote],
        previous_snapshot: StreamSnapshot | None,
        now: datetime,
    ) -> StreamSnapshot:
        previous_history = (
            previous_snapshot.topic_velocity_history if previous_snapshot else {}
        )
        return StreamSnapshot(
            topic_velocity=dict(topic_activity),
            market_change={m.symbol: m.change_percent or 0.0 for m in markets},
            prediction_value={
                p.title[: self.config.prediction_key_length]: p.yes_price
                for p in predictions
            },
            topic_velocity_history=update_history(
                previous_history, topic_activity, now, self.config
            ),
            timestamp=now,
        )

    def run_cycle(
        self,
        events: Sequence[ClusteredEvent],
        predictions: Sequence[PredictionQuote],
        markets: Sequence[MarketQuote],
        previous_snapshot: StreamSnapshot | None,
        now: datetime | None = None,
    ) -> CycleResult:
        """
        Analyze one cycle of events, prediction quotes and market quotes.

        Args:
            events: Clustered events for this cycle
            predictions: Prediction market quotes (may be empty)
            markets: Market quotes (may be empty)
            previous_snapshot: Snapshot returned by the last cycle, None on first run
            now: Cycle timestamp, defaults to the current UTC time

        Returns:
            CycleResult with the filtered signals and the snapshot to keep
        """
        _require_list("events", events)
        _require_list("predictions", predictions)
        _require_list("markets", markets)
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        config = self.config

        topic_activity = extract_topic_activity(
            events, config.topic_keywords, config.suppressed_terms
        )
        snapshot = self.build_snapshot(
            topic_activity, predictions, markets, previous_snapshot, now
        )

        if previous_snapshot is None:
            logger.info(
                f"Correlation cold start: snapshot captured for "
                f"{len(topic_activity)} topics, {len(markets)} markets, "
                f"{len(predictions)} predictions"
            )
            return CycleResult(signals=[], snapshot=snapshot, cold_start=True)

        gate = self._gate
        previous_history = previous_snapshot.topic_velocity_history
        entity_contexts = self._extract_entities(events) or []

        flow_drops = _Detector(
            "flow_drop",
            lambda: detectors.detect_pipeline_flow_drops(events, gate, now, config),
        )
        self._run(flow_drops)
        pipeline_flow_mentions = len(flow_drops.signals)

        ordered = [
            _Detector(
                "prediction_leads_news",
                lambda: detectors.detect_prediction_shifts(
                    predictions, previous_snapshot, topic_activity, gate, now, config
                ),
            ),
            _Detector(
                "velocity_spike",
                lambda: detectors.detect_velocity_spikes(
                    topic_activity, previous_history, gate, now, config
                ),
            ),
            _Detector(
                "market_moves",
                lambda: detectors.detect_market_moves(
                    markets,
                    topic_activity,
                    entity_contexts,
                    gate,
                    now,
                    self._find_news,
                    self._lookup_entity,
                    config,
                ),
            ),
            _Detector(
                "flow_price_divergence",
                lambda: detectors.detect_flow_price_divergence(
                    markets, topic_activity, pipeline_flow_mentions, gate, now, config
                ),
            ),
            _Detector(
                "convergence",
                lambda: detectors.detect_convergence(
                    events, self._source_type_of, gate, now, config
                ),
            ),
            _Detector(
                "triangulation",
                lambda: detectors.detect_triangulation(
                    events, self._source_type_of, gate, now, config
                ),
            ),
        ]

        candidates: list[CorrelationSignal] = []
        for detector in ordered:
            self._run(detector)
            candidates.extend(detector.signals)
        candidates.extend(flow_drops.signals)

        # One signal per type per cycle
        seen_types = set()
        unique: list[CorrelationSignal] = []
        for signal in candidates:
            if signal.type in seen_types:
                continue
            seen_types.add(signal.type)
            unique.append(signal)

        signals = [s for s in unique if s.confidence >= config.min_confidence]

        logger.info(
            f"Correlation cycle: {len(signals)} signals "
            f"({len(candidates)} before filtering), {len(topic_activity)} topics"
        )
        return CycleResult(signals=signals, snapshot=snapshot)

    @staticmethod
    def _run(detector: _Detector) -> None:
        try:
            detector.signals = detector.run()
        except Exception as e:
            logger.error(f"Detector '{detector.name}' failed: {type(e).__name__}: {e}")
            detector.signals = []


def run_cycle(
    events: Sequence[ClusteredEvent],
    predictions: Sequence[PredictionQuote],
    markets: Sequence[MarketQuote],
    previous_snapshot: StreamSnapshot | None,
    collaborators: Collaborators | None = None,
    config: EngineConfig = DEFAULT_CONFIG,
    now: datetime | None = None,
) -> CycleResult:
    """Run one correlation cycle, see CorrelationEngine.run_cycle."""
    return CorrelationEngine(config=config, collaborators=collaborators).run_cycle(
        events, predictions, markets, previous_snapshot, now=now
    )
