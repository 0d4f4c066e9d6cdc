"""
End-to-end analysis pipeline: cluster, enrich, correlate.
"""

from datetime import datetime, timezone
from typing import Callable, Sequence

from loguru import logger

from worldpulse.analysis.clustering import NewsClusterer, ThreatAggregator
from worldpulse.analysis.config import DEFAULT_CONFIG, EngineConfig
from worldpulse.analysis.correlation import Collaborators, CorrelationEngine
from worldpulse.analysis.sources import source_tier
from worldpulse.analysis.threats import aggregate_threats, classify_threat
from worldpulse.analysis.types import (
    CycleResult,
    MarketQuote,
    NewsItem,
    PredictionQuote,
    StreamSnapshot,
    ThreatClassification,
    ensure_utc,
)
from worldpulse.analysis.velocity import attach_velocity
from worldpulse.utils import guarded


class AnalysisPipeline:
    """
    Runs one full cycle from raw headlines to signals.

    Usage:
        pipeline = AnalysisPipeline(collaborators=Collaborators.with_guard(guard))
        result = pipeline.process(items, predictions, markets, previous_snapshot)
        store(result.snapshot)
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        collaborators: Collaborators | None = None,
        tier_of: Callable[[str], int] = source_tier,
        classify: Callable[[str], ThreatClassification] | None = classify_threat,
        threat_aggregator: ThreatAggregator | None = aggregate_threats,
    ):
        self.config = config
        self.clusterer = NewsClusterer(
            config=config, tier_of=tier_of, aggregate_threats=threat_aggregator
        )
        self.engine = CorrelationEngine(config=config, collaborators=collaborators)
        self._classify = guarded("classify_threat", classify, None) if classify else None

    def classify_items(self, items: Sequence[NewsItem]) -> list[NewsItem]:
        """Attach a threat to items that arrive without one."""
        if not self._classify:
            return list(items)
        classified = []
        for item in items:
            if item.threat is None:
                threat = self._classify(item.title)
                if threat is not None:
                    item = item.model_copy(update={"threat": threat})
            classified.append(item)
        return classified

    def process(
        self,
        items: Sequence[NewsItem],
        predictions: Sequence[PredictionQuote],
        markets: Sequence[MarketQuote],
        previous_snapshot: StreamSnapshot | None,
        now: datetime | None = None,
    ) -> CycleResult:
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        events = self.clusterer.cluster(self.classify_items(items) if items else items)
        events = attach_velocity(events, now)
        result = self.engine.run_cycle(
            events, predictions, markets, previous_snapshot, now=now
        )
        summary = result.summary()
        logger.info(
            f"Pipeline: {len(items)} items, {len(events)} events, "
            f"status {summary.status}"
        )
        return result
