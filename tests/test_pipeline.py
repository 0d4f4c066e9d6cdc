from datetime import datetime

import pytest

from tests.conftest import NOW, RecordingGuard, make_item
from worldpulse.analysis.correlation import Collaborators
from worldpulse.analysis.pipeline import AnalysisPipeline
from worldpulse.analysis.types import (
    MarketQuote,
    NewsItem,
    SignalType,
    ThreatClassification,
    ThreatLevel,
)
from worldpulse.exceptions import InvalidInputError


def test_classify_items_fills_missing_threats_only():
    pipeline = AnalysisPipeline()
    low = ThreatClassification(level=ThreatLevel.LOW, category="diplomatic", confidence=0.6)
    preset = make_item("Drone strike hits fuel depot", source="AFP", threat=low)
    items = pipeline.classify_items(
        [make_item("Drone strike hits fuel depot"), preset]
    )
    assert items[0].threat.level == ThreatLevel.HIGH
    assert items[1].threat.level == ThreatLevel.LOW


def test_process_clusters_and_correlates():
    guard = RecordingGuard()
    pipeline = AnalysisPipeline(collaborators=Collaborators.with_guard(guard))
    title = "Satellite images show troop buildup at border"
    items = [make_item(title, source=s) for s in ("Reuters", "Pentagon", "Janes")]

    cold = pipeline.process(items, [], [], None, now=NOW)
    assert cold.cold_start

    warm = pipeline.process(items, [], [], cold.snapshot, now=NOW)
    assert SignalType.TRIANGULATION in [s.type for s in warm.signals]


def test_process_with_empty_batch():
    pipeline = AnalysisPipeline()
    market = MarketQuote(symbol="GC=F", name="Gold", display="GOLD", change_percent=3.2)
    cold = pipeline.process([], [], [market], None, now=NOW)
    warm = pipeline.process([], [], [market], cold.snapshot, now=NOW)
    assert [s.type for s in warm.signals] == [SignalType.SILENT_DIVERGENCE]


def test_process_rejects_missing_items():
    with pytest.raises(InvalidInputError):
        AnalysisPipeline().process(None, [], [], None, now=NOW)


def test_threat_attached_to_events():
    pipeline = AnalysisPipeline()
    title = "Drone strike hits fuel depot"
    events = pipeline.clusterer.cluster(
        pipeline.classify_items([make_item(title), make_item(title, source="AFP")])
    )
    assert events[0].threat.level == ThreatLevel.HIGH
    assert events[0].threat.category == "conflict"


def test_process_accepts_timestamps_without_timezone():
    title = "Satellite images show troop buildup at border"
    items = [
        NewsItem(source=s, title=title, published_at=datetime(2026, 3, 2, 11, 50 + i))
        for i, s in enumerate(("Reuters", "Pentagon", "Janes"))
    ]
    mixed = items + [make_item("Oil tanker seized in Strait of Hormuz")]
    naive_now = NOW.replace(tzinfo=None)

    cold = AnalysisPipeline().process(mixed, [], [], None, now=naive_now)
    assert cold.snapshot.timestamp == NOW

    warm = AnalysisPipeline().process(mixed, [], [], cold.snapshot, now=naive_now)
    assert SignalType.TRIANGULATION in [s.type for s in warm.signals]
