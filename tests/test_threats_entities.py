import pytest

from tests.conftest import make_event, make_item
from worldpulse.analysis.entities import (
    EntityIndex,
    extract_entities_from_clusters,
    find_news_for_symbol,
    lookup_entity,
)
from worldpulse.analysis.sources import source_tier, source_type
from worldpulse.analysis.threats import aggregate_threats, classify_threat
from worldpulse.analysis.types import (
    EntityEntry,
    SourceType,
    ThreatClassification,
    ThreatLevel,
)


@pytest.mark.parametrize(
    "title,level,category",
    [
        ("Military declares martial law in capital", ThreatLevel.CRITICAL, "military"),
        ("Drone strike hits fuel depot", ThreatLevel.HIGH, "conflict"),
        ("Riots spread after disputed result", ThreatLevel.MEDIUM, "protest"),
        ("Leaders meet for climate summit", ThreatLevel.LOW, "diplomatic"),
        ("Quarterly earnings beat expectations", ThreatLevel.INFO, "general"),
    ],
)
def test_classify_threat_levels(title, level, category):
    threat = classify_threat(title)
    assert threat.level == level
    assert threat.category == category


def test_exclusions_and_whole_word_keywords():
    assert classify_threat("Celebrity wedding sparks war of words").level == ThreatLevel.INFO
    # "war" must not match inside "software"
    assert classify_threat("Software update released").level == ThreatLevel.INFO


def test_aggregate_threats_takes_max_level_and_common_category():
    low = ThreatClassification(level=ThreatLevel.LOW, category="diplomatic", confidence=0.6)
    high = ThreatClassification(level=ThreatLevel.HIGH, category="conflict", confidence=0.8)
    members = [
        make_item("x", source="A", tier=1, threat=low),
        make_item("x", source="B", tier=1, threat=low),
        make_item("x", source="C", tier=4, threat=high),
    ]
    threat = aggregate_threats(members)
    assert threat.level == ThreatLevel.HIGH
    assert threat.category == "diplomatic"
    # weights 5, 5, 2
    assert threat.confidence == pytest.approx(round((0.6 * 10 + 0.8 * 2) / 12, 2))


def test_aggregate_without_threats_is_unclassified():
    threat = aggregate_threats([make_item("x")])
    assert threat.level == ThreatLevel.INFO
    assert threat.confidence == 0.3


def test_threat_level_priority_order():
    assert ThreatLevel.CRITICAL.priority > ThreatLevel.HIGH.priority
    assert ThreatLevel.LOW.priority > ThreatLevel.INFO.priority


def test_source_lookups():
    assert source_tier("Reuters") == 1
    assert source_tier("Nobody Reads This") == 4
    assert source_type("Pentagon") == SourceType.GOVERNMENT
    assert source_type("Nobody Reads This") == SourceType.OTHER


def test_entity_extraction_links_events_to_symbols():
    events = [
        make_event("Nvidia unveils new GPU lineup", event_id="c1"),
        make_event("OPEC agrees deeper output cuts", event_id="c2"),
        make_event("Local council approves budget", event_id="c3"),
    ]
    contexts = extract_entities_from_clusters(events)
    assert [c.cluster_id for c in contexts] == ["c1", "c2"]
    assert contexts[0].entity_ids == ("NVDA",)
    assert contexts[1].entity_ids == ("CL=F",)

    news = find_news_for_symbol("CL=F", contexts)
    assert [n.cluster_id for n in news] == ["c2"]
    assert find_news_for_symbol("AAPL", contexts) == []


def test_short_entity_keywords_match_whole_words():
    index = EntityIndex([EntityEntry(id="BTC-USD", name="Bitcoin", keywords=("btc",))])
    assert index.match("BTC slides below support") == ("BTC-USD",)
    assert index.match("Subtcontinent") == ()


def test_lookup_entity():
    assert lookup_entity("LMT").name == "Lockheed Martin"
    assert lookup_entity("NOPE") is None
