from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import NOW, make_item
from worldpulse.analysis.clustering import NewsClusterer, cluster_news, generate_cluster_id
from worldpulse.analysis.config import EngineConfig
from worldpulse.analysis.threats import aggregate_threats
from worldpulse.analysis.tokenizer import jaccard_similarity, tokenize
from worldpulse.analysis.types import NewsItem, ThreatClassification, ThreatLevel
from worldpulse.exceptions import InvalidInputError


def test_empty_input_yields_no_events():
    assert cluster_news([]) == []


def test_none_input_is_a_programmer_error():
    with pytest.raises(InvalidInputError):
        cluster_news(None)


def test_identical_titles_collapse_into_one_event():
    items = [
        make_item("Iran launches missiles at Israel", source=f"Outlet {i}", minutes_ago=i)
        for i in range(5)
    ]
    events = cluster_news(items)
    assert len(events) == 1
    assert events[0].member_count == 5
    assert len(events[0].all_members) == 5


def test_disjoint_titles_stay_separate():
    items = [
        make_item("alpha bravo charlie"),
        make_item("delta echo foxtrot"),
        make_item("golf hotel india"),
        make_item("juliet kilo lima"),
    ]
    events = cluster_news(items)
    assert len(events) == 4
    assert all(e.member_count == 1 for e in events)


def test_every_member_is_similar_to_its_seed_and_assigned_once():
    items = [
        make_item("Iran launches missiles at Israel", source="Reuters", minutes_ago=1),
        make_item("Fed holds interest rates steady", source="CNBC", minutes_ago=2),
        make_item("Iran launches missiles at Israel overnight", source="BBC World", minutes_ago=3),
        make_item("Fed holds interest rates steady again", source="Bloomberg", minutes_ago=4),
        make_item("Earthquake hits northern Japan coast", source="AP News", minutes_ago=5),
        make_item("Israel says Iran launches missiles", source="Al Jazeera", minutes_ago=6),
    ]
    order = {(i.source, i.title): n for n, i in enumerate(items)}
    threshold = EngineConfig().similarity_threshold

    events = cluster_news(items)

    members = [(m.source, m.title) for e in events for m in e.all_members]
    assert len(members) == len(items)
    assert len(set(members)) == len(items)

    for event in events:
        seed = min(event.all_members, key=lambda m: order[(m.source, m.title)])
        seed_tokens = tokenize(seed.title)
        for member in event.all_members:
            assert jaccard_similarity(seed_tokens, tokenize(member.title)) >= threshold


def test_primary_is_lowest_tier_then_newest():
    items = [
        make_item("Pipeline blast halts gas flow", source="Hacker News", minutes_ago=1),
        make_item("Pipeline blast halts gas flow", source="Reuters", minutes_ago=30),
        make_item("Pipeline blast halts gas flow", source="AP News", minutes_ago=10),
    ]
    event = cluster_news(items)[0]
    assert event.primary_source == "AP News"
    assert [s.name for s in event.top_sources] == ["AP News", "Reuters", "Hacker News"]
    assert [s.tier for s in event.top_sources] == [1, 1, 4]


def test_top_sources_capped_at_three():
    items = [
        make_item("Ceasefire talks resume in Cairo", source=f"Outlet {i}", minutes_ago=i)
        for i in range(6)
    ]
    event = cluster_news(items)[0]
    assert len(event.top_sources) == 3


def test_item_tier_overrides_lookup():
    items = [
        make_item("Ceasefire talks resume in Cairo", source="Reuters", minutes_ago=1),
        make_item("Ceasefire talks resume in Cairo", source="Local Blog", minutes_ago=2, tier=0),
    ]
    event = cluster_news(items)[0]
    assert event.primary_source == "Local Blog"


def test_failing_tier_lookup_falls_back_to_default_tier():
    def broken(source):
        raise KeyError(source)

    items = [make_item("Ceasefire talks resume in Cairo")]
    event = cluster_news(items, tier_of=broken)[0]
    assert event.top_sources[0].tier == 4


def test_time_bounds_and_sort_order():
    items = [
        make_item("Oil tanker seized in Strait of Hormuz", minutes_ago=50),
        make_item("Oil tanker seized in Strait of Hormuz", source="AFP", minutes_ago=10),
        make_item("Volcano erupts near Reykjavik airport", minutes_ago=2),
    ]
    events = cluster_news(items)
    assert [e.member_count for e in events] == [1, 2]
    tanker = events[1]
    assert tanker.first_seen == NOW - timedelta(minutes=50)
    assert tanker.last_updated == NOW - timedelta(minutes=10)


def test_cluster_id_is_reproducible():
    items = [
        make_item("Ceasefire talks resume in Cairo", minutes_ago=1),
        make_item("Ceasefire talks resume in Cairo", source="AFP", minutes_ago=9),
    ]
    first = cluster_news(items)
    second = cluster_news(list(items))
    assert [e.id for e in first] == [e.id for e in second]

    earliest = NOW - timedelta(minutes=9)
    assert first[0].id == f"{int(earliest.timestamp() * 1000)}-Ceasefiretalksresu"
    assert first[0].id == generate_cluster_id(items)


def test_geo_tag_uses_most_frequent_location():
    items = [
        make_item("Explosion reported at Kharkiv power plant", source="A", lat=1.0, lon=1.0),
        make_item("Explosion reported at Kharkiv power plant", source="B", lat=2.0, lon=2.0),
        make_item("Explosion reported at Kharkiv power plant", source="C", lat=2.0, lon=2.0),
        make_item("Explosion reported at Kharkiv power plant", source="D"),
    ]
    event = cluster_news(items)[0]
    assert (event.lat, event.lon) == (2.0, 2.0)


def test_geo_tag_tie_goes_to_first_encountered():
    items = [
        make_item("Explosion reported at Kharkiv power plant", source="A", lat=5.0, lon=6.0),
        make_item("Explosion reported at Kharkiv power plant", source="B", lat=7.0, lon=8.0),
    ]
    event = cluster_news(items)[0]
    assert (event.lat, event.lon) == (5.0, 6.0)


def test_event_without_coordinates_has_no_geo_tag():
    event = cluster_news([make_item("Explosion reported at Kharkiv power plant")])[0]
    assert event.lat is None
    assert event.lon is None


def test_alert_flag_propagates():
    items = [
        make_item("Coup attempt reported in capital"),
        make_item("Coup attempt reported in capital", source="AFP", is_alert=True),
    ]
    assert cluster_news(items)[0].is_alert is True


def test_threat_aggregator_is_applied():
    high = ThreatClassification(level=ThreatLevel.HIGH, category="conflict", confidence=0.8)
    items = [
        make_item("Missile strike hits Odesa port", threat=high),
        make_item("Missile strike hits Odesa port", source="AFP"),
    ]
    clusterer = NewsClusterer(aggregate_threats=aggregate_threats)
    event = clusterer.cluster(items)[0]
    assert event.threat is not None
    assert event.threat.level == ThreatLevel.HIGH


def test_timestamps_without_timezone_are_read_as_utc():
    title = "Ceasefire talks resume in Cairo"
    naive = NewsItem(source="AFP", title=title, published_at=datetime(2026, 3, 2, 11, 51))
    assert naive.published_at.tzinfo == timezone.utc

    events = cluster_news([make_item(title, minutes_ago=1), naive])

    [event] = events
    earliest = NOW - timedelta(minutes=9)
    assert event.first_seen == earliest
    assert event.last_updated == NOW - timedelta(minutes=1)
    assert event.id == f"{int(earliest.timestamp() * 1000)}-Ceasefiretalksresu"


def test_batch_without_timezones_clusters():
    items = [
        NewsItem(source=s, title="Oil tanker seized in Strait of Hormuz", published_at=ts)
        for s, ts in (
            ("Reuters", datetime(2026, 3, 2, 11, 40)),
            ("AFP", datetime(2026, 3, 2, 11, 45)),
        )
    ]
    [event] = cluster_news(items)
    assert event.member_count == 2
    assert event.primary_source == "AFP"
