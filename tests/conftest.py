from datetime import datetime, timedelta, timezone

import pytest

from worldpulse.analysis.types import ClusteredEvent, NewsItem, VelocityMetrics

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class RecordingGuard:
    """Dedup guard fake that remembers every key it was asked to mark."""

    def __init__(self, seen=None):
        self.seen: set[str] = set(seen or ())
        self.marked: list[str] = []
        self.lookups: list[str] = []

    def is_recent_duplicate(self, key: str) -> bool:
        self.lookups.append(key)
        return key in self.seen

    def mark_signal_seen(self, key: str) -> None:
        self.marked.append(key)
        self.seen.add(key)


def make_item(
    title: str,
    source: str = "Reuters",
    minutes_ago: float = 5,
    **kwargs,
) -> NewsItem:
    return NewsItem(
        source=source,
        title=title,
        published_at=NOW - timedelta(minutes=minutes_ago),
        link=kwargs.pop("link", f"https://example.com/{abs(hash((source, title)))}"),
        **kwargs,
    )


def make_event(
    title: str,
    members: list[NewsItem] | None = None,
    sources_per_hour: float | None = None,
    event_id: str | None = None,
) -> ClusteredEvent:
    members = members or [make_item(title)]
    dates = [m.published_at for m in members]
    velocity = None
    if sources_per_hour is not None:
        velocity = VelocityMetrics(
            sources_per_hour=sources_per_hour, level="normal", trend="stable"
        )
    return ClusteredEvent(
        id=event_id or f"evt-{title[:12]}",
        primary_title=title,
        primary_source=members[0].source,
        primary_link=members[0].link,
        member_count=len(members),
        all_members=members,
        first_seen=min(dates),
        last_updated=max(dates),
        velocity=velocity,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def guard() -> RecordingGuard:
    return RecordingGuard()
