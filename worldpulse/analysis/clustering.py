"""
News clustering - groups near-duplicate headlines into events.
"""

import re
import time
from collections import Counter, defaultdict
from typing import Callable, Sequence

from loguru import logger

from worldpulse.analysis.config import DEFAULT_CONFIG, EngineConfig
from worldpulse.analysis.sources import DEFAULT_TIER, source_tier
from worldpulse.analysis.tokenizer import jaccard_similarity, tokenize
from worldpulse.analysis.types import (
    ClusteredEvent,
    NewsItem,
    ThreatClassification,
    TopSource,
)
from worldpulse.exceptions import InvalidInputError
from worldpulse.utils import guarded

ThreatAggregator = Callable[[list[NewsItem]], ThreatClassification | None]

_NON_WORD = re.compile(r"\W")


def generate_cluster_id(members: Sequence[NewsItem]) -> str:
    """Stable id from the earliest member's timestamp and a title slug."""
    first = min(members, key=lambda m: m.published_at)
    millis = int(first.published_at.timestamp() * 1000)
    slug = _NON_WORD.sub("", first.title[:20])
    return f"{millis}-{slug}"


def _most_common_location(members: Sequence[NewsItem]) -> tuple[float, float] | None:
    located = [(m.lat, m.lon) for m in members if m.has_location]
    if not located:
        return None
    # Counter keeps encounter order for equal counts
    return Counter(located).most_common(1)[0][0]


class NewsClusterer:
    """
    Clusters a batch of headlines by title similarity.

    Pure with respect to its input: the same ordered batch always yields the
    same events. Candidate pairs come from an inverted token index, so only
    headlines sharing vocabulary are ever compared.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        tier_of: Callable[[str], int] = source_tier,
        aggregate_threats: ThreatAggregator | None = None,
        debug: bool = False,
    ):
        self.config = config
        self._tier_of = guarded("tier_of", tier_of, DEFAULT_TIER)
        self._aggregate_threats = (
            guarded("aggregate_threats", aggregate_threats, None)
            if aggregate_threats
            else None
        )
        self._debug = debug

    def cluster(self, items: Sequence[NewsItem]) -> list[ClusteredEvent]:
        """
        Group items into events.

        Args:
            items: Time-ordered, already-deduplicated batch of headlines

        Returns:
            Events sorted by last_updated, newest first
        """
        if items is None or not isinstance(items, (list, tuple)):
            raise InvalidInputError("items")
        if not items:
            return []

        start_time = time.time()
        with_tier = [
            item
            if item.tier is not None
            else item.model_copy(update={"tier": self._tier_of(item.source)})
            for item in items
        ]

        token_list = [
            tokenize(item.title, max_tokens=self.config.max_title_tokens)
            for item in with_tier
        ]
        inverted_index: dict[str, list[int]] = defaultdict(list)
        for index, tokens in enumerate(token_list):
            for token in tokens:
                inverted_index[token].append(index)

        groups: list[list[NewsItem]] = []
        assigned: set[int] = set()
        comparisons = 0

        for i, item in enumerate(with_tier):
            if i in assigned:
                continue

            group = [item]
            assigned.add(i)
            tokens_i = token_list[i]

            candidates: set[int] = set()
            for token in tokens_i:
                candidates.update(idx for idx in inverted_index[token] if idx > i)

            for j in sorted(candidates):
                if j in assigned:
                    continue
                comparisons += 1
                similarity = jaccard_similarity(tokens_i, token_list[j])
                if similarity >= self.config.similarity_threshold:
                    group.append(with_tier[j])
                    assigned.add(j)
                    self._log(
                        f"JOIN: '{with_tier[j].title[:40]}' -> "
                        f"'{item.title[:40]}' ({similarity:.2f})"
                    )

            groups.append(group)

        events = [self._build_event(group) for group in groups]
        events.sort(key=lambda e: e.last_updated, reverse=True)

        elapsed = time.time() - start_time
        logger.info(
            f"Clustering: {len(items)} items -> {len(events)} events "
            f"({comparisons} comparisons, {elapsed:.3f}s)"
        )
        return events

    def _build_event(self, group: list[NewsItem]) -> ClusteredEvent:
        ranked = sorted(
            group,
            key=lambda m: (m.tier, -m.published_at.timestamp()),
        )
        primary = ranked[0]
        dates = [m.published_at for m in group]
        location = _most_common_location(group)
        threat = self._aggregate_threats(group) if self._aggregate_threats else None

        return ClusteredEvent(
            id=generate_cluster_id(group),
            primary_title=primary.title,
            primary_source=primary.source,
            primary_link=primary.link,
            member_count=len(group),
            top_sources=[
                TopSource(name=m.source, tier=m.tier, url=m.link) for m in ranked[:3]
            ],
            all_members=ranked,
            first_seen=min(dates),
            last_updated=max(dates),
            is_alert=any(m.is_alert for m in group),
            lat=location[0] if location else None,
            lon=location[1] if location else None,
            lang=primary.language,
            monitor_color=next(
                (m.monitor_color for m in group if m.monitor_color), None
            ),
            threat=threat,
        )

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[NewsClusterer] {message}")


def cluster_news(
    items: Sequence[NewsItem],
    tier_of: Callable[[str], int] = source_tier,
    config: EngineConfig = DEFAULT_CONFIG,
    aggregate_threats: ThreatAggregator | None = None,
) -> list[ClusteredEvent]:
    """Cluster a batch of headlines, see NewsClusterer.cluster."""
    return NewsClusterer(
        config=config, tier_of=tier_of, aggregate_threats=aggregate_threats
    ).cluster(items)
