"""
Topic velocity tracking.

Topic activity is recomputed from the clustered events every cycle. History
lives in the StreamSnapshot handed in by the caller, never in this module:
every function here takes the previous state and returns a new one.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Sequence

from worldpulse.analysis.config import DEFAULT_CONFIG, EngineConfig, contains_keyword
from worldpulse.analysis.types import ClusteredEvent, VelocityMetrics, VelocityPoint

VELOCITY_WINDOW = timedelta(hours=1)
ELEVATED_SOURCES_PER_HOUR = 3
SPIKE_SOURCES_PER_HOUR = 6


@dataclass(frozen=True)
class SpikeResult:
    """Outcome of the spike test for one topic."""

    spiked: bool
    velocity: float
    baseline: float
    multiplier: float | None

    @property
    def cold_start(self) -> bool:
        return self.baseline <= 0


def event_velocity(event: ClusteredEvent) -> float:
    return event.velocity.sources_per_hour if event.velocity else 0.0


def extract_topic_activity(
    events: Iterable[ClusteredEvent],
    topic_vocabulary: Sequence[str] = DEFAULT_CONFIG.topic_keywords,
    suppressed_terms: Iterable[str] = DEFAULT_CONFIG.suppressed_terms,
) -> dict[str, float]:
    """
    Score each vocabulary topic by the events whose primary title mentions it.

    Every matching event adds its sources-per-hour plus its member count, so
    one event can feed several topics.
    """
    suppressed = set(suppressed_terms)
    topics: dict[str, float] = {}
    for event in events:
        for keyword in topic_vocabulary:
            if keyword in suppressed:
                continue
            if not contains_keyword(event.primary_title, keyword):
                continue
            topics[keyword] = (
                topics.get(keyword, 0.0) + event_velocity(event) + event.member_count
            )
    return topics


def prune_history(
    history: Sequence[VelocityPoint],
    now: datetime,
    window: timedelta = DEFAULT_CONFIG.baseline_window,
) -> list[VelocityPoint]:
    """Drop points older than the baseline window."""
    return [point for point in history if now - point.timestamp <= window]


def average_velocity(history: Sequence[VelocityPoint]) -> float:
    if not history:
        return 0.0
    return sum(point.velocity for point in history) / len(history)


def update_history(
    previous_history: Mapping[str, Sequence[VelocityPoint]],
    current_scores: Mapping[str, float],
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> dict[str, list[VelocityPoint]]:
    """
    Append this cycle's score for every known topic.

    Topics seen before but quiet this cycle get a zero point. Each topic keeps
    at most history_max_points, oldest dropped first.
    """
    topics = list(previous_history.keys())
    topics.extend(t for t in current_scores if t not in previous_history)

    updated: dict[str, list[VelocityPoint]] = {}
    for topic in topics:
        points = prune_history(
            previous_history.get(topic, []), now, config.baseline_window
        )
        points.append(
            VelocityPoint(timestamp=now, velocity=current_scores.get(topic, 0.0))
        )
        if len(points) > config.history_max_points:
            points = points[-config.history_max_points :]
        updated[topic] = points
    return updated


def detect_spike(
    velocity: float,
    history: Sequence[VelocityPoint],
    now: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> SpikeResult:
    """
    Decide whether a topic's current score is a spike.

    The score must clear the absolute floor and, once a baseline exists,
    exceed baseline * spike_multiplier. With no baseline the floor alone decides.
    """
    baseline = average_velocity(prune_history(history, now, config.baseline_window))
    exceeds_floor = velocity > config.spike_floor
    if baseline > 0:
        exceeds_baseline = velocity > baseline * config.spike_multiplier
        multiplier = velocity / baseline
    else:
        exceeds_baseline = exceeds_floor
        multiplier = None
    return SpikeResult(
        spiked=exceeds_floor and exceeds_baseline,
        velocity=velocity,
        baseline=baseline,
        multiplier=multiplier,
    )


def compute_event_velocity(event: ClusteredEvent, now: datetime) -> VelocityMetrics:
    """Sources per hour over the last hour, with a half-hour trend."""
    recent = [m for m in event.all_members if now - m.published_at <= VELOCITY_WINDOW]
    half = VELOCITY_WINDOW / 2
    newer = sum(1 for m in recent if now - m.published_at <= half)
    older = len(recent) - newer

    sources_per_hour = float(len(recent))
    if sources_per_hour >= SPIKE_SOURCES_PER_HOUR:
        level = "spike"
    elif sources_per_hour >= ELEVATED_SOURCES_PER_HOUR:
        level = "elevated"
    else:
        level = "normal"

    if newer > older:
        trend = "rising"
    elif newer < older:
        trend = "falling"
    else:
        trend = "stable"

    return VelocityMetrics(sources_per_hour=sources_per_hour, level=level, trend=trend)


def attach_velocity(
    events: Iterable[ClusteredEvent], now: datetime
) -> list[ClusteredEvent]:
    """Copies of the events with velocity metrics filled in."""
    return [
        event.model_copy(update={"velocity": compute_event_velocity(event, now)})
        for event in events
    ]
