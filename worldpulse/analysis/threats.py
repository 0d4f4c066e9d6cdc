"""
Keyword threat classification for headlines and clustered events.
"""

import re
from collections import Counter
from functools import lru_cache
from typing import Iterable

from worldpulse.analysis.types import NewsItem, ThreatClassification, ThreatLevel

CRITICAL_KEYWORDS: dict[str, str] = {
    "nuclear strike": "military",
    "nuclear attack": "military",
    "nuclear war": "military",
    "invasion": "conflict",
    "declaration of war": "conflict",
    "martial law": "military",
    "coup": "military",
    "genocide": "conflict",
    "ethnic cleansing": "conflict",
    "chemical attack": "terrorism",
    "biological attack": "terrorism",
    "dirty bomb": "terrorism",
    "mass casualty": "conflict",
    "pandemic declared": "health",
    "health emergency": "health",
    "nato article 5": "military",
    "evacuation order": "disaster",
    "nuclear meltdown": "disaster",
    "meltdown": "disaster",
}

HIGH_KEYWORDS: dict[str, str] = {
    "war": "conflict",
    "armed conflict": "conflict",
    "airstrike": "conflict",
    "air strike": "conflict",
    "drone strike": "conflict",
    "missile": "military",
    "troops deployed": "military",
    "military escalation": "military",
    "bombing": "conflict",
    "casualties": "conflict",
    "hostage": "terrorism",
    "terrorist": "terrorism",
    "terror attack": "terrorism",
    "assassination": "crime",
    "cyber attack": "cyber",
    "ransomware": "cyber",
    "data breach": "cyber",
    "sanctions": "economic",
    "embargo": "economic",
    "earthquake": "disaster",
    "tsunami": "disaster",
    "hurricane": "disaster",
    "typhoon": "disaster",
}

MEDIUM_KEYWORDS: dict[str, str] = {
    "protest": "protest",
    "riot": "protest",
    "riots": "protest",
    "unrest": "protest",
    "demonstration": "protest",
    "strike action": "protest",
    "military exercise": "military",
    "naval exercise": "military",
    "arms deal": "military",
    "diplomatic crisis": "diplomatic",
    "ambassador recalled": "diplomatic",
    "expel diplomats": "diplomatic",
    "trade war": "economic",
    "tariff": "economic",
    "recession": "economic",
    "inflation": "economic",
    "market crash": "economic",
    "flood": "disaster",
    "flooding": "disaster",
    "wildfire": "disaster",
    "eruption": "disaster",
    "outbreak": "health",
    "epidemic": "health",
    "oil spill": "environmental",
    "pipeline explosion": "infrastructure",
    "blackout": "infrastructure",
    "power outage": "infrastructure",
    "internet outage": "infrastructure",
    "derailment": "infrastructure",
}

LOW_KEYWORDS: dict[str, str] = {
    "election": "diplomatic",
    "vote": "diplomatic",
    "referendum": "diplomatic",
    "summit": "diplomatic",
    "treaty": "diplomatic",
    "agreement": "diplomatic",
    "negotiation": "diplomatic",
    "talks": "diplomatic",
    "ceasefire": "diplomatic",
    "humanitarian aid": "diplomatic",
    "climate change": "environmental",
    "emissions": "environmental",
    "drought": "environmental",
    "vaccine": "health",
    "disease": "health",
    "virus": "health",
    "interest rate": "economic",
    "gdp": "economic",
    "unemployment": "economic",
    "regulation": "economic",
}

EXCLUSIONS: tuple[str, ...] = (
    "protein",
    "relationship",
    "dating",
    "diet",
    "fitness",
    "recipe",
    "cooking",
    "shopping",
    "fashion",
    "celebrity",
    "movie",
    "tv show",
    "sports",
    "concert",
    "festival",
    "wedding",
    "vacation",
    "wellness",
)

# Matched on word boundaries, everything else is a substring match
SHORT_KEYWORDS: frozenset[str] = frozenset(
    {"war", "coup", "vote", "riot", "riots", "talks", "gdp", "virus", "disease", "flood"}
)

_CASCADE: tuple[tuple[ThreatLevel, dict[str, str], float], ...] = (
    (ThreatLevel.CRITICAL, CRITICAL_KEYWORDS, 0.9),
    (ThreatLevel.HIGH, HIGH_KEYWORDS, 0.8),
    (ThreatLevel.MEDIUM, MEDIUM_KEYWORDS, 0.7),
    (ThreatLevel.LOW, LOW_KEYWORDS, 0.6),
)

UNCLASSIFIED = ThreatClassification(
    level=ThreatLevel.INFO, category="general", confidence=0.3, source="keyword"
)


@lru_cache(maxsize=512)
def _keyword_regex(keyword: str) -> re.Pattern:
    escaped = re.escape(keyword)
    if keyword in SHORT_KEYWORDS:
        return re.compile(rf"\b{escaped}\b")
    return re.compile(escaped)


def _match(title_lower: str, keywords: dict[str, str]) -> str | None:
    for keyword, category in keywords.items():
        if _keyword_regex(keyword).search(title_lower):
            return category
    return None


def classify_threat(title: str) -> ThreatClassification:
    """Classify a headline, most severe matching keyword table wins."""
    lower = title.lower()
    if any(ex in lower for ex in EXCLUSIONS):
        return UNCLASSIFIED

    for level, keywords, confidence in _CASCADE:
        category = _match(lower, keywords)
        if category:
            return ThreatClassification(
                level=level, category=category, confidence=confidence
            )
    return UNCLASSIFIED


def aggregate_threats(members: Iterable[NewsItem]) -> ThreatClassification:
    """
    Combine member threats into one classification for the cluster.

    Level is the maximum across members, category the most frequent one,
    and confidence a tier-weighted mean where authoritative sources weigh more.
    """
    with_threat = [m for m in members if m.threat is not None]
    if not with_threat:
        return UNCLASSIFIED

    top = max(with_threat, key=lambda m: m.threat.level.priority)
    categories = Counter(m.threat.category for m in with_threat)
    category = categories.most_common(1)[0][0]

    weighted_sum = 0.0
    weight_total = 0.0
    for member in with_threat:
        weight = 6 - min(member.tier, 5) if member.tier else 1
        weighted_sum += member.threat.confidence * weight
        weight_total += weight

    return ThreatClassification(
        level=top.threat.level,
        category=category,
        confidence=round(weighted_sum / weight_total, 2),
        source=top.threat.source,
    )
