"""
Analysis configuration - topic vocabulary, keyword tables, and thresholds.
"""

import re
from datetime import timedelta
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field

from worldpulse.settings import Settings

# Topic vocabulary tracked for velocity and prediction/news lead detection
TOPIC_KEYWORDS: tuple[str, ...] = (
    "iran",
    "israel",
    "gaza",
    "ukraine",
    "russia",
    "china",
    "taiwan",
    "north korea",
    "nato",
    "tariff",
    "sanctions",
    "fed",
    "inflation",
    "recession",
    "interest rate",
    "oil",
    "opec",
    "gold",
    "bitcoin",
    "crypto",
    "election",
    "ceasefire",
    "missile",
    "nuclear",
    "cyber",
    "ransomware",
    "earthquake",
    "hurricane",
    "pipeline",
    "strait of hormuz",
    "red sea",
    "houthi",
    "semiconductor",
    "nvidia",
    "ai",
    "layoffs",
    "shutdown",
    "default",
    "bank",
)

# Terms present in the vocabulary that are too generic to trend on their own
SUPPRESSED_TRENDING_TERMS: frozenset[str] = frozenset(
    {
        "ai",
        "bank",
        "default",
    }
)

PIPELINE_KEYWORDS: tuple[str, ...] = (
    "pipeline",
    "gas flow",
    "oil flow",
    "nord stream",
    "druzhba",
    "transneft",
    "gazprom",
    "lng terminal",
    "compressor station",
)

FLOW_DROP_KEYWORDS: tuple[str, ...] = (
    "flow drop",
    "flows drop",
    "flows fall",
    "reduced flow",
    "halted",
    "halt",
    "shut",
    "shutdown",
    "outage",
    "disruption",
    "disrupted",
    "suspended",
    "cut off",
    "curtailed",
    "sabotage",
    "explosion",
    "leak",
)

ENERGY_COMMODITY_SYMBOLS: frozenset[str] = frozenset({"CL=F", "BZ=F", "NG=F"})

CRITICAL_SOURCE_TYPES: tuple[str, ...] = ("wire", "government", "intelligence")

# Keywords this short only match as whole words
SHORT_KEYWORD_LENGTH = 3


@lru_cache(maxsize=1024)
def _keyword_pattern(keyword: str) -> re.Pattern:
    escaped = re.escape(keyword.lower())
    if len(keyword) <= SHORT_KEYWORD_LENGTH:
        return re.compile(rf"\b{escaped}\b")
    return re.compile(escaped)


def contains_keyword(text: str, keyword: str) -> bool:
    """Case-insensitive substring match, whole-word for short keywords."""
    return _keyword_pattern(keyword).search(text.lower()) is not None


def includes_any_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    return any(contains_keyword(text, k) for k in keywords)


def find_related_topics(
    text: str,
    vocabulary: tuple[str, ...] = TOPIC_KEYWORDS,
    suppressed: frozenset[str] = SUPPRESSED_TRENDING_TERMS,
) -> list[str]:
    """Topics from the vocabulary that appear in text."""
    return [
        kw for kw in vocabulary if kw not in suppressed and contains_keyword(text, kw)
    ]


class EngineConfig(BaseModel):
    """Every tunable the clustering and correlation engine reads."""

    model_config = ConfigDict(frozen=True)

    # Clustering
    similarity_threshold: float = 0.5
    max_title_tokens: int = 32

    # Detector thresholds
    prediction_shift_threshold: float = 5.0
    market_move_threshold: float = 3.0
    news_velocity_threshold: float = 3.0
    flow_price_threshold: float = 1.5
    silent_divergence_news_floor: float = 2.0
    convergence_window: timedelta = timedelta(minutes=60)
    convergence_min_members: int = 3
    convergence_min_types: int = 3

    # Velocity baseline
    spike_multiplier: float = 3.0
    baseline_window: timedelta = timedelta(days=7)
    history_max_points: int = 1000

    # Output
    min_confidence: float = 0.6
    prediction_key_length: int = 50

    # Vocabularies
    topic_keywords: tuple[str, ...] = TOPIC_KEYWORDS
    suppressed_terms: frozenset[str] = SUPPRESSED_TRENDING_TERMS
    pipeline_keywords: tuple[str, ...] = PIPELINE_KEYWORDS
    flow_drop_keywords: tuple[str, ...] = FLOW_DROP_KEYWORDS
    energy_symbols: frozenset[str] = ENERGY_COMMODITY_SYMBOLS
    critical_source_types: tuple[str, ...] = Field(default=CRITICAL_SOURCE_TYPES)

    @property
    def spike_floor(self) -> float:
        """Absolute activity a topic must exceed before it can spike."""
        return self.news_velocity_threshold * 2

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            similarity_threshold=settings.similarity_threshold,
            prediction_shift_threshold=settings.prediction_shift_threshold,
            market_move_threshold=settings.market_move_threshold,
            news_velocity_threshold=settings.news_velocity_threshold,
            flow_price_threshold=settings.flow_price_threshold,
            spike_multiplier=settings.spike_multiplier,
            min_confidence=settings.min_confidence,
        )


DEFAULT_CONFIG = EngineConfig()
