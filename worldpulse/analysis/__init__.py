"""
Event clustering and cross-domain correlation engine.
"""

from worldpulse.analysis.types import (
    ClusteredEvent,
    CorrelationSignal,
    CycleResult,
    CycleSummary,
    MarketQuote,
    NewsItem,
    PredictionQuote,
    SignalType,
    SourceType,
    StreamSnapshot,
    ThreatClassification,
    VelocityPoint,
)
from worldpulse.analysis.tokenizer import jaccard_similarity, tokenize
from worldpulse.analysis.clustering import NewsClusterer, cluster_news
from worldpulse.analysis.velocity import (
    average_velocity,
    detect_spike,
    extract_topic_activity,
    update_history,
)
from worldpulse.analysis.correlation import Collaborators, CorrelationEngine, run_cycle
from worldpulse.analysis.pipeline import AnalysisPipeline
from worldpulse.analysis.config import DEFAULT_CONFIG, EngineConfig

__all__ = [
    # Types
    "ClusteredEvent",
    "CorrelationSignal",
    "CycleResult",
    "CycleSummary",
    "MarketQuote",
    "NewsItem",
    "PredictionQuote",
    "SignalType",
    "SourceType",
    "StreamSnapshot",
    "ThreatClassification",
    "VelocityPoint",
    # Similarity
    "tokenize",
    "jaccard_similarity",
    # Clustering
    "NewsClusterer",
    "cluster_news",
    # Velocity
    "extract_topic_activity",
    "update_history",
    "average_velocity",
    "detect_spike",
    # Engine
    "Collaborators",
    "CorrelationEngine",
    "run_cycle",
    "AnalysisPipeline",
    # Config
    "EngineConfig",
    "DEFAULT_CONFIG",
]
