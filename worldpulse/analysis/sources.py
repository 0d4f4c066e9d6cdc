"""
Default source credibility tiers and source-type categories.

Callers with their own feed registry pass their own lookups to the engine;
these tables cover the common wire, government and specialist outlets.
"""

from worldpulse.analysis.types import SourceType

DEFAULT_TIER = 4

SOURCE_TIERS: dict[str, int] = {
    # Tier 1 - Wire services
    "Reuters": 1,
    "Reuters World": 1,
    "Reuters Business": 1,
    "AP News": 1,
    "AFP": 1,
    "Bloomberg": 1,
    # Tier 1 - Government
    "White House": 1,
    "State Dept": 1,
    "Pentagon": 1,
    "Treasury": 1,
    "Federal Reserve": 1,
    "UN News": 1,
    "IAEA": 1,
    "WHO": 1,
    "CISA": 1,
    # Tier 2 - Major outlets
    "BBC World": 2,
    "Financial Times": 2,
    "Al Jazeera": 2,
    "Guardian World": 2,
    "CNN World": 2,
    "NPR News": 2,
    "DW News": 2,
    "France 24": 2,
    "Nikkei Asia": 2,
    "CNBC": 2,
    "Xinhua": 2,
    "TASS": 2,
    # Tier 2-3 - Specialist defense/intel
    "Defense One": 2,
    "Breaking Defense": 2,
    "The War Zone": 2,
    "Defense News": 2,
    "Janes": 2,
    "Bellingcat": 2,
    "Foreign Policy": 2,
    "CrisisWatch": 2,
    "CSIS": 2,
    "RAND": 2,
    "Atlantic Council": 3,
    "The Diplomat": 3,
    "Krebs Security": 3,
    # Tier 3 - Market
    "MarketWatch": 3,
    "Politico": 3,
    # Tier 4 - Aggregators
    "Hacker News": 4,
    "The Verge": 4,
    "Yahoo Finance": 4,
}

SOURCE_TYPES: dict[str, SourceType] = {
    # Wire services - fastest, most authoritative
    "Reuters": SourceType.WIRE,
    "Reuters World": SourceType.WIRE,
    "Reuters Business": SourceType.WIRE,
    "AP News": SourceType.WIRE,
    "AFP": SourceType.WIRE,
    "Bloomberg": SourceType.WIRE,
    "Xinhua": SourceType.WIRE,
    "TASS": SourceType.WIRE,
    # Government & international organisations
    "White House": SourceType.GOVERNMENT,
    "State Dept": SourceType.GOVERNMENT,
    "Pentagon": SourceType.GOVERNMENT,
    "Treasury": SourceType.GOVERNMENT,
    "Federal Reserve": SourceType.GOVERNMENT,
    "UN News": SourceType.GOVERNMENT,
    "IAEA": SourceType.GOVERNMENT,
    "WHO": SourceType.GOVERNMENT,
    "CISA": SourceType.GOVERNMENT,
    # Intel/defense specialty
    "Defense One": SourceType.INTELLIGENCE,
    "Breaking Defense": SourceType.INTELLIGENCE,
    "The War Zone": SourceType.INTELLIGENCE,
    "Defense News": SourceType.INTELLIGENCE,
    "Janes": SourceType.INTELLIGENCE,
    "Bellingcat": SourceType.INTELLIGENCE,
    "Foreign Policy": SourceType.INTELLIGENCE,
    "CrisisWatch": SourceType.INTELLIGENCE,
    "CSIS": SourceType.INTELLIGENCE,
    "RAND": SourceType.INTELLIGENCE,
    "Atlantic Council": SourceType.INTELLIGENCE,
    "The Diplomat": SourceType.INTELLIGENCE,
    "Krebs Security": SourceType.INTELLIGENCE,
    # Mainstream outlets
    "BBC World": SourceType.MAINSTREAM,
    "Al Jazeera": SourceType.MAINSTREAM,
    "Guardian World": SourceType.MAINSTREAM,
    "CNN World": SourceType.MAINSTREAM,
    "NPR News": SourceType.MAINSTREAM,
    "DW News": SourceType.MAINSTREAM,
    "France 24": SourceType.MAINSTREAM,
    "Politico": SourceType.MAINSTREAM,
    # Market/finance
    "CNBC": SourceType.MARKET,
    "MarketWatch": SourceType.MARKET,
    "Financial Times": SourceType.MARKET,
    "Nikkei Asia": SourceType.MARKET,
    "Yahoo Finance": SourceType.MARKET,
    # Tech
    "Hacker News": SourceType.TECH,
    "The Verge": SourceType.TECH,
}


def source_tier(source_name: str) -> int:
    """Credibility tier of a source, lower is more authoritative."""
    return SOURCE_TIERS.get(source_name, DEFAULT_TIER)


def source_type(source_name: str) -> SourceType:
    return SOURCE_TYPES.get(source_name, SourceType.OTHER)
