"""
Entity linking between clustered headlines and market symbols.
"""

from typing import Iterable, Sequence

from worldpulse.analysis.config import contains_keyword
from worldpulse.analysis.types import (
    ClusteredEvent,
    EntityContext,
    EntityEntry,
    NewsReference,
)

DEFAULT_ENTITIES: tuple[EntityEntry, ...] = (
    EntityEntry(id="^GSPC", name="S&P 500", keywords=("s&p 500", "wall street", "stocks")),
    EntityEntry(id="^DJI", name="Dow Jones", keywords=("dow jones", "the dow")),
    EntityEntry(id="^IXIC", name="Nasdaq", keywords=("nasdaq", "tech stocks")),
    EntityEntry(id="^VIX", name="VIX", keywords=("vix", "volatility index")),
    EntityEntry(id="AAPL", name="Apple", keywords=("apple", "iphone")),
    EntityEntry(id="MSFT", name="Microsoft", keywords=("microsoft",)),
    EntityEntry(id="NVDA", name="Nvidia", keywords=("nvidia", "gpu")),
    EntityEntry(id="TSLA", name="Tesla", keywords=("tesla", "elon musk")),
    EntityEntry(id="TSM", name="TSMC", keywords=("tsmc", "taiwan semiconductor")),
    EntityEntry(id="LMT", name="Lockheed Martin", keywords=("lockheed", "f-35")),
    EntityEntry(id="CL=F", name="Crude Oil", keywords=("crude", "oil price", "opec", "brent")),
    EntityEntry(id="BZ=F", name="Brent Crude", keywords=("brent",)),
    EntityEntry(id="NG=F", name="Natural Gas", keywords=("natural gas", "lng")),
    EntityEntry(id="GC=F", name="Gold", keywords=("gold price", "bullion")),
    EntityEntry(id="BTC-USD", name="Bitcoin", keywords=("bitcoin", "btc")),
    EntityEntry(id="ETH-USD", name="Ethereum", keywords=("ethereum",)),
)


class EntityIndex:
    """Lookup of known entities by id, matched against headline keywords."""

    def __init__(self, entries: Iterable[EntityEntry] = DEFAULT_ENTITIES):
        self.by_id: dict[str, EntityEntry] = {e.id: e for e in entries}

    def get(self, entity_id: str) -> EntityEntry | None:
        return self.by_id.get(entity_id)

    def match(self, text: str) -> tuple[str, ...]:
        """Ids of every entity whose name or keyword appears in text."""
        matched = []
        for entry in self.by_id.values():
            terms = (entry.name, *entry.keywords)
            if any(contains_keyword(text, term) for term in terms):
                matched.append(entry.id)
        return tuple(matched)

    def __len__(self) -> int:
        return len(self.by_id)


default_entity_index = EntityIndex()


def extract_entities_from_clusters(
    events: Sequence[ClusteredEvent],
    index: EntityIndex = default_entity_index,
) -> list[EntityContext]:
    """One context per event that mentions at least one known entity."""
    contexts = []
    for event in events:
        titles = " | ".join(
            [event.primary_title, *(m.title for m in event.all_members)]
        )
        entity_ids = index.match(titles)
        if entity_ids:
            contexts.append(
                EntityContext(
                    cluster_id=event.id,
                    title=event.primary_title,
                    entity_ids=entity_ids,
                )
            )
    return contexts


def find_news_for_symbol(
    symbol: str, contexts: Sequence[EntityContext]
) -> list[NewsReference]:
    return [
        NewsReference(cluster_id=ctx.cluster_id, title=ctx.title)
        for ctx in contexts
        if symbol in ctx.entity_ids
    ]


def lookup_entity(
    symbol: str, index: EntityIndex = default_entity_index
) -> EntityEntry | None:
    return index.get(symbol)
