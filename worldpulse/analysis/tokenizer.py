"""
Headline tokenization and Jaccard similarity.
"""

import re

# Words to ignore when computing similarity
STOP_WORDS: frozenset[str] = frozenset(
    {
        "the",
        "a",
        "an",
        "is",
        "are",
        "was",
        "were",
        "be",
        "been",
        "have",
        "has",
        "had",
        "do",
        "does",
        "did",
        "will",
        "would",
        "could",
        "should",
        "may",
        "might",
        "must",
        "shall",
        "can",
        "to",
        "of",
        "in",
        "for",
        "on",
        "with",
        "at",
        "by",
        "from",
        "as",
        "into",
        "through",
        "during",
        "before",
        "after",
        "above",
        "below",
        "between",
        "under",
        "again",
        "further",
        "then",
        "once",
        "and",
        "but",
        "or",
        "nor",
        "so",
        "yet",
        "both",
        "either",
        "neither",
        "not",
        "only",
        "own",
        "same",
        "than",
        "too",
        "very",
        "just",
        "also",
        "now",
        "here",
        "there",
        "when",
        "where",
        "why",
        "how",
        "all",
        "each",
        "every",
        "few",
        "more",
        "most",
        "other",
        "some",
        "such",
        "no",
        "any",
        "new",
        "says",
        "said",
        "report",
        "reports",
        "according",
        "news",
        "update",
        "its",
        "it",
        "this",
        "that",
        "these",
        "those",
        "over",
        "amid",
    }
)

MIN_TOKEN_LENGTH = 3

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_text(text: str) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    text = text.lower()
    text = _PUNCTUATION.sub(" ", text)
    return " ".join(text.split())


def tokenize(text: str, max_tokens: int | None = None) -> frozenset[str]:
    """
    Extract the comparable token set of a headline.

    Args:
        text: Raw headline text
        max_tokens: Keep only the first N distinct tokens in reading order,
            bounding the cost of pathological titles

    Returns:
        Frozen set of lowercase tokens without stop words or short words
    """
    tokens: list[str] = []
    seen: set[str] = set()
    for word in normalize_text(text).split():
        if len(word) < MIN_TOKEN_LENGTH or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        tokens.append(word)
        if max_tokens is not None and len(tokens) >= max_tokens:
            break
    return frozenset(tokens)


def jaccard_similarity(a: frozenset[str] | set[str], b: frozenset[str] | set[str]) -> float:
    """|a ∩ b| / |a ∪ b|, 0.0 if either side is empty."""
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    union = len(a | b)
    return intersection / union if union > 0 else 0.0
