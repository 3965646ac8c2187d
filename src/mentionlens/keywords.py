"""Frequency-based keyword extraction with stop-word filtering."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from mentionlens.models import Keyword

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")

# Tokens must be longer than this to count as keywords
_MIN_TOKEN_LENGTH = 3

_MAX_KEYWORDS = 10

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
        "from", "up", "about", "into", "over", "after", "and", "but", "or",
        "as", "if", "when", "than", "because", "while", "where", "so", "though",
        "this", "that", "these", "those", "it", "its", "they", "them", "their",
        "we", "us", "our", "you", "your", "i", "my", "me", "he", "she", "him",
        "her", "his", "what", "which", "who", "whom", "how", "why", "just",
        "like", "get", "got", "make", "made", "know", "think", "want", "see",
        "use", "using", "any", "all", "some", "most", "other", "more",
        "very", "really", "actually", "basically", "even", "also", "too",
        "much", "many", "few", "little", "own", "same", "different", "such",
        "only", "still", "already", "yet", "here", "there", "now",
        "then", "today", "yesterday", "tomorrow", "new", "old", "good", "bad",
        "best", "better", "worst", "worse", "first", "last", "next", "going",
        "something", "anything", "everything", "nothing", "someone", "anyone",
        "everyone", "no", "not", "yes", "out", "one", "two", "three",
        "each", "every", "both", "again", "never", "always", "maybe", "thing",
        "things", "said", "through", "between",
        "https", "http", "www", "com",
    }
)


def _tokens(text: str) -> list[str]:
    """Distinct candidate tokens of a single text, in first-seen order."""
    cleaned = _NON_ALNUM_RE.sub(" ", text.lower())
    words = (
        word
        for word in cleaned.split()
        if len(word) > _MIN_TOKEN_LENGTH and word not in STOP_WORDS
    )
    return list(dict.fromkeys(words))


def count_keywords(texts: Iterable[str | None], min_occurrence: int = 2) -> list[Keyword]:
    """Count keywords across *texts*, one vote per text.

    A token repeated inside a single text is counted once for that text, so
    one long post cannot dominate the ranking. Tokens whose count reaches
    *min_occurrence* are returned, top 10 by count; ties keep the order in
    which the tokens were first seen.
    """
    counts: Counter[str] = Counter()
    for text in texts:
        if not text:
            continue
        counts.update(_tokens(text))

    kept = [(token, n) for token, n in counts.items() if n >= min_occurrence]
    kept.sort(key=lambda pair: pair[1], reverse=True)
    return [Keyword(token=token, count=n) for token, n in kept[:_MAX_KEYWORDS]]


def extract_keywords(texts: Iterable[str | None], min_occurrence: int = 2) -> list[str]:
    """Return the top keyword tokens across *texts*, highest count first."""
    return [kw.token for kw in count_keywords(texts, min_occurrence)]
