"""Per-cluster sentiment tally and recency-based trend direction."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from mentionlens.models import RawResult, Sentiment, SentimentBreakdown, TrendDirection

# Members newer than this count as "recent"
RECENT_WINDOW = timedelta(days=7)

# recent < older * FALLING_RATIO ⇒ falling
FALLING_RATIO = 0.5


def sentiment_breakdown(members: Sequence[RawResult]) -> SentimentBreakdown:
    """Tally sentiment labels; missing or unknown labels count as neutral."""
    breakdown = SentimentBreakdown()
    for member in members:
        if member.sentiment == Sentiment.POSITIVE:
            breakdown.positive += 1
        elif member.sentiment == Sentiment.NEGATIVE:
            breakdown.negative += 1
        else:
            breakdown.neutral += 1
    return breakdown


def classify_counts(recent: int, older: int) -> TrendDirection:
    if recent > older:
        return TrendDirection.RISING
    if recent < older * FALLING_RATIO:
        return TrendDirection.FALLING
    return TrendDirection.STABLE


def trend_direction(members: Sequence[RawResult], now: datetime) -> TrendDirection:
    """Compare how many members landed in the last 7 days against the rest."""
    recent = sum(1 for m in members if now - m.created_at < RECENT_WINDOW)
    return classify_counts(recent, len(members) - recent)


def trend_from_sentiment(label: str | None) -> TrendDirection:
    """Synthetic trend for AI topics, which carry no time-series signal."""
    if label == Sentiment.POSITIVE:
        return TrendDirection.RISING
    if label == Sentiment.NEGATIVE:
        return TrendDirection.FALLING
    return TrendDirection.STABLE
