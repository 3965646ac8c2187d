"""Count how often platform pairs discuss the same cross-platform topic."""

from __future__ import annotations

import logging
from collections import Counter
from itertools import combinations

from mentionlens.models import Platform, PlatformCorrelationEntry, TopicCluster

logger = logging.getLogger(__name__)


def platform_correlation(topics: list[TopicCluster]) -> list[PlatformCorrelationEntry]:
    """Shared-topic counts per unordered platform pair, most shared first.

    Only pass the cross-platform lexical topics here; single-platform and AI
    topics have no meaningful pairing.
    """
    pairs: Counter[tuple[Platform, Platform]] = Counter()
    for topic in topics:
        distinct = sorted(set(topic.platforms), key=lambda p: p.value)
        for first, second in combinations(distinct, 2):
            pairs[(first, second)] += 1

    entries = [
        PlatformCorrelationEntry(platform1=first, platform2=second, shared_topics=n)
        for (first, second), n in pairs.items()
    ]
    entries.sort(key=lambda e: e.shared_topics, reverse=True)
    logger.debug("Platform correlation: %d pairs over %d topics", len(entries), len(topics))
    return entries
