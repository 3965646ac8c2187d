"""Group results into topics by their primary keyword."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime

from mentionlens.keywords import extract_keywords
from mentionlens.models import Platform, RawResult, ResultRef, TopicCluster
from mentionlens.policy import ThresholdPolicy
from mentionlens.trend import sentiment_breakdown, trend_direction

logger = logging.getLogger(__name__)

# Max topics returned per pass
MAX_TOPICS = 10

# Keywords joined into a topic's display name
_NAME_KEYWORDS = 3


def primary_keyword(result: RawResult) -> str | None:
    """Highest-ranked keyword of a single result, or None if it has none."""
    keywords = extract_keywords([result.text], min_occurrence=1)
    return keywords[0] if keywords else None


def _title_case(phrase: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in phrase.split(" "))


def _distinct_platforms(members: list[RawResult]) -> list[Platform]:
    return list(dict.fromkeys(m.platform for m in members))


def _group_by_primary_keyword(results: list[RawResult]) -> dict[str, list[RawResult]]:
    groups: dict[str, list[RawResult]] = defaultdict(list)
    for result in results:
        key = primary_keyword(result)
        if key is None:
            continue
        groups[key].append(result)
    return groups


def _admit(
    members: list[RawResult],
    policy: ThresholdPolicy,
    require_platform_span: bool,
) -> bool:
    if require_platform_span and len(_distinct_platforms(members)) < 2:
        return False
    return len(members) >= policy.min_results_per_topic


def build_topic(key: str, members: list[RawResult], policy: ThresholdPolicy, now: datetime) -> TopicCluster:
    """Turn an admitted keyword group into a lexical TopicCluster."""
    keywords = extract_keywords(
        (m.text for m in members), min_occurrence=policy.min_keyword_occurrence
    )
    name = " ".join(keywords[:_NAME_KEYWORDS]) or key
    return TopicCluster(
        topic=_title_case(name),
        keywords=keywords,
        platforms=_distinct_platforms(members),
        results=[ResultRef.from_result(m) for m in members],
        sentiment_breakdown=sentiment_breakdown(members),
        trend_direction=trend_direction(members, now),
    )


def cluster_results(
    results: list[RawResult],
    policy: ThresholdPolicy,
    now: datetime,
    *,
    require_platform_span: bool,
) -> list[TopicCluster]:
    """Cluster *results* by shared primary keyword.

    Groups must hold at least ``policy.min_results_per_topic`` results and,
    when *require_platform_span* is set, come from two or more platforms.
    Topics are ordered by size (ties keep first-seen keyword order) and
    capped at ten.
    """
    groups = _group_by_primary_keyword(results)

    topics: list[TopicCluster] = []
    for key, members in groups.items():
        if not _admit(members, policy, require_platform_span):
            continue
        topics.append(build_topic(key, members, policy, now))

    topics.sort(key=lambda t: len(t.results), reverse=True)
    logger.info(
        "Clustered %d results into %d %s topics (from %d keyword groups)",
        len(results),
        len(topics),
        "cross-platform" if require_platform_span else "single-platform",
        len(groups),
    )
    return topics[:MAX_TOPICS]


def cross_platform_topics(
    results: list[RawResult], policy: ThresholdPolicy, now: datetime
) -> list[TopicCluster]:
    return cluster_results(results, policy, now, require_platform_span=True)


def single_platform_topics(
    results: list[RawResult], policy: ThresholdPolicy, now: datetime
) -> list[TopicCluster]:
    return cluster_results(results, policy, now, require_platform_span=False)
