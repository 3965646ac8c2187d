"""Render an insights response as a Markdown email digest."""

from __future__ import annotations

from mentionlens.models import InsightsResponse, TopicCluster, TrendDirection

_TREND_MARKERS = {
    TrendDirection.RISING: "▲ rising",
    TrendDirection.FALLING: "▼ falling",
    TrendDirection.STABLE: "● stable",
}

# Links listed under each topic
_MAX_LINKS = 3


def _topic_block(topic: TopicCluster) -> list[str]:
    s = topic.sentiment_breakdown
    platforms = ", ".join(p.value for p in topic.platforms)
    lines = [
        f"### {topic.topic}",
        "",
        f"_{len(topic.results)} mentions on {platforms} · {_TREND_MARKERS[topic.trend_direction]}_",
        "",
    ]
    if topic.description:
        lines += [topic.description, ""]
    lines.append(f"Sentiment: {s.positive} positive / {s.negative} negative / {s.neutral} neutral")
    if topic.keywords:
        lines.append(f"Keywords: {', '.join(topic.keywords)}")
    lines.append("")
    for ref in topic.results[:_MAX_LINKS]:
        lines.append(f"- [{ref.title}]({ref.source_url}) ({ref.platform.value})")
    lines.append("")
    return lines


def _section(title: str, topics: list[TopicCluster]) -> list[str]:
    if not topics:
        return []
    lines = [f"## {title}", ""]
    for topic in topics:
        lines += _topic_block(topic)
    return lines


def render_digest(response: InsightsResponse, range_label: str) -> str:
    """Markdown digest body for *response* covering *range_label* (e.g. ``7d``)."""
    lines = [
        f"# Topic digest — last {range_label}",
        "",
        f"{response.total_results} mentions analysed · plan: {response.plan.value}",
        "",
    ]

    if not (response.topics or response.single_platform_topics or response.ai_topics):
        lines.append("_No recurring topics in this period._")
        return "\n".join(lines) + "\n"

    lines += _section("Cross-platform topics", response.topics)
    lines += _section("Single-platform topics", response.single_platform_topics)
    lines += _section("AI-suggested topics", response.ai_topics or [])

    if response.platform_correlation:
        lines += ["## Platforms discussing the same topics", ""]
        for entry in response.platform_correlation:
            lines.append(
                f"- {entry.platform1.value} + {entry.platform2.value}: "
                f"{entry.shared_topics} shared topics"
            )
        lines.append("")

    return "\n".join(lines) + "\n"
