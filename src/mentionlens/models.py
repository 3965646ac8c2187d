"""Domain models shared by the insights engine."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Platform(str, Enum):
    REDDIT = "reddit"
    HACKERNEWS = "hackernews"
    PRODUCTHUNT = "producthunt"
    DEVTO = "devto"
    HASHNODE = "hashnode"
    INDIEHACKERS = "indiehackers"
    GITHUB = "github"
    QUORA = "quora"
    X = "x"
    YOUTUBE = "youtube"
    GOOGLEREVIEWS = "googlereviews"
    TRUSTPILOT = "trustpilot"
    G2 = "g2"
    YELP = "yelp"
    AMAZON = "amazon"
    APPSTORE = "appstore"
    PLAYSTORE = "playstore"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class TimeRange(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"

    @property
    def days(self) -> int:
        return int(self.value[:-1])


class TrendDirection(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class Provenance(str, Enum):
    LEXICAL = "lexical"
    AI = "ai"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class _CamelModel(BaseModel):
    """Serialises with camelCase keys for the dashboard."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RawResult(_CamelModel):
    """One mention captured from a monitored platform (read-only here)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    title: str
    content: str | None = None
    platform: Platform
    sentiment: str | None = None
    source_url: str = ""
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def text(self) -> str:
        return f"{self.title} {self.content or ''}"


class Keyword(BaseModel):
    token: str
    count: int


class ResultRef(_CamelModel):
    """The slice of a RawResult that a cluster exposes to callers."""

    id: str
    title: str
    platform: Platform
    sentiment: str | None = None
    source_url: str = ""
    created_at: datetime

    @classmethod
    def from_result(cls, result: RawResult) -> ResultRef:
        return cls(
            id=result.id,
            title=result.title,
            platform=result.platform,
            sentiment=result.sentiment,
            source_url=result.source_url,
            created_at=result.created_at,
        )


class SentimentBreakdown(BaseModel):
    positive: int = 0
    negative: int = 0
    neutral: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.negative + self.neutral


class TopicCluster(_CamelModel):
    topic: str  # display name, e.g. "Pricing Plan Upgrade"
    keywords: list[str] = Field(default_factory=list)
    platforms: list[Platform] = Field(default_factory=list)
    results: list[ResultRef] = Field(default_factory=list)
    sentiment_breakdown: SentimentBreakdown = Field(default_factory=SentimentBreakdown)
    trend_direction: TrendDirection = TrendDirection.STABLE
    provenance: Provenance = Provenance.LEXICAL
    description: str | None = None  # only set on AI topics


class PlatformCorrelationEntry(_CamelModel):
    platform1: Platform
    platform2: Platform
    shared_topics: int


class InsightsResponse(_CamelModel):
    topics: list[TopicCluster] = Field(default_factory=list)
    single_platform_topics: list[TopicCluster] = Field(default_factory=list)
    # None means "not computed" and is left out of the JSON (no-data responses).
    ai_topics: list[TopicCluster] | None = None
    platform_correlation: list[PlatformCorrelationEntry] = Field(default_factory=list)
    total_results: int = 0
    plan: PlanTier
    can_have_multiple_platforms: bool
    platforms_in_data: list[Platform] = Field(default_factory=list)

    @classmethod
    def empty(cls, plan: PlanTier, can_have_multiple_platforms: bool) -> InsightsResponse:
        return cls(plan=plan, can_have_multiple_platforms=can_have_multiple_platforms)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        data = self.model_dump(mode="json", by_alias=True)
        if self.ai_topics is None:
            data.pop("aiTopics")
        return data
