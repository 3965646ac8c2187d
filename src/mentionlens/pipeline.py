"""Insights orchestration — wires window fetch → cluster → AI fallback → correlate."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum

from mentionlens import config
from mentionlens.cluster import cross_platform_topics, single_platform_topics
from mentionlens.correlate import platform_correlation
from mentionlens.digest import render_digest
from mentionlens.emailer import send_digest
from mentionlens.llm import MAX_AI_RESULTS, LLMClient, ai_fallback_topics
from mentionlens.models import (
    InsightsResponse,
    PlanTier,
    RawResult,
    TimeRange,
    TopicCluster,
    as_utc,
)
from mentionlens.policy import ThresholdPolicy, can_have_multiple_platforms, parse_tier, resolve_policy
from mentionlens.store import MAX_WINDOW, ResultStore

logger = logging.getLogger(__name__)

# AI fallback runs only below this many lexical topics...
MIN_LEXICAL_TOPICS = 3
# ...and only when the window holds at least this many results
MIN_AI_WINDOW = 3


class InputError(ValueError):
    """Raised for requests rejected before any computation starts."""


class Stage(str, Enum):
    LEXICAL_CROSS_PLATFORM = "lexical_cross_platform"
    LEXICAL_SINGLE_PLATFORM = "lexical_single_platform"
    AI_FALLBACK = "ai_fallback"
    DONE = "done"


def _after_lexical(
    policy: ThresholdPolicy, cross_count: int, single_count: int, window_size: int
) -> Stage:
    if (
        policy.use_ai_fallback
        and cross_count + single_count < MIN_LEXICAL_TOPICS
        and window_size >= MIN_AI_WINDOW
    ):
        return Stage.AI_FALLBACK
    return Stage.DONE


def next_stage(
    stage: Stage,
    policy: ThresholdPolicy,
    *,
    cross_count: int,
    single_count: int,
    window_size: int,
) -> Stage:
    """Decide which stage follows *stage* given the topic counts so far.

    The single-platform pass is a fallback for tiers that require multiple
    platforms and always runs for tiers that don't.
    """
    if stage is Stage.LEXICAL_CROSS_PLATFORM:
        if cross_count == 0 or not policy.require_multiple_platforms:
            return Stage.LEXICAL_SINGLE_PLATFORM
        return _after_lexical(policy, cross_count, single_count, window_size)
    if stage is Stage.LEXICAL_SINGLE_PLATFORM:
        return _after_lexical(policy, cross_count, single_count, window_size)
    return Stage.DONE


def parse_range(value: TimeRange | str | None) -> TimeRange:
    """Resolve a range token; a missing token means the last 30 days."""
    if isinstance(value, TimeRange):
        return value
    if not value:
        return TimeRange.LAST_30_DAYS
    try:
        return TimeRange(value)
    except ValueError:
        allowed = ", ".join(r.value for r in TimeRange)
        raise InputError(f"Invalid range {value!r}; expected one of {allowed}") from None


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InsightsEngine:
    """Compute topic insights for one user over a bounded result window.

    Holds no state between calls; every ``compute`` works on a fresh window.
    """

    def __init__(
        self,
        store: ResultStore,
        topic_model: LLMClient | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        ai_timeout: float | None = None,
        window_limit: int = MAX_WINDOW,
        ai_max_results: int = MAX_AI_RESULTS,
    ) -> None:
        self._store = store
        self._topic_model = topic_model
        self._clock = clock
        self._ai_timeout = ai_timeout
        self._window_limit = min(window_limit, MAX_WINDOW)
        self._ai_max_results = ai_max_results

    def compute(
        self,
        user_id: str | None,
        time_range: TimeRange | str | None,
        plan: PlanTier | str | None,
    ) -> InsightsResponse:
        if not user_id:
            raise InputError("Unauthenticated request: user id is required")
        window = parse_range(time_range)
        tier = parse_tier(plan)
        policy = resolve_policy(tier)
        multi = can_have_multiple_platforms(tier)

        now = as_utc(self._clock())
        monitor_ids = self._store.monitor_ids(user_id)
        if not monitor_ids:
            logger.info("User %s has no monitors; returning empty insights", user_id)
            return InsightsResponse.empty(tier, multi)

        since = now - timedelta(days=window.days)
        results = self._store.recent_results(monitor_ids, since, limit=self._window_limit)
        if not results:
            logger.info("No results for user %s in the last %s", user_id, window.value)
            return InsightsResponse.empty(tier, multi)

        topics, single, ai_topics = self._run_stages(results, policy, now)

        return InsightsResponse(
            topics=topics,
            single_platform_topics=single,
            ai_topics=ai_topics,
            platform_correlation=platform_correlation(topics),
            total_results=len(results),
            plan=tier,
            can_have_multiple_platforms=multi,
            platforms_in_data=list(dict.fromkeys(r.platform for r in results)),
        )

    def _run_stages(
        self, results: list[RawResult], policy: ThresholdPolicy, now: datetime
    ) -> tuple[list[TopicCluster], list[TopicCluster], list[TopicCluster]]:
        topics: list[TopicCluster] = []
        single: list[TopicCluster] = []
        ai_topics: list[TopicCluster] = []

        stage = Stage.LEXICAL_CROSS_PLATFORM
        while stage is not Stage.DONE:
            if stage is Stage.LEXICAL_CROSS_PLATFORM:
                topics = cross_platform_topics(results, policy, now)
            elif stage is Stage.LEXICAL_SINGLE_PLATFORM:
                single = single_platform_topics(results, policy, now)
            elif stage is Stage.AI_FALLBACK:
                ai_topics = self._ai_topics(results)

            stage = next_stage(
                stage,
                policy,
                cross_count=len(topics),
                single_count=len(single),
                window_size=len(results),
            )
            logger.debug("Next stage: %s", stage.value)

        return topics, single, ai_topics

    def _ai_topics(self, results: list[RawResult]) -> list[TopicCluster]:
        if self._topic_model is None:
            logger.info("AI fallback wanted but no topic model configured")
            return []
        return ai_fallback_topics(
            results,
            self._topic_model,
            timeout=self._ai_timeout,
            max_results=self._ai_max_results,
        )


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_engine(store: ResultStore | None = None) -> InsightsEngine:
    """Engine wired from environment configuration."""
    topic_model = LLMClient(
        provider=config.LLM_PROVIDER,
        api_key=config.LLM_API_KEY,
        model=config.LLM_MODEL,
        fallback_model=config.LLM_FALLBACK_MODEL,
        base_url=config.LLM_BASE_URL,
        timeout=config.LLM_TIMEOUT_SECONDS,
    )
    return InsightsEngine(
        store or ResultStore(config.DB_PATH),
        topic_model if topic_model.available else None,
        ai_timeout=config.LLM_TIMEOUT_SECONDS,
        window_limit=config.WINDOW_LIMIT,
        ai_max_results=config.AI_MAX_RESULTS,
    )


def run_insights(
    user_id: str,
    time_range: TimeRange | str = TimeRange.LAST_30_DAYS,
    engine: InsightsEngine | None = None,
    store: ResultStore | None = None,
) -> InsightsResponse:
    """Resolve the user's plan from the store and compute their insights."""
    store = store or ResultStore(config.DB_PATH)
    engine = engine or build_engine(store)
    plan = store.plan_for(user_id)
    logger.info("=== insights start [user=%s range=%s plan=%s] ===", user_id, time_range, plan)
    response = engine.compute(user_id, time_range, plan)
    logger.info(
        "=== insights done: %d topics, %d single-platform, %d AI, %d results ===",
        len(response.topics),
        len(response.single_platform_topics),
        len(response.ai_topics or []),
        response.total_results,
    )
    return response


def email_digest(user_id: str, time_range: TimeRange | str = TimeRange.LAST_7_DAYS) -> bool:
    """Compute insights for *user_id* and email them as a digest.

    Returns True if an email was sent.
    """
    setup_logging()
    response = run_insights(user_id, time_range)
    range_label = parse_range(time_range).value

    if not config.email_enabled():
        logger.info(
            "Email not configured — skipping send. "
            "Set SMTP_USERNAME, SMTP_PASSWORD, EMAIL_TO to enable."
        )
        return False

    now = datetime.now(UTC).strftime("%Y-%m-%d %H:%M UTC")
    try:
        send_digest(
            smtp_host=config.SMTP_HOST,
            smtp_port=config.SMTP_PORT,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            to_addrs=config.EMAIL_TO,
            subject=f"Topic digest ({range_label}) — {now}",
            body_text=render_digest(response, range_label),
        )
    except Exception:
        logger.exception("Failed to send digest email")
        return False
    return True
