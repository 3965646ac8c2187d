"""Tests for the insights engine and its stage progression."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from mentionlens import pipeline
from mentionlens.llm import TopicModelError
from mentionlens.models import Platform, PlanTier, Provenance, RawResult, TrendDirection
from mentionlens.pipeline import InputError, InsightsEngine, Stage, next_stage
from mentionlens.policy import resolve_policy
from mentionlens.store import ResultStore

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


def _make(
    result_id: str,
    title: str,
    platform: Platform = Platform.REDDIT,
    hours_ago: float = 1,
    sentiment: str | None = None,
) -> RawResult:
    return RawResult(
        id=result_id,
        title=title,
        platform=platform,
        sentiment=sentiment,
        source_url=f"https://example.com/{result_id}",
        created_at=NOW - timedelta(hours=hours_ago),
    )


class CountingModel:
    def __init__(self, payload: Any = None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls = 0

    def complete_json(self, system: str, user: str, timeout: float | None = None) -> Any:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


def _store(tmp_path: Path, user_id: str, items: list[RawResult]) -> ResultStore:
    store = ResultStore(tmp_path / "insights.sqlite3")
    store.add_monitor("m1", user_id)
    store.insert_results("m1", items)
    return store


def _engine(store: ResultStore, model: Any = None) -> InsightsEngine:
    return InsightsEngine(store, model, clock=lambda: NOW)


def _two_topic_window() -> list[RawResult]:
    return [
        _make("1", "Pricing too high for teams", Platform.REDDIT, 1, "negative"),
        _make("2", "Pricing page unclear", Platform.HACKERNEWS, 2),
        _make("3", "Onboarding flow confusing", Platform.REDDIT, 3),
        _make("4", "Onboarding emails helpful", Platform.DEVTO, 4, "positive"),
        _make("5", "Random question about exports", Platform.REDDIT, 5),
    ]


class TestInputValidation:
    def test_missing_user(self, tmp_path: Path) -> None:
        engine = _engine(ResultStore(tmp_path / "db.sqlite3"))
        with pytest.raises(InputError):
            engine.compute("", "30d", "pro")

    def test_invalid_range(self, tmp_path: Path) -> None:
        engine = _engine(ResultStore(tmp_path / "db.sqlite3"))
        with pytest.raises(InputError):
            engine.compute("u1", "45d", "pro")

    @pytest.mark.parametrize("missing", [None, ""])
    def test_missing_range_means_thirty_days(self, tmp_path: Path, missing: str | None) -> None:
        old = _make("old", "Pricing ancient", hours_ago=24 * 29)
        store = _store(tmp_path, "u1", [old])
        assert _engine(store).compute("u1", missing, "free").total_results == 1
        assert _engine(store).compute("u1", "7d", "free").total_results == 0


class TestNoData:
    def test_zero_monitors_exact_shape(self, tmp_path: Path) -> None:
        engine = _engine(ResultStore(tmp_path / "db.sqlite3"))
        response = engine.compute("u1", "30d", "pro")
        assert response.to_dict() == {
            "topics": [],
            "singlePlatformTopics": [],
            "platformCorrelation": [],
            "totalResults": 0,
            "plan": "pro",
            "canHaveMultiplePlatforms": True,
            "platformsInData": [],
        }

    def test_no_results_in_window(self, tmp_path: Path) -> None:
        store = _store(tmp_path, "u1", [_make("old", "Pricing ancient", hours_ago=24 * 40)])
        response = _engine(store).compute("u1", "30d", "free")
        data = response.to_dict()
        assert data["totalResults"] == 0
        assert data["plan"] == "free"
        assert data["canHaveMultiplePlatforms"] is False
        assert "aiTopics" not in data


class TestScenarios:
    def test_free_tier_single_platform(self, tmp_path: Path) -> None:
        items = [
            _make(str(i), f"Pricing complaint number{i}", hours_ago=i + 1) for i in range(5)
        ]
        model = CountingModel(payload=[])
        response = _engine(_store(tmp_path, "u1", items), model).compute("u1", "7d", "free")

        assert response.topics == []
        assert len(response.single_platform_topics) == 1
        assert len(response.single_platform_topics[0].results) == 5
        assert response.ai_topics == []
        assert model.calls == 0
        assert response.platforms_in_data == [Platform.REDDIT]

    def test_pro_tier_invokes_ai_once(self, tmp_path: Path) -> None:
        payload = [
            {
                "name": "Export Questions",
                "description": "People ask how to export data.",
                "sentiment": "neutral",
                "resultIndices": [5, 77],
                "keywords": ["export"],
            }
        ]
        model = CountingModel(payload=payload)
        store = _store(tmp_path, "u1", _two_topic_window())
        response = _engine(store, model).compute("u1", "30d", "pro")

        assert len(response.topics) == 2
        assert response.single_platform_topics == []
        assert model.calls == 1
        assert response.ai_topics is not None
        assert [t.provenance for t in response.ai_topics] == [Provenance.AI]
        assert [r.id for r in response.ai_topics[0].results] == ["5"]
        assert all(t.provenance is Provenance.LEXICAL for t in response.topics)

    def test_ai_failure_keeps_lexical_topics(self, tmp_path: Path) -> None:
        model = CountingModel(error=TopicModelError("model down"))
        store = _store(tmp_path, "u1", _two_topic_window())
        response = _engine(store, model).compute("u1", "30d", "pro")

        assert response.ai_topics == []
        assert len(response.topics) == 2
        assert response.total_results == 5

    def test_no_model_configured(self, tmp_path: Path) -> None:
        store = _store(tmp_path, "u1", _two_topic_window())
        response = _engine(store, None).compute("u1", "30d", "pro")
        assert response.ai_topics == []
        assert "aiTopics" in response.to_dict()

    def test_platform_correlation_from_cross_platform_topics(self, tmp_path: Path) -> None:
        store = _store(tmp_path, "u1", _two_topic_window())
        response = _engine(store).compute("u1", "30d", "enterprise")
        pairs = {
            (e.platform1, e.platform2): e.shared_topics for e in response.platform_correlation
        }
        assert pairs == {
            (Platform.HACKERNEWS, Platform.REDDIT): 1,
            (Platform.DEVTO, Platform.REDDIT): 1,
        }
        assert response.platforms_in_data == [
            Platform.REDDIT,
            Platform.HACKERNEWS,
            Platform.DEVTO,
        ]

    def test_unknown_plan_uses_free(self, tmp_path: Path) -> None:
        store = _store(tmp_path, "u1", _two_topic_window())
        response = _engine(store).compute("u1", "30d", "platinum")
        assert response.plan is PlanTier.FREE
        assert response.can_have_multiple_platforms is False


class TestInvariants:
    def test_properties_hold(self, tmp_path: Path) -> None:
        words = ["latency", "billing", "export", "mobile", "search"]
        platforms = [Platform.REDDIT, Platform.DEVTO, Platform.X]
        items = [
            _make(
                f"r{i}",
                f"{words[i % len(words)]} report {i}",
                platforms[i % len(platforms)],
                hours_ago=i * 7,
                sentiment=["positive", "negative", None][i % 3],
            )
            for i in range(60)
        ]
        store = _store(tmp_path, "u1", items)
        engine = _engine(store)
        first = engine.compute("u1", "90d", "enterprise")
        second = engine.compute("u1", "90d", "enterprise")

        assert len(first.topics) <= 10
        assert len(first.single_platform_topics) <= 10
        for topic in first.topics:
            assert len(set(topic.platforms)) >= 2
        for topic in first.topics + first.single_platform_topics:
            assert topic.results
            assert topic.sentiment_breakdown.total == len(topic.results)

        assert [[r.id for r in t.results] for t in first.topics] == [
            [r.id for r in t.results] for t in second.topics
        ]


class TestNextStage:
    def test_cross_platform_found_skips_single_pass(self) -> None:
        policy = resolve_policy(PlanTier.PRO)
        stage = next_stage(
            Stage.LEXICAL_CROSS_PLATFORM, policy, cross_count=4, single_count=0, window_size=50
        )
        assert stage is Stage.DONE

    def test_empty_cross_platform_runs_single_pass(self) -> None:
        policy = resolve_policy(PlanTier.PRO)
        stage = next_stage(
            Stage.LEXICAL_CROSS_PLATFORM, policy, cross_count=0, single_count=0, window_size=50
        )
        assert stage is Stage.LEXICAL_SINGLE_PLATFORM

    def test_free_always_runs_single_pass_and_never_ai(self) -> None:
        policy = resolve_policy(PlanTier.FREE)
        stage = next_stage(
            Stage.LEXICAL_CROSS_PLATFORM, policy, cross_count=2, single_count=0, window_size=50
        )
        assert stage is Stage.LEXICAL_SINGLE_PLATFORM
        stage = next_stage(stage, policy, cross_count=2, single_count=0, window_size=50)
        assert stage is Stage.DONE

    def test_ai_needs_sparse_topics_and_window(self) -> None:
        policy = resolve_policy(PlanTier.PRO)
        after_single = Stage.LEXICAL_SINGLE_PLATFORM
        assert next_stage(after_single, policy, cross_count=0, single_count=2, window_size=3) is (
            Stage.AI_FALLBACK
        )
        assert next_stage(after_single, policy, cross_count=0, single_count=3, window_size=9) is (
            Stage.DONE
        )
        assert next_stage(after_single, policy, cross_count=0, single_count=0, window_size=2) is (
            Stage.DONE
        )

    def test_ai_is_terminal(self) -> None:
        policy = resolve_policy(PlanTier.PRO)
        stage = next_stage(Stage.AI_FALLBACK, policy, cross_count=0, single_count=0, window_size=9)
        assert stage is Stage.DONE


class TestEmailDigest:
    def _configure(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        store = _store(tmp_path, "u1", _two_topic_window())
        monkeypatch.setattr(pipeline.config, "DB_PATH", tmp_path / "insights.sqlite3")
        store.set_plan("u1", PlanTier.PRO)
        monkeypatch.setattr(pipeline.config, "LLM_API_KEY", "")

    def test_skipped_when_email_not_configured(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        self._configure(monkeypatch, tmp_path)
        monkeypatch.setattr(pipeline.config, "email_enabled", lambda: False)
        assert pipeline.email_digest("u1", "90d") is False

    def test_sends_rendered_digest(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        self._configure(monkeypatch, tmp_path)
        monkeypatch.setattr(pipeline.config, "email_enabled", lambda: True)
        sent: list[dict[str, Any]] = []
        monkeypatch.setattr(pipeline, "send_digest", lambda **kwargs: sent.append(kwargs))

        assert pipeline.email_digest("u1", "90d") is True
        assert len(sent) == 1
        assert sent[0]["subject"].startswith("Topic digest (90d)")
        assert "# Topic digest — last 90d" in sent[0]["body_text"]


class NaiveTimestampStore:
    """Duck-typed storage collaborator that hands back naive timestamps."""

    def __init__(self, rows: list[tuple[str, str, Platform, datetime]]) -> None:
        self.rows = rows

    def monitor_ids(self, user_id: str) -> list[str]:
        return ["m1"]

    def recent_results(
        self, monitor_ids: list[str], since: datetime, limit: int = 500
    ) -> list[RawResult]:
        return [
            RawResult(id=rid, title=title, platform=platform, created_at=created)
            for rid, title, platform, created in self.rows
        ]


class TestNaiveTimestamps:
    def test_naive_results_and_clock_are_read_as_utc(self) -> None:
        naive_now = NOW.replace(tzinfo=None)
        store = NaiveTimestampStore(
            [
                ("1", "Pricing too high", Platform.REDDIT, naive_now - timedelta(days=1)),
                ("2", "Pricing page unclear", Platform.HACKERNEWS, naive_now - timedelta(days=2)),
                ("3", "Pricing tiers", Platform.DEVTO, naive_now - timedelta(days=20)),
            ]
        )
        for clock_value in (NOW, naive_now):
            engine = InsightsEngine(store, None, clock=lambda value=clock_value: value)
            response = engine.compute("u1", "30d", "pro")

            assert response.total_results == 3
            assert [t.topic for t in response.topics] == ["Pricing"]
            assert response.topics[0].trend_direction is TrendDirection.RISING
            assert response.topics[0].results[0].created_at.tzinfo is not None
