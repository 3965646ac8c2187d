"""LLM topic extraction, used when keyword clustering finds too little."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mentionlens.models import Provenance, RawResult, ResultRef, TopicCluster
from mentionlens.trend import sentiment_breakdown, trend_from_sentiment

logger = logging.getLogger(__name__)

_PROVIDER_BASE_URLS: dict[str, str] = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": "https://api.openai.com/v1",
}

# Hard cap on results sent to the model, whatever the window size
MAX_AI_RESULTS = 50

_EXCERPT_CHARS = 200

_MAX_AI_TOPICS = 5

_AI_SENTIMENTS = {"positive", "negative", "mixed", "neutral"}

# ── System prompt used for topic extraction ───────────────────────────────
_SYSTEM_PROMPT = (
    "You are an analyst grouping online mentions of a product into themes. "
    "Reply with JSON only: an array of 3–5 topics. Each topic is an object with "
    '"name" (2–4 words), "description" (one sentence), '
    '"sentiment" (one of "positive", "negative", "mixed", "neutral"), '
    '"resultIndices" (the numbers of the mentions that belong to it) and '
    '"keywords" (3–5 lowercase words). Only use numbers from the list.'
)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_JSON_RE = re.compile(r"(\[[\s\S]*\]|\{[\s\S]*\})")


class TopicModelError(RuntimeError):
    """Raised when the model cannot produce usable JSON."""


class LLMClient:
    """OpenAI-compatible chat client that returns parsed JSON or raises.

    Tries *model* first and *fallback_model* once if the primary call fails.
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str,
        fallback_model: str = "",
        base_url: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._provider = provider.lower()
        self._model = model
        self._fallback_model = fallback_model
        self._timeout = timeout
        self._client: OpenAI | None = None

        if not api_key:
            logger.warning("LLM_API_KEY not set — AI topic fallback is disabled.")
            return

        url = base_url or _PROVIDER_BASE_URLS.get(self._provider)
        if url is None:
            logger.warning("Unknown LLM_PROVIDER '%s'; AI topic fallback is disabled.", provider)
            return

        self._client = OpenAI(api_key=api_key, base_url=url, timeout=timeout)

    @property
    def available(self) -> bool:
        return self._client is not None

    # ── public ──────────────────────────────────────────────────────────

    def complete_json(self, system: str, user: str, timeout: float | None = None) -> Any:
        """Send one chat request and return the decoded JSON payload."""
        if self._client is None:
            raise TopicModelError("No LLM client configured.")

        effective_timeout = timeout if timeout is not None else self._timeout
        try:
            raw = self._chat(self._model, system, user, effective_timeout)
        except OpenAIError as exc:
            if not self._fallback_model or self._fallback_model == self._model:
                raise TopicModelError(f"{self._model} failed: {exc}") from exc
            logger.warning(
                "Primary model %s failed (%s); trying %s", self._model, exc, self._fallback_model
            )
            try:
                raw = self._chat(self._fallback_model, system, user, effective_timeout)
            except OpenAIError as fallback_exc:
                raise TopicModelError(
                    f"{self._fallback_model} failed: {fallback_exc}"
                ) from fallback_exc

        return parse_json(raw)

    # ── private ─────────────────────────────────────────────────────────

    def _chat(self, model: str, system: str, user: str, timeout: float) -> str:
        assert self._client is not None
        resp = self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=0.3,
            max_tokens=1024,
            timeout=timeout,
        )
        return resp.choices[0].message.content or ""


def parse_json(raw: str) -> Any:
    """Decode JSON from a model reply, tolerating ```json fences and chatter."""
    match = _FENCED_JSON_RE.search(raw) or _BARE_JSON_RE.search(raw)
    candidate = match.group(1) if match else raw
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise TopicModelError(f"Unparsable JSON from model: {raw[:300]}") from exc


class AITopic(BaseModel):
    """One topic as the model describes it (before index validation)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str | None = None
    sentiment: str | None = None
    result_indices: list[Any] = Field(default_factory=list, alias="resultIndices")
    keywords: list[Any] | None = None


def build_prompt(selected: list[RawResult]) -> str:
    """Numbered listing of the selected results (1-based)."""
    lines: list[str] = []
    for i, result in enumerate(selected, start=1):
        line = f"[{i}] ({result.platform.value}) {result.title}"
        excerpt = (result.content or "").strip()[:_EXCERPT_CHARS]
        if excerpt:
            line += f"\n    {excerpt}"
        lines.append(line)
    return (
        f"Group these {len(selected)} mentions into 3–5 topics.\n\n"
        + "\n".join(lines)
    )


def _topic_items(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        payload = payload.get("topics")
    if not isinstance(payload, list):
        raise TopicModelError(f"Expected a JSON array of topics, got {type(payload).__name__}")
    return payload


def _resolve_indices(raw_indices: list[Any], selected: list[RawResult]) -> list[RawResult]:
    """Map 1-based indices back to results, dropping anything out of range."""
    members: dict[str, RawResult] = {}
    for raw in raw_indices:
        if isinstance(raw, bool) or not isinstance(raw, int):
            continue
        if 1 <= raw <= len(selected):
            result = selected[raw - 1]
            members.setdefault(result.id, result)
    return list(members.values())


def topics_from_payload(payload: Any, selected: list[RawResult]) -> list[TopicCluster]:
    """Validate a model payload into AI-provenance TopicClusters."""
    topics: list[TopicCluster] = []
    for item in _topic_items(payload):
        try:
            parsed = AITopic.model_validate(item)
        except ValidationError:
            logger.debug("Skipping malformed AI topic: %r", item)
            continue

        members = _resolve_indices(parsed.result_indices, selected)
        if not members:
            logger.debug("Dropping AI topic %r with no valid members", parsed.name)
            continue

        label = (parsed.sentiment or "").strip().lower()
        if label not in _AI_SENTIMENTS:
            label = "neutral"
        keywords = [k.lower() for k in (parsed.keywords or []) if isinstance(k, str) and k.strip()]
        topics.append(
            TopicCluster(
                topic=parsed.name.strip() or "Untitled",
                keywords=keywords,
                platforms=list(dict.fromkeys(m.platform for m in members)),
                results=[ResultRef.from_result(m) for m in members],
                sentiment_breakdown=sentiment_breakdown(members),
                trend_direction=trend_from_sentiment(label),
                provenance=Provenance.AI,
                description=(parsed.description or "").strip() or None,
            )
        )
        if len(topics) == _MAX_AI_TOPICS:
            break
    return topics


def ai_fallback_topics(
    results: list[RawResult],
    model: LLMClient,
    timeout: float | None = None,
    max_results: int = MAX_AI_RESULTS,
) -> list[TopicCluster]:
    """Ask the model for topics over the most recent results.

    *results* must already be ordered newest first. Never raises: any model
    or parsing failure is logged and produces an empty list. *max_results*
    can lower the cap but never raise it above MAX_AI_RESULTS.
    """
    selected = results[: min(max_results, MAX_AI_RESULTS)]
    if not selected:
        return []

    try:
        payload = model.complete_json(_SYSTEM_PROMPT, build_prompt(selected), timeout=timeout)
        topics = topics_from_payload(payload, selected)
    except TopicModelError as exc:
        logger.warning("AI topic fallback failed: %s", exc)
        return []
    except Exception:
        logger.exception("AI topic fallback failed unexpectedly")
        return []

    logger.info("AI fallback produced %d topics from %d results", len(topics), len(selected))
    return topics
