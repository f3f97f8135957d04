# tests/test_llm_evaluator.py
import asyncio

import pytest

from app.services.llm.llm_analytics import InMemoryAnalyticsRecorder
from app.services.llm.llm_models import JudgmentOutput, QualityOutput, SentimentOutput
from app.services.llm.model_provider import TransientModelError, is_transient_error
from app.services.llm.semantic_cache import InMemorySemanticCache

from conftest import FakeModelProvider


NOTE = "Assisted client with morning routine, medication taken at 9:15."


class SlowProvider(FakeModelProvider):
    async def generate(self, **kwargs):
        self.calls.append(kwargs)
        await asyncio.sleep(1)


class TestTransientClassification:
    def test_status_codes(self):
        assert is_transient_error(TransientModelError("rate limited", 429))
        assert is_transient_error(asyncio.TimeoutError())
        assert is_transient_error(RuntimeError("HTTP 503 Service Unavailable"))
        assert is_transient_error(RuntimeError("upstream returned 500 Internal Server Error"))
        assert not is_transient_error(ValueError("invalid schema"))


class TestSkipPaths:
    @pytest.mark.asyncio
    async def test_no_api_key_is_a_non_match_without_calls(self, make_llm_evaluator):
        provider = FakeModelProvider()
        evaluator = make_llm_evaluator(provider, api_key="")

        result = await evaluator.evaluate_llm(NOTE, "Does the note mention medication?")
        assert result.match is False
        assert result.reasoning == "Skipped"
        assert result.error is None
        assert provider.call_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, "", "   ", 0, False])
    async def test_empty_content_is_skipped(self, make_llm_evaluator, value):
        provider = FakeModelProvider()
        evaluator = make_llm_evaluator(provider)

        assert (await evaluator.evaluate_sentiment(value, "positive")).match is False
        assert (await evaluator.evaluate_quality_score(value, 50)).match is False
        assert provider.call_count == 0


class TestJudgments:
    @pytest.mark.asyncio
    async def test_llm_judgment(self, make_llm_evaluator):
        provider = FakeModelProvider()
        analytics = InMemoryAnalyticsRecorder()
        evaluator = make_llm_evaluator(provider, analytics=analytics)

        result = await evaluator.evaluate_llm(NOTE, "Does the note mention medication?")
        assert result.match is True
        assert result.confidence == pytest.approx(0.9)
        assert provider.calls[0]["model_id"] == "gpt-4o-mini"
        assert provider.calls[0]["schema"] == "JudgmentOutput"

        metrics = analytics.metrics
        assert len(metrics) == 1
        assert metrics[0].cached is False
        assert metrics[0].operator == "llm"
        assert metrics[0].input_tokens > 0

    @pytest.mark.asyncio
    async def test_confidence_is_clamped(self, make_llm_evaluator):
        provider = FakeModelProvider(
            outputs={"JudgmentOutput": JudgmentOutput(match=True, confidence=3.0, reasoning="sure")}
        )
        result = await make_llm_evaluator(provider).evaluate_llm(NOTE, "Mentions medication?")
        assert result.confidence == 1.0

    @pytest.mark.asyncio
    async def test_sentiment_match_against_expected_label(self, make_llm_evaluator):
        evaluator = make_llm_evaluator(FakeModelProvider())

        assert (await evaluator.evaluate_sentiment(NOTE, "positive")).match is True
        negative = await evaluator.evaluate_sentiment(NOTE, "negative")
        assert negative.match is False
        assert negative.sentiment == "positive"

    @pytest.mark.asyncio
    async def test_quality_score_threshold(self, make_llm_evaluator):
        provider = FakeModelProvider(outputs={"QualityOutput": QualityOutput(score=65, reasoning="ok")})
        evaluator = make_llm_evaluator(provider)

        passed = await evaluator.evaluate_quality_score(NOTE, 60)
        assert passed.match is True
        assert passed.score == 65
        assert passed.confidence == pytest.approx(0.65)

        # cached raw score, re-checked against a stricter bar
        failed = await evaluator.evaluate_quality_score(NOTE, 80)
        assert failed.match is False
        assert provider.call_count == 1

    @pytest.mark.asyncio
    async def test_high_quality_threshold_routes_to_complex_tier(self, make_llm_evaluator):
        provider = FakeModelProvider()
        await make_llm_evaluator(provider).evaluate_quality_score(NOTE, 80)
        assert provider.calls[0]["model_id"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_dispatch_by_operator(self, make_llm_evaluator):
        provider = FakeModelProvider()
        evaluator = make_llm_evaluator(provider)

        await evaluator.evaluate({"field": "documentation", "op": "sentiment", "value": "positive"}, NOTE)
        await evaluator.evaluate({"field": "documentation", "op": "quality_score", "value": 40}, NOTE)
        await evaluator.evaluate({"field": "documentation", "op": "llm", "value": "Any meds?"}, NOTE)
        assert [c["schema"] for c in provider.calls] == ["SentimentOutput", "QualityOutput", "JudgmentOutput"]

        bad = await evaluator.evaluate({"field": "documentation", "op": "eq", "value": 1}, NOTE)
        assert bad.match is False
        assert bad.error


class TestCache:
    @pytest.mark.asyncio
    async def test_similar_prompt_same_value_reuses_result(self, make_llm_evaluator):
        provider = FakeModelProvider()
        analytics = InMemoryAnalyticsRecorder()
        evaluator = make_llm_evaluator(provider, analytics=analytics)

        first = await evaluator.evaluate_llm(NOTE, "Does the note mention medication?")
        second = await evaluator.evaluate_llm(NOTE, "Does the note mention medications?")

        assert provider.call_count == 1
        assert second.match == first.match
        assert second.reasoning == first.reasoning

        cached = analytics.metrics[1]
        assert cached.cached is True
        assert cached.cost == 0.0
        assert cached.model == "cache"

    @pytest.mark.asyncio
    async def test_different_value_calls_provider_again(self, make_llm_evaluator):
        provider = FakeModelProvider()
        evaluator = make_llm_evaluator(provider)

        await evaluator.evaluate_llm(NOTE, "Does the note mention medication?")
        await evaluator.evaluate_llm(NOTE + " Walked 20 minutes.", "Does the note mention medication?")
        assert provider.call_count == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, make_llm_evaluator):
        cache = InMemorySemanticCache()
        provider = FakeModelProvider(errors=[ValueError("bad request")])
        evaluator = make_llm_evaluator(provider, cache=cache)

        await evaluator.evaluate_llm(NOTE, "Mentions medication?")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_llm_entry_never_answers_sentiment_or_quality(self, make_llm_evaluator):
        provider = FakeModelProvider()
        evaluator = make_llm_evaluator(provider)

        await evaluator.evaluate_llm(NOTE, "classify the overall sentiment")
        sentiment = await evaluator.evaluate_sentiment(NOTE, "positive")
        await evaluator.evaluate_llm(NOTE, "rate the documentation quality")
        quality = await evaluator.evaluate_quality_score(NOTE, 50)

        assert provider.call_count == 4
        assert [c["schema"] for c in provider.calls] == [
            "JudgmentOutput",
            "SentimentOutput",
            "JudgmentOutput",
            "QualityOutput",
        ]
        assert sentiment.match is True
        assert sentiment.sentiment == "positive"
        assert quality.match is True
        assert quality.score == 85


class TestResilience:
    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, make_llm_evaluator):
        provider = FakeModelProvider(errors=[TransientModelError("rate limited", 429)])
        result = await make_llm_evaluator(provider).evaluate_llm(NOTE, "Mentions medication?")

        assert provider.call_count == 2
        assert result.match is True
        assert result.error is None

    @pytest.mark.asyncio
    async def test_exhausted_retries_degrade_to_non_match(self, make_llm_evaluator):
        provider = FakeModelProvider(errors=[TransientModelError("server error", 500) for _ in range(5)])
        analytics = InMemoryAnalyticsRecorder()
        result = await make_llm_evaluator(provider, analytics=analytics, max_attempts=3).evaluate_llm(
            NOTE, "Mentions medication?"
        )

        assert provider.call_count == 3
        assert result.match is False
        assert result.reasoning == "Evaluation failed"
        assert "server error" in result.error
        assert analytics.metrics == []

    @pytest.mark.asyncio
    async def test_non_transient_error_aborts_immediately(self, make_llm_evaluator):
        provider = FakeModelProvider(errors=[ValueError("invalid api key")])
        result = await make_llm_evaluator(provider).evaluate_llm(NOTE, "Mentions medication?")

        assert provider.call_count == 1
        assert result.match is False
        assert "invalid api key" in result.error

    @pytest.mark.asyncio
    async def test_timeouts_count_as_transient(self, make_llm_evaluator):
        provider = SlowProvider()
        result = await make_llm_evaluator(provider, timeout_seconds=0.01, max_attempts=2).evaluate_sentiment(
            NOTE, "positive"
        )

        assert provider.call_count == 2
        assert result.match is False
        assert result.error
