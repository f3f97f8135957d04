# app/services/llm/llm_evaluator.py
"""
LLM-judged conditions: llm (free-form), sentiment, quality_score.

- MUST NEVER throw: missing key, missing content and provider failures
  all come back as a negative LLMJudgment
- every real call: timeout + bounded retry on transient errors only,
  one analytics record, one cache write
- cache hits: zero-cost analytics record, no provider call
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Type

from pydantic import BaseModel

from app.services.llm.llm_analytics import AnalyticsRecorder, LLMMetric, estimate_cost
from app.services.llm.llm_models import (
    JudgmentOutput,
    LLMJudgment,
    LLMOperator,
    QualityOutput,
    SentimentOutput,
    TaskComplexity,
)
from app.services.llm.model_provider import StructuredModelProvider, is_transient_error
from app.services.llm.model_router import (
    ModelRouter,
    ModelSelection,
    classify_complexity,
    estimate_tokens,
    quality_complexity,
)
from app.services.llm.semantic_cache import JudgmentCache
from app.services.rules.condition_models import condition_parts

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.5

CACHE_MODEL_ID = "cache"


# =========================================================
# PROMPTS
# =========================================================

JUDGE_SYSTEM = (
    "You are a judge evaluating employee event data. "
    "Reason step by step before deciding. Be concise."
)

SENTIMENT_SYSTEM = (
    "You are a sentiment analyzer for employee shift documentation. Be concise."
)

QUALITY_SYSTEM = (
    "You are a documentation quality assessor for employee shift notes. "
    "Score based on helpfulness, detail, and professionalism. Be concise."
)


def build_judgment_prompt(prompt: str, content: str) -> str:
    return (
        "Criterion:\n"
        f"{prompt}\n\n"
        "Content to evaluate:\n"
        f'"{content}"\n\n'
        "Work through the criterion step by step:\n"
        "1. Note what the criterion asks for.\n"
        "2. List evidence in the content that supports or contradicts it.\n"
        "3. Decide.\n\n"
        "Return:\n"
        "- steps: your step-by-step reasoning\n"
        "- match: true only if the content clearly meets the criterion\n"
        "- confidence: between 0 and 1\n"
        "- reasoning: one-sentence summary"
    )


def build_sentiment_prompt(content: str) -> str:
    return f'Analyze the sentiment of this text:\n"{content}"'


def build_quality_prompt(content: str) -> str:
    return f'Rate the quality of this documentation:\n"{content}"'


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class LLMEvaluator:
    def __init__(
        self,
        *,
        router: ModelRouter,
        provider: StructuredModelProvider,
        cache: JudgmentCache,
        analytics: AnalyticsRecorder,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.router = router
        self.provider = provider
        self.cache = cache
        self.analytics = analytics
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    def is_configured(self) -> bool:
        return self.router.is_configured()

    # =====================================================
    # PUBLIC
    # =====================================================

    async def evaluate(self, condition: Any, field_value: Any) -> LLMJudgment:
        """Dispatch one AI condition by operator."""
        _, op, value = condition_parts(condition)

        if op == "sentiment":
            return await self.evaluate_sentiment(field_value, str(value))
        if op == "quality_score":
            try:
                threshold = int(value)
            except (TypeError, ValueError):
                logger.error("quality_score threshold is not a number: %r", value)
                return LLMJudgment.failed(f"quality_score threshold is not a number: {value!r}")
            return await self.evaluate_quality_score(field_value, threshold)
        if op == "llm":
            return await self.evaluate_llm(field_value, str(value or ""))

        logger.error("not an AI operator: %s", op)
        return LLMJudgment.failed(f"not an AI operator: {op}")

    async def evaluate_llm(self, field_value: Any, prompt: str) -> LLMJudgment:
        content = self._content(field_value)
        if content is None or not prompt:
            return LLMJudgment.skipped()

        return await self._judge(
            operator="llm",
            content=content,
            cache_prompt=f"[llm] {prompt}",
            complexity=classify_complexity(prompt, content),
            schema=JudgmentOutput,
            system=JUDGE_SYSTEM,
            prompt=build_judgment_prompt(prompt, content),
            to_judgment=lambda out: LLMJudgment(
                match=bool(out.match),
                confidence=_clamp(float(out.confidence), 0.0, 1.0),
                reasoning=out.reasoning,
            ),
            finalize=lambda j: j,
        )

    async def evaluate_sentiment(self, field_value: Any, expected: str) -> LLMJudgment:
        content = self._content(field_value)
        if content is None:
            return LLMJudgment.skipped()

        expected = (expected or "").strip().lower()

        # the cached entry keeps the predicted label; match is recomputed per caller
        return await self._judge(
            operator="sentiment",
            content=content,
            cache_prompt="[sentiment] classify the overall sentiment",
            complexity="simple",
            schema=SentimentOutput,
            system=SENTIMENT_SYSTEM,
            prompt=build_sentiment_prompt(content),
            to_judgment=lambda out: LLMJudgment(
                match=False,
                confidence=1.0,
                reasoning=out.reasoning,
                sentiment=out.sentiment,
            ),
            finalize=lambda j: j.model_copy(update={"match": j.sentiment == expected}),
        )

    async def evaluate_quality_score(self, field_value: Any, threshold: int) -> LLMJudgment:
        content = self._content(field_value)
        if content is None:
            return LLMJudgment.skipped()

        def finalize(j: LLMJudgment) -> LLMJudgment:
            score = j.score or 0
            return j.model_copy(update={"match": score >= threshold, "confidence": score / 100})

        return await self._judge(
            operator="quality_score",
            content=content,
            cache_prompt="[quality_score] rate the documentation quality",
            complexity=quality_complexity(threshold),
            schema=QualityOutput,
            system=QUALITY_SYSTEM,
            prompt=build_quality_prompt(content),
            to_judgment=lambda out: LLMJudgment(
                match=False,
                confidence=0.0,
                reasoning=out.reasoning,
                score=int(_clamp(int(out.score), 0, 100)),
            ),
            finalize=finalize,
        )

    # =====================================================
    # CORE
    # =====================================================

    def _content(self, field_value: Any) -> Optional[str]:
        """None means: skip (not configured, or nothing to judge, including 0 and False)."""
        if not self.is_configured():
            return None
        if not field_value:
            return None
        content = field_value if isinstance(field_value, str) else str(field_value)
        return content if content.strip() else None

    async def _judge(
        self,
        *,
        operator: LLMOperator,
        content: str,
        cache_prompt: str,
        complexity: TaskComplexity,
        schema: Type[BaseModel],
        system: str,
        prompt: str,
        to_judgment: Callable[[Any], LLMJudgment],
        finalize: Callable[[LLMJudgment], LLMJudgment],
    ) -> LLMJudgment:
        start = time.perf_counter()

        try:
            hit = self.cache.lookup(cache_prompt, content, operator=operator)
        except Exception as e:
            logger.warning("semantic cache lookup failed: %s", _error_text(e))
            hit = None

        if hit is not None:
            self.analytics.record(
                LLMMetric(
                    model=CACHE_MODEL_ID,
                    complexity=complexity,
                    input_tokens=0,
                    output_tokens=0,
                    latency_ms=(time.perf_counter() - start) * 1000.0,
                    cost=0.0,
                    cached=True,
                    operator=operator,
                )
            )
            return finalize(hit.result)

        try:
            selection = self.router.select(complexity)
            output = await self._call_with_resilience(selection, schema, system, prompt)
            judgment = to_judgment(output)
        except Exception as e:
            logger.error("%s evaluation failed: %s", operator, _error_text(e))
            return LLMJudgment.failed(f"{operator} evaluation failed: {_error_text(e)}")

        input_tokens = estimate_tokens(system + prompt)
        output_tokens = estimate_tokens(output.model_dump_json())
        self.analytics.record(
            LLMMetric(
                model=selection.model_id,
                complexity=complexity,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                latency_ms=(time.perf_counter() - start) * 1000.0,
                cost=estimate_cost(selection.model_id, input_tokens, output_tokens),
                cached=False,
                operator=operator,
            )
        )

        try:
            self.cache.store(cache_prompt, content, judgment, operator=operator)
        except Exception as e:
            logger.warning("semantic cache store failed: %s", _error_text(e))

        return finalize(judgment)

    async def _call_with_resilience(
        self,
        selection: ModelSelection,
        schema: Type[BaseModel],
        system: str,
        prompt: str,
    ) -> BaseModel:
        last_exc: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await asyncio.wait_for(
                    self.provider.generate(
                        provider=selection.provider,
                        model_id=selection.model_id,
                        schema=schema,
                        system=system,
                        prompt=prompt,
                    ),
                    timeout=self.timeout_seconds,
                )
            except Exception as e:
                if not is_transient_error(e):
                    raise
                last_exc = e

                if attempt == self.max_attempts:
                    break

                delay = self.retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "LLM attempt %d/%d failed (model=%s): %s. Retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    selection.model_id,
                    _error_text(e),
                    delay,
                )
                await self._sleep(delay)

        if last_exc is not None:
            raise last_exc

        raise RuntimeError("LLM call failed: no exception captured")
