# app/services/llm/llm_analytics.py
"""
LLM usage tracking: model mix, tokens, latency, cost, cache hits.
Read-only with respect to rule evaluation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol

from pydantic import BaseModel, Field

from app.services.llm.llm_models import LLMOperator, TaskComplexity


# USD per 1M tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    # Anthropic
    "claude-haiku-4-5-20251001": {"input": 1.0, "output": 5.0},
    "claude-sonnet-4-5-20250929": {"input": 3.0, "output": 15.0},
    "claude-opus-4-1-20250805": {"input": 15.0, "output": 75.0},
    # OpenAI
    "gpt-4o-mini": {"input": 0.15, "output": 0.6},
    "gpt-4o": {"input": 2.5, "output": 10.0},
    "o1": {"input": 15.0, "output": 60.0},
}

# baseline for "what if every call used the priciest model"
BASELINE_MODEL = "claude-opus-4-1-20250805"


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        return 0.0
    return (
        input_tokens * pricing["input"] / 1_000_000
        + output_tokens * pricing["output"] / 1_000_000
    )


@dataclass
class LLMMetric:
    model: str
    complexity: TaskComplexity
    input_tokens: int
    output_tokens: int
    latency_ms: float
    cost: float
    cached: bool
    operator: LLMOperator
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ComplexityDistribution(BaseModel):
    simple: int = 0
    complex: int = 0
    ultra_complex: int = 0


class LLMAnalytics(BaseModel):
    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0
    cache_hit_rate: float = 0.0
    avg_latency_ms: float = 0.0
    cost_savings_vs_baseline: float = 0.0
    complexity_distribution: ComplexityDistribution = Field(default_factory=ComplexityDistribution)
    model_usage: Dict[str, int] = Field(default_factory=dict)
    operator_usage: Dict[str, int] = Field(default_factory=dict)


class AnalyticsRecorder(Protocol):
    def record(self, metric: LLMMetric) -> None:
        ...

    def get_analytics(self) -> LLMAnalytics:
        ...

    def reset(self) -> None:
        ...


class InMemoryAnalyticsRecorder:
    """Append-only metric log, aggregated on read."""

    def __init__(self):
        self._metrics: List[LLMMetric] = []

    def record(self, metric: LLMMetric) -> None:
        self._metrics.append(metric)

    @property
    def metrics(self) -> List[LLMMetric]:
        return list(self._metrics)

    def reset(self) -> None:
        self._metrics.clear()

    def get_analytics(self) -> LLMAnalytics:
        metrics = self._metrics
        if not metrics:
            return LLMAnalytics()

        total_calls = len(metrics)
        total_input = sum(m.input_tokens for m in metrics)
        total_output = sum(m.output_tokens for m in metrics)
        total_cost = sum(m.cost for m in metrics)
        cached_calls = sum(1 for m in metrics if m.cached)

        model_usage: Dict[str, int] = {}
        operator_usage: Dict[str, int] = {}
        for m in metrics:
            model_usage[m.model] = model_usage.get(m.model, 0) + 1
            operator_usage[m.operator] = operator_usage.get(m.operator, 0) + 1

        return LLMAnalytics(
            total_calls=total_calls,
            total_input_tokens=total_input,
            total_output_tokens=total_output,
            total_cost=total_cost,
            cache_hit_rate=cached_calls / total_calls,
            avg_latency_ms=sum(m.latency_ms for m in metrics) / total_calls,
            cost_savings_vs_baseline=estimate_cost(BASELINE_MODEL, total_input, total_output) - total_cost,
            complexity_distribution=ComplexityDistribution(
                simple=sum(1 for m in metrics if m.complexity == "simple"),
                complex=sum(1 for m in metrics if m.complexity == "complex"),
                ultra_complex=sum(1 for m in metrics if m.complexity == "ultra-complex"),
            ),
            model_usage=model_usage,
            operator_usage=operator_usage,
        )


def summarize(analytics: LLMAnalytics, cache_stats: Dict[str, Any]) -> Dict[str, Any]:
    """Display-friendly rollup for dashboards."""
    if analytics.total_calls == 0:
        return {"message": "No LLM calls tracked yet. Process some events to see analytics."}

    calls = analytics.total_calls
    dist = analytics.complexity_distribution

    def share(n: int) -> str:
        return f"{n} ({n / calls * 100:.0f}%)"

    if analytics.total_cost > 0:
        multiplier = f"{analytics.cost_savings_vs_baseline / analytics.total_cost + 1:.2f}x"
    else:
        multiplier = "n/a"

    return {
        "summary": {
            "total_calls": calls,
            "cached_calls": round(analytics.cache_hit_rate * calls),
            "cache_hit_rate": f"{analytics.cache_hit_rate * 100:.1f}%",
            "total_cost": f"${analytics.total_cost:.4f}",
            "cost_savings": f"${analytics.cost_savings_vs_baseline:.4f}",
            "savings_multiplier": multiplier,
            "avg_latency": f"{round(analytics.avg_latency_ms)}ms",
        },
        "complexity": {
            "simple": share(dist.simple),
            "complex": share(dist.complex),
            "ultra_complex": share(dist.ultra_complex),
        },
        "models": analytics.model_usage,
        "operators": analytics.operator_usage,
        "cache": {
            "entries": cache_stats.get("cache_size", 0),
            "total_hits": cache_stats.get("total_hits", 0),
            "avg_hits_per_entry": f"{cache_stats.get('avg_hits_per_entry', 0.0):.1f}",
        },
    }
