# app/services/llm/model_router.py
"""
Complexity-based model routing.

Weighted score in [0, 1]:
- token proxy       min(len(prompt) / 4 / 100, 0.4)
- reasoning keyword +0.2  (why / how / compare / analyze / ...)
- deep reasoning    +0.2  (multi-part comparisons, step-by-step analyses)
- long content      +0.2  (judged content over 500 chars)

score > 0.75 -> ultra-complex, score > 0.4 -> complex, else simple.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from app.services.llm.llm_models import TaskComplexity


SUPPORTED_PROVIDERS = ("openai", "anthropic")

DEFAULT_MODELS: Dict[str, Dict[str, str]] = {
    "openai": {
        "simple": "gpt-4o-mini",
        "complex": "gpt-4o",
        "ultra-complex": "o1",
    },
    "anthropic": {
        "simple": "claude-haiku-4-5-20251001",
        "complex": "claude-sonnet-4-5-20250929",
        "ultra-complex": "claude-opus-4-1-20250805",
    },
}

TOKEN_WEIGHT_CAP = 0.4
KEYWORD_WEIGHT = 0.2
DEEP_REASONING_WEIGHT = 0.2
LONG_CONTENT_WEIGHT = 0.2
LONG_CONTENT_CHARS = 500

ULTRA_THRESHOLD = 0.75
COMPLEX_THRESHOLD = 0.4

QUALITY_COMPLEX_THRESHOLD = 70

_REASONING_KEYWORDS = re.compile(
    r"\b(why|how|compare|analy[sz]e|evaluate|explain|assess|judge)\b",
    re.IGNORECASE,
)

_DEEP_REASONING_PATTERNS = [
    re.compile(r"\b(compare|contrast)\b.+\b(and|with|against|versus|vs\.?)\b", re.IGNORECASE),
    re.compile(r"\b(analy[sz]e|evaluate|assess)\b.+\b(each|every|both|multiple|several|all)\b", re.IGNORECASE),
    re.compile(r"\bstep[- ]by[- ]step\b", re.IGNORECASE),
    re.compile(r"\b(pros and cons|trade-?offs?|strengths and weaknesses)\b", re.IGNORECASE),
    re.compile(r"\bmulti-?(part|step|factor)\b", re.IGNORECASE),
]


def estimate_tokens(text: str) -> int:
    # ~4 chars per token
    return len(text or "") // 4


def complexity_score(prompt: str, content: Optional[str] = None) -> float:
    prompt = prompt or ""

    score = min((len(prompt) / 4) / 100, TOKEN_WEIGHT_CAP)

    if _REASONING_KEYWORDS.search(prompt):
        score += KEYWORD_WEIGHT

    if any(p.search(prompt) for p in _DEEP_REASONING_PATTERNS):
        score += DEEP_REASONING_WEIGHT

    if content and len(content) > LONG_CONTENT_CHARS:
        score += LONG_CONTENT_WEIGHT

    return round(min(score, 1.0), 4)


def classify_complexity(prompt: str, content: Optional[str] = None) -> TaskComplexity:
    score = complexity_score(prompt, content)
    if score > ULTRA_THRESHOLD:
        return "ultra-complex"
    if score > COMPLEX_THRESHOLD:
        return "complex"
    return "simple"


def quality_complexity(threshold: int) -> TaskComplexity:
    # high-bar judgments get the stronger model
    return "complex" if threshold >= QUALITY_COMPLEX_THRESHOLD else "simple"


@dataclass
class ModelSelection:
    provider: str
    model_id: str
    complexity: TaskComplexity


class ModelRouter:
    """
    Maps a complexity tier to a concrete model id for the configured provider.
    - static DEFAULT_MODELS table
    - `forced_model` (AI_MODEL) wins over everything
    - per-tier overrides win over the table
    """

    def __init__(
        self,
        *,
        provider: str = "openai",
        api_key: str = "",
        forced_model: str = "",
        tier_overrides: Optional[Mapping[str, str]] = None,
    ):
        self.provider = (provider or "openai").strip().lower()
        self._api_key = api_key or ""
        self._forced_model = forced_model or ""
        self._overrides = {k: v for k, v in (tier_overrides or {}).items() if v}

    @classmethod
    def from_settings(cls, settings) -> "ModelRouter":
        return cls(
            provider=settings.AI_PROVIDER,
            api_key=settings.AI_API_KEY,
            forced_model=settings.AI_MODEL,
            tier_overrides=settings.tier_overrides(),
        )

    @property
    def api_key(self) -> str:
        return self._api_key

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def model_for(self, complexity: TaskComplexity) -> str:
        if self.provider not in DEFAULT_MODELS:
            supported = ", ".join(SUPPORTED_PROVIDERS)
            raise ValueError(f"Unknown AI provider: {self.provider}. Supported: {supported}")

        if self._forced_model:
            return self._forced_model

        return self._overrides.get(complexity) or DEFAULT_MODELS[self.provider][complexity]

    def select(self, complexity: TaskComplexity) -> ModelSelection:
        if not self.is_configured():
            raise RuntimeError("No AI API key configured")
        return ModelSelection(
            provider=self.provider,
            model_id=self.model_for(complexity),
            complexity=complexity,
        )
