# app/services/llm/llm_models.py

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


TaskComplexity = Literal["simple", "complex", "ultra-complex"]
LLMOperator = Literal["llm", "sentiment", "quality_score"]


class LLMJudgment(BaseModel):
    """
    Transient judgment handed back to the rule engine.
    `sentiment` / `score` keep the raw model answer so a cached entry
    can be re-checked against a different expected label or threshold.
    """
    match: bool
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    sentiment: Optional[str] = None
    score: Optional[int] = None
    # set only when the model call itself failed
    error: Optional[str] = None

    @classmethod
    def skipped(cls) -> "LLMJudgment":
        return cls(match=False, confidence=0.0, reasoning="Skipped")

    @classmethod
    def failed(cls, error: Optional[str] = None) -> "LLMJudgment":
        return cls(match=False, confidence=0.0, reasoning="Evaluation failed", error=error)


# =========================================================
# STRUCTURED OUTPUT SCHEMAS (sent to the model)
# =========================================================

class JudgmentOutput(BaseModel):
    """Judge whether content meets a criterion."""
    steps: List[str] = Field(
        default_factory=list,
        description="Step-by-step reasoning, one short sentence per step",
    )
    match: bool = Field(..., description="Whether the content meets the criteria")
    confidence: float = Field(..., description="Confidence score between 0 and 1")
    reasoning: str = Field(..., description="Brief one-sentence explanation")


class SentimentOutput(BaseModel):
    """Classify the overall sentiment of a text."""
    sentiment: Literal["positive", "negative", "neutral"] = Field(
        ..., description="Overall sentiment of the text"
    )
    reasoning: str = Field(..., description="Brief one-sentence explanation")


class QualityOutput(BaseModel):
    """Score documentation quality."""
    score: int = Field(..., description="Quality score from 0 (poor) to 100 (excellent)")
    reasoning: str = Field(..., description="Brief one-sentence explanation")
