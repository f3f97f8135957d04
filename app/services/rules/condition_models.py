# app/services/rules/condition_models.py
"""
Condition variants, discriminated on `op`.

Stored rules keep conditions as a JSON list of {field, op, value}; each
operator family accepts only the value shape it understands, so invalid
combinations (a prompt on `gt`, a number on `sentiment`) never validate.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, Iterable, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


Scalar = Union[bool, int, float, str, None]

AI_OPERATORS = frozenset({"llm", "sentiment", "quality_score"})
SENTIMENT_LABELS = ("positive", "negative", "neutral")


class _ConditionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)


class ComparisonCondition(_ConditionBase):
    op: Literal["eq", "neq", "gt", "gte", "lt", "lte", "contains"]
    value: Scalar = None


class NullCheckCondition(_ConditionBase):
    op: Literal["not_null", "is_null"]
    value: None = None


class FieldComparisonCondition(_ConditionBase):
    """`value` names another field of the same record."""

    op: Literal["lte_field", "gte_field"]
    value: str = Field(..., min_length=1)


class LLMJudgmentCondition(_ConditionBase):
    op: Literal["llm"]
    value: str = Field(..., min_length=1, description="Natural-language judgment prompt")


class SentimentCondition(_ConditionBase):
    op: Literal["sentiment"]
    value: Literal["positive", "negative", "neutral"]


class QualityScoreCondition(_ConditionBase):
    op: Literal["quality_score"]
    value: int = Field(..., ge=0, le=100, description="Pass threshold (0-100)")


Condition = Annotated[
    Union[
        ComparisonCondition,
        NullCheckCondition,
        FieldComparisonCondition,
        LLMJudgmentCondition,
        SentimentCondition,
        QualityScoreCondition,
    ],
    Field(discriminator="op"),
]

AIConditionType = Union[LLMJudgmentCondition, SentimentCondition, QualityScoreCondition]

_conditions_adapter = TypeAdapter(List[Condition])


def parse_conditions(raw: Iterable[Any]) -> List[Condition]:
    """Validate a stored condition list (raises pydantic.ValidationError)."""
    return _conditions_adapter.validate_python(list(raw or []))


def condition_parts(condition: Any) -> tuple[str, str, Any]:
    """(field, op, value) for a model or a plain mapping."""
    if isinstance(condition, dict):
        return (
            str(condition.get("field") or ""),
            str(condition.get("op") or ""),
            condition.get("value"),
        )
    return condition.field, condition.op, getattr(condition, "value", None)


def condition_to_dict(condition: Any) -> Dict[str, Any]:
    field, op, value = condition_parts(condition)
    out: Dict[str, Any] = {"field": field, "op": op}
    if value is not None:
        out["value"] = value
    return out


def is_ai_condition(condition: Any) -> bool:
    return condition_parts(condition)[1] in AI_OPERATORS


def has_llm_conditions(conditions: Iterable[Any]) -> bool:
    return any(is_ai_condition(c) for c in conditions or [])


def get_llm_conditions(conditions: Iterable[Any]) -> List[Any]:
    return [c for c in conditions or [] if is_ai_condition(c)]


def get_static_conditions(conditions: Iterable[Any]) -> List[Any]:
    return [c for c in conditions or [] if not is_ai_condition(c)]


def describe(condition: Any) -> str:
    field, op, value = condition_parts(condition)
    return f"{field} {op} {value!r}" if value is not None else f"{field} {op}"


__all__ = [
    "AI_OPERATORS",
    "SENTIMENT_LABELS",
    "Condition",
    "AIConditionType",
    "ComparisonCondition",
    "NullCheckCondition",
    "FieldComparisonCondition",
    "LLMJudgmentCondition",
    "SentimentCondition",
    "QualityScoreCondition",
    "parse_conditions",
    "condition_parts",
    "condition_to_dict",
    "is_ai_condition",
    "has_llm_conditions",
    "get_llm_conditions",
    "get_static_conditions",
    "describe",
]
