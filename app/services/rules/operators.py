# app/services/rules/operators.py
"""
Deterministic condition operators.

Contract:
- evaluate_condition(condition, record) -> bool, never raises
- missing key and None are the same thing
- unknown operators fail closed (False)
- AI operators report True here; the LLM evaluator decides them
"""
from __future__ import annotations

import operator as _op
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from app.services.rules.condition_models import AI_OPERATORS, condition_parts


OperatorFn = Callable[[Any, Any, Mapping[str, Any]], bool]


def _is_bool(v: Any) -> bool:
    return isinstance(v, bool)


def _strict_eq(a: Any, b: Any) -> bool:
    # True == 1 in Python; a boolean only equals a boolean
    if _is_bool(a) != _is_bool(b):
        return False
    return a == b


def _ordered(cmp: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def run(a: Any, b: Any) -> bool:
        if a is None or b is None:
            return False
        if _is_bool(a) or _is_bool(b):
            return False
        try:
            return bool(cmp(a, b))
        except TypeError:
            # str vs number, naive vs aware datetime, ...
            return False

    return run


_gt = _ordered(_op.gt)
_gte = _ordered(_op.ge)
_lt = _ordered(_op.lt)
_lte = _ordered(_op.le)


def _field_ref(cmp: Callable[[Any, Any], bool]) -> OperatorFn:
    def run(field_value: Any, other_field: Any, record: Mapping[str, Any]) -> bool:
        if not isinstance(other_field, str):
            return False
        return cmp(field_value, record.get(other_field))

    return run


def _contains(field_value: Any, needle: Any, _record: Mapping[str, Any]) -> bool:
    if not isinstance(field_value, str) or not isinstance(needle, str):
        return False
    return needle.lower() in field_value.lower()


STATIC_OPERATORS: Mapping[str, OperatorFn] = MappingProxyType({
    "eq": lambda v, c, _r: _strict_eq(v, c),
    "neq": lambda v, c, _r: not _strict_eq(v, c),
    "gt": lambda v, c, _r: _gt(v, c),
    "gte": lambda v, c, _r: _gte(v, c),
    "lt": lambda v, c, _r: _lt(v, c),
    "lte": lambda v, c, _r: _lte(v, c),
    "not_null": lambda v, _c, _r: v is not None,
    "is_null": lambda v, _c, _r: v is None,
    "lte_field": _field_ref(_lte),
    "gte_field": _field_ref(_gte),
    "contains": _contains,
})


def evaluate_condition(
    condition: Any,
    record: Mapping[str, Any],
    operators: Mapping[str, OperatorFn] = STATIC_OPERATORS,
) -> bool:
    field, op, value = condition_parts(condition)

    # decided by the LLM evaluator, never here
    if op in AI_OPERATORS:
        return True

    fn = operators.get(op)
    if fn is None:
        return False

    return fn(record.get(field), value, record)


def evaluate_all_conditions(
    conditions: Iterable[Any],
    record: Mapping[str, Any],
    operators: Mapping[str, OperatorFn] = STATIC_OPERATORS,
) -> bool:
    """Conjunction; an empty list matches."""
    return all(evaluate_condition(c, record, operators) for c in conditions)
