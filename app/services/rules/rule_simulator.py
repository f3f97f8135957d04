# app/services/rules/rule_simulator.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Sequence

from app.services.llm.llm_evaluator import LLMEvaluator
from app.services.rules.condition_models import condition_parts, is_ai_condition
from app.services.rules.operators import evaluate_condition
from app.services.rules.rule_models import SimulationConditionResult, SimulationResult

logger = logging.getLogger(__name__)


class RuleSimulator:
    """
    Dry run of a condition list against an arbitrary record.
    Never touches grants or balances: it holds no store at all.
    """

    def __init__(self, llm_evaluator: LLMEvaluator):
        self.llm = llm_evaluator

    async def _evaluate_one(self, condition: Any, record: Dict[str, Any]) -> SimulationConditionResult:
        field, op, value = condition_parts(condition)
        actual = record.get(field)

        if is_ai_condition(condition):
            judgment = await self.llm.evaluate(condition, actual)
            return SimulationConditionResult(
                field=field,
                op=op,
                value=value,
                actual=actual,
                passed=judgment.match,
                reasoning=judgment.reasoning,
            )

        return SimulationConditionResult(
            field=field,
            op=op,
            value=value,
            actual=actual,
            passed=evaluate_condition(condition, record),
        )

    async def simulate(self, conditions: Sequence[Any], record: Dict[str, Any]) -> SimulationResult:
        start = time.perf_counter()
        record = record or {}

        results: List[SimulationConditionResult] = []
        for condition in conditions or []:
            try:
                results.append(await self._evaluate_one(condition, record))
            except Exception as e:
                field, op, value = condition_parts(condition)
                logger.warning("simulation of %s %s failed: %s", field, op, e)
                results.append(
                    SimulationConditionResult(
                        field=field,
                        op=op,
                        value=value,
                        actual=record.get(field),
                        passed=False,
                        reasoning=f"Error: {e}",
                    )
                )

        return SimulationResult(
            matches=all(r.passed for r in results),
            condition_results=results,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
