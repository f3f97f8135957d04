# app/services/rules/rule_evaluator.py
"""
Rule evaluation engine.

Flow per invocation:
1) active rules -> 2) target events -> 3) existing grant keys (idempotency guard)
4) event x rule: static conditions first, AI conditions only if all static pass
5) one all-or-nothing transaction for every staged grant + balance delta
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from app.core.errors import ConflictError
from app.services.llm.llm_evaluator import LLMEvaluator
from app.services.llm.llm_models import LLMJudgment
from app.services.rules.condition_models import (
    condition_parts,
    get_llm_conditions,
    get_static_conditions,
)
from app.services.rules.operators import evaluate_all_conditions
from app.services.rules.reward_store import RewardStore
from app.services.rules.rule_models import Event, Grant, ProcessResult, Rule

logger = logging.getLogger(__name__)

DEFAULT_LLM_CONCURRENCY = 5
DEFAULT_CHUNK_SIZE = 500


def event_to_record(event: Event) -> Dict[str, Any]:
    """Flatten metadata to the top level; the event's own fields win on collision."""
    record: Dict[str, Any] = dict(event.metadata or {})
    record.update({
        "id": event.id,
        "employee_id": event.employee_id,
        "type": event.type,
        "timestamp": event.timestamp,
        "metadata": event.metadata,
        "created_at": event.created_at,
        "updated_at": event.updated_at,
    })
    return record


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _chunks(items: Sequence[Grant], size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class RuleEvaluationService:
    def __init__(
        self,
        *,
        store: RewardStore,
        llm_evaluator: LLMEvaluator,
        concurrency: int = DEFAULT_LLM_CONCURRENCY,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.store = store
        self.llm = llm_evaluator
        self.concurrency = max(1, concurrency)
        self.chunk_size = max(1, chunk_size)

    # =====================================================
    # AI CONDITIONS
    # =====================================================
    async def evaluate_ai_conditions(
        self,
        conditions: Sequence[Any],
        record: Dict[str, Any],
    ) -> List[LLMJudgment]:
        """All AI conditions of one rule, at most `concurrency` in flight."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(condition: Any) -> LLMJudgment:
            field, _, _ = condition_parts(condition)
            async with semaphore:
                return await self.llm.evaluate(condition, record.get(field))

        return await asyncio.gather(*(run(c) for c in conditions))

    async def rule_matches(self, rule: Rule, record: Dict[str, Any]) -> tuple[bool, List[str]]:
        """
        (matched, errors). Errors are judgment failures; any failure means no match
        for this pair.
        """
        if not evaluate_all_conditions(get_static_conditions(rule.conditions), record):
            return False, []

        ai_conditions = get_llm_conditions(rule.conditions)
        if not ai_conditions:
            return True, []

        judgments = await self.evaluate_ai_conditions(ai_conditions, record)
        errors = [j.error for j in judgments if j.error]
        if errors:
            return False, errors
        return all(j.match for j in judgments), []

    # =====================================================
    # BATCH
    # =====================================================
    async def process_events(self, event_ids: Optional[Sequence[str]] = None) -> ProcessResult:
        start = time.perf_counter()
        result = ProcessResult()

        rules = self.store.list_active_rules()
        if not rules:
            result.duration_ms = _elapsed_ms(start)
            return result

        events = self.store.list_events(list(event_ids) if event_ids is not None else None)
        result.total_events = len(events)
        if not events:
            result.duration_ms = _elapsed_ms(start)
            return result

        existing = self.store.list_grant_keys()

        logger.info(
            "processing events=%d rules=%d existing_grants=%d",
            len(events),
            len(rules),
            len(existing),
        )

        staged: List[Grant] = []
        deltas: Dict[str, int] = {}

        for event in events:
            record = event_to_record(event)

            for rule in rules:
                result.total_rules_evaluated += 1

                if (rule.id, event.id) in existing:
                    result.skipped_existing += 1
                    continue

                try:
                    matched, errors = await self.rule_matches(rule, record)
                except Exception as e:
                    logger.exception("rule %s failed on event %s", rule.id, event.id)
                    result.errors.append(f"Rule {rule.id} failed for event {event.id}: {e}")
                    continue

                for err in errors:
                    result.errors.append(f"LLM error for rule {rule.id} / event {event.id}: {err}")
                if not matched:
                    continue

                staged.append(
                    Grant(
                        rule_id=rule.id,
                        employee_id=event.employee_id,
                        event_id=event.id,
                        points_awarded=rule.points,
                    )
                )
                deltas[event.employee_id] = deltas.get(event.employee_id, 0) + rule.points

        if staged:
            self._persist(staged, deltas, result)

        result.duration_ms = _elapsed_ms(start)
        logger.info(
            "processing done events=%d evaluated=%d grants=%d points=%d skipped=%d errors=%d in %dms",
            result.total_events,
            result.total_rules_evaluated,
            result.grants_created,
            result.total_points_awarded,
            result.skipped_existing,
            len(result.errors),
            result.duration_ms,
        )
        return result

    def _persist(self, staged: List[Grant], deltas: Dict[str, int], result: ProcessResult) -> None:
        try:
            with self.store.transaction() as tx:
                for chunk in _chunks(staged, self.chunk_size):
                    tx.insert_grants(chunk)
                for employee_id, delta in deltas.items():
                    tx.increment_balance(employee_id, delta)
        except ConflictError:
            logger.warning("grant conflict while persisting %d grants; batch rolled back", len(staged))
            raise
        except Exception as e:
            logger.exception("persisting %d grants failed; batch rolled back", len(staged))
            result.errors.append(f"Failed to persist grants: {e}")
            return

        result.grants_created = len(staged)
        result.total_points_awarded = sum(deltas.values())
