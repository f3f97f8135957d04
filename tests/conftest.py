# tests/conftest.py
import uuid
from typing import Any, Dict, List, Optional

import pytest

from app.infra.memory_store import InMemoryRewardStore
from app.services.llm.llm_analytics import InMemoryAnalyticsRecorder
from app.services.llm.llm_evaluator import LLMEvaluator
from app.services.llm.llm_models import JudgmentOutput, QualityOutput, SentimentOutput
from app.services.llm.model_router import ModelRouter
from app.services.llm.semantic_cache import InMemorySemanticCache
from app.services.rules.rule_evaluator import RuleEvaluationService
from app.services.rules.rule_models import Employee, Event, Rule


class FakeModelProvider:
    """
    Call-counting stand-in for the LangChain provider.
    `outputs` maps schema name -> output instance (or a list consumed in order);
    `errors` are raised, in order, before any output is returned.
    """

    def __init__(
        self,
        outputs: Optional[Dict[str, Any]] = None,
        errors: Optional[List[BaseException]] = None,
    ):
        self.outputs = outputs or {
            "JudgmentOutput": JudgmentOutput(match=True, confidence=0.9, reasoning="Meets criterion"),
            "SentimentOutput": SentimentOutput(sentiment="positive", reasoning="Upbeat tone"),
            "QualityOutput": QualityOutput(score=85, reasoning="Detailed and professional"),
        }
        self.errors = list(errors or [])
        self.calls: List[Dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def generate(self, *, provider, model_id, schema, system, prompt):
        self.calls.append({
            "provider": provider,
            "model_id": model_id,
            "schema": schema.__name__,
            "prompt": prompt,
        })
        if self.errors:
            raise self.errors.pop(0)

        out = self.outputs[schema.__name__]
        if isinstance(out, list):
            return out.pop(0)
        return out


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def fake_provider():
    return FakeModelProvider()


@pytest.fixture
def make_llm_evaluator():
    def _make(
        provider=None,
        *,
        api_key: str = "test-key",
        ai_provider: str = "openai",
        cache=None,
        analytics=None,
        timeout_seconds: float = 1.0,
        max_attempts: int = 3,
    ) -> LLMEvaluator:
        return LLMEvaluator(
            router=ModelRouter(provider=ai_provider, api_key=api_key),
            provider=provider or FakeModelProvider(),
            cache=cache or InMemorySemanticCache(),
            analytics=analytics or InMemoryAnalyticsRecorder(),
            timeout_seconds=timeout_seconds,
            max_attempts=max_attempts,
            retry_base_delay=0.0,
            sleep=_no_sleep,
        )

    return _make


@pytest.fixture
def store():
    return InMemoryRewardStore()


@pytest.fixture
def make_employee(store):
    def _make(name: str = "Ana Reyes", point_balance: int = 0) -> Employee:
        return store.add_employee(
            Employee(id=str(uuid.uuid4()), name=name, point_balance=point_balance, onboarded=True)
        )

    return _make


@pytest.fixture
def make_event(store):
    def _make(employee: Employee, **metadata) -> Event:
        return store.add_event(
            Event(
                id=str(uuid.uuid4()),
                employee_id=employee.id,
                type="shift",
                metadata=metadata,
            )
        )

    return _make


@pytest.fixture
def make_rule(store):
    def _make(conditions, points: int = 10, name: str = "Rule", active: bool = True) -> Rule:
        return store.add_rule(
            Rule(
                id=str(uuid.uuid4()),
                name=name,
                conditions=conditions,
                points=points,
                active=active,
            )
        )

    return _make


@pytest.fixture
def make_engine(store, make_llm_evaluator):
    def _make(provider=None, *, api_key: str = "test-key", chunk_size: int = 500) -> RuleEvaluationService:
        return RuleEvaluationService(
            store=store,
            llm_evaluator=make_llm_evaluator(provider, api_key=api_key),
            concurrency=5,
            chunk_size=chunk_size,
        )

    return _make
