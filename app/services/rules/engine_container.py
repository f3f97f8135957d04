# app/services/rules/engine_container.py
"""
Composition root for the rule engine. Built once at startup and kept on
app.state; routers only read from it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.core.errors import ConfigError
from app.services.employees.employee_service import EmployeeService
from app.services.llm.llm_analytics import InMemoryAnalyticsRecorder
from app.services.llm.llm_evaluator import LLMEvaluator
from app.services.llm.model_provider import LangChainModelProvider, StructuredModelProvider
from app.services.llm.model_router import ModelRouter
from app.services.llm.semantic_cache import InMemorySemanticCache
from app.services.rules.rule_evaluator import RuleEvaluationService
from app.services.rules.rule_service import RuleService
from app.services.rules.rule_simulator import RuleSimulator

logger = logging.getLogger(__name__)


@dataclass
class EngineContainer:
    store: Any
    cache: InMemorySemanticCache
    analytics: InMemoryAnalyticsRecorder
    router: ModelRouter
    llm_evaluator: LLMEvaluator
    evaluator: RuleEvaluationService
    simulator: RuleSimulator
    rules: RuleService
    employees: EmployeeService


def build_store(settings) -> Any:
    backend = (settings.STORAGE_BACKEND or "supabase").strip().lower()

    if backend == "memory":
        from app.infra.memory_store import InMemoryRewardStore
        from app.services.rules.seed_loader import apply_seed, load_seed_from_file

        store = InMemoryRewardStore()
        if settings.SEED_RULES_PATH:
            apply_seed(store, load_seed_from_file(settings.SEED_RULES_PATH))
        return store

    if backend == "supabase":
        from app.infra.supabase_client import get_supabase
        from app.infra.supabase_store import SupabaseRewardStore

        return SupabaseRewardStore(get_supabase())

    raise ConfigError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


def build_engine(
    settings,
    store: Any,
    *,
    provider: Optional[StructuredModelProvider] = None,
    sleep=None,
) -> EngineContainer:
    cache = InMemorySemanticCache(
        similarity_threshold=settings.CACHE_SIMILARITY_THRESHOLD,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
    )
    analytics = InMemoryAnalyticsRecorder()
    router = ModelRouter.from_settings(settings)

    llm_kwargs = {}
    if sleep is not None:
        llm_kwargs["sleep"] = sleep

    llm_evaluator = LLMEvaluator(
        router=router,
        provider=provider or LangChainModelProvider(settings.AI_API_KEY),
        cache=cache,
        analytics=analytics,
        timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
        max_attempts=settings.LLM_MAX_ATTEMPTS,
        retry_base_delay=settings.LLM_RETRY_BASE_DELAY,
        **llm_kwargs,
    )

    if not router.is_configured():
        logger.warning("no AI API key configured; AI conditions will never match")

    return EngineContainer(
        store=store,
        cache=cache,
        analytics=analytics,
        router=router,
        llm_evaluator=llm_evaluator,
        evaluator=RuleEvaluationService(
            store=store,
            llm_evaluator=llm_evaluator,
            concurrency=settings.LLM_CONCURRENCY,
            chunk_size=settings.GRANT_CHUNK_SIZE,
        ),
        simulator=RuleSimulator(llm_evaluator),
        rules=RuleService(store),
        employees=EmployeeService(store),
    )
