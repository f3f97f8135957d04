# tests/test_engine_container.py
from pathlib import Path
from types import SimpleNamespace

import pytest

from app.core.errors import ConfigError
from app.infra.memory_store import InMemoryRewardStore
from app.services.rules.engine_container import build_engine, build_store
from app.services.rules.seed_loader import load_seed_from_file

from conftest import FakeModelProvider


DEMO_SEED = Path(__file__).resolve().parent.parent / "app" / "seeds" / "demo_seed.yaml"

ANA = "7b1c0c3e-1f7a-4d7e-9a51-0d2f3a9e0001"
SAM = "7b1c0c3e-1f7a-4d7e-9a51-0d2f3a9e0002"


def make_settings(**overrides):
    values = dict(
        STORAGE_BACKEND="memory",
        SEED_RULES_PATH=str(DEMO_SEED),
        AI_PROVIDER="anthropic",
        AI_API_KEY="test-key",
        AI_MODEL="",
        LLM_TIMEOUT_SECONDS=1.0,
        LLM_MAX_ATTEMPTS=3,
        LLM_RETRY_BASE_DELAY=0.0,
        LLM_CONCURRENCY=5,
        GRANT_CHUNK_SIZE=500,
        CACHE_TTL_SECONDS=3600,
        CACHE_SIMILARITY_THRESHOLD=0.85,
    )
    values.update(overrides)
    settings = SimpleNamespace(**values)
    settings.tier_overrides = lambda: {}
    return settings


class TestSeed:
    def test_load_demo_seed(self):
        bundle = load_seed_from_file(str(DEMO_SEED))
        assert len(bundle.employees) == 2
        assert len(bundle.events) == 2
        assert {r.name for r in bundle.rules} >= {"Correct clock-in method", "On-time arrival"}

    def test_missing_file(self):
        with pytest.raises(RuntimeError):
            load_seed_from_file("does/not/exist.yaml")


class TestBuild:
    def test_memory_backend_is_seeded(self):
        store = build_store(make_settings())
        assert isinstance(store, InMemoryRewardStore)
        assert len(store.list_active_rules()) == 3

    def test_unknown_backend(self):
        with pytest.raises(ConfigError):
            build_store(make_settings(STORAGE_BACKEND="mongo"))

    @pytest.mark.asyncio
    async def test_demo_run_end_to_end(self):
        settings = make_settings()
        provider = FakeModelProvider()
        engine = build_engine(settings, build_store(settings), provider=provider)

        result = await engine.evaluator.process_events()

        assert result.total_events == 2
        assert result.total_rules_evaluated == 6
        assert result.grants_created == 3
        assert engine.store.balance_of(ANA) == 30
        assert engine.store.balance_of(SAM) == 0
        # quality_score 70 -> complex tier on the anthropic table
        assert provider.calls[0]["model_id"] == "claude-sonnet-4-5-20250929"
        assert engine.analytics.get_analytics().total_calls == 1
