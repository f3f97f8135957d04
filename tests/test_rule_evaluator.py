# tests/test_rule_evaluator.py
from contextlib import contextmanager

import pytest

from app.core.errors import ConflictError
from app.services.llm.llm_models import JudgmentOutput
from app.services.llm.model_provider import TransientModelError
from app.services.rules.rule_evaluator import event_to_record
from app.services.rules.rule_models import Event, Grant

from conftest import FakeModelProvider


CLOCK_IN = {"field": "correctClockInMethod", "op": "eq", "value": True}
HAS_NOTES = {"field": "documentation", "op": "not_null"}
MENTIONS_MEDS = {"field": "documentation", "op": "llm", "value": "Does the note mention medication?"}
POSITIVE = {"field": "documentation", "op": "sentiment", "value": "positive"}


class TestEventToRecord:
    def test_metadata_is_flattened_and_own_fields_win(self):
        event = Event(
            id="e1",
            employee_id="emp1",
            type="shift",
            metadata={"documentation": "notes", "type": "overridden?"},
        )
        record = event_to_record(event)
        assert record["documentation"] == "notes"
        assert record["type"] == "shift"
        assert record["employee_id"] == "emp1"


class TestProcessEvents:
    @pytest.mark.asyncio
    async def test_no_active_rules_returns_zero_result(self, store, make_engine, make_employee, make_event):
        make_event(make_employee(), correctClockInMethod=True)
        result = await make_engine().process_events()
        assert result.total_events == 0
        assert result.grants_created == 0

    @pytest.mark.asyncio
    async def test_no_events(self, make_engine, make_rule):
        make_rule([CLOCK_IN])
        result = await make_engine().process_events()
        assert result.total_events == 0
        assert result.total_rules_evaluated == 0

    @pytest.mark.asyncio
    async def test_idempotency(self, store, make_engine, make_employee, make_event, make_rule):
        employee = make_employee()
        make_event(employee, correctClockInMethod=True)
        make_rule([CLOCK_IN], points=10)
        engine = make_engine()

        first = await engine.process_events()
        assert first.grants_created == 1
        assert first.total_points_awarded == 10
        assert store.balance_of(employee.id) == 10

        second = await engine.process_events()
        assert second.grants_created == 0
        assert second.skipped_existing == 1
        assert second.total_rules_evaluated == 1
        assert store.balance_of(employee.id) == 10
        assert len(store.grants) == 1

    @pytest.mark.asyncio
    async def test_conjunction(self, store, make_engine, make_employee, make_event, make_rule):
        employee = make_employee()
        make_event(employee, correctClockInMethod=True, documentation=None)
        make_rule([CLOCK_IN, HAS_NOTES])

        result = await make_engine().process_events()
        assert result.grants_created == 0
        assert store.balance_of(employee.id) == 0

    @pytest.mark.asyncio
    async def test_multiple_rules_grant_independently(self, store, make_engine, make_employee, make_event, make_rule):
        employee = make_employee()
        make_event(employee, correctClockInMethod=True, documentation="notes")
        make_rule([CLOCK_IN], points=10)
        make_rule([HAS_NOTES], points=5)
        make_rule([CLOCK_IN], points=100, active=False)

        result = await make_engine().process_events()
        assert result.grants_created == 2
        assert result.total_points_awarded == 15
        assert store.balance_of(employee.id) == 15

    @pytest.mark.asyncio
    async def test_targeted_event_ids(self, store, make_engine, make_employee, make_event, make_rule):
        employee = make_employee()
        target = make_event(employee, correctClockInMethod=True)
        make_event(employee, correctClockInMethod=True)
        make_rule([CLOCK_IN])

        result = await make_engine().process_events([target.id])
        assert result.total_events == 1
        assert [g.event_id for g in store.grants] == [target.id]

    @pytest.mark.asyncio
    async def test_chunked_persistence(self, store, make_engine, make_employee, make_event, make_rule):
        employee = make_employee()
        for _ in range(7):
            make_event(employee, correctClockInMethod=True)
        make_rule([CLOCK_IN], points=2)

        result = await make_engine(chunk_size=3).process_events()
        assert result.grants_created == 7
        assert store.balance_of(employee.id) == 14


class TestAIConditions:
    @pytest.mark.asyncio
    async def test_static_failure_short_circuits_ai(self, store, make_engine, make_employee, make_event, make_rule):
        provider = FakeModelProvider()
        make_event(make_employee(), correctClockInMethod=False, documentation="Gave medication at 9")
        make_rule([CLOCK_IN, MENTIONS_MEDS])

        result = await make_engine(provider).process_events()
        assert result.grants_created == 0
        assert provider.call_count == 0

    @pytest.mark.asyncio
    async def test_all_ai_conditions_must_match(self, store, make_engine, make_employee, make_event, make_rule):
        provider = FakeModelProvider(
            outputs={
                "JudgmentOutput": JudgmentOutput(match=False, confidence=0.8, reasoning="No meds"),
                "SentimentOutput": FakeModelProvider().outputs["SentimentOutput"],
            }
        )
        make_event(make_employee(), correctClockInMethod=True, documentation="Nice shift")
        make_rule([CLOCK_IN, POSITIVE, MENTIONS_MEDS])

        result = await make_engine(provider).process_events()
        assert provider.call_count == 2
        assert result.grants_created == 0
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_ai_match_grants(self, store, make_engine, make_employee, make_event, make_rule):
        employee = make_employee()
        make_event(employee, correctClockInMethod=True, documentation="Gave medication at 9")
        make_rule([CLOCK_IN, POSITIVE, MENTIONS_MEDS], points=20)

        result = await make_engine(FakeModelProvider()).process_events()
        assert result.grants_created == 1
        assert store.balance_of(employee.id) == 20

    @pytest.mark.asyncio
    async def test_unconfigured_ai_never_fires(self, store, make_engine, make_employee, make_event, make_rule):
        provider = FakeModelProvider()
        make_event(make_employee(), documentation="Gave medication at 9")
        make_rule([MENTIONS_MEDS])

        result = await make_engine(provider, api_key="").process_events()
        assert result.grants_created == 0
        assert result.errors == []
        assert provider.call_count == 0

    @pytest.mark.asyncio
    async def test_provider_failure_is_reported_and_batch_continues(
        self, store, make_engine, make_employee, make_event, make_rule
    ):
        provider = FakeModelProvider(errors=[TransientModelError("overloaded", 503) for _ in range(3)])
        employee = make_employee()
        make_event(employee, correctClockInMethod=True, documentation="Gave medication at 9")
        make_rule([MENTIONS_MEDS], points=20)
        make_rule([CLOCK_IN], points=10)

        result = await make_engine(provider).process_events()
        assert result.grants_created == 1
        assert store.balance_of(employee.id) == 10
        assert len(result.errors) == 1
        assert "overloaded" in result.errors[0]


class TestPersistence:
    @pytest.mark.asyncio
    async def test_failure_midway_rolls_back_everything(
        self, store, make_engine, make_employee, make_event, make_rule, monkeypatch
    ):
        employee = make_employee()
        make_event(employee, correctClockInMethod=True)
        make_rule([CLOCK_IN], points=10)

        original = store.transaction

        @contextmanager
        def failing_transaction():
            with original() as tx:
                def boom(employee_id, delta):
                    raise RuntimeError("connection lost")

                tx.increment_balance = boom
                yield tx

        monkeypatch.setattr(store, "transaction", failing_transaction)

        result = await make_engine().process_events()
        assert result.grants_created == 0
        assert result.total_points_awarded == 0
        assert any("connection lost" in e for e in result.errors)
        assert store.grants == []
        assert store.balance_of(employee.id) == 0

    @pytest.mark.asyncio
    async def test_concurrent_grant_surfaces_as_conflict(
        self, store, make_engine, make_employee, make_event, make_rule, monkeypatch
    ):
        employee = make_employee()
        event = make_event(employee, correctClockInMethod=True)
        rule = make_rule([CLOCK_IN], points=10)

        # another run commits between our key snapshot and our write
        snapshot = store.list_grant_keys()
        monkeypatch.setattr(store, "list_grant_keys", lambda: snapshot)
        with store.transaction() as tx:
            tx.insert_grants([Grant(rule_id=rule.id, employee_id=employee.id, event_id=event.id, points_awarded=10)])
            tx.increment_balance(employee.id, 10)

        with pytest.raises(ConflictError):
            await make_engine().process_events()

        assert len(store.grants) == 1
        assert store.balance_of(employee.id) == 10
