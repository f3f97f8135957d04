# app/infra/supabase_store.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from app.repositories.employee_repo import EmployeeRepository
from app.repositories.event_repo import EventRepository
from app.repositories.reward_grant_repo import RewardGrantRepository
from app.repositories.reward_rule_repo import RewardRuleRepository
from app.services.rules.reward_store import (
    GrantKey,
    event_from_row,
    grant_to_row,
    rules_from_rows,
)
from app.services.rules.rule_models import Employee, Event, Grant, Rule

logger = logging.getLogger(__name__)


class _BufferedBatch:
    """
    Collects chunked grant inserts and balance deltas; nothing reaches the
    database until the surrounding transaction() exits cleanly.
    """

    def __init__(self):
        self.grant_chunks: List[List[Dict[str, Any]]] = []
        self.balance_deltas: Dict[str, int] = {}

    def insert_grants(self, grants: Sequence[Grant]) -> None:
        if grants:
            self.grant_chunks.append([grant_to_row(g) for g in grants])

    def increment_balance(self, employee_id: str, delta: int) -> None:
        self.balance_deltas[employee_id] = self.balance_deltas.get(employee_id, 0) + delta


class SupabaseRewardStore:
    """
    RewardStore / RuleStore / EmployeeStore over Supabase.
    Atomic batch writes go through the `apply_reward_batch` Postgres function
    (db/functions/apply_reward_batch.sql).
    """

    def __init__(self, sb):
        self.sb = sb
        self.rule_repo = RewardRuleRepository(sb)
        self.event_repo = EventRepository(sb)
        self.grant_repo = RewardGrantRepository(sb)
        self.employee_repo = EmployeeRepository(sb)

    # =====================================================
    # ENGINE READS
    # =====================================================
    def list_active_rules(self) -> List[Rule]:
        return rules_from_rows(self.rule_repo.list_active())

    def list_events(self, event_ids: Optional[Sequence[str]] = None) -> List[Event]:
        rows = (
            self.event_repo.list_by_ids(event_ids)
            if event_ids is not None
            else self.event_repo.list_all()
        )
        return [event_from_row(r) for r in rows]

    def list_grant_keys(self) -> Set[GrantKey]:
        return self.grant_repo.list_keys()

    # =====================================================
    # ENGINE WRITE
    # =====================================================
    @contextmanager
    def transaction(self) -> Iterator[_BufferedBatch]:
        batch = _BufferedBatch()
        yield batch

        if not batch.grant_chunks and not batch.balance_deltas:
            return

        self.grant_repo.apply_batch(
            grant_chunks=batch.grant_chunks,
            balance_deltas=batch.balance_deltas,
        )
        logger.info(
            "reward batch committed chunks=%d employees=%d",
            len(batch.grant_chunks),
            len(batch.balance_deltas),
        )

    # =====================================================
    # RULE ADMIN
    # =====================================================
    def create_rule(self, payload: Dict[str, Any]) -> Rule:
        return Rule.model_validate(self.rule_repo.create(payload))

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        row = self.rule_repo.get(rule_id)
        return Rule.model_validate(row) if row else None

    def list_rules(
        self, *, active: Optional[bool], limit: int, offset: int
    ) -> Tuple[List[Rule], int]:
        rows, total = self.rule_repo.list(active=active, limit=limit, offset=offset)
        return rules_from_rows(rows), total

    def update_rule(self, rule_id: str, changes: Dict[str, Any]) -> Optional[Rule]:
        row = self.rule_repo.update(rule_id, changes)
        return Rule.model_validate(row) if row else None

    # =====================================================
    # EMPLOYEES
    # =====================================================
    def get_employee(self, employee_id: str) -> Optional[Employee]:
        row = self.employee_repo.get(employee_id)
        return Employee.model_validate(row) if row else None

    def list_employees(self, *, limit: int, offset: int) -> Tuple[List[Employee], int]:
        rows, total = self.employee_repo.list_by_balance(limit=limit, offset=offset)
        return [Employee.model_validate(r) for r in rows], total

    def list_grants_for_employee(self, employee_id: str) -> List[Dict[str, Any]]:
        return self.grant_repo.list_by_employee(employee_id)
