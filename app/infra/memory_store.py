# app/infra/memory_store.py
"""
Process-local store with the same contract as the Supabase one:
- UNIQUE (rule_id, event_id) on grants -> ConflictError
- transaction() works on a copy and swaps it in only on success
Used for STORAGE_BACKEND=memory (demos) and tests.
"""
from __future__ import annotations

import copy
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from app.core.errors import ConflictError, NotFoundError
from app.services.rules.reward_store import GrantKey
from app.services.rules.rule_models import Employee, Event, Grant, Rule


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Tables:
    rules: Dict[str, Rule] = field(default_factory=dict)
    events: Dict[str, Event] = field(default_factory=dict)
    employees: Dict[str, Employee] = field(default_factory=dict)
    grants: List[Grant] = field(default_factory=list)
    grant_keys: Set[GrantKey] = field(default_factory=set)


class _MemoryTransaction:
    def __init__(self, tables: _Tables):
        self.tables = tables

    def insert_grants(self, grants: Sequence[Grant]) -> None:
        for g in grants:
            if g.key in self.tables.grant_keys:
                raise ConflictError(
                    f"Reward grant already exists for rule {g.rule_id} / event {g.event_id}"
                )
            stored = g.model_copy(update={"id": g.id or str(uuid.uuid4()), "created_at": _now()})
            self.tables.grants.append(stored)
            self.tables.grant_keys.add(g.key)

    def increment_balance(self, employee_id: str, delta: int) -> None:
        employee = self.tables.employees.get(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        self.tables.employees[employee_id] = employee.model_copy(
            update={"point_balance": employee.point_balance + delta, "updated_at": _now()}
        )


class InMemoryRewardStore:
    def __init__(self):
        self._tables = _Tables()

    # =====================================================
    # SEEDING (ingestion is upstream; these stand in for it)
    # =====================================================
    def add_employee(self, employee: Employee) -> Employee:
        self._tables.employees[employee.id] = employee
        return employee

    def add_event(self, event: Event) -> Event:
        self._tables.events[event.id] = event
        return event

    def add_rule(self, rule: Rule) -> Rule:
        self._tables.rules[rule.id] = rule
        return rule

    # =====================================================
    # ENGINE
    # =====================================================
    def list_active_rules(self) -> List[Rule]:
        return [r for r in self._tables.rules.values() if r.active]

    def list_events(self, event_ids: Optional[Sequence[str]] = None) -> List[Event]:
        if event_ids is None:
            return list(self._tables.events.values())
        wanted = set(event_ids)
        return [e for e in self._tables.events.values() if e.id in wanted]

    def list_grant_keys(self) -> Set[GrantKey]:
        return set(self._tables.grant_keys)

    @contextmanager
    def transaction(self) -> Iterator[_MemoryTransaction]:
        staged = copy.deepcopy(self._tables)
        yield _MemoryTransaction(staged)
        self._tables = staged

    # =====================================================
    # READ HELPERS
    # =====================================================
    @property
    def grants(self) -> List[Grant]:
        return list(self._tables.grants)

    def balance_of(self, employee_id: str) -> int:
        return self._tables.employees[employee_id].point_balance

    # =====================================================
    # RULE ADMIN
    # =====================================================
    def create_rule(self, payload: Dict[str, Any]) -> Rule:
        now = _now()
        rule = Rule.model_validate({
            **payload,
            "id": str(uuid.uuid4()),
            "active": payload.get("active", True),
            "created_at": now,
            "updated_at": now,
        })
        self._tables.rules[rule.id] = rule
        return rule

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._tables.rules.get(rule_id)

    def list_rules(
        self, *, active: Optional[bool], limit: int, offset: int
    ) -> Tuple[List[Rule], int]:
        rules = [
            r for r in self._tables.rules.values()
            if active is None or r.active == active
        ]
        rules.sort(key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return rules[offset:offset + limit], len(rules)

    def update_rule(self, rule_id: str, changes: Dict[str, Any]) -> Optional[Rule]:
        rule = self._tables.rules.get(rule_id)
        if rule is None:
            return None
        updated = Rule.model_validate({
            **rule.model_dump(),
            **changes,
            "updated_at": _now(),
        })
        self._tables.rules[rule_id] = updated
        return updated

    # =====================================================
    # EMPLOYEES
    # =====================================================
    def get_employee(self, employee_id: str) -> Optional[Employee]:
        return self._tables.employees.get(employee_id)

    def list_employees(self, *, limit: int, offset: int) -> Tuple[List[Employee], int]:
        employees = sorted(
            self._tables.employees.values(),
            key=lambda e: e.point_balance,
            reverse=True,
        )
        return employees[offset:offset + limit], len(employees)

    def list_grants_for_employee(self, employee_id: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for g in sorted(
            (g for g in self._tables.grants if g.employee_id == employee_id),
            key=lambda g: g.created_at or _now(),
            reverse=True,
        ):
            rule = self._tables.rules.get(g.rule_id)
            rows.append({
                "id": g.id,
                "rule_id": g.rule_id,
                "rule_name": rule.name if rule else None,
                "event_id": g.event_id,
                "points_awarded": g.points_awarded,
                "created_at": g.created_at,
            })
        return rows
