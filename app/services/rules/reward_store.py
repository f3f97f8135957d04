# app/services/rules/reward_store.py
"""
Storage capabilities the rule engine and admin services depend on.

RewardStore.transaction() is the unit of atomicity: grants inserted and
balances incremented inside it either all land or none do. A duplicate
(rule_id, event_id) must surface as ConflictError.
"""
from __future__ import annotations

import logging
from typing import (
    Any,
    ContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
)

from pydantic import ValidationError as PydanticValidationError

from app.services.rules.rule_models import Employee, Event, Grant, Rule

logger = logging.getLogger(__name__)

GrantKey = Tuple[str, str]  # (rule_id, event_id)


class RewardTransaction(Protocol):
    def insert_grants(self, grants: Sequence[Grant]) -> None:
        ...

    def increment_balance(self, employee_id: str, delta: int) -> None:
        ...


class RewardStore(Protocol):
    def list_active_rules(self) -> List[Rule]:
        ...

    def list_events(self, event_ids: Optional[Sequence[str]] = None) -> List[Event]:
        ...

    def list_grant_keys(self) -> Set[GrantKey]:
        ...

    def transaction(self) -> ContextManager[RewardTransaction]:
        ...


class RuleStore(Protocol):
    def create_rule(self, payload: Dict[str, Any]) -> Rule:
        ...

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        ...

    def list_rules(
        self, *, active: Optional[bool], limit: int, offset: int
    ) -> Tuple[List[Rule], int]:
        ...

    def update_rule(self, rule_id: str, changes: Dict[str, Any]) -> Optional[Rule]:
        ...


class EmployeeStore(Protocol):
    def get_employee(self, employee_id: str) -> Optional[Employee]:
        ...

    def list_employees(self, *, limit: int, offset: int) -> Tuple[List[Employee], int]:
        ...

    def list_grants_for_employee(self, employee_id: str) -> List[Dict[str, Any]]:
        ...


# =========================================================
# ROW MAPPING
# =========================================================

def rules_from_rows(rows: Sequence[Dict[str, Any]]) -> List[Rule]:
    """
    Rows that fail condition validation are dropped with an error log:
    conditions are validated on write, so this only trips on hand-edited data.
    """
    rules: List[Rule] = []
    for row in rows:
        try:
            rules.append(Rule.model_validate(row))
        except PydanticValidationError as e:
            logger.error("reward rule %s has invalid shape; skipped: %s", row.get("id"), e)
    return rules


def event_from_row(row: Dict[str, Any]) -> Event:
    data = dict(row)
    data["id"] = str(data["id"])
    data["employee_id"] = str(data["employee_id"])
    data["metadata"] = data.get("metadata") or {}
    return Event.model_validate(data)


def grant_to_row(grant: Grant) -> Dict[str, Any]:
    return {
        "rule_id": grant.rule_id,
        "employee_id": grant.employee_id,
        "event_id": grant.event_id,
        "points_awarded": grant.points_awarded,
    }
