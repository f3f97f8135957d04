# app/services/rules/rule_models.py

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.rules.condition_models import Condition


# =========================================================
# ENTITIES
# =========================================================

class Event(BaseModel):
    """
    Immutable fact about an employee at a point in time.
    `metadata` is open-ended (shift times, documentation, ...).
    """
    model_config = ConfigDict(frozen=True)

    id: str
    employee_id: str
    type: str
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Rule(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    event_type: str = "shift"
    conditions: List[Condition] = Field(default_factory=list)
    points: int
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Grant(BaseModel):
    """Durable proof that (rule_id, event_id) paid out. Never mutated."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    rule_id: str
    employee_id: str
    event_id: str
    points_awarded: int
    created_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.rule_id, self.event_id)


class Employee(BaseModel):
    id: str
    name: str
    point_balance: int = 0
    onboarded: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =========================================================
# RESULTS
# =========================================================

class ProcessResult(BaseModel):
    total_events: int = 0
    total_rules_evaluated: int = 0
    grants_created: int = 0
    total_points_awarded: int = 0
    skipped_existing: int = 0
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = 0


class SimulationConditionResult(BaseModel):
    field: str
    op: str
    value: Any = None
    actual: Any = None
    passed: bool
    reasoning: Optional[str] = None


class SimulationResult(BaseModel):
    matches: bool
    condition_results: List[SimulationConditionResult] = Field(default_factory=list)
    duration_ms: int = 0


# =========================================================
# REQUESTS
# =========================================================

class CreateRuleRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    event_type: str = "shift"
    conditions: List[Condition] = Field(..., min_length=1)
    points: int = Field(..., gt=0)


class UpdateRuleRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    event_type: Optional[str] = None
    conditions: Optional[List[Condition]] = Field(default=None, min_length=1)
    points: Optional[int] = Field(default=None, gt=0)
    active: Optional[bool] = None


class SimulateRuleRequest(BaseModel):
    conditions: List[Condition] = Field(default_factory=list)
    record: Dict[str, Any] = Field(default_factory=dict)


class ProcessEventsRequest(BaseModel):
    event_ids: List[str] = Field(..., min_length=1)
