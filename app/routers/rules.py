# app/routers/rules.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from app.core.errors import AppError
from app.services.rules.rule_models import (
    CreateRuleRequest,
    Rule,
    SimulateRuleRequest,
    SimulationResult,
    UpdateRuleRequest,
)

router = APIRouter()


def _http(e: AppError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=Rule, status_code=status.HTTP_201_CREATED)
def create_rule(request: Request, payload: CreateRuleRequest):
    try:
        return request.app.state.engine.rules.create_rule(payload)
    except AppError as e:
        raise _http(e)


@router.get("")
def list_rules(
    request: Request,
    active: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> Dict[str, Any]:
    try:
        return request.app.state.engine.rules.list_rules(active=active, limit=limit, offset=offset)
    except AppError as e:
        raise _http(e)


# declared before /{rule_id} so "simulate" is never read as an id
@router.post("/simulate", response_model=SimulationResult)
async def simulate_rule(request: Request, payload: SimulateRuleRequest):
    """
    Dry run: evaluates the conditions against `record`.
    No grants, no balance changes.
    """
    return await request.app.state.engine.simulator.simulate(payload.conditions, payload.record)


@router.get("/{rule_id}", response_model=Rule)
def get_rule(request: Request, rule_id: str):
    try:
        return request.app.state.engine.rules.get_rule(rule_id)
    except AppError as e:
        raise _http(e)


@router.put("/{rule_id}", response_model=Rule)
def update_rule(request: Request, rule_id: str, payload: UpdateRuleRequest):
    try:
        return request.app.state.engine.rules.update_rule(rule_id, payload)
    except AppError as e:
        raise _http(e)


@router.delete("/{rule_id}", response_model=Rule)
def deactivate_rule(request: Request, rule_id: str):
    try:
        return request.app.state.engine.rules.deactivate_rule(rule_id)
    except AppError as e:
        raise _http(e)


@router.get("/{rule_id}/llm-conditions")
def rule_llm_conditions(request: Request, rule_id: str) -> Dict[str, Any]:
    try:
        return request.app.state.engine.rules.llm_conditions(rule_id)
    except AppError as e:
        raise _http(e)
