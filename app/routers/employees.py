# app/routers/employees.py
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query, Request

from app.core.errors import AppError

router = APIRouter()


@router.get("")
def list_employees(
    request: Request,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> Dict[str, Any]:
    try:
        return request.app.state.engine.employees.list_employees(limit=limit, offset=offset)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{employee_id}")
def get_employee(request: Request, employee_id: str) -> Dict[str, Any]:
    try:
        return request.app.state.engine.employees.get_employee(employee_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
