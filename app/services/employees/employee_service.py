# app/services/employees/employee_service.py
from __future__ import annotations

from typing import Any, Dict

from app.core.errors import NotFoundError, ValidationError
from app.services.rules.reward_store import EmployeeStore

MAX_PAGE_SIZE = 100


class EmployeeService:
    def __init__(self, store: EmployeeStore):
        self.store = store

    def list_employees(self, *, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Leaderboard: highest point balance first."""
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit})
        if offset < 0:
            raise ValidationError("offset must be >= 0", {"offset": offset})

        employees, total = self.store.list_employees(limit=limit, offset=offset)
        return {
            "data": employees,
            "meta": {"total": total, "limit": limit, "offset": offset},
        }

    def get_employee(self, employee_id: str) -> Dict[str, Any]:
        employee = self.store.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)

        return {
            **employee.model_dump(),
            "grants": self.store.list_grants_for_employee(employee_id),
        }
