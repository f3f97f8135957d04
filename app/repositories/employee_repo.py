# app/repositories/employee_repo.py
from __future__ import annotations

from typing import List, Tuple

from app.repositories.base import BaseRepository


class EmployeeRepository(BaseRepository):
    """
    employees
    - point_balance is only ever changed by apply_reward_batch (atomic add)
    """

    TABLE = "employees"

    def get(self, employee_id: str) -> dict | None:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("id", employee_id)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    def list_by_balance(self, *, limit: int = 50, offset: int = 0) -> Tuple[List[dict], int]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*", count="exact")
            .order("point_balance", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return res.data or [], int(res.count or 0)
