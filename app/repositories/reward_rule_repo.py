# app/repositories/reward_rule_repo.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.repositories.base import BaseRepository


class RewardRuleRepository(BaseRepository):
    """
    reward_rules
    - conditions stored as jsonb list of {field, op, value}
    - never physically deleted (active=false is the soft delete)
    """

    TABLE = "reward_rules"

    # =====================================================
    # READ
    # =====================================================
    def list_active(self) -> List[dict]:
        return self._fetch_all(
            lambda: (
                self.sb
                .table(self.TABLE)
                .select("*")
                .eq("active", True)
                .order("created_at")
            )
        )

    def list(
        self,
        *,
        active: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[dict], int]:
        q = self.sb.table(self.TABLE).select("*", count="exact")
        if active is not None:
            q = q.eq("active", active)

        res = (
            q.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return res.data or [], int(res.count or 0)

    def get(self, rule_id: str) -> dict | None:
        res = (
            self.sb
            .table(self.TABLE)
            .select("*")
            .eq("id", rule_id)
            .limit(1)
            .execute()
        )
        return res.data[0] if res.data else None

    # =====================================================
    # WRITE
    # =====================================================
    def create(self, payload: Dict[str, Any]) -> dict:
        res = self.sb.table(self.TABLE).insert(self._encode(payload)).execute()
        if not res.data:
            raise RuntimeError("Failed to create reward rule")
        return res.data[0]

    def update(self, rule_id: str, changes: Dict[str, Any]) -> dict | None:
        payload = dict(changes)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()

        res = (
            self.sb
            .table(self.TABLE)
            .update(self._encode(payload))
            .eq("id", rule_id)
            .execute()
        )
        return res.data[0] if res.data else None
