# app/repositories/reward_grant_repo.py
from __future__ import annotations

from typing import Any, Dict, List, Set, Tuple

from postgrest.exceptions import APIError

from app.repositories.base import BaseRepository, raise_conflict_if_duplicate


class RewardGrantRepository(BaseRepository):
    """
    reward_grants
    Contract:
    - UNIQUE (rule_id, event_id) is the idempotency guarantee
    - rows are immutable, never deleted
    """

    TABLE = "reward_grants"
    BATCH_FN = "apply_reward_batch"

    # =====================================================
    # READ
    # =====================================================
    def list_keys(self) -> Set[Tuple[str, str]]:
        rows = self._fetch_all(
            lambda: (
                self.sb
                .table(self.TABLE)
                .select("rule_id, event_id")
                .order("id")
            )
        )
        return {(str(r["rule_id"]), str(r["event_id"])) for r in rows}

    def list_by_employee(self, employee_id: str) -> List[dict]:
        res = (
            self.sb
            .table(self.TABLE)
            .select("id, rule_id, event_id, points_awarded, created_at, reward_rules(name)")
            .eq("employee_id", employee_id)
            .order("created_at", desc=True)
            .execute()
        )
        out: List[dict] = []
        for row in res.data or []:
            rule = row.pop("reward_rules", None) or {}
            row["rule_name"] = rule.get("name")
            out.append(row)
        return out

    # =====================================================
    # WRITE (single database transaction)
    # =====================================================
    def apply_batch(
        self,
        *,
        grant_chunks: List[List[Dict[str, Any]]],
        balance_deltas: Dict[str, int],
    ) -> None:
        """
        One RPC = one Postgres transaction:
        every chunk is inserted and every balance incremented, or nothing is.
        """
        params = {
            "p_grant_chunks": self._encode(grant_chunks),
            "p_balance_deltas": [
                {"employee_id": employee_id, "delta": delta}
                for employee_id, delta in balance_deltas.items()
            ],
        }
        try:
            self.sb.rpc(self.BATCH_FN, params).execute()
        except APIError as e:
            raise_conflict_if_duplicate(e, "Reward grant already exists for (rule_id, event_id)")
            raise
