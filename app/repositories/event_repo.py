# app/repositories/event_repo.py
from __future__ import annotations

from typing import List, Sequence

from app.repositories.base import BaseRepository

# keeps the `in.(...)` filter well under URL length limits
ID_FILTER_CHUNK = 200


class EventRepository(BaseRepository):
    """
    events (append-only, written by upstream ingestion)
    """

    TABLE = "events"

    def list_all(self) -> List[dict]:
        return self._fetch_all(
            lambda: self.sb.table(self.TABLE).select("*").order("timestamp")
        )

    def list_by_ids(self, event_ids: Sequence[str]) -> List[dict]:
        ids = list(dict.fromkeys(event_ids))
        rows: List[dict] = []
        for i in range(0, len(ids), ID_FILTER_CHUNK):
            chunk = ids[i:i + ID_FILTER_CHUNK]
            res = (
                self.sb
                .table(self.TABLE)
                .select("*")
                .in_("id", chunk)
                .execute()
            )
            rows.extend(res.data or [])
        return rows
