from abc import ABC
from typing import Any, Callable, Dict, List

from fastapi.encoders import jsonable_encoder
from postgrest.exceptions import APIError

from app.core.errors import ConflictError

# PostgREST caps a single response at 1000 rows by default
PAGE_SIZE = 1000

UNIQUE_VIOLATION = "23505"


class BaseRepository(ABC):
    def __init__(self, sb):
        self.sb = sb

    def _encode(self, payload: Any) -> Any:
        """
        Ensure Supabase never receives:
        - datetime
        - Decimal
        - UUID
        - Pydantic models
        """
        return jsonable_encoder(payload)

    def _fetch_all(self, query: Callable[[], Any]) -> List[Dict[str, Any]]:
        """
        Page through a select.
        `query` must build a fresh, ordered builder on each call.
        """
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            res = query().range(start, start + PAGE_SIZE - 1).execute()
            batch = res.data or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                return rows
            start += PAGE_SIZE


def raise_conflict_if_duplicate(e: APIError, message: str) -> None:
    if getattr(e, "code", None) == UNIQUE_VIOLATION:
        raise ConflictError(message) from e
