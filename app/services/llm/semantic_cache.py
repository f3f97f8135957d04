# app/services/llm/semantic_cache.py
"""
Semantic cache for LLM judgments.

- prompts are embedded offline (character trigrams hashed into a fixed
  number of buckets, L2-normalized); no network call
- a hit requires the same operator, the exact same field value and a prompt
  with cosine similarity >= threshold against a non-expired entry
- store() purges expired entries first, so the scan stays bounded by TTL
- lookup / store scan every entry: fine for a single-process demo cache,
  a shared deployment needs an ANN index behind the same interface
"""
from __future__ import annotations

import logging
import math
import time
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from app.services.llm.llm_models import LLMJudgment

logger = logging.getLogger(__name__)

EMBEDDING_DIM = 128
DEFAULT_SIMILARITY_THRESHOLD = 0.85
DEFAULT_TTL_SECONDS = 3600


# =========================================================
# EMBEDDING
# =========================================================

def trigram_embedding(text: str, dim: int = EMBEDDING_DIM) -> List[float]:
    normalized = (text or "").lower().strip()
    vector = [0.0] * dim

    for i in range(len(normalized) - 2):
        trigram = normalized[i:i + 3]
        # crc32 is stable across processes, unlike hash()
        vector[zlib.crc32(trigram.encode("utf-8")) % dim] += 1.0

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


def cosine_similarity(a: List[float], b: List[float]) -> float:
    if len(a) != len(b):
        return 0.0

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


# =========================================================
# STORE INTERFACE
# =========================================================

@dataclass
class CacheEntry:
    prompt_embedding: List[float]
    prompt: str
    field_value: str
    operator: str
    result: LLMJudgment
    timestamp: float
    hits: int = 0


@dataclass
class CacheHit:
    result: LLMJudgment
    similarity: float
    cached_prompt: str


@dataclass
class CacheStats:
    total_entries: int = 0
    valid_entries: int = 0
    total_hits: int = 0
    avg_hits_per_entry: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "total_entries": self.total_entries,
            "valid_entries": self.valid_entries,
            "total_hits": self.total_hits,
            "avg_hits_per_entry": self.avg_hits_per_entry,
            "cache_size": self.valid_entries,
        }


class JudgmentCache(Protocol):
    def lookup(self, prompt: str, field_value: str, *, operator: str = "llm") -> Optional[CacheHit]:
        ...

    def store(self, prompt: str, field_value: str, result: LLMJudgment, *, operator: str = "llm") -> None:
        ...

    def stats(self) -> CacheStats:
        ...

    def clear(self) -> None:
        ...

    def clear_expired(self) -> int:
        ...


# =========================================================
# IN-MEMORY IMPLEMENTATION
# =========================================================

class InMemorySemanticCache:
    """Process-local JudgmentCache. No locking: single writer assumed."""

    def __init__(
        self,
        *,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        embed: Callable[[str], List[float]] = trigram_embedding,
    ):
        self.similarity_threshold = similarity_threshold
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._embed = embed
        self._entries: Dict[Tuple[str, str, str], CacheEntry] = {}

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl_seconds

    def lookup(self, prompt: str, field_value: str, *, operator: str = "llm") -> Optional[CacheHit]:
        now = self._clock()
        embedding = self._embed(prompt)

        best: Optional[CacheEntry] = None
        best_similarity = 0.0

        for entry in self._entries.values():
            if self._expired(entry, now):
                continue
            # operator and judged content must match exactly; only the question may vary
            if entry.operator != operator or entry.field_value != field_value:
                continue

            similarity = cosine_similarity(embedding, entry.prompt_embedding)
            if similarity > best_similarity:
                best_similarity = similarity
                best = entry

        if best is None or best_similarity < self.similarity_threshold:
            return None

        best.hits += 1
        logger.debug(
            "cache hit similarity=%.3f prompt=%r cached_prompt=%r",
            best_similarity,
            prompt,
            best.prompt,
        )
        return CacheHit(
            result=best.result.model_copy(),
            similarity=best_similarity,
            cached_prompt=best.prompt,
        )

    def store(self, prompt: str, field_value: str, result: LLMJudgment, *, operator: str = "llm") -> None:
        purged = self.clear_expired()
        if purged:
            logger.debug("cache purged %d expired entries", purged)

        self._entries[(operator, prompt, field_value)] = CacheEntry(
            prompt_embedding=self._embed(prompt),
            prompt=prompt,
            field_value=field_value,
            operator=operator,
            result=result.model_copy(),
            timestamp=self._clock(),
        )

    def stats(self) -> CacheStats:
        now = self._clock()
        valid = [e for e in self._entries.values() if not self._expired(e, now)]
        total_hits = sum(e.hits for e in valid)
        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=len(valid),
            total_hits=total_hits,
            avg_hits_per_entry=(total_hits / len(valid)) if valid else 0.0,
        )

    def clear(self) -> None:
        self._entries.clear()

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
