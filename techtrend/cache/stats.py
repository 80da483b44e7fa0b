"""
Hit/miss/set statistics for the tiered article cache.

Counters live in process memory, start at zero and are never persisted.
Every mutation takes the aggregator lock, so concurrent request handlers
(threads or event-loop tasks) never lose an increment.
"""

import logging
import threading
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, computed_field

logger = logging.getLogger(__name__)


def hit_rate(hits: int, misses: int) -> float:
    """Return ``hits / (hits + misses)``, or 0.0 with no lookups."""
    total = hits + misses
    return hits / total if total > 0 else 0.0


class TierStats(BaseModel):
    """Counters for one cache tier.

    Attributes:
        hits: Lookups answered from the cache.
        misses: Lookups that found nothing.
        sets: Values written to the cache.
        hit_rate: Ratio of hits to lookups (serialized as ``hitRate``).
    """

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    sets: int = Field(default=0, ge=0)

    @computed_field(alias="hitRate")  # type: ignore[misc]
    @property
    def hit_rate(self) -> float:
        return hit_rate(self.hits, self.misses)


class OverallStats(BaseModel):
    """Totals across all cacheable tiers."""

    model_config = ConfigDict(populate_by_name=True)

    total_hits: int = Field(default=0, alias="totalHits")
    total_misses: int = Field(default=0, alias="totalMisses")
    overall_hit_rate: float = Field(default=0.0, alias="overallHitRate")


class AggregateStats(BaseModel):
    """Per-tier counters plus the overall summary.

    ``model_dump(by_alias=True)`` yields the shape exposed to dashboards::

        {"perTier": {"public": {"hits": .., "misses": .., "sets": ..,
                                "hitRate": ..}, ...},
         "overall": {"totalHits": .., "totalMisses": ..,
                     "overallHitRate": ..}}
    """

    model_config = ConfigDict(populate_by_name=True)

    per_tier: Dict[str, TierStats] = Field(default_factory=dict, alias="perTier")
    overall: OverallStats = Field(default_factory=OverallStats)

    @classmethod
    def from_tiers(cls, per_tier: Dict[str, TierStats]) -> "AggregateStats":
        total_hits = sum(s.hits for s in per_tier.values())
        total_misses = sum(s.misses for s in per_tier.values())
        return cls(
            per_tier=per_tier,
            overall=OverallStats(
                total_hits=total_hits,
                total_misses=total_misses,
                overall_hit_rate=hit_rate(total_hits, total_misses),
            ),
        )


class StatsAggregator:
    """Thread-safe per-scope cache counters.

    A scope is any string; the layered cache uses the tier name so each
    tier's adapter reports only its own traffic.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, Dict[str, int]] = {}

    def _bump(self, scope: str, counter: str) -> None:
        with self._lock:
            counters = self._counters.setdefault(
                scope, {"hits": 0, "misses": 0, "sets": 0}
            )
            counters[counter] += 1

    def record_hit(self, scope: str) -> None:
        self._bump(scope, "hits")

    def record_miss(self, scope: str) -> None:
        self._bump(scope, "misses")

    def record_set(self, scope: str) -> None:
        self._bump(scope, "sets")

    def get_stats(self, scope: str) -> TierStats:
        """Return a snapshot of *scope*'s counters (zeros if unseen)."""
        with self._lock:
            counters = dict(self._counters.get(scope, {}))
        return TierStats(**counters)

    def reset(self, scope: str) -> None:
        """Zero the counters of one scope."""
        with self._lock:
            self._counters.pop(scope, None)
        logger.info("Cache stats reset", extra={"scope": scope})

    def reset_all(self) -> None:
        """Zero every scope's counters."""
        with self._lock:
            self._counters.clear()
        logger.info("All cache stats reset")

    def scopes(self) -> List[str]:
        """Scopes that have recorded at least one event since the last reset."""
        with self._lock:
            return sorted(self._counters)
