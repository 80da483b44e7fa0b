"""
CacheMetricsExporter -- exposes layered-cache statistics.

Renders the per-tier counters of a :class:`LayeredCache` in Prometheus
text exposition format for ``/metrics`` scraping, and as the JSON shape
served by the health endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from techtrend.cache.layered import LayeredCache
from techtrend.cache.tiers import Tier
from techtrend.config import get_settings

logger = logging.getLogger(__name__)


class MetricsConfig(BaseModel):
    """Configuration for the CacheMetricsExporter.

    Attributes:
        enabled: Whether the Prometheus output is produced.
        metric_prefix: Prefix for every metric name.
    """

    enabled: bool = True
    metric_prefix: str = "techtrend"


class CacheMetricsExporter:
    """Formats layered-cache statistics for external consumers.

    Args:
        cache: The cache whose statistics are exported.
        config: Optional configuration; read from settings if omitted.
    """

    def __init__(
        self, cache: LayeredCache, config: Optional[MetricsConfig] = None
    ) -> None:
        if config is None:
            _s = get_settings().observability
            config = MetricsConfig(enabled=_s.enabled, metric_prefix=_s.metric_prefix)
        self._cache = cache
        self._config = config

    def get_prometheus_metrics(self) -> str:
        """Return cache metrics in Prometheus text exposition format.

        Returns:
            Multi-line string, or ``""`` when metrics are disabled.
        """
        if not self._config.enabled:
            return ""

        p = self._config.metric_prefix
        stats = self._cache.get_aggregate_stats()
        tiers = sorted(stats.per_tier.items())
        lines: List[str] = []

        for counter, help_text in (
            ("hits", "Cache hits by tier"),
            ("misses", "Cache misses by tier"),
            ("sets", "Cache writes by tier"),
        ):
            name = f"{p}_cache_{counter}_total"
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} counter")
            for tier, tier_stats in tiers:
                lines.append(f'{name}{{tier="{tier}"}} {getattr(tier_stats, counter)}')

        lines.append(f"# HELP {p}_cache_hit_rate Cache hit rate by tier")
        lines.append(f"# TYPE {p}_cache_hit_rate gauge")
        for tier, tier_stats in tiers:
            lines.append(f'{p}_cache_hit_rate{{tier="{tier}"}} {tier_stats.hit_rate:.4f}')

        lines.append(f"# HELP {p}_cache_overall_hit_rate Hit rate across all tiers")
        lines.append(f"# TYPE {p}_cache_overall_hit_rate gauge")
        lines.append(f"{p}_cache_overall_hit_rate {stats.overall.overall_hit_rate:.4f}")

        return "\n".join(lines) + "\n"

    def get_health(self) -> Dict[str, Any]:
        """Return aggregate stats in the health-endpoint shape.

        Each tier entry carries ``hits``, ``misses``, ``sets`` and
        ``hitRate`` plus the tier's ``namespace`` and ``ttlSeconds``.
        """
        report = self._cache.get_aggregate_stats().model_dump(by_alias=True)
        for tier_name, tier_report in report["perTier"].items():
            store = self._cache.store_for(Tier(tier_name))
            tier_report["namespace"] = store.namespace
            tier_report["ttlSeconds"] = store.ttl_seconds
        return report
