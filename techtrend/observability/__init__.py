"""Metrics and health exposition for the cache core."""

from techtrend.observability.metrics import CacheMetricsExporter

__all__ = ["CacheMetricsExporter"]
