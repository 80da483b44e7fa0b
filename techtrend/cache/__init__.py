"""Tiered article-list cache (public / user / search)."""

from techtrend.cache.classifier import classify
from techtrend.cache.invalidation import CacheInvalidator
from techtrend.cache.keys import build_key, normalize_search, user_prefix
from techtrend.cache.layered import LayeredCache, LayeredCacheConfig, create_layered_cache
from techtrend.cache.redis_backend import TierConfig, TieredStore
from techtrend.cache.stats import AggregateStats, StatsAggregator, TierStats
from techtrend.cache.tiers import Tier, normalize_params

__all__ = [
    "AggregateStats",
    "CacheInvalidator",
    "LayeredCache",
    "LayeredCacheConfig",
    "StatsAggregator",
    "Tier",
    "TierConfig",
    "TierStats",
    "TieredStore",
    "build_key",
    "classify",
    "create_layered_cache",
    "normalize_params",
    "normalize_search",
    "user_prefix",
]
