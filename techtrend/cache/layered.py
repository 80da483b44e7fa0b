"""
Layered article-list cache.

Routes each article-list request to one of three Redis-backed tiers:

- public:  plain listings (no search, no per-user filter, no tags), 1 hour
- user:    per-user read/unread listings, 15 minutes
- search:  full-text search results, 10 minutes

Requests that fit no tier (tag filters and other high-cardinality
combinations) bypass the cache and go straight to the caller's compute
function.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as aioredis
from pydantic import BaseModel, Field

from techtrend.cache.classifier import classify
from techtrend.cache.keys import build_key
from techtrend.cache.redis_backend import TierConfig, TieredStore
from techtrend.cache.stats import AggregateStats, StatsAggregator
from techtrend.cache.tiers import CACHEABLE_TIERS, QueryParams, Tier, normalize_params
from techtrend.config import CacheSettings, get_settings
from techtrend.exceptions import (
    BackendUnavailableError,
    CacheSerializationError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


class LayeredCacheConfig(BaseModel):
    """Per-tier store configuration for :class:`LayeredCache`."""

    public: TierConfig = Field(
        default_factory=lambda: TierConfig(
            namespace="@techtrend/cache:l1:public", ttl_seconds=3600
        )
    )
    user: TierConfig = Field(
        default_factory=lambda: TierConfig(
            namespace="@techtrend/cache:l2:user", ttl_seconds=900
        )
    )
    search: TierConfig = Field(
        default_factory=lambda: TierConfig(
            namespace="@techtrend/cache:l3:search", ttl_seconds=600
        )
    )

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "LayeredCacheConfig":
        """Build tier configs from the ``cache`` settings section.

        Raises:
            ConfigurationError: If a namespace or TTL is invalid.
        """
        try:
            return cls(
                public=TierConfig(
                    namespace=settings.public_namespace,
                    ttl_seconds=settings.public_ttl_seconds,
                    single_flight=settings.single_flight,
                ),
                user=TierConfig(
                    namespace=settings.user_namespace,
                    ttl_seconds=settings.user_ttl_seconds,
                    single_flight=settings.single_flight,
                ),
                search=TierConfig(
                    namespace=settings.search_namespace,
                    ttl_seconds=settings.search_ttl_seconds,
                    single_flight=settings.single_flight,
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid cache tier settings: {e}") from e

    def for_tier(self, tier: Tier) -> TierConfig:
        return getattr(self, tier.value)


class LayeredCache:
    """Three-tier read-through cache for article-list requests.

    Holds no request state of its own: it classifies, derives the key and
    dispatches to the matching :class:`TieredStore`.  Construct one per
    process and hand it to request handlers.

    Args:
        client: Shared ``redis.asyncio`` client (``decode_responses=True``).
        config: Tier namespaces and TTLs; defaults apply if omitted.
        stats: Aggregator for all tiers; a fresh one if omitted.
    """

    def __init__(
        self,
        client: Any,
        config: Optional[LayeredCacheConfig] = None,
        stats: Optional[StatsAggregator] = None,
    ) -> None:
        self._config = config or LayeredCacheConfig()
        self._stats = stats if stats is not None else StatsAggregator()
        self._stores: Dict[Tier, TieredStore] = {
            tier: TieredStore(
                client,
                self._config.for_tier(tier),
                stats=self._stats,
                scope=tier.value,
            )
            for tier in CACHEABLE_TIERS
        }
        logger.info(
            "LayeredCache initialised",
            extra={
                tier.value: store.namespace for tier, store in self._stores.items()
            },
        )

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def tier_for(self, params: QueryParams) -> Tier:
        """Return the tier *params* would be served from."""
        return classify(params)

    def key_for(self, params: QueryParams) -> str:
        """Return the tier-relative key for *params* (``""`` if uncacheable)."""
        normalized = normalize_params(params)
        return build_key(classify(normalized), normalized)

    def store_for(self, tier: Tier) -> TieredStore:
        """Return the store backing a cacheable *tier*.

        Raises:
            KeyError: For :attr:`Tier.UNCACHEABLE`.
        """
        return self._stores[tier]

    # ------------------------------------------------------------------
    # Fetch / store
    # ------------------------------------------------------------------

    async def fetch(
        self,
        params: QueryParams,
        compute_fn: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> Any:
        """Serve an article-list request from its tier, computing on a miss.

        Args:
            params: The request's query parameters.
            compute_fn: Zero-argument coroutine function producing the
                response.  Errors from it propagate and are never cached.

        Returns:
            The cached or computed value in its JSON-decoded form, so a
            miss and a later hit return equal values.  Uncacheable requests
            return whatever ``compute_fn`` returns.  Without ``compute_fn``, the
            cached value or ``None`` (also ``None`` when the request is
            uncacheable or Redis is unreachable).
        """
        normalized = normalize_params(params)
        tier = classify(normalized)

        if tier is Tier.UNCACHEABLE:
            logger.debug("Request bypasses cache", extra={"params": normalized})
            return await compute_fn() if compute_fn is not None else None

        key = build_key(tier, normalized)
        store = self._stores[tier]
        logger.debug("Checking cache tier", extra={"tier": tier.value, "cache_key": key})

        if compute_fn is not None:
            return await store.get_or_populate(key, compute_fn)

        try:
            return await store.get(key)
        except BackendUnavailableError as e:
            logger.warning(
                "Cache backend unavailable on lookup",
                extra={"tier": tier.value, "cache_key": key, "error": str(e)},
            )
            return None

    async def store(self, params: QueryParams, value: Any) -> None:
        """Write *value* to the tier *params* belong to.

        Uncacheable requests are ignored.  Write failures are logged and
        never raised.
        """
        normalized = normalize_params(params)
        tier = classify(normalized)
        if tier is Tier.UNCACHEABLE:
            return

        key = build_key(tier, normalized)
        try:
            await self._stores[tier].set(key, value)
        except (BackendUnavailableError, CacheSerializationError) as e:
            logger.error(
                "Cache store failed",
                extra={"tier": tier.value, "cache_key": key, "error": str(e)},
            )

    async def invalidate_tier(self, tier: Tier, pattern: str = "*") -> int:
        """Remove entries of one tier matching *pattern*.

        Returns:
            Number of keys removed (0 for :attr:`Tier.UNCACHEABLE`).
        """
        if tier is Tier.UNCACHEABLE:
            return 0
        return await self._stores[tier].invalidate_pattern(pattern)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_aggregate_stats(self) -> AggregateStats:
        """Return per-tier counters and the overall hit rate."""
        return AggregateStats.from_tiers(
            {tier.value: store.get_stats() for tier, store in self._stores.items()}
        )

    def reset_all_stats(self) -> None:
        """Zero the counters of every tier."""
        for store in self._stores.values():
            store.reset_stats()


def create_layered_cache(
    redis_url: Optional[str] = None,
    settings: Optional[CacheSettings] = None,
    _redis_client: Optional[Any] = None,
) -> LayeredCache:
    """Build a :class:`LayeredCache` from application settings.

    Args:
        redis_url: Overrides ``settings.redis_url``.
        settings: Cache settings; loaded via :func:`get_settings` if omitted.
        _redis_client: Pre-built client (testing).

    Returns:
        A ready-to-use LayeredCache sharing one Redis connection pool.
    """
    settings = settings or get_settings().cache
    config = LayeredCacheConfig.from_settings(settings)
    if _redis_client is not None:
        client = _redis_client
    else:
        client = aioredis.from_url(
            redis_url or settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.socket_timeout_seconds,
        )
    return LayeredCache(client, config=config)
