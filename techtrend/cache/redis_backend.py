"""
Redis-backed store for one tier of the article cache.

Values are JSON-encoded the way pydantic renders them and written with
the tier's TTL, so expiry is enforced by Redis itself.  Keys:
``{namespace}:{cache_key}``.  Hit, miss and set counts go to a shared
:class:`StatsAggregator` under the store's scope.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator
from pydantic_core import to_json
from redis.exceptions import RedisError

from techtrend.cache.stats import StatsAggregator, TierStats
from techtrend.exceptions import BackendUnavailableError, CacheSerializationError

logger = logging.getLogger(__name__)

# Keys deleted per DEL call during pattern invalidation
_DELETE_BATCH_SIZE = 500

_BACKEND_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class TierConfig(BaseModel):
    """Configuration for one tier's store.

    Attributes:
        namespace: Key prefix isolating this tier in Redis.
        ttl_seconds: Time-to-live applied to every entry written.
        single_flight: Share one in-flight computation between concurrent
            misses of the same key.
    """

    namespace: str
    ttl_seconds: int = Field(gt=0)
    single_flight: bool = False

    @field_validator("namespace")
    @classmethod
    def _namespace_not_blank(cls, value: str) -> str:
        value = value.strip().rstrip(":")
        if not value:
            raise ValueError("namespace must not be empty")
        return value


def _encode(value: Any) -> str:
    """Serialize a value to JSON for Redis storage.

    Models, dataclasses, datetimes, UUIDs and decimals are rendered the
    way pydantic renders them in JSON mode.

    Raises:
        CacheSerializationError: If the value has no JSON form.
    """
    try:
        return to_json(value).decode("utf-8")
    except (TypeError, ValueError) as e:
        raise CacheSerializationError(
            f"Value of type {type(value).__name__} is not JSON serializable"
        ) from e


def _as_stored(value: Any) -> Any:
    """Return *value* in the shape a cache hit would return it.

    Values with no JSON form are returned unchanged.
    """
    try:
        return json.loads(_encode(value))
    except CacheSerializationError:
        return value


class TieredStore:
    """Read-through cache over one Redis namespace.

    Args:
        client: A ``redis.asyncio.Redis`` (or compatible) client created
            with ``decode_responses=True``.  Shared across tiers.
        config: Namespace, TTL and single-flight setting.
        stats: Aggregator receiving this store's counters.  A private one
            is created when omitted.
        scope: Name the counters are recorded under (defaults to the
            namespace).
    """

    def __init__(
        self,
        client: Any,
        config: TierConfig,
        stats: Optional[StatsAggregator] = None,
        scope: Optional[str] = None,
    ) -> None:
        self._client = client
        self._config = config
        self._stats = stats if stats is not None else StatsAggregator()
        self._scope = scope or config.namespace
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}

    @property
    def namespace(self) -> str:
        return self._config.namespace

    @property
    def ttl_seconds(self) -> int:
        return self._config.ttl_seconds

    def _key(self, cache_key: str) -> str:
        """Return the full Redis key for a cache key."""
        return f"{self._config.namespace}:{cache_key}"

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def _lookup(self, key: str) -> Tuple[bool, Any]:
        """Fetch and decode *key*, recording a hit or miss.

        Returns:
            ``(found, value)``; a stored JSON ``null`` is found with value
            ``None``.

        Raises:
            BackendUnavailableError: If Redis cannot be reached.
        """
        rkey = self._key(key)
        try:
            data = await self._client.get(rkey)
        except _BACKEND_ERRORS as e:
            raise BackendUnavailableError(f"Redis get failed for {rkey}: {e}") from e

        if data is None:
            self._stats.record_miss(self._scope)
            logger.debug("Cache miss", extra={"cache_key": rkey})
            return False, None

        try:
            value = json.loads(data)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Cache entry decode failed",
                extra={"cache_key": rkey, "error": str(e)},
            )
            await self.delete(key)
            self._stats.record_miss(self._scope)
            return False, None

        self._stats.record_hit(self._scope)
        logger.debug("Cache hit", extra={"cache_key": rkey})
        return True, value

    async def get(self, key: str) -> Optional[Any]:
        """Look up a cached value.

        Args:
            key: Tier-relative cache key.

        Returns:
            The decoded value on a hit, ``None`` on a miss.

        Raises:
            BackendUnavailableError: If Redis cannot be reached.
        """
        _, value = await self._lookup(key)
        return value

    async def set(self, key: str, value: Any) -> None:
        """Store a value under *key* with this tier's TTL.

        Overwrites any existing entry.

        Raises:
            CacheSerializationError: If the value cannot be JSON-encoded.
            BackendUnavailableError: If Redis cannot be reached.
        """
        await self._write(key, _encode(value))

    async def _write(self, key: str, payload: str) -> None:
        rkey = self._key(key)
        try:
            await self._client.set(rkey, payload, ex=self._config.ttl_seconds)
        except _BACKEND_ERRORS as e:
            raise BackendUnavailableError(f"Redis set failed for {rkey}: {e}") from e
        self._stats.record_set(self._scope)
        logger.debug(
            "Cache set",
            extra={"cache_key": rkey, "ttl_seconds": self._config.ttl_seconds},
        )

    async def get_or_populate(
        self, key: str, compute_fn: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value for *key*, computing and storing it on a miss.

        ``compute_fn`` is not called on a hit.  If it raises or is
        cancelled nothing is stored and the exception propagates as-is.
        A Redis outage never fails the call: the value is computed
        directly and returned uncached.

        Hits and misses return the same shape: the JSON-decoded form of
        the computed value (models and dataclasses become dicts, datetimes
        ISO 8601 strings).  Values with no JSON form are returned as
        computed and are never cached.

        Args:
            key: Tier-relative cache key.
            compute_fn: Zero-argument coroutine function producing the value.

        Returns:
            The cached or freshly computed value, as stored.
        """
        try:
            found, value = await self._lookup(key)
        except BackendUnavailableError as e:
            logger.warning(
                "Cache backend unavailable, computing directly",
                extra={"cache_key": self._key(key), "error": str(e)},
            )
            self._stats.record_miss(self._scope)
            return _as_stored(await compute_fn())

        if found:
            return value

        if not self._config.single_flight:
            return await self._populate(key, compute_fn)

        pending = self._inflight.get(key)
        if pending is not None:
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # The leading caller was cancelled; compute on our own.
                return await self._populate(key, compute_fn)

        task = asyncio.ensure_future(self._populate(key, compute_fn))
        self._inflight[key] = task
        try:
            return await task
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    async def _populate(self, key: str, compute_fn: Callable[[], Awaitable[Any]]) -> Any:
        value = await compute_fn()
        try:
            payload = _encode(value)
        except CacheSerializationError as e:
            logger.error(
                "Cache populate failed, returning uncached value",
                extra={"cache_key": self._key(key), "error": str(e)},
            )
            return value
        try:
            await self._write(key, payload)
        except BackendUnavailableError as e:
            logger.error(
                "Cache populate failed, returning uncached value",
                extra={"cache_key": self._key(key), "error": str(e)},
            )
        return json.loads(payload)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def delete(self, key: str) -> bool:
        """Remove one entry.

        Returns:
            ``True`` if an entry was removed, ``False`` otherwise
            (including on backend errors, which are logged).
        """
        rkey = self._key(key)
        try:
            deleted = await self._client.delete(rkey)
        except _BACKEND_ERRORS as e:
            logger.warning(
                "Redis delete failed",
                extra={"cache_key": rkey, "error": str(e)},
            )
            return False
        if deleted:
            logger.info("Cache entry invalidated", extra={"cache_key": rkey})
        return bool(deleted)

    async def invalidate_pattern(self, pattern: str = "*") -> int:
        """Remove every entry in this namespace matching a glob *pattern*.

        Uses ``SCAN`` rather than ``KEYS`` and deletes in batches.

        Args:
            pattern: Glob relative to the namespace (``*`` clears the tier).

        Returns:
            Number of keys removed.  Backend errors are logged and the
            count removed before the failure is returned.
        """
        match = self._key(pattern)
        removed = 0
        batch: List[str] = []
        try:
            async for rkey in self._client.scan_iter(match=match, count=100):
                batch.append(rkey)
                if len(batch) >= _DELETE_BATCH_SIZE:
                    removed += await self._client.delete(*batch)
                    batch = []
            if batch:
                removed += await self._client.delete(*batch)
        except _BACKEND_ERRORS as e:
            logger.error(
                "Redis pattern invalidation failed",
                extra={"pattern": match, "removed": removed, "error": str(e)},
            )
            return removed
        logger.info(
            "Cache pattern invalidated",
            extra={"pattern": match, "removed": removed},
        )
        return removed

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self) -> TierStats:
        """Return this store's hit/miss/set counters."""
        return self._stats.get_stats(self._scope)

    def reset_stats(self) -> None:
        """Zero this store's counters."""
        self._stats.reset(self._scope)
