"""
Cache invalidation for article and user-state writes.

New, edited or removed articles change every public listing and every
search result, so those two tiers are cleared wholesale.  Read-state and
favorite changes only affect one user's listings, so only that user's
keys in the user tier are removed.
"""

import logging
import re
from typing import Optional

from techtrend.cache.keys import user_prefix
from techtrend.cache.layered import LayeredCache
from techtrend.cache.tiers import Tier

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(text: str) -> str:
    """Escape Redis glob metacharacters so *text* matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class CacheInvalidator:
    """Clears layered-cache entries made stale by a write.

    Every hook returns the number of keys removed and never raises, so a
    cache problem cannot fail the write that triggered it.

    Args:
        cache: The layered cache to invalidate.
    """

    def __init__(self, cache: LayeredCache) -> None:
        self._cache = cache

    async def _clear_article_listings(self, reason: str, article_id: Optional[str]) -> int:
        logger.info(
            "Invalidating article listings",
            extra={"reason": reason, "article_id": article_id},
        )
        removed = 0
        for tier in (Tier.PUBLIC, Tier.SEARCH):
            removed += await self._cache.invalidate_tier(tier)
        return removed

    async def _clear_user(self, reason: str, user_id: str) -> int:
        if not user_id:
            return 0
        logger.info(
            "Invalidating user listings",
            extra={"reason": reason, "user_id": user_id},
        )
        pattern = escape_glob(user_prefix(user_id)) + "*"
        return await self._cache.invalidate_tier(Tier.USER_SCOPED, pattern)

    async def on_article_created(self, article_id: Optional[str] = None) -> int:
        return await self._clear_article_listings("article_created", article_id)

    async def on_article_updated(self, article_id: str) -> int:
        return await self._clear_article_listings("article_updated", article_id)

    async def on_article_deleted(self, article_id: str) -> int:
        return await self._clear_article_listings("article_deleted", article_id)

    async def on_read_state_changed(self, user_id: str) -> int:
        return await self._clear_user("read_state_changed", user_id)

    async def on_favorite_changed(self, user_id: str) -> int:
        return await self._clear_user("favorite_changed", user_id)

    async def on_user_deleted(self, user_id: str) -> int:
        return await self._clear_user("user_deleted", user_id)
