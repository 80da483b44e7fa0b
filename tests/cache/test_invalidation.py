"""Tests for CacheInvalidator."""

import pytest

from techtrend.cache.invalidation import CacheInvalidator, escape_glob
from techtrend.cache.layered import LayeredCache

PUBLIC = {"page": 1}
SEARCH = {"search": "python"}
USER_1 = {"userId": "u1", "readFilter": "unread"}
USER_2 = {"userId": "u2", "readFilter": "unread"}


@pytest.fixture
async def populated(cache: LayeredCache) -> LayeredCache:
    for params in (PUBLIC, SEARCH, USER_1, USER_2):
        await cache.store(params, "cached")
    return cache


@pytest.fixture
def invalidator(populated: LayeredCache) -> CacheInvalidator:
    return CacheInvalidator(populated)


class TestEscapeGlob:
    def test_plain_text_unchanged(self) -> None:
        assert escape_glob("user-42") == "user-42"

    def test_metacharacters_escaped(self) -> None:
        assert escape_glob("a*b?[c]") == r"a\*b\?\[c\]"


class TestArticleWrites:
    @pytest.mark.parametrize(
        "hook", ["on_article_created", "on_article_updated", "on_article_deleted"]
    )
    async def test_clears_public_and_search(
        self, hook, invalidator: CacheInvalidator, populated: LayeredCache
    ) -> None:
        assert await getattr(invalidator, hook)("a1") == 2
        assert await populated.fetch(PUBLIC) is None
        assert await populated.fetch(SEARCH) is None
        assert await populated.fetch(USER_1) == "cached"

    async def test_created_without_id(self, invalidator: CacheInvalidator) -> None:
        assert await invalidator.on_article_created() == 2


class TestUserWrites:
    @pytest.mark.parametrize(
        "hook", ["on_read_state_changed", "on_favorite_changed", "on_user_deleted"]
    )
    async def test_clears_only_that_user(
        self, hook, invalidator: CacheInvalidator, populated: LayeredCache
    ) -> None:
        assert await getattr(invalidator, hook)("u1") == 1
        assert await populated.fetch(USER_1) is None
        assert await populated.fetch(USER_2) == "cached"
        assert await populated.fetch(PUBLIC) == "cached"

    async def test_wildcard_user_id_matches_literally(
        self, invalidator: CacheInvalidator, populated: LayeredCache
    ) -> None:
        assert await invalidator.on_read_state_changed("*") == 0
        assert await populated.fetch(USER_1) == "cached"

    async def test_empty_user_id(self, invalidator: CacheInvalidator) -> None:
        assert await invalidator.on_favorite_changed("") == 0

    async def test_user_id_with_colon(self, populated: LayeredCache) -> None:
        colon_user = {"userId": "u1:articles:x", "readFilter": "unread"}
        await populated.store(colon_user, "cached")
        invalidator = CacheInvalidator(populated)

        assert await invalidator.on_read_state_changed("u1") == 1
        assert await populated.fetch(colon_user) == "cached"

        assert await invalidator.on_read_state_changed("u1:articles:x") == 1
        assert await populated.fetch(colon_user) is None
        assert await populated.fetch(USER_2) == "cached"


class TestBackendOutage:
    async def test_hooks_do_not_raise(self, broken_redis) -> None:
        invalidator = CacheInvalidator(LayeredCache(broken_redis))
        assert await invalidator.on_article_created("a1") == 0
        assert await invalidator.on_read_state_changed("u1") == 0
