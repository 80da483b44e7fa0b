"""
Cache key derivation for article-list requests.

Keys are built only from the whitelisted fields of the request's tier
(see :data:`techtrend.cache.tiers.TIER_FIELDS`), rendered as sorted
``field:value`` pairs so field order in the request never matters.
Backslashes and colons inside values are escaped with a backslash so
distinct requests never share a key::

    articles:basic:category:all:limit:20:page:1:sortBy:publishedAt
    user:u1:articles:limit:20:page:1:readFilter:unread:sortBy:publishedAt:userId:u1
    search:category:all:limit:20:page:1:search:bar,foo:sortBy:publishedAt
"""

from typing import Dict

from techtrend.cache.tiers import (
    REQUIRED,
    TIER_FIELDS,
    QueryParams,
    Scalar,
    Tier,
    normalize_params,
)

KEY_DELIMITER = ":"


def normalize_search(text: Scalar) -> str:
    """Canonicalize search text so word order does not change the key.

    Splits on any whitespace (including the full-width space U+3000),
    drops empty tokens, sorts the words and joins them with commas.
    """
    if text is None:
        return ""
    return ",".join(sorted(str(text).split()))


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace(KEY_DELIMITER, "\\" + KEY_DELIMITER)


def _render(value: Scalar) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return _escape(str(value))


def _tier_values(tier: Tier, params: Dict[str, Scalar]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for name, default in TIER_FIELDS[tier].items():
        value = params.get(name)
        if value is None:
            value = "" if default is REQUIRED else default
        if name == "search":
            values[name] = _escape(normalize_search(value))
        else:
            values[name] = _render(value)
    return values


def user_prefix(user_id: Scalar) -> str:
    """Return the prefix shared by every user-tier key of *user_id*."""
    return f"user:{_render(user_id)}:articles:"


def _prefix(tier: Tier, values: Dict[str, str]) -> str:
    if tier is Tier.PUBLIC:
        return "articles:basic:"
    if tier is Tier.USER_SCOPED:
        return f"user:{values['userId']}:articles:"
    return "search:"


def build_key(tier: Tier, params: QueryParams) -> str:
    """Derive the cache key for *params* within *tier*.

    Args:
        tier: The tier the request was classified into.
        params: Query parameters; irrelevant fields are ignored.

    Returns:
        The tier-relative cache key, or ``""`` for
        :attr:`Tier.UNCACHEABLE`.  Never raises.
    """
    if tier is Tier.UNCACHEABLE:
        return ""

    values = _tier_values(tier, normalize_params(params))
    pairs = KEY_DELIMITER.join(
        f"{name}{KEY_DELIMITER}{values[name]}" for name in sorted(values)
    )
    return _prefix(tier, values) + pairs
