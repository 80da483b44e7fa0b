"""
Cache tiers and the per-tier field table for article-list requests.

Each cacheable tier owns a whitelist of query fields and their defaults.
The classifier and the key builder both read :data:`TIER_FIELDS`, so the
two can never disagree about which fields matter for a tier.
"""

import enum
from typing import Any, Dict, Mapping, Optional, Union

Scalar = Union[str, int, float, bool, None]
QueryParams = Mapping[str, Scalar]

# Marks a whitelisted field that has no default and must come from the request.
REQUIRED = object()


class Tier(str, enum.Enum):
    """Cache tier assigned to a normalized article-list request."""

    PUBLIC = "public"
    USER_SCOPED = "user"
    SEARCH = "search"
    UNCACHEABLE = "uncacheable"


CACHEABLE_TIERS = (Tier.PUBLIC, Tier.USER_SCOPED, Tier.SEARCH)

READ_FILTERS = frozenset({"read", "unread"})
TAG_FIELDS = ("tag", "tags")

TIER_FIELDS: Dict[Tier, Dict[str, Any]] = {
    Tier.PUBLIC: {
        "page": 1,
        "limit": 20,
        "sortBy": "publishedAt",
        "category": "all",
    },
    Tier.USER_SCOPED: {
        "userId": REQUIRED,
        "readFilter": "all",
        "page": 1,
        "limit": 20,
        "sortBy": "publishedAt",
    },
    Tier.SEARCH: {
        "search": REQUIRED,
        "page": 1,
        "limit": 20,
        "sortBy": "publishedAt",
        "category": "all",
    },
}


def _is_empty(value: Scalar) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def normalize_params(params: Optional[QueryParams]) -> Dict[str, Scalar]:
    """Drop filtering-irrelevant fields and order the rest by name.

    ``None`` values and blank strings carry no filter, so a request that
    sends ``search=""`` is the same request as one that omits ``search``.

    Args:
        params: Raw query parameters (may be ``None``).

    Returns:
        A new dict with only meaningful fields, keys in sorted order.
    """
    if not params:
        return {}
    return {
        name: params[name]
        for name in sorted(params)
        if not _is_empty(params[name])
    }
