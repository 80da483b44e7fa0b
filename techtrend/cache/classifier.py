"""Tier classification for article-list requests."""

import logging

from techtrend.cache.tiers import (
    READ_FILTERS,
    TAG_FIELDS,
    QueryParams,
    Tier,
    normalize_params,
)

logger = logging.getLogger(__name__)


def classify(params: QueryParams) -> Tier:
    """Assign a request to exactly one cache tier.

    Rules are checked in order and the first match wins:

    1. Non-empty ``search`` -> :attr:`Tier.SEARCH`, whatever else is set.
    2. ``userId`` with ``readFilter`` of ``read``/``unread`` ->
       :attr:`Tier.USER_SCOPED`.
    3. No ``readFilter``, ``userId``, ``tag`` or ``tags`` ->
       :attr:`Tier.PUBLIC`.
    4. Anything else (tag filters, unknown read filters, a user without a
       read filter) -> :attr:`Tier.UNCACHEABLE`.

    Args:
        params: Query parameters, raw or already normalized.

    Returns:
        The assigned tier.  Never raises.
    """
    normalized = normalize_params(params)

    if "search" in normalized:
        tier = Tier.SEARCH
    elif "userId" in normalized and normalized.get("readFilter") in READ_FILTERS:
        tier = Tier.USER_SCOPED
    elif not any(
        name in normalized for name in ("readFilter", "userId") + TAG_FIELDS
    ):
        tier = Tier.PUBLIC
    else:
        tier = Tier.UNCACHEABLE

    logger.debug("Request classified", extra={"tier": tier.value})
    return tier
