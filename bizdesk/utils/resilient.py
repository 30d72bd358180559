"""Remote-first reads with cache and built-in fallbacks.

    try remote ──ok──▶ mirror into cache ──▶ return
        │ failed / empty
        ▼
    cache non-empty? ──yes──▶ return cached
        │ no
        ▼
    built-in default

The mirror write is awaited before returning, so a following offline read
in the same process sees it.  Only upstream errors (BizDeskException) are
absorbed; cancellation propagates before the cache is touched.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError

from bizdesk.middleware.exceptions import BizDeskException
from bizdesk.utils.cache import KeyValueCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def resilient_read(
    key: str,
    cache: KeyValueCache,
    fetch: Optional[Callable[[], Awaitable[T]]],
    default: Callable[[], T],
    serialize: Callable[[T], Any],
    deserialize: Callable[[Any], T],
) -> T:
    """Read `key` through the remote → cache → default chain.

    Pass fetch=None to skip the remote (offline/mock mode).  Empty results
    (falsy) fall through to the next stage.
    """
    if fetch is not None:
        try:
            result = await fetch()
        except BizDeskException as e:
            logger.warning(f"Remote read for {key} failed, falling back to cache: {e.message}")
        else:
            if result:
                await cache.set(key, serialize(result))
                return result
            logger.info(f"Remote returned no data for {key}, falling back to cache")

    stored = await cache.get(key)
    if stored:
        try:
            value = deserialize(stored)
        except ValidationError as e:
            logger.warning(f"Cached {key} is malformed, using defaults: {e}")
        else:
            if value:
                return value

    return default()
