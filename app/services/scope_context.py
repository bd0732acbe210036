"""
Scope document cache: the skill.md that describes what the documentation covers.

Responsibility: Fetch the scope document over HTTP at most once per freshness
window. A failed refresh keeps serving the last good copy (or "" if there has
never been one); it never replaces a good value with nothing.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from app.core.config import SCOPE_CACHE_TTL_SECONDS, SCOPE_DOC_URL, SCOPE_HTTP_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass
class CachedContext:
    """Last successfully fetched scope document."""

    content: str | None = None
    fetched_at: float = 0.0


class ScopeContextCache:
    """
    One instance per process. Concurrent refreshes are last-writer-wins.
    `transport` and `clock` are injectable for tests.
    """

    def __init__(
        self,
        url: str = SCOPE_DOC_URL,
        ttl_seconds: float = SCOPE_CACHE_TTL_SECONDS,
        timeout: float = SCOPE_HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self.cached = CachedContext()

    def is_fresh(self, now: float) -> bool:
        return self.cached.content is not None and now - self.cached.fetched_at < self.ttl_seconds

    async def get_context(self) -> str:
        """Return the scope document, fetching it only when the cached copy is missing or stale."""
        now = self._clock()
        if self.is_fresh(now):
            return self.cached.content or ""

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url)
        except httpx.HTTPError as e:
            logger.warning("[scope_context] fetch failed url=%s error=%s", self.url, e)
            return self.cached.content or ""
        if not response.is_success:
            logger.warning("[scope_context] fetch failed url=%s status=%s", self.url, response.status_code)
            return self.cached.content or ""

        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning("[scope_context] fetch failed url=%s body is not UTF-8: %s", self.url, e)
            return self.cached.content or ""
        self.cached = CachedContext(content=text, fetched_at=now)
        logger.info("[scope_context] fetched url=%s bytes=%d", self.url, len(response.content))
        return text
