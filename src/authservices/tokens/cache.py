"""Per-name token cache with single-flight acquisition.

:class:`TokenCache` is the only shared mutable state in the package.  It
hands out the most recent valid token for each named client and makes sure
concurrent callers asking for the same name during a miss trigger exactly
one network acquisition:

1. A stored token with ``now < expires_at - skew`` is returned directly.  The
   skew is capped at half the token's lifetime, so a token issued for less
   than twice the skew is still reused for the first half of its life.
2. Otherwise the caller joins the in-flight acquisition for that name, or
   starts one when there is none.  Everybody who joined gets the same
   token, or the same exception.
3. On success the new token replaces the stored entry.  On failure the
   store is left untouched and the in-flight slot is released so the next
   call tries again.

In-flight acquisitions are tracked per name, so different clients never
wait on each other.  Checking and registering the in-flight task happen with
no ``await`` in between, which makes the pair atomic on the event loop.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from authservices.models import CachedToken
from authservices.output import debug
from authservices.tokens.acquirer import Clock, TokenAcquirer
from authservices.tokens.store import MemoryTokenStore, TokenStore


class _SingleFlight:
    """Tracks the acquisition currently running for each client name."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[CachedToken]] = {}

    def get(self, name: str) -> Optional[asyncio.Task[CachedToken]]:
        return self._tasks.get(name)

    def start(self, name: str, task: asyncio.Task[CachedToken]) -> None:
        self._tasks[name] = task
        task.add_done_callback(lambda finished: self._release(name, finished))

    def _release(self, name: str, finished: asyncio.Task[CachedToken]) -> None:
        if self._tasks.get(name) is finished:
            del self._tasks[name]
        # Mark the outcome as retrieved even when every waiter was cancelled.
        if not finished.cancelled():
            finished.exception()

    def __contains__(self, name: str) -> bool:
        return name in self._tasks


class TokenCache:
    """Caches one token per client name and refreshes it on demand.

    Args:
        acquirer: Performs the actual token requests.
        store: Where tokens live.  Defaults to a new
            :class:`~authservices.tokens.store.MemoryTokenStore`.
        skew_seconds: Safety margin; a token is not served once
            ``now >= expires_at - skew_seconds``.  Capped at half of each
            token's lifetime.
        clock: Time source.  Defaults to the acquirer's clock so that
            ``expires_at`` and freshness checks agree.

    Can be used as an async context manager; leaving it closes the acquirer
    and the store.

    Example::

        async with TokenCache(TokenAcquirer(registry)) as cache:
            token = await cache.get_token("admin")
            headers = {"Authorization": f"Bearer {token.access_token}"}
    """

    def __init__(
        self,
        acquirer: TokenAcquirer,
        store: Optional[TokenStore] = None,
        *,
        skew_seconds: float = 30.0,
        clock: Optional[Clock] = None,
    ) -> None:
        self._acquirer = acquirer
        self._store = store if store is not None else MemoryTokenStore()
        self._skew = skew_seconds
        self._clock = clock or acquirer.clock
        self._flights = _SingleFlight()

    async def __aenter__(self) -> TokenCache:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def skew_seconds(self) -> float:
        return self._skew

    def peek(self, name: str) -> Optional[CachedToken]:
        """Return the stored token for *name* if it may still be served, without acquiring."""
        token = self._store.get(name)
        if token is None:
            return None
        skew = min(self._skew, token.lifetime / 2)
        if token.is_fresh(self._clock(), skew):
            return token
        return None

    async def get_token(self, name: str) -> CachedToken:
        """Return a valid token for *name*, acquiring one if needed.

        Raises:
            ConfigError: If *name* is not registered.
            AuthenticationFailure: If the token endpoint rejects the request.
            TransientNetworkError: If the token endpoint stays unreachable.
        """
        token = self.peek(name)
        if token is not None:
            debug(f"Token cache hit for client '{name}'")
            return token

        task = self._flights.get(name)
        if task is None:
            debug(f"Token cache miss for client '{name}', acquiring")
            task = asyncio.ensure_future(self._acquire_and_store(name))
            self._flights.start(name, task)
        else:
            debug(f"Joining in-flight token acquisition for client '{name}'")

        # A cancelled waiter must not cancel the acquisition other callers share.
        return await asyncio.shield(task)

    def invalidate(self, name: str, access_token: Optional[str] = None) -> None:
        """Drop the stored token for *name*.

        Args:
            name: Client name.
            access_token: When given, the entry is dropped only if it still
                holds this token.  A token refreshed meanwhile by another
                caller is kept.
        """
        if access_token is not None:
            current = self._store.get(name)
            if current is None or current.access_token != access_token:
                return
        debug(f"Invalidating cached token for client '{name}'")
        self._store.delete(name)

    def reset(self) -> None:
        """Forget every cached token."""
        self._store.clear()

    def is_acquiring(self, name: str) -> bool:
        return name in self._flights

    async def aclose(self) -> None:
        await self._acquirer.aclose()
        self._store.close()

    async def _acquire_and_store(self, name: str) -> CachedToken:
        token = await self._acquirer.acquire(name)
        self._store.set(name, token)
        return token
