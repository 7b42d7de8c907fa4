"""
Coalesce concurrent fetches of the same cache key.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Tuple, TypeVar

from shared.logging import get_logger


T = TypeVar("T")


class SingleFlight:
    """
    Registry of in-flight fetches keyed by cache key.

    The first caller for a key (the leader) runs the fetch; callers arriving
    while it is still running await the leader's outcome instead of starting
    their own. The key is released as soon as the leader finishes, so later
    callers start a fresh fetch.
    """

    def __init__(self):
        self.logger = get_logger("proxy.single_flight")
        self._inflight: Dict[str, "asyncio.Future"] = {}

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> Tuple[T, bool]:
        """Run ``fn`` once per concurrent burst for ``key``.

        Returns ``(result, shared)`` where ``shared`` is True for callers that
        reused another caller's fetch. The leader's exception is raised in
        every waiter.
        """
        existing = self._inflight.get(key)
        if existing is not None:
            self.logger.debug("Joining in-flight fetch", key=key)
            # shield: a cancelled waiter must not cancel the leader's future
            return await asyncio.shield(existing), True

        future: "asyncio.Future" = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Consume it here so an unawaited future never warns
            future.exception()
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            del self._inflight[key]
