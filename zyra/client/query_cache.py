# zyra/client/query_cache.py
import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[Any]]
Updater = Callable[[Any], Any]


class QueryCache:
    def __init__(self):
        self._data: dict[str, Any] = {}
        self._fetchers: dict[str, Fetcher] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._superseded: set[asyncio.Task] = set()

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def update(self, key: str, updater: Updater) -> Any:
        self._data[key] = updater(self._data.get(key))
        return self._data[key]

    def snapshot(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def restore(self, key: str, snapshot: Any) -> None:
        if snapshot is None:
            self._data.pop(key, None)
        else:
            self._data[key] = snapshot

    def register_fetcher(self, key: str, fetcher: Fetcher) -> None:
        self._fetchers[key] = fetcher

    def is_fetching(self, key: str) -> bool:
        return key in self._inflight

    async def fetch(self, key: str) -> Any:
        """
        Runs the registered fetcher and stores its result. If the fetch is
        cancelled by `cancel()` the cached value is returned unchanged.
        """
        fetcher = self._fetchers.get(key)
        if fetcher is None:
            raise KeyError(f"No fetcher registered for '{key}'")

        task = asyncio.create_task(fetcher())
        self._inflight[key] = task
        try:
            value = await task
        except asyncio.CancelledError:
            if task in self._superseded:
                self._superseded.discard(task)
                logger.debug("Fetch for %s superseded by a newer mutation", key)
                return self._data.get(key)
            raise
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

        self._data[key] = value
        return value

    def cancel(self, key: str) -> None:
        task = self._inflight.pop(key, None)
        if task is not None and not task.done():
            self._superseded.add(task)
            task.cancel()

    async def invalidate(self, key: str) -> Any:
        """Refetches the canonical record; failures are logged and leave the cache as is."""
        if key not in self._fetchers:
            return self._data.get(key)
        try:
            return await self.fetch(key)
        except Exception as exc:
            logger.error("Failed to refetch %s: %s", key, exc)
            return self._data.get(key)

    async def mutate(
        self,
        key: str,
        request: Callable[[], Awaitable[T]],
        apply: Updater | None = None,
        refetch: bool = True,
    ) -> T:
        return await optimistic_mutation(self, key, request, apply=apply, refetch=refetch)


async def optimistic_mutation(
    cache: QueryCache,
    key: str,
    request: Callable[[], Awaitable[T]],
    apply: Updater | None = None,
    refetch: bool = True,
) -> T:
    """
    Applies `apply` to the cached value before `request` runs. If the request
    fails the cache is restored to the snapshot taken beforehand and the error
    is re-raised. With `refetch` the canonical record is reloaded afterwards,
    whether the request succeeded or not.
    """
    cache.cancel(key)
    snapshot = cache.snapshot(key)
    if apply is not None:
        cache.update(key, apply)

    try:
        return await request()
    except Exception as exc:
        logger.warning("Mutation on %s failed, rolling back: %s", key, exc)
        cache.restore(key, snapshot)
        raise
    finally:
        if refetch:
            await cache.invalidate(key)
