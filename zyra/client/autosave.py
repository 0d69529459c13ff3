# zyra/client/autosave.py
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from zyra.client.graph_store import GraphState, GraphStore

logger = logging.getLogger(__name__)

AUTOSAVE_DELAY_SECONDS = 0.5

Callback = Callable[[], Awaitable[Any]]
SaveGraph = Callable[[str, list[dict[str, Any]], list[dict[str, Any]]], Awaitable[Any]]


class Debouncer:
    """
    One cancellable delayed task per key. Scheduling a key again restarts its
    quiet period; only the last callback scheduled for a key runs.
    """

    def __init__(self, delay: float = AUTOSAVE_DELAY_SECONDS):
        self.delay = delay
        self._pending: dict[str, tuple[asyncio.Task, Callback]] = {}
        self._running: set[asyncio.Task] = set()

    def schedule(self, key: str, callback: Callback) -> None:
        self.cancel(key)
        task = asyncio.create_task(self._run(key, callback))
        self._pending[key] = (task, callback)

    def pending(self, key: str) -> bool:
        return key in self._pending

    def cancel(self, key: str) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[0].cancel()

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    async def flush(self, key: str | None = None) -> None:
        """Runs pending callbacks immediately instead of waiting for the timer."""
        keys = [key] if key is not None else list(self._pending)
        for k in keys:
            entry = self._pending.pop(k, None)
            if entry is None:
                continue
            task, callback = entry
            task.cancel()
            await self._invoke(k, callback)
        await self._wait_running()

    async def aclose(self) -> None:
        tasks = [task for task, _ in self._pending.values()]
        self.cancel_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._wait_running()

    async def _wait_running(self) -> None:
        # Callbacks whose timer already fired are no longer pending but may still be awaiting I/O.
        current = asyncio.current_task()
        running = [task for task in self._running if task is not current]
        if running:
            await asyncio.gather(*running, return_exceptions=True)

    async def _run(self, key: str, callback: Callback) -> None:
        await asyncio.sleep(self.delay)
        # The timer has fired: a later schedule() for this key starts a fresh one.
        self._pending.pop(key, None)
        task = asyncio.current_task()
        self._running.add(task)
        try:
            await self._invoke(key, callback)
        finally:
            self._running.discard(task)

    async def _invoke(self, key: str, callback: Callback) -> None:
        try:
            await callback()
        except Exception as exc:
            logger.error("Debounced callback for %s failed: %s", key, exc)


class CanvasAutosaver:
    """
    Persists the full node/edge graph after a quiet period of no changes.

    Nothing is saved until `mark_initialized()` has been called, so the empty
    graph present right after navigation never overwrites the server copy.
    """

    def __init__(self, store: GraphStore, save: SaveGraph, delay: float = AUTOSAVE_DELAY_SECONDS):
        self.store = store
        self.save = save
        self.debouncer = Debouncer(delay)
        self._initialized = False
        self._unsubscribe = store.subscribe(self._on_change)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def mark_initialized(self) -> None:
        self._initialized = True

    def reset(self) -> None:
        self._initialized = False
        self.debouncer.cancel_all()

    def _on_change(self, previous: GraphState, current: GraphState) -> None:
        if not self._initialized or not current.canvas_id:
            return
        if previous.nodes == current.nodes and previous.edges == current.edges:
            return
        canvas_id = current.canvas_id
        self.debouncer.schedule(canvas_id, lambda: self._save(canvas_id))

    async def _save(self, canvas_id: str) -> None:
        state = self.store.state
        if state.canvas_id != canvas_id:
            logger.debug("Skipping autosave for %s, canvas is no longer open", canvas_id)
            return
        await self.save(canvas_id, state.nodes_payload(), state.edges_payload())

    async def flush(self) -> None:
        await self.debouncer.flush()

    async def aclose(self) -> None:
        self._unsubscribe()
        await self.debouncer.aclose()
