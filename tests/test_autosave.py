import asyncio

import pytest

from zyra.client.autosave import CanvasAutosaver, Debouncer
from zyra.client.graph_store import GraphStore
from zyra.models.graph import GraphEdge, GraphNode

DELAY = 0.02


class SaveRecorder:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    async def __call__(self, canvas_id, nodes, edges):
        self.calls.append((canvas_id, [n["id"] for n in nodes], [e["id"] for e in edges]))
        if self.fail:
            raise RuntimeError("save failed")


def note(node_id):
    return GraphNode(id=node_id, type="note")


@pytest.mark.asyncio
async def test_debouncer_runs_only_last_callback():
    debouncer = Debouncer(DELAY)
    ran = []

    for value in range(3):
        async def callback(value=value):
            ran.append(value)
        debouncer.schedule("canvas", callback)

    await asyncio.sleep(DELAY * 3)
    assert ran == [2]
    assert not debouncer.pending("canvas")


@pytest.mark.asyncio
async def test_debouncer_keys_are_independent():
    debouncer = Debouncer(DELAY)
    ran = []

    async def first():
        ran.append("a")

    async def second():
        ran.append("b")

    debouncer.schedule("a", first)
    debouncer.schedule("b", second)
    await asyncio.sleep(DELAY * 3)
    assert sorted(ran) == ["a", "b"]


@pytest.mark.asyncio
async def test_debouncer_cancel_and_flush():
    debouncer = Debouncer(10)
    ran = []

    async def callback():
        ran.append("flushed")

    debouncer.schedule("a", callback)
    debouncer.schedule("b", callback)
    debouncer.cancel("a")
    await debouncer.flush()

    assert ran == ["flushed"]
    assert not debouncer.pending("b")


@pytest.mark.asyncio
async def test_debouncer_logs_callback_errors():
    debouncer = Debouncer(0)

    async def boom():
        raise RuntimeError("boom")

    debouncer.schedule("a", boom)
    await asyncio.sleep(0.01)
    assert not debouncer.pending("a")
    await debouncer.aclose()


@pytest.mark.asyncio
async def test_autosave_waits_for_initialized_gate():
    store = GraphStore()
    save = SaveRecorder()
    autosaver = CanvasAutosaver(store, save, delay=DELAY)

    # Hydration before the gate opens must never be written back.
    store.set_canvas_id("canvas-1")
    store.set_nodes([note("n1")])
    await asyncio.sleep(DELAY * 3)
    assert save.calls == []

    autosaver.mark_initialized()
    store.set_nodes(lambda nodes: [*nodes, note("n2")])
    await asyncio.sleep(DELAY * 3)

    assert save.calls == [("canvas-1", ["n1", "n2"], [])]
    await autosaver.aclose()


@pytest.mark.asyncio
async def test_burst_of_changes_saves_once_with_latest_graph():
    store = GraphStore()
    save = SaveRecorder()
    autosaver = CanvasAutosaver(store, save, delay=DELAY)
    store.set_canvas_id("canvas-1")
    autosaver.mark_initialized()

    store.set_nodes([note("a")])
    store.set_nodes(lambda nodes: [*nodes, note("b")])
    store.set_edges([GraphEdge(id="e1", source="a", target="b")])
    await asyncio.sleep(DELAY * 3)

    assert save.calls == [("canvas-1", ["a", "b"], ["e1"])]
    await autosaver.aclose()


@pytest.mark.asyncio
async def test_reset_closes_gate_and_drops_pending_save():
    store = GraphStore()
    save = SaveRecorder()
    autosaver = CanvasAutosaver(store, save, delay=DELAY)
    store.set_canvas_id("canvas-1")
    autosaver.mark_initialized()

    store.set_nodes([note("a")])
    autosaver.reset()
    await asyncio.sleep(DELAY * 3)

    assert save.calls == []
    assert not autosaver.initialized
    await autosaver.aclose()


@pytest.mark.asyncio
async def test_failed_save_does_not_break_later_saves():
    store = GraphStore()
    save = SaveRecorder(fail=True)
    autosaver = CanvasAutosaver(store, save, delay=DELAY)
    store.set_canvas_id("canvas-1")
    autosaver.mark_initialized()

    store.set_nodes([note("a")])
    await asyncio.sleep(DELAY * 3)
    save.fail = False
    store.set_nodes([note("b")])
    await asyncio.sleep(DELAY * 3)

    assert [call[1] for call in save.calls] == [["a"], ["b"]]
    await autosaver.aclose()


@pytest.mark.asyncio
async def test_flush_saves_immediately():
    store = GraphStore()
    save = SaveRecorder()
    autosaver = CanvasAutosaver(store, save, delay=10)
    store.set_canvas_id("canvas-1")
    autosaver.mark_initialized()

    store.set_nodes([note("a")])
    await autosaver.flush()

    assert save.calls == [("canvas-1", ["a"], [])]
    await autosaver.aclose()


class SlowSave(SaveRecorder):
    def __init__(self, seconds):
        super().__init__()
        self.seconds = seconds

    async def __call__(self, canvas_id, nodes, edges):
        await asyncio.sleep(self.seconds)
        await super().__call__(canvas_id, nodes, edges)


@pytest.mark.asyncio
async def test_close_waits_for_save_already_in_flight():
    store = GraphStore()
    save = SlowSave(0.05)
    autosaver = CanvasAutosaver(store, save, delay=0)
    store.set_canvas_id("canvas-1")
    autosaver.mark_initialized()

    store.set_nodes([note("a")])
    # The timer has fired and the save is waiting on the wire.
    await asyncio.sleep(0.01)
    assert not autosaver.debouncer.pending("canvas-1")

    await autosaver.flush()
    await autosaver.aclose()

    assert save.calls == [("canvas-1", ["a"], [])]


@pytest.mark.asyncio
async def test_debouncer_aclose_awaits_running_callback():
    debouncer = Debouncer(0)
    ran = []

    async def slow():
        await asyncio.sleep(0.05)
        ran.append("done")

    debouncer.schedule("a", slow)
    await asyncio.sleep(0.01)
    await debouncer.aclose()

    assert ran == ["done"]
