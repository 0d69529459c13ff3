import asyncio
import copy

import httpx
import pytest

from zyra.client.api_client import APIError
from zyra.client.chat import ChatController, ChatLoadingStates
from zyra.client.sync import CanvasSync
from zyra.core.exceptions import ValidationException
from zyra.core.prompts import CHAT_ERROR_MESSAGES
from zyra.models.graph import GraphNode


class FakeAPI:
    """In-memory stand-in for ZyraAPIClient holding one canvas."""

    def __init__(self):
        self.canvas = {
            "id": "canvas-1",
            "title": "France",
            "nodes": [
                {"id": "n1", "type": "note", "position": {"x": 0, "y": 0}, "data": {}},
                {"id": "p1", "type": "pdf", "position": {"x": 0, "y": 200}, "data": {}},
                {"id": "c1", "type": "chat", "position": {"x": 300, "y": 0}, "data": {}},
                {"id": "c2", "type": "chat", "position": {"x": 300, "y": 200}, "data": {}},
            ],
            "edges": [
                {"id": "e1", "source": "n1", "target": "c1"},
                {"id": "e2", "source": "p1", "target": "c1"},
            ],
            "notes": [{"id": "n1", "content": "Paris is the capital of France."}],
            "messages": [],
            "pdfs": [{"blockId": "p1", "extractedText": "Lyon is in France."}],
        }
        self.chat_reply = "Paris."
        self.chat_error: Exception | None = None
        self.chat_gate: asyncio.Event | None = None
        self.chat_calls = []
        self.fail_note_updates = False
        self.fail_note_deletes = False
        self.fail_user_messages = False
        self.get_canvas_delay = 0
        self.deleted_blocks = []
        self.canvas_updates = []

    async def get_canvas(self, canvas_id):
        if self.get_canvas_delay:
            await asyncio.sleep(self.get_canvas_delay)
        return copy.deepcopy(self.canvas)

    async def update_canvas(self, canvas_id, nodes=None, edges=None, title=None):
        self.canvas_updates.append({"nodes": nodes, "edges": edges, "title": title})
        for field, value in (("nodes", nodes), ("edges", edges), ("title", title)):
            if value is not None:
                self.canvas[field] = value
        return copy.deepcopy(self.canvas)

    async def update_note(self, canvas_id, node_id, content):
        if self.fail_note_updates:
            raise APIError(500, "Failed to update note")
        for note in self.canvas["notes"]:
            if note["id"] == node_id:
                note["content"] = content
        return {"id": node_id, "content": content}

    async def delete_note(self, canvas_id, node_id):
        if self.fail_note_deletes:
            raise APIError(404, "Note not found")
        self.canvas["notes"] = [n for n in self.canvas["notes"] if n["id"] != node_id]
        return {"id": node_id}

    async def create_message(self, canvas_id, node_id, content, role):
        if role == "user" and self.fail_user_messages:
            raise APIError(500, "Failed to create message")
        message = {
            "id": f"m{len(self.canvas['messages']) + 1}",
            "canvasId": canvas_id,
            "blockId": node_id,
            "role": role,
            "content": content,
        }
        self.canvas["messages"].append(message)
        return message

    async def delete_block_messages(self, canvas_id, node_id):
        self.deleted_blocks.append(node_id)
        before = len(self.canvas["messages"])
        self.canvas["messages"] = [m for m in self.canvas["messages"] if m["blockId"] != node_id]
        return {"success": True, "deletedCount": before - len(self.canvas["messages"])}

    async def upload_pdf(self, canvas_id, block_id, file_name, data, content_type):
        raise AssertionError("upload should have been rejected locally")

    async def delete_pdf(self, canvas_id, block_id):
        self.canvas["pdfs"] = [p for p in self.canvas["pdfs"] if p["blockId"] != block_id]
        return {"message": "PDF deleted successfully"}

    async def chat(self, messages, context):
        self.chat_calls.append((messages, context))
        if self.chat_gate is not None:
            await self.chat_gate.wait()
        if self.chat_error is not None:
            raise self.chat_error
        return self.chat_reply


async def loaded_sync(api):
    sync = CanvasSync(api, autosave_delay=0.01)
    await sync.load("canvas-1")
    return sync


def conversation(api, block_id):
    return [(m["role"], m["content"]) for m in api.canvas["messages"] if m["blockId"] == block_id]


@pytest.mark.asyncio
async def test_send_message_runs_full_turn():
    api = FakeAPI()
    sync = await loaded_sync(api)
    controller = ChatController(sync)

    assert await controller.send_message("c1", "What is the capital?") is True

    messages, context = api.chat_calls[0]
    assert messages == [{"role": "user", "content": "What is the capital?"}]
    assert context == "Paris is the capital of France.\n\nLyon is in France."
    assert conversation(api, "c1") == [("user", "What is the capital?"), ("assistant", "Paris.")]
    assert [m["content"] for m in sync.messages_for_block("c1")] == ["What is the capital?", "Paris."]
    assert not controller.loading.is_loading("c1")


@pytest.mark.asyncio
async def test_history_of_the_node_is_sent():
    api = FakeAPI()
    sync = await loaded_sync(api)
    controller = ChatController(sync)

    await controller.send_message("c1", "first")
    await controller.send_message("c1", "second")

    messages, _ = api.chat_calls[1]
    assert messages == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "Paris."},
        {"role": "user", "content": "second"},
    ]


@pytest.mark.asyncio
async def test_blank_message_is_rejected():
    api = FakeAPI()
    controller = ChatController(await loaded_sync(api))

    assert await controller.send_message("c1", "   ") is False
    assert api.chat_calls == []
    assert api.canvas["messages"] == []


@pytest.mark.asyncio
async def test_one_request_in_flight_per_node():
    api = FakeAPI()
    api.chat_gate = asyncio.Event()
    controller = ChatController(await loaded_sync(api))

    first = asyncio.create_task(controller.send_message("c1", "slow question"))
    await asyncio.sleep(0.01)
    assert controller.loading.is_loading("c1")

    assert await controller.send_message("c1", "impatient") is False

    # Another chat node is not blocked by c1.
    other = asyncio.create_task(controller.send_message("c2", "parallel"))
    await asyncio.sleep(0.01)
    assert controller.loading.is_loading("c2")

    api.chat_gate.set()
    assert await first is True
    assert await other is True
    assert conversation(api, "c1") == [("user", "slow question"), ("assistant", "Paris.")]
    assert len(controller.loading) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected",
    [
        (APIError(401, "Unauthorized"), CHAT_ERROR_MESSAGES["unauthorized"]),
        (APIError(429, "Too many"), CHAT_ERROR_MESSAGES["rate_limited"]),
        (APIError(503, "Unavailable"), CHAT_ERROR_MESSAGES["server_error"]),
        (APIError(400, "Bad"), CHAT_ERROR_MESSAGES["default"]),
        (httpx.ConnectError("refused"), CHAT_ERROR_MESSAGES["default"]),
    ],
)
async def test_failures_are_recorded_as_assistant_messages(error, expected):
    api = FakeAPI()
    api.chat_error = error
    controller = ChatController(await loaded_sync(api))

    assert await controller.send_message("c1", "hello") is True
    assert conversation(api, "c1") == [("user", "hello"), ("assistant", expected)]
    assert not controller.loading.is_loading("c1")


@pytest.mark.asyncio
async def test_delete_chat_block_clears_messages_and_loading():
    api = FakeAPI()
    sync = await loaded_sync(api)
    controller = ChatController(sync)
    await controller.send_message("c1", "hello")

    await controller.delete_block("c1")

    assert api.deleted_blocks == ["c1"]
    assert sync.store.state.node("c1") is None
    assert all("c1" not in (e.source, e.target) for e in sync.store.state.edges)
    assert sync.messages_for_block("c1") == []
    await sync.close()


def test_loading_states_are_bounded():
    loading = ChatLoadingStates(max_entries=2)
    assert loading.start("a") and loading.start("b")
    assert not loading.start("c")
    loading.settle("a")
    assert loading.start("c")


@pytest.mark.asyncio
async def test_load_hydrates_store_then_autosaves_changes():
    api = FakeAPI()
    sync = await loaded_sync(api)

    assert [n.id for n in sync.store.state.nodes] == ["n1", "p1", "c1", "c2"]
    assert sync.autosaver.initialized
    await asyncio.sleep(0.05)
    assert api.canvas_updates == []

    sync.store.set_nodes(lambda nodes: [*nodes, GraphNode(id="n2", type="note")])
    await asyncio.sleep(0.05)

    assert len(api.canvas_updates) == 1
    assert [n["id"] for n in api.canvas_updates[0]["nodes"]] == ["n1", "p1", "c1", "c2", "n2"]
    assert [n["id"] for n in sync.record()["nodes"]] == ["n1", "p1", "c1", "c2", "n2"]
    await sync.close()


@pytest.mark.asyncio
async def test_failed_note_update_rolls_back_cache():
    api = FakeAPI()
    api.fail_note_updates = True
    sync = await loaded_sync(api)

    with pytest.raises(APIError):
        await sync.update_note("canvas-1", "n1", "Rome is the capital of France.")

    assert sync.record()["notes"][0]["content"] == "Paris is the capital of France."


@pytest.mark.asyncio
async def test_non_pdf_upload_rejected_before_request():
    api = FakeAPI()
    sync = await loaded_sync(api)

    with pytest.raises(ValidationException):
        await sync.upload_pdf("canvas-1", "p2", "notes.txt", b"hello", content_type="text/plain")


@pytest.mark.asyncio
async def test_remove_block_keeps_local_delete_when_server_fails():
    api = FakeAPI()
    api.fail_note_deletes = True
    sync = await loaded_sync(api)

    await sync.remove_block("n1")

    assert sync.store.state.node("n1") is None
    assert [e.id for e in sync.store.state.edges] == ["e2"]
    await sync.close()


@pytest.mark.asyncio
async def test_remove_pdf_block_deletes_stored_pdf():
    api = FakeAPI()
    sync = await loaded_sync(api)

    await sync.remove_block("p1")

    assert api.canvas["pdfs"] == []
    assert sync.pdf_for_block("p1") is None
    await sync.close()


@pytest.mark.asyncio
async def test_message_sent_while_canvas_loads_keeps_hydration():
    api = FakeAPI()
    api.get_canvas_delay = 0.05
    sync = CanvasSync(api, autosave_delay=0.01)

    loading = asyncio.create_task(sync.load("canvas-1"))
    await asyncio.sleep(0.01)
    await sync.create_message("canvas-1", "c1", "hello", "user")
    record = await loading

    assert [n["id"] for n in record["nodes"]] == ["n1", "p1", "c1", "c2"]
    assert [n.id for n in sync.store.state.nodes] == ["n1", "p1", "c1", "c2"]
    assert sync.autosaver.initialized
    assert [m["content"] for m in sync.messages_for_block("c1")] == ["hello"]
    await sync.close()


@pytest.mark.asyncio
async def test_chat_dispatched_when_user_message_is_not_stored():
    api = FakeAPI()
    api.fail_user_messages = True
    sync = await loaded_sync(api)
    controller = ChatController(sync)

    assert await controller.send_message("c1", "What is the capital?") is True

    assert len(api.chat_calls) == 1
    messages, _ = api.chat_calls[0]
    assert messages == [{"role": "user", "content": "What is the capital?"}]
    assert conversation(api, "c1") == [("assistant", "Paris.")]
    assert not controller.loading.is_loading("c1")
