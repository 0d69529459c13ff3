# zyra/client/sync.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from zyra.client.api_client import APIError, ZyraAPIClient
from zyra.client.autosave import AUTOSAVE_DELAY_SECONDS, CanvasAutosaver
from zyra.client.graph_store import GraphStore
from zyra.client.query_cache import QueryCache, optimistic_mutation
from zyra.models.graph import GraphEdge, GraphNode
from zyra.models.pdf import PDF_MIME_TYPE, validate_upload
from zyra.services.context_service import ContentIndex

logger = logging.getLogger(__name__)


class CanvasSync:
    """
    Keeps the open canvas consistent between the graph store, the read cache
    and the API. All server writes for a canvas go through here.
    """

    def __init__(
        self,
        api: ZyraAPIClient,
        cache: QueryCache | None = None,
        store: GraphStore | None = None,
        autosave_delay: float = AUTOSAVE_DELAY_SECONDS,
    ):
        self.api = api
        self.cache = cache or QueryCache()
        self.store = store or GraphStore()
        self.autosaver = CanvasAutosaver(self.store, self.save_graph, delay=autosave_delay)

    @property
    def canvas_id(self) -> str:
        return self.store.state.canvas_id

    async def load(self, canvas_id: str) -> dict[str, Any]:
        """Fetches the canvas, hydrates the store and then opens the autosave gate."""
        self.autosaver.reset()
        self.store.reset()

        self.cache.register_fetcher(canvas_id, lambda: self.api.get_canvas(canvas_id))
        # Hydrate from the server copy; a mutation on this canvas may cancel a
        # cache fetch and leave only its own partial optimistic record.
        record = await self.api.get_canvas(canvas_id)
        self.cache.set(canvas_id, record)

        self.store.set_canvas_id(canvas_id)
        self.store.set_nodes([GraphNode.model_validate(n) for n in record.get("nodes") or []])
        self.store.set_edges([GraphEdge.model_validate(e) for e in record.get("edges") or []])
        self.autosaver.mark_initialized()
        logger.info("Loaded canvas %s (%d nodes)", canvas_id, len(self.store.state.nodes))
        return record

    async def close(self) -> None:
        await self.autosaver.flush()
        await self.autosaver.aclose()

    # --- Cache accessors ---

    def record(self, canvas_id: str | None = None) -> dict[str, Any]:
        return self.cache.get(canvas_id or self.canvas_id) or {}

    def messages_for_block(self, block_id: str, canvas_id: str | None = None) -> list[dict[str, Any]]:
        return [m for m in self.record(canvas_id).get("messages", []) if m.get("blockId") == block_id]

    def pdf_for_block(self, block_id: str, canvas_id: str | None = None) -> dict[str, Any] | None:
        return next((p for p in self.record(canvas_id).get("pdfs", []) if p.get("blockId") == block_id), None)

    def content_index(self, canvas_id: str | None = None) -> ContentIndex:
        record = self.record(canvas_id)
        return ContentIndex(record.get("notes", []), record.get("pdfs", []))

    # --- Canvas ---

    async def save_graph(self, canvas_id: str, nodes: list[dict], edges: list[dict]) -> dict:
        return await self.update_canvas(canvas_id, nodes=nodes, edges=edges)

    async def update_canvas(
        self,
        canvas_id: str,
        title: str | None = None,
        nodes: list[dict] | None = None,
        edges: list[dict] | None = None,
    ) -> dict:
        def apply(record):
            record = dict(record or {})
            for field, value in (("title", title), ("nodes", nodes), ("edges", edges)):
                if value is not None:
                    record[field] = value
            return record

        return await optimistic_mutation(
            self.cache,
            canvas_id,
            lambda: self.api.update_canvas(canvas_id, nodes=nodes, edges=edges, title=title),
            apply=apply,
        )

    # --- Notes ---

    async def create_note(self, canvas_id: str, node_id: str, content: str = "") -> dict:
        note = await self.api.create_note(canvas_id, node_id, content)
        await self.cache.invalidate(canvas_id)
        return note

    async def update_note(self, canvas_id: str, node_id: str, content: str) -> dict:
        def apply(record):
            record = dict(record or {})
            record["notes"] = [
                {**n, "content": content} if n.get("id") == node_id else n for n in record.get("notes", [])
            ]
            return record

        return await optimistic_mutation(
            self.cache,
            canvas_id,
            lambda: self.api.update_note(canvas_id, node_id, content),
            apply=apply,
            refetch=False,
        )

    async def delete_note(self, canvas_id: str, node_id: str) -> dict:
        result = await self.api.delete_note(canvas_id, node_id)
        await self.cache.invalidate(canvas_id)
        return result

    # --- Messages ---

    async def create_message(self, canvas_id: str, node_id: str, content: str, role: str) -> dict:
        temp_message = {
            "id": f"temp-{uuid.uuid4().hex}",
            "canvasId": canvas_id,
            "blockId": node_id,
            "role": role,
            "content": content,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }

        def apply(record):
            record = dict(record or {})
            record["messages"] = [*record.get("messages", []), temp_message]
            return record

        return await optimistic_mutation(
            self.cache,
            canvas_id,
            lambda: self.api.create_message(canvas_id, node_id, content, role),
            apply=apply,
        )

    async def delete_block_messages(self, canvas_id: str, node_id: str) -> dict:
        def apply(record):
            record = dict(record or {})
            record["messages"] = [m for m in record.get("messages", []) if m.get("blockId") != node_id]
            return record

        return await optimistic_mutation(
            self.cache,
            canvas_id,
            lambda: self.api.delete_block_messages(canvas_id, node_id),
            apply=apply,
        )

    # --- PDFs ---

    async def upload_pdf(
        self, canvas_id: str, block_id: str, file_name: str, data: bytes, content_type: str = PDF_MIME_TYPE
    ) -> dict:
        # Rejected locally before any bytes go over the wire.
        validate_upload(content_type, len(data))
        pdf = await self.api.upload_pdf(canvas_id, block_id, file_name, data, content_type)
        await self.cache.invalidate(canvas_id)
        return pdf

    async def delete_pdf(self, canvas_id: str, block_id: str) -> dict:
        result = await self.api.delete_pdf(canvas_id, block_id)
        await self.cache.invalidate(canvas_id)
        return result

    # --- Blocks ---

    async def remove_block(self, node_id: str) -> None:
        """
        Deletes a node from the store together with the server-side record
        behind it. Server failures are logged; the node is removed regardless.
        """
        state = self.store.state
        node = state.node(node_id)
        if node is None:
            return
        canvas_id = state.canvas_id
        self.store.delete_node(node_id)

        try:
            if node.type == "note":
                await self.delete_note(canvas_id, node_id)
            elif node.type == "chat":
                await self.delete_block_messages(canvas_id, node_id)
            elif node.type == "pdf" and self.pdf_for_block(node_id, canvas_id) is not None:
                await self.delete_pdf(canvas_id, node_id)
        except APIError as exc:
            logger.error("Failed to delete %s block %s on the server: %s", node.type, node_id, exc.message)
