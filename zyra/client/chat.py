# zyra/client/chat.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from zyra.client.api_client import APIError
from zyra.client.sync import CanvasSync
from zyra.core.prompts import EMPTY_REPLY_FALLBACK, describe_chat_failure
from zyra.services.context_service import assemble_context

logger = logging.getLogger(__name__)

MAX_TRACKED_REQUESTS = 64


@dataclass(frozen=True)
class InFlightRequest:
    node_id: str
    started_at: datetime


class ChatLoadingStates:
    """Which chat nodes have a request in flight. At most one per node."""

    def __init__(self, max_entries: int = MAX_TRACKED_REQUESTS):
        self.max_entries = max_entries
        self._entries: dict[str, InFlightRequest] = {}

    def start(self, node_id: str) -> bool:
        if node_id in self._entries or len(self._entries) >= self.max_entries:
            return False
        self._entries[node_id] = InFlightRequest(node_id, datetime.now(timezone.utc))
        return True

    def settle(self, node_id: str) -> None:
        self._entries.pop(node_id, None)

    def clear(self, node_id: str) -> None:
        self.settle(node_id)

    def is_loading(self, node_id: str) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class ChatController:
    def __init__(self, sync: CanvasSync, loading: ChatLoadingStates | None = None):
        self.sync = sync
        self.loading = loading or ChatLoadingStates()

    def context_for(self, node_id: str) -> str:
        state = self.sync.store.state
        return assemble_context(node_id, state.edges, self.sync.content_index(state.canvas_id))

    async def send_message(self, node_id: str, text: str) -> bool:
        """
        Runs one chat turn for a node. Returns False when the message was not
        submitted (blank input or a request already in flight for the node).
        Provider failures end up in the conversation as assistant messages, and
        the AI is asked even when the user message could not be stored.
        """
        if not text.strip():
            return False
        if not self.loading.start(node_id):
            logger.debug("Chat request for %s already in flight", node_id)
            return False

        canvas_id = self.sync.canvas_id
        try:
            context = self.context_for(node_id)
            history = [
                {"role": m["role"], "content": m["content"]} for m in self.sync.messages_for_block(node_id)
            ]

            try:
                await self.sync.create_message(canvas_id, node_id, text, "user")
            except (APIError, httpx.HTTPError) as exc:
                # The reply is still requested; only the stored transcript misses this turn.
                logger.error("Could not store user message for %s: %s", node_id, exc)

            try:
                reply = await self.sync.api.chat(history + [{"role": "user", "content": text}], context)
                reply = reply or EMPTY_REPLY_FALLBACK
            except APIError as exc:
                logger.error("Chat request for %s failed with %s: %s", node_id, exc.status_code, exc.message)
                reply = describe_chat_failure(exc.status_code)
            except httpx.HTTPError as exc:
                logger.error("Chat request for %s failed: %s", node_id, exc)
                reply = describe_chat_failure(None)

            await self.sync.create_message(canvas_id, node_id, reply, "assistant")
        except (APIError, httpx.HTTPError) as exc:
            logger.error("Could not store assistant reply for %s: %s", node_id, exc)
        finally:
            self.loading.settle(node_id)
        return True

    async def delete_block(self, node_id: str) -> None:
        self.loading.clear(node_id)
        await self.sync.remove_block(node_id)
