# zyra/services/chat_service.py
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from zyra.core.exceptions import UpstreamServiceException, ValidationException
from zyra.core.prompts import EMPTY_REPLY_FALLBACK, describe_chat_failure
from zyra.db.models import Canvas, Message
from zyra.db.repositories.canvas_repository import CanvasRepository
from zyra.models.chat import ChatMessage
from zyra.services.ai_service import AIService
from zyra.services.canvas_service import CanvasService
from zyra.services.context_service import ContentIndex, assemble_context

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, session: AsyncSession, ai_service: AIService):
        self.repo = CanvasRepository(session)
        self.canvas_service = CanvasService(session)
        self.ai_service = ai_service

    async def build_block_context(self, canvas: Canvas, block_id: str) -> str:
        notes = await self.repo.list_notes(canvas.id)
        pdfs = await self.repo.list_pdfs(canvas.id)
        return assemble_context(block_id, canvas.edges or [], ContentIndex(notes, pdfs))

    async def context_for_block(self, canvas_id: str, block_id: str, user_id: str) -> str:
        canvas = await self.canvas_service.get_owned_canvas(canvas_id, user_id)
        return await self.build_block_context(canvas, block_id)

    async def reply_for_block(self, canvas_id: str, block_id: str, content: str, user_id: str) -> Message:
        """
        Runs one chat turn for a block against the database: persists the user
        message, asks the model with the block's history and context, and
        persists the assistant reply. Provider failures become an assistant
        message instead of an exception.
        """
        if not content.strip():
            raise ValidationException("Message cannot be empty")

        canvas = await self.canvas_service.get_owned_canvas(canvas_id, user_id)
        context = await self.build_block_context(canvas, block_id)

        history = await self.repo.list_messages(canvas_id, block_id)
        await self.repo.add_message(canvas_id, block_id, "user", content)

        conversation = [ChatMessage(role=m.role, content=m.content) for m in history]
        conversation.append(ChatMessage(role="user", content=content))

        try:
            reply = await self.ai_service.generate_reply(conversation, context)
            reply = reply or EMPTY_REPLY_FALLBACK
        except UpstreamServiceException as exc:
            logger.error("Chat reply for block %s failed: %s", block_id, exc.message)
            reply = describe_chat_failure(exc.status_code or 500)

        return await self.repo.add_message(canvas_id, block_id, "assistant", reply)
