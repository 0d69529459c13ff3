# zyra/services/canvas_service.py
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from zyra.core.exceptions import (
    CanvasNotFoundException,
    ForbiddenException,
    MessageNotFoundException,
    NoteNotFoundException,
    ValidationException,
)
from zyra.db.models import Canvas, Message, Note
from zyra.db.repositories.canvas_repository import CanvasRepository
from zyra.models.canvas import CanvasDetail, CanvasRead, CanvasUpdate
from zyra.models.message import BulkDeleteResult, MessageCreate, MessageRead
from zyra.models.note import NoteRead
from zyra.models.pdf import PDFRead
from zyra.services.storage_service import StorageService

logger = logging.getLogger(__name__)


class CanvasService:
    def __init__(self, session: AsyncSession, storage_service: StorageService | None = None):
        self.repo = CanvasRepository(session)
        self.storage_service = storage_service

    async def get_owned_canvas(self, canvas_id: str, user_id: str) -> Canvas:
        """Loads a canvas and verifies the caller owns it; every child operation goes through here."""
        canvas = await self.repo.get_canvas(canvas_id)
        if canvas is None:
            raise CanvasNotFoundException()
        if canvas.user_id != user_id:
            raise ForbiddenException()
        return canvas

    # --- Canvases ---

    async def list_canvases(self, user_id: str, newest_first: bool = False) -> list[Canvas]:
        return await self.repo.list_canvases_for_user(user_id, newest_first=newest_first)

    async def create_canvas(self, title: str, user_id: str) -> CanvasRead:
        canvas = await self.repo.add_canvas(title, user_id)
        return CanvasRead.model_validate(canvas)

    async def get_canvas_detail(self, canvas_id: str, user_id: str) -> CanvasDetail:
        canvas = await self.get_owned_canvas(canvas_id, user_id)
        notes = await self.repo.list_notes(canvas.id)
        messages = await self.repo.list_messages(canvas.id)
        pdfs = await self.repo.list_pdfs(canvas.id)
        return CanvasDetail(
            **CanvasRead.model_validate(canvas).model_dump(),
            notes=[NoteRead.model_validate(n) for n in notes],
            messages=[MessageRead.model_validate(m) for m in messages],
            pdfs=[PDFRead.model_validate(p) for p in pdfs],
        )

    async def update_canvas(self, canvas_id: str, canvas_update: CanvasUpdate, user_id: str) -> CanvasRead:
        canvas = await self.get_owned_canvas(canvas_id, user_id)
        fields = canvas_update.model_dump(exclude_unset=True)
        # An explicit null is treated like an omitted field; the columns are not nullable.
        fields = {key: value for key, value in fields.items() if value is not None}
        if not fields:
            return CanvasRead.model_validate(canvas)
        canvas = await self.repo.update_canvas(canvas, fields)
        return CanvasRead.model_validate(canvas)

    async def delete_canvas(self, canvas_id: str, user_id: str) -> None:
        canvas = await self.get_owned_canvas(canvas_id, user_id)
        pdfs = await self.repo.list_pdfs(canvas.id)
        if pdfs and self.storage_service is not None:
            for pdf in pdfs:
                await self.storage_service.delete_file_best_effort(pdf.public_id)
        await self.repo.delete_canvas(canvas)
        logger.info("Deleted canvas %s with %d PDF(s)", canvas_id, len(pdfs))

    # --- Notes ---

    async def list_notes(self, canvas_id: str, user_id: str) -> list[Note]:
        await self.get_owned_canvas(canvas_id, user_id)
        return await self.repo.list_notes(canvas_id, newest_first=True)

    async def create_note(self, canvas_id: str, note_id: str, content: str, user_id: str) -> Note:
        await self.get_owned_canvas(canvas_id, user_id)
        if not note_id:
            raise ValidationException("noteId is required")
        if await self.repo.get_note(canvas_id, note_id) is not None:
            raise ValidationException("Note already exists")
        return await self.repo.add_note(canvas_id, note_id, user_id, content)

    async def update_note(self, canvas_id: str, note_id: str, content: str, user_id: str) -> Note:
        await self.get_owned_canvas(canvas_id, user_id)
        note = await self.repo.get_note(canvas_id, note_id)
        if note is None:
            raise NoteNotFoundException()
        return await self.repo.update_note_content(note, content)

    async def delete_note(self, canvas_id: str, note_id: str, user_id: str) -> Note:
        await self.get_owned_canvas(canvas_id, user_id)
        note = await self.repo.get_note(canvas_id, note_id)
        if note is None:
            raise NoteNotFoundException()
        await self.repo.delete_note(note)
        return note

    # --- Messages ---

    async def list_messages(self, canvas_id: str, block_id: str | None, user_id: str) -> list[Message]:
        if not block_id:
            raise ValidationException("blockId is required")
        await self.get_owned_canvas(canvas_id, user_id)
        return await self.repo.list_messages(canvas_id, block_id)

    async def create_message(self, canvas_id: str, message: MessageCreate, user_id: str) -> Message:
        await self.get_owned_canvas(canvas_id, user_id)
        if not message.block_id:
            raise ValidationException("blockId is required")
        return await self.repo.add_message(canvas_id, message.block_id, message.role, message.content)

    async def delete_message(
        self, canvas_id: str, message_id: str, block_id: str | None, user_id: str
    ) -> Message:
        await self.get_owned_canvas(canvas_id, user_id)
        message = await self.repo.get_message(canvas_id, message_id)
        if message is None or (block_id is not None and message.block_id != block_id):
            raise MessageNotFoundException()
        await self.repo.delete_message(message)
        return message

    async def delete_block_messages(self, canvas_id: str, block_id: str, user_id: str) -> BulkDeleteResult:
        await self.get_owned_canvas(canvas_id, user_id)
        deleted = await self.repo.delete_messages_for_block(canvas_id, block_id)
        return BulkDeleteResult(success=True, deleted_count=deleted)
