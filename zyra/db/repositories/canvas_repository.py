# zyra/db/repositories/canvas_repository.py
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from zyra.db.models import PDF, Canvas, Message, Note


class CanvasRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # --- Canvases ---

    async def list_canvases_for_user(self, user_id: str, newest_first: bool = False) -> list[Canvas]:
        order = Canvas.created_at.desc() if newest_first else Canvas.created_at.asc()
        result = await self.session.execute(
            select(Canvas).where(Canvas.user_id == user_id).order_by(order)
        )
        return list(result.scalars().all())

    async def get_canvas(self, canvas_id: str) -> Canvas | None:
        return await self.session.get(Canvas, canvas_id)

    async def add_canvas(self, title: str, user_id: str) -> Canvas:
        canvas = Canvas(title=title, user_id=user_id, nodes=[], edges=[])
        self.session.add(canvas)
        await self.session.commit()
        await self.session.refresh(canvas)
        return canvas

    async def update_canvas(self, canvas: Canvas, fields: dict[str, Any]) -> Canvas:
        """Writes only the given fields; anything absent keeps its stored value."""
        for key, value in fields.items():
            setattr(canvas, key, value)
        await self.session.commit()
        await self.session.refresh(canvas)
        return canvas

    async def delete_canvas(self, canvas: Canvas) -> None:
        """
        Deletes the canvas and every note, message and PDF row under it.
        Children are removed explicitly so the cascade does not depend on the
        database enforcing foreign keys.
        """
        canvas_id = canvas.id
        await self.session.execute(delete(Note).where(Note.canvas_id == canvas_id))
        await self.session.execute(delete(Message).where(Message.canvas_id == canvas_id))
        await self.session.execute(delete(PDF).where(PDF.canvas_id == canvas_id))
        await self.session.delete(canvas)
        await self.session.commit()

    # --- Notes ---

    async def list_notes(self, canvas_id: str, newest_first: bool = False) -> list[Note]:
        order = Note.created_at.desc() if newest_first else Note.created_at.asc()
        result = await self.session.execute(
            select(Note).where(Note.canvas_id == canvas_id).order_by(order)
        )
        return list(result.scalars().all())

    async def get_note(self, canvas_id: str, note_id: str) -> Note | None:
        return await self.session.get(Note, {"id": note_id, "canvas_id": canvas_id})

    async def add_note(self, canvas_id: str, note_id: str, user_id: str, content: str) -> Note:
        note = Note(id=note_id, canvas_id=canvas_id, user_id=user_id, content=content)
        self.session.add(note)
        await self.session.commit()
        await self.session.refresh(note)
        return note

    async def update_note_content(self, note: Note, content: str) -> Note:
        note.content = content
        await self.session.commit()
        await self.session.refresh(note)
        return note

    async def delete_note(self, note: Note) -> None:
        await self.session.delete(note)
        await self.session.commit()

    # --- Messages ---

    async def list_messages(self, canvas_id: str, block_id: str | None = None) -> list[Message]:
        query = select(Message).where(Message.canvas_id == canvas_id)
        if block_id is not None:
            query = query.where(Message.block_id == block_id)
        result = await self.session.execute(query.order_by(Message.created_at.asc()))
        return list(result.scalars().all())

    async def get_message(self, canvas_id: str, message_id: str) -> Message | None:
        result = await self.session.execute(
            select(Message).where(Message.id == message_id, Message.canvas_id == canvas_id)
        )
        return result.scalars().first()

    async def add_message(self, canvas_id: str, block_id: str, role: str, content: str) -> Message:
        message = Message(canvas_id=canvas_id, block_id=block_id, role=role, content=content)
        self.session.add(message)
        await self.session.commit()
        await self.session.refresh(message)
        return message

    async def delete_message(self, message: Message) -> None:
        await self.session.delete(message)
        await self.session.commit()

    async def delete_messages_for_block(self, canvas_id: str, block_id: str) -> int:
        result = await self.session.execute(
            delete(Message).where(Message.canvas_id == canvas_id, Message.block_id == block_id)
        )
        await self.session.commit()
        return result.rowcount or 0

    # --- PDFs ---

    async def list_pdfs(self, canvas_id: str) -> list[PDF]:
        result = await self.session.execute(
            select(PDF).where(PDF.canvas_id == canvas_id).order_by(PDF.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_pdf_for_block(self, canvas_id: str, block_id: str) -> PDF | None:
        result = await self.session.execute(
            select(PDF).where(PDF.canvas_id == canvas_id, PDF.block_id == block_id)
        )
        return result.scalars().first()

    async def add_pdf(self, **fields: Any) -> PDF:
        pdf = PDF(**fields)
        self.session.add(pdf)
        await self.session.commit()
        await self.session.refresh(pdf)
        return pdf

    async def delete_pdf(self, pdf: PDF) -> None:
        await self.session.delete(pdf)
        await self.session.commit()
