# zyra/services/pdf_service.py
import asyncio
import io
import logging
import time

import pdfplumber
from sqlalchemy.ext.asyncio import AsyncSession

from zyra.core.exceptions import PDFNotFoundException, ValidationException
from zyra.db.models import PDF
from zyra.db.repositories.canvas_repository import CanvasRepository
from zyra.models.pdf import validate_upload
from zyra.services.canvas_service import CanvasService
from zyra.services.storage_service import StorageService

logger = logging.getLogger(__name__)


def _extract_text_sync(data: bytes) -> str:
    pages = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            text = page.extract_text()
            if text:
                pages.append(text)
    return "\n".join(pages)


async def extract_pdf_text(data: bytes) -> str:
    """Best-effort text extraction; an unreadable document yields an empty string."""
    try:
        return await asyncio.to_thread(_extract_text_sync, data)
    except Exception as exc:
        logger.error("Error extracting text from PDF: %s", exc)
        return ""


class PDFService:
    def __init__(self, session: AsyncSession, storage_service: StorageService):
        self.repo = CanvasRepository(session)
        self.canvas_service = CanvasService(session, storage_service)
        self.storage_service = storage_service

    async def upload_pdf(
        self,
        canvas_id: str | None,
        block_id: str | None,
        file_name: str | None,
        file_type: str | None,
        data: bytes | None,
        user_id: str,
    ) -> PDF:
        if data is None or not canvas_id or not block_id:
            raise ValidationException("Missing required fields")
        validate_upload(file_type, len(data))

        await self.canvas_service.get_owned_canvas(canvas_id, user_id)
        self.storage_service.ensure_configured()

        extracted_text = await extract_pdf_text(data)

        public_id = f"{canvas_id}_{block_id}_{int(time.time() * 1000)}"
        stored = await self.storage_service.upload_pdf(data, public_id)

        # One PDF per block: a new upload replaces the previous one.
        existing = await self.repo.get_pdf_for_block(canvas_id, block_id)
        if existing is not None:
            await self.storage_service.delete_file_best_effort(existing.public_id)
            await self.repo.delete_pdf(existing)

        pdf = await self.repo.add_pdf(
            canvas_id=canvas_id,
            block_id=block_id,
            file_name=file_name or "document.pdf",
            file_url=stored.url,
            public_id=stored.public_id,
            file_type=file_type,
            file_size=len(data),
            extracted_text=extracted_text,
        )
        logger.info("Stored PDF %s for block %s (%d bytes)", pdf.id, block_id, len(data))
        return pdf

    async def delete_pdf(self, canvas_id: str, block_id: str, user_id: str) -> None:
        if not canvas_id or not block_id:
            raise ValidationException("Missing required fields")
        await self.canvas_service.get_owned_canvas(canvas_id, user_id)

        pdf = await self.repo.get_pdf_for_block(canvas_id, block_id)
        if pdf is None:
            raise PDFNotFoundException()

        await self.storage_service.delete_file_best_effort(pdf.public_id)
        await self.repo.delete_pdf(pdf)
