# zyra/api/router.py
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from zyra.api.idempotency import IdempotentAPIRoute
from zyra.core.exceptions import ValidationException
from zyra.core.limiter import limiter
from zyra.core.security import get_current_user_id
from zyra.db.database import get_db_session
from zyra.models.canvas import CanvasCreate, CanvasDetail, CanvasListResponse, CanvasRead, CanvasSummary, CanvasUpdate
from zyra.models.chat import ChatRequest, ChatResponse
from zyra.models.message import BulkDeleteResult, MessageCreate, MessageDelete, MessageRead
from zyra.models.note import NoteCreate, NoteDelete, NoteRead, NoteUpdate
from zyra.models.pdf import PDFDelete, PDFRead
from zyra.services.ai_service import AIService
from zyra.services.canvas_service import CanvasService
from zyra.services.pdf_service import PDFService
from zyra.services.storage_service import StorageService

router = APIRouter()
router.route_class = IdempotentAPIRoute

ai_service = AIService.from_settings()

def get_ai_service() -> AIService:
    return ai_service

def get_storage_service() -> StorageService:
    return StorageService.from_settings()

def get_canvas_service(
    session: AsyncSession = Depends(get_db_session),
    storage_service: StorageService = Depends(get_storage_service),
) -> CanvasService:
    return CanvasService(session, storage_service)

def get_pdf_service(
    session: AsyncSession = Depends(get_db_session),
    storage_service: StorageService = Depends(get_storage_service),
) -> PDFService:
    return PDFService(session, storage_service)

# --- Canvases ---

@router.get("/canvases", response_model=list[CanvasRead], tags=["Canvases"])
async def list_canvases(
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.list_canvases(user_id)

@router.get("/my-canvases", response_model=CanvasListResponse, tags=["Canvases"])
async def list_my_canvases(
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    """Canvas summaries for the dashboard, newest first."""
    canvases = await service.list_canvases(user_id, newest_first=True)
    return CanvasListResponse(canvases=[CanvasSummary.model_validate(c) for c in canvases])

@router.post("/canvases", status_code=status.HTTP_201_CREATED, response_model=CanvasRead, tags=["Canvases"])
@limiter.limit("30/minute")
async def create_canvas(
    request: Request,
    canvas_data: CanvasCreate,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.create_canvas(canvas_data.title, user_id)

@router.get("/canvases/{canvas_id}", response_model=CanvasDetail, tags=["Canvases"])
async def get_canvas(
    canvas_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.get_canvas_detail(canvas_id, user_id)

@router.patch("/canvases/{canvas_id}", response_model=CanvasRead, tags=["Canvases"])
@limiter.limit("240/minute")
async def update_canvas(
    request: Request,
    canvas_id: str,
    canvas_update: CanvasUpdate,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    """Autosave target. Only the fields present in the body are overwritten."""
    return await service.update_canvas(canvas_id, canvas_update, user_id)

@router.delete("/canvases/{canvas_id}", tags=["Canvases"])
@limiter.limit("30/minute")
async def delete_canvas(
    request: Request,
    canvas_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    await service.delete_canvas(canvas_id, user_id)
    return {"message": "Canvas deleted successfully"}

# --- Notes ---

@router.get("/notes", response_model=list[NoteRead], tags=["Notes"])
async def list_notes(
    canvas_id: str | None = Query(None, alias="canvasId"),
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    if not canvas_id:
        raise ValidationException("Canvas ID required")
    return await service.list_notes(canvas_id, user_id)

@router.post("/notes", status_code=status.HTTP_201_CREATED, response_model=NoteRead, tags=["Notes"])
@limiter.limit("120/minute")
async def create_note(
    request: Request,
    note_data: NoteCreate,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.create_note(note_data.canvas_id, note_data.note_id, note_data.content, user_id)

@router.patch("/notes", response_model=NoteRead, tags=["Notes"])
@limiter.limit("240/minute")
async def update_note(
    request: Request,
    note_update: NoteUpdate,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.update_note(note_update.canvas_id, note_update.note_id, note_update.content, user_id)

@router.delete("/notes", response_model=NoteRead, tags=["Notes"])
@limiter.limit("120/minute")
async def delete_note(
    request: Request,
    note_delete: NoteDelete,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.delete_note(note_delete.canvas_id, note_delete.note_id, user_id)

# --- Messages ---

@router.get("/canvases/{canvas_id}/messages", response_model=list[MessageRead], tags=["Messages"])
async def list_messages(
    canvas_id: str,
    block_id: str | None = Query(None, alias="blockId"),
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.list_messages(canvas_id, block_id, user_id)

@router.post("/canvases/{canvas_id}/messages", response_model=MessageRead, tags=["Messages"])
@limiter.limit("120/minute")
async def create_message(
    request: Request,
    canvas_id: str,
    message: MessageCreate,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    return await service.create_message(canvas_id, message, user_id)

@router.delete("/canvases/{canvas_id}/messages", response_model=MessageRead | BulkDeleteResult, tags=["Messages"])
@limiter.limit("60/minute")
async def delete_messages(
    request: Request,
    canvas_id: str,
    message_delete: MessageDelete,
    user_id: str = Depends(get_current_user_id),
    service: CanvasService = Depends(get_canvas_service)
):
    """Deletes one message when messageId is given, otherwise every message of blockId."""
    if message_delete.message_id:
        message = await service.delete_message(
            canvas_id, message_delete.message_id, message_delete.block_id, user_id
        )
        return MessageRead.model_validate(message)
    if message_delete.block_id:
        return await service.delete_block_messages(canvas_id, message_delete.block_id, user_id)
    raise ValidationException("messageId or blockId is required")

# --- PDFs ---

@router.post("/pdfs", status_code=status.HTTP_201_CREATED, response_model=PDFRead, tags=["PDFs"])
@limiter.limit("20/minute")
async def upload_pdf(
    request: Request,
    file: UploadFile | None = File(None),
    canvas_id: str | None = Form(None, alias="canvasId"),
    block_id: str | None = Form(None, alias="blockId"),
    user_id: str = Depends(get_current_user_id),
    service: PDFService = Depends(get_pdf_service)
):
    data = await file.read() if file is not None else None
    return await service.upload_pdf(
        canvas_id=canvas_id,
        block_id=block_id,
        file_name=file.filename if file is not None else None,
        file_type=file.content_type if file is not None else None,
        data=data,
        user_id=user_id,
    )

@router.delete("/pdfs", tags=["PDFs"])
@limiter.limit("30/minute")
async def delete_pdf(
    request: Request,
    pdf_delete: PDFDelete,
    user_id: str = Depends(get_current_user_id),
    service: PDFService = Depends(get_pdf_service)
):
    await service.delete_pdf(pdf_delete.canvas_id, pdf_delete.block_id, user_id)
    return {"message": "PDF deleted successfully"}

# --- Chat ---

@router.post("/chat", response_model=ChatResponse, tags=["Chat"])
@limiter.limit("20/minute")
async def chat(
    request: Request,
    chat_request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIService = Depends(get_ai_service)
):
    """Single, non-streamed completion over the conversation and its assembled context."""
    reply = await ai.generate_reply(chat_request.messages, chat_request.context)
    return ChatResponse(response=reply)
