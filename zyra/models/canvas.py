# zyra/models/canvas.py
from datetime import datetime
from typing import Any

from pydantic import field_validator

from zyra.models.base import CamelModel
from zyra.models.message import MessageRead
from zyra.models.note import NoteRead
from zyra.models.pdf import PDFRead


class CanvasCreate(CamelModel):
    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title cannot be empty.")
        return value


class CanvasUpdate(CamelModel):
    """Partial update: only fields present in the request body are written."""
    title: str | None = None
    nodes: list[dict[str, Any]] | None = None
    edges: list[dict[str, Any]] | None = None


class CanvasRead(CamelModel):
    id: str
    title: str
    user_id: str
    nodes: list[dict[str, Any]]
    edges: list[dict[str, Any]]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CanvasDetail(CanvasRead):
    notes: list[NoteRead] = []
    messages: list[MessageRead] = []
    pdfs: list[PDFRead] = []


class CanvasSummary(CamelModel):
    id: str
    title: str
    created_at: datetime | None = None


class CanvasListResponse(CamelModel):
    canvases: list[CanvasSummary]
