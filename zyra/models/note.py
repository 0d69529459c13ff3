# zyra/models/note.py
from datetime import datetime
from zyra.models.base import CamelModel

class NoteCreate(CamelModel):
    canvas_id: str
    note_id: str
    content: str = ""

class NoteUpdate(CamelModel):
    canvas_id: str
    note_id: str
    content: str

class NoteDelete(CamelModel):
    canvas_id: str
    note_id: str

class NoteRead(CamelModel):
    id: str
    canvas_id: str
    user_id: str
    content: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
