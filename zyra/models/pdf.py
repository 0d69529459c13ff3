# zyra/models/pdf.py
from datetime import datetime
from zyra.core.exceptions import ValidationException
from zyra.models.base import CamelModel

PDF_MIME_TYPE = "application/pdf"
MAX_FILE_SIZE = 10 * 1024 * 1024

def validate_upload(file_type: str | None, file_size: int) -> None:
    if file_type != PDF_MIME_TYPE:
        raise ValidationException("Only PDF files are allowed")
    if file_size > MAX_FILE_SIZE:
        raise ValidationException("File size exceeds 10MB limit")

class PDFRead(CamelModel):
    id: str
    canvas_id: str
    block_id: str
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    extracted_text: str
    created_at: datetime | None = None

class PDFDelete(CamelModel):
    canvas_id: str
    block_id: str
