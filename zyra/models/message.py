# zyra/models/message.py
from datetime import datetime
from typing import Literal

from pydantic import field_validator

from zyra.models.base import CamelModel

Role = Literal["user", "assistant"]


class MessageCreate(CamelModel):
    content: str
    role: str = "assistant"
    block_id: str

    @field_validator("role")
    @classmethod
    def normalize_role(cls, value: str) -> str:
        # Anything that is not explicitly the user is recorded as the assistant.
        return "user" if value == "user" else "assistant"


class MessageDelete(CamelModel):
    message_id: str | None = None
    block_id: str | None = None


class MessageRead(CamelModel):
    id: str
    canvas_id: str
    block_id: str
    role: Role
    content: str
    created_at: datetime | None = None


class BulkDeleteResult(CamelModel):
    success: bool
    deleted_count: int
