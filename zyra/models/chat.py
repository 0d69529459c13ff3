# zyra/models/chat.py
from pydantic import BaseModel
from zyra.models.message import Role

class ChatMessage(BaseModel):
    role: Role
    content: str

class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    context: str = ""

class ChatResponse(BaseModel):
    response: str
