# zyra/db/models.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from zyra.db.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False, default="User")
    # Null for accounts that only ever signed in through OAuth
    password_hash = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    canvases = relationship("Canvas", back_populates="user", cascade="all, delete-orphan")


class Canvas(Base):
    __tablename__ = "canvases"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # Serialized graph; stored and returned verbatim
    nodes = Column(JSON, nullable=False, default=list)
    edges = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="canvases")


class Note(Base):
    __tablename__ = "notes"

    # id is the graph node id; node ids are only unique within one canvas
    id = Column(String(255), primary_key=True)
    canvas_id = Column(String(36), ForeignKey("canvases.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    canvas_id = Column(String(36), ForeignKey("canvases.id", ondelete="CASCADE"), index=True, nullable=False)
    block_id = Column(String(255), index=True, nullable=False)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class PDF(Base):
    __tablename__ = "pdfs"

    id = Column(String(36), primary_key=True, default=_new_id)
    canvas_id = Column(String(36), ForeignKey("canvases.id", ondelete="CASCADE"), index=True, nullable=False)
    block_id = Column(String(255), index=True, nullable=False)
    file_name = Column(String(512), nullable=False)
    file_url = Column(String(2048), nullable=False)
    public_id = Column(String(512), nullable=False)
    file_type = Column(String(128), nullable=False)
    file_size = Column(Integer, nullable=False)
    extracted_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
