# 📁 backend/chat_relay/models/message.py
from __future__ import annotations

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Text

from chat_relay.database import Base
from chat_relay.models.chat_session import utcnow


class Sender(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    AI = "AI"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chat_sessions.id"), nullable=False, index=True)
    sender = Column(Enum(Sender, name="message_sender", native_enum=False, length=8), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
