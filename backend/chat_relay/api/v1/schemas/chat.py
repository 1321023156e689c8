from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from chat_relay.models import Message, Sender
from chat_relay.services.chat import ChatHistory


class MessageOut(BaseModel):
    id: int
    chatId: int
    sender: Sender
    text: str
    createdAt: datetime

    @classmethod
    def from_message(cls, msg: Message) -> "MessageOut":
        return cls(
            id=msg.id,
            chatId=msg.chat_id,
            sender=msg.sender,
            text=msg.text,
            createdAt=msg.created_at,
        )


class ChatOut(BaseModel):
    id: int
    sessionId: str
    userAgent: Optional[str] = None
    ipAddress: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime
    messages: List[MessageOut] = []

    @classmethod
    def from_history(cls, history: ChatHistory) -> "ChatOut":
        s = history.session
        return cls(
            id=s.id,
            sessionId=s.session_id,
            userAgent=s.user_agent,
            ipAddress=s.ip_address,
            createdAt=s.created_at,
            updatedAt=s.updated_at,
            messages=[MessageOut.from_message(m) for m in history.messages],
        )


class SendMessageRequest(BaseModel):
    # alles optional: fehlende Felder -> 400 im Handler statt 422
    sessionId: Optional[str] = None
    sender: Optional[str] = None
    text: Optional[str] = None


class SendMessageResponse(BaseModel):
    message: str
    data: MessageOut
