from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from chat_relay.models import Message

# inbound
JOIN_CHAT = "join_chat"
USER_MESSAGE = "user_message"
ADMIN_MESSAGE = "admin_message"
PING = "ping"

# outbound
NEW_MESSAGE = "new_message"
AI_TYPING = "ai_typing"
MESSAGE_ERROR = "message_error"
PONG = "pong"

ERR_SAVE_FAILED = "save_failed"
ERR_NO_SESSION = "no_session"


class _MessageEcho(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    text: str
    sender: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_message(cls, msg: Message, **extra: Any):
        return cls(
            id=msg.id,
            text=msg.text,
            sender=getattr(msg.sender, "value", msg.sender),
            created_at=msg.created_at,
            **extra,
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class UserEcho(_MessageEcho):
    temp_id: Optional[Any] = Field(default=None, alias="tempId")


class AdminEcho(_MessageEcho):
    temp_id: Optional[Any] = Field(default=None, alias="tempId")


class AiEcho(_MessageEcho):
    pass


class ErrorPayload(BaseModel):
    error: str
    detail: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
