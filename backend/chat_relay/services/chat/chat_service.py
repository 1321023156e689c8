# 📁 backend/chat_relay/services/chat/chat_service.py
"""
Persistenz für Chat-Sessions und Nachrichten.

Jede Operation öffnet ihre eigene AsyncSession und committet sofort; Session-Upsert
und Message-Insert sind bewusst zwei getrennte Writes (kein gemeinsamer Commit).
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chat_relay.models import ChatSession, Message, Sender
from chat_relay.models.chat_session import utcnow
from chat_relay.services.chat.exceptions import MessageValidationError

log = structlog.get_logger(__name__)


@dataclass
class ChatHistory:
    session: ChatSession
    messages: List[Message] = field(default_factory=list)


def _coerce_sender(sender: Union[Sender, str]) -> Sender:
    if isinstance(sender, Sender):
        return sender
    try:
        return Sender(str(sender).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in Sender)
        raise MessageValidationError(f"invalid sender {sender!r} (expected one of {allowed})") from None


class ChatService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    async def _find(db: AsyncSession, session_id: str) -> Optional[ChatSession]:
        result = await db.execute(select(ChatSession).where(ChatSession.session_id == session_id))
        return result.scalar_one_or_none()

    async def upsert_session(
        self,
        session_id: str,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> ChatSession:
        """Find-or-create per ``session_id``; bei Treffer wird ``updated_at`` aufgefrischt."""
        if not session_id:
            raise MessageValidationError("session_id required")

        async with self._session_factory() as db:
            chat = await self._find(db, session_id)
            if chat is None:
                chat = ChatSession(session_id=session_id, user_agent=user_agent, ip_address=ip_address)
                db.add(chat)
                try:
                    await db.commit()
                    log.info("[chat] session_created", session_id=session_id, chat_id=chat.id)
                    return chat
                except IntegrityError:
                    # paralleler Insert hat gewonnen (unique session_id)
                    await db.rollback()
                    chat = await self._find(db, session_id)
                    if chat is None:
                        raise
                    log.info("[chat] session_insert_race", session_id=session_id)

            chat.updated_at = utcnow()
            if user_agent:
                chat.user_agent = user_agent
            if ip_address:
                chat.ip_address = ip_address
            await db.commit()
            return chat

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        async with self._session_factory() as db:
            return await self._find(db, session_id)

    async def save_message(self, *, chat_id: int, sender: Union[Sender, str], text: str) -> Message:
        role = _coerce_sender(sender)
        if not isinstance(text, str) or not text:
            raise MessageValidationError("text must be a non-empty string")

        async with self._session_factory() as db:
            msg = Message(chat_id=chat_id, sender=role, text=text)
            db.add(msg)
            await db.commit()
            log.debug("[chat] message_saved", chat_id=chat_id, message_id=msg.id, sender=role.value)
            return msg

    async def _messages_for(self, db: AsyncSession, chat_ids: List[int]) -> Dict[int, List[Message]]:
        grouped: Dict[int, List[Message]] = defaultdict(list)
        if not chat_ids:
            return grouped
        result = await db.execute(
            select(Message)
            .where(Message.chat_id.in_(chat_ids))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        for msg in result.scalars().all():
            grouped[msg.chat_id].append(msg)
        return grouped

    async def get_chat_by_session_id(self, session_id: str) -> Optional[ChatHistory]:
        async with self._session_factory() as db:
            chat = await self._find(db, session_id)
            if chat is None:
                return None
            grouped = await self._messages_for(db, [chat.id])
            return ChatHistory(session=chat, messages=grouped.get(chat.id, []))

    async def get_all_chats_with_messages(self) -> List[ChatHistory]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatSession).order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
            )
            chats = list(result.scalars().all())
            grouped = await self._messages_for(db, [c.id for c in chats])
            return [ChatHistory(session=c, messages=grouped.get(c.id, [])) for c in chats]
