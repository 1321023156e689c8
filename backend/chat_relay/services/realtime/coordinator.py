# 📁 backend/chat_relay/services/realtime/coordinator.py
"""
Realtime-Koordination pro Verbindung: Room-Join, User-/Admin-Nachrichten,
Typing-Indikator und Fehlerrückmeldung an den Absender.

Ablauf user_message (strikt in dieser Reihenfolge):
  upsert Session -> USER speichern -> Echo an Absender -> Broadcast an Room
  -> ai_typing(true) -> KI-Antwort -> ai_typing(false) -> AI speichern
  -> Echo an Absender -> Broadcast an Room

Persistenzfehler brechen den Rest ab und erzeugen genau ein ``message_error``
an den Absender. Bereits gesendete Broadcasts bleiben stehen.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, Optional, Set, TypeVar

import structlog

from chat_relay.models import Sender
from chat_relay.services.chat import ChatService
from chat_relay.services.llm import AIReplyGenerator
from chat_relay.services.realtime import events as ev
from chat_relay.services.realtime.rooms import Connection, RoomRegistry

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class ChatCoordinator:
    def __init__(
        self,
        chat_service: ChatService,
        ai: AIReplyGenerator,
        rooms: Optional[RoomRegistry] = None,
        *,
        db_timeout_s: float = 10.0,
    ) -> None:
        self.chat_service = chat_service
        self.ai = ai
        self.rooms = rooms or RoomRegistry()
        self.db_timeout_s = db_timeout_s
        self.join_upsert_failures = 0
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _db(self, op: Awaitable[T]) -> T:
        return await asyncio.wait_for(op, timeout=self.db_timeout_s)

    def _describe(self, exc: BaseException) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return f"persistence timed out after {self.db_timeout_s:g}s"
        return str(exc) or exc.__class__.__name__

    async def _broadcast(self, session_id: str, event: str, data: Any, *, exclude: Connection) -> None:
        for member in self.rooms.members(session_id):
            if member is exclude:
                continue
            await member.send(event, data)

    async def _emit_room(self, session_id: str, event: str, data: Any, *, sender: Connection) -> None:
        # ganzer Room inkl. Absender, auch wenn dieser nie gejoint ist
        if not self.rooms.is_member(session_id, sender):
            await sender.send(event, data)
        for member in self.rooms.members(session_id):
            await member.send(event, data)

    async def _fail(self, conn: Connection, error: str, detail: Optional[str] = None) -> None:
        await conn.send(ev.MESSAGE_ERROR, ev.ErrorPayload(error=error, detail=detail).to_wire())

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wartet auf laufende Hintergrund-Tasks (Upserts, Nachrichten) vor dem Shutdown."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # protocol
    # ------------------------------------------------------------------
    async def dispatch(self, conn: Connection, event: str, data: Any) -> None:
        payload: Dict[str, Any] = data if isinstance(data, dict) else {}
        session_id = _as_text(payload.get("sessionId"))

        if event == ev.JOIN_CHAT:
            await self.join(conn, session_id, is_admin=bool(payload.get("isAdmin")))
        elif event == ev.USER_MESSAGE:
            await self.user_message(conn, session_id, _as_text(payload.get("text")), payload.get("tempId"))
        elif event == ev.ADMIN_MESSAGE:
            await self.admin_message(conn, session_id, _as_text(payload.get("text")), payload.get("tempId"))
        else:
            log.warning("[ws] unknown_event", connection_id=conn.id, event_name=event)

    async def join(self, conn: Connection, session_id: str, *, is_admin: bool = False) -> None:
        if not session_id:
            return
        self.rooms.join(session_id, conn)
        log.info("[ws] joined", connection_id=conn.id, session_id=session_id, is_admin=is_admin)

        if not is_admin:
            self.spawn(self._upsert_on_join(conn, session_id))

    async def _upsert_on_join(self, conn: Connection, session_id: str) -> None:
        try:
            await self._db(
                self.chat_service.upsert_session(
                    session_id, user_agent=conn.user_agent, ip_address=conn.ip_address
                )
            )
        except Exception as e:
            self.join_upsert_failures += 1
            log.warning(
                "[ws] join_upsert_failed",
                connection_id=conn.id,
                session_id=session_id,
                err=self._describe(e),
                failures=self.join_upsert_failures,
            )

    async def user_message(
        self, conn: Connection, session_id: str, text: str, temp_id: Any = None
    ) -> None:
        if not session_id or not text:
            return

        log.info("[ws] user_message_recv", connection_id=conn.id, session_id=session_id, temp_id=temp_id)
        try:
            chat = await self._db(
                self.chat_service.upsert_session(
                    session_id, user_agent=conn.user_agent, ip_address=conn.ip_address
                )
            )
            user_msg = await self._db(
                self.chat_service.save_message(chat_id=chat.id, sender=Sender.USER, text=text)
            )
            user_payload = ev.UserEcho.from_message(user_msg, temp_id=temp_id).to_wire()

            await conn.send(ev.NEW_MESSAGE, user_payload)
            await self._broadcast(session_id, ev.NEW_MESSAGE, user_payload, exclude=conn)

            await self._emit_room(session_id, ev.AI_TYPING, True, sender=conn)
            ai_text = await self.ai.generate(text)
            await self._emit_room(session_id, ev.AI_TYPING, False, sender=conn)

            ai_msg = await self._db(
                self.chat_service.save_message(chat_id=chat.id, sender=Sender.AI, text=ai_text)
            )
            ai_payload = ev.AiEcho.from_message(ai_msg).to_wire()

            await conn.send(ev.NEW_MESSAGE, ai_payload)
            await self._broadcast(session_id, ev.NEW_MESSAGE, ai_payload, exclude=conn)
        except Exception as e:
            log.error(
                "[ws] user_message_failed",
                connection_id=conn.id,
                session_id=session_id,
                err=self._describe(e),
            )
            await self._fail(conn, ev.ERR_SAVE_FAILED, self._describe(e))

    async def admin_message(
        self, conn: Connection, session_id: str, text: str, temp_id: Any = None
    ) -> None:
        if not session_id or not text:
            return

        log.info("[ws] admin_message_recv", connection_id=conn.id, session_id=session_id, temp_id=temp_id)
        try:
            chat = await self._db(self.chat_service.get_session(session_id))
            if chat is None:
                log.warning("[ws] admin_message_no_session", session_id=session_id)
                await self._fail(conn, ev.ERR_NO_SESSION)
                return

            msg = await self._db(
                self.chat_service.save_message(chat_id=chat.id, sender=Sender.ADMIN, text=text)
            )
            payload = ev.AdminEcho.from_message(msg, temp_id=temp_id).to_wire()

            await conn.send(ev.NEW_MESSAGE, payload)
            await self._broadcast(session_id, ev.NEW_MESSAGE, payload, exclude=conn)
        except Exception as e:
            log.error(
                "[ws] admin_message_failed",
                connection_id=conn.id,
                session_id=session_id,
                err=self._describe(e),
            )
            await self._fail(conn, ev.ERR_SAVE_FAILED, self._describe(e))

    async def disconnect(self, conn: Connection) -> None:
        left = self.rooms.leave_all(conn)
        log.info("[ws] disconnected", connection_id=conn.id, rooms=left)
