# backend/chat_relay/api/v1/endpoints/chats.py
from __future__ import annotations

from typing import List, Optional

import structlog
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from chat_relay.api.dependencies import get_chat_service
from chat_relay.api.v1.schemas.chat import (
    ChatOut,
    MessageOut,
    SendMessageRequest,
    SendMessageResponse,
)
from chat_relay.services.chat import ChatService, MessageValidationError

router = APIRouter(prefix="/chats", tags=["chats"])
log = structlog.get_logger(__name__)


# ----------------------------------------------------------------------
# Verlauf
# ----------------------------------------------------------------------
@router.get("", response_model=List[ChatOut], summary="Alle Chats inkl. Nachrichten")
async def get_all_chats(chat_service: ChatService = Depends(get_chat_service)) -> List[ChatOut]:
    histories = await chat_service.get_all_chats_with_messages()
    return [ChatOut.from_history(h) for h in histories]


@router.post("/send", response_model=SendMessageResponse, summary="Testnachricht speichern")
async def test_send_message(
    body: Optional[SendMessageRequest] = Body(default=None),
    chat_service: ChatService = Depends(get_chat_service),
):
    body = body or SendMessageRequest()
    if not body.sessionId or not body.sender or not body.text:
        return JSONResponse({"message": "sessionId, sender, text required"}, status_code=400)

    try:
        chat = await chat_service.upsert_session(body.sessionId)
        message = await chat_service.save_message(chat_id=chat.id, sender=body.sender, text=body.text)
    except MessageValidationError as exc:
        return JSONResponse({"message": str(exc)}, status_code=400)

    log.info("[chats] test_send_saved", session_id=body.sessionId, message_id=message.id)
    return SendMessageResponse(message="saved", data=MessageOut.from_message(message))


@router.get("/{session_id}", response_model=ChatOut, summary="Ein Chat inkl. Nachrichten")
async def get_chat_by_session_id(
    session_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    history = await chat_service.get_chat_by_session_id(session_id)
    if history is None:
        return JSONResponse({"message": "Chat not found"}, status_code=404)
    return ChatOut.from_history(history)
