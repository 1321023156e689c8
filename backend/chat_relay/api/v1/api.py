from __future__ import annotations

from fastapi import APIRouter

from chat_relay.api.v1.endpoints import chat_ws, chats, system

api_router = APIRouter()

# Health (→ /)
api_router.include_router(system.router)

# WebSocket (→ /ws)
api_router.include_router(chat_ws.router)

# REST (→ /api/chats)
api_router.include_router(chats.router, prefix="/api")
