# 📁 backend/chat_relay/api/v1/endpoints/chat_ws.py
"""
WebSocket-Endpoint für den Chat-Relay.

Frames sind JSON-Textframes in beiden Richtungen:
```json
{ "event": "user_message", "data": { "sessionId": "abc", "text": "Hallo", "tempId": "t1" } }
```
Kaputte Frames werden geloggt und ignoriert, die Verbindung bleibt offen.
"""
from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, Optional, Tuple

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from chat_relay.api.dependencies import get_coordinator_from_app
from chat_relay.services.realtime import events as ev

router = APIRouter(tags=["ws"])
log = structlog.get_logger(__name__)


class WebSocketConnection:
    """Adapter WebSocket -> Connection (siehe services.realtime.rooms)."""

    def __init__(self, ws: WebSocket) -> None:
        self.ws = ws
        self.id = uuid.uuid4().hex
        self.user_agent = ws.headers.get("user-agent") or ""
        self.ip_address = ws.client.host if ws.client else None
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, data: Any) -> bool:
        if self.ws.application_state != WebSocketState.CONNECTED:
            return False
        # mehrere Tasks pro Verbindung senden parallel
        async with self._send_lock:
            try:
                await self.ws.send_json({"event": event, "data": data})
                return True
            except Exception as e:
                log.debug("[ws] send_dropped", connection_id=self.id, event_name=event, err=repr(e))
                return False


def _parse_frame(raw: str) -> Optional[Tuple[str, Any]]:
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict):
        return None
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        return None
    return event, frame.get("data")


@router.websocket("/ws")
async def chat_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    coordinator = get_coordinator_from_app(websocket.app)
    conn = WebSocketConnection(websocket)
    log.info("[ws] connected", connection_id=conn.id, ip=conn.ip_address)

    try:
        while True:
            raw = await websocket.receive_text()
            frame = _parse_frame(raw)
            if frame is None:
                short = raw if len(raw) < 256 else raw[:252] + "..."
                log.warning("[ws] invalid_frame", connection_id=conn.id, raw=short)
                continue

            event, data = frame
            if event == ev.PING:
                await conn.send(ev.PONG, data)
                continue
            if event == ev.JOIN_CHAT:
                # Room-Mitgliedschaft muss vor den folgenden Events stehen
                await coordinator.dispatch(conn, event, data)
                continue

            # Nachrichten eigenständig abarbeiten, die KI-Antwort blockiert sonst die Verbindung
            coordinator.spawn(coordinator.dispatch(conn, event, data))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        log.exception("[ws] connection_error", connection_id=conn.id, err=repr(e))
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.close(code=1011)
    finally:
        await coordinator.disconnect(conn)
