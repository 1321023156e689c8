# backend/chat_relay/api/dependencies.py
from __future__ import annotations

from fastapi import Request

from chat_relay.services.chat import ChatService
from chat_relay.services.realtime import ChatCoordinator


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_coordinator_from_app(app) -> ChatCoordinator:
    return app.state.coordinator
