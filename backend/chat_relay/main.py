from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from chat_relay.api.v1.api import api_router
from chat_relay.core.config import Settings, configure_logging, get_settings
from chat_relay.database import create_all, create_engine_for, create_session_factory
from chat_relay.services.chat import ChatService
from chat_relay.services.llm import AIReplyGenerator
from chat_relay.services.realtime import ChatCoordinator, RoomRegistry


# ---- Access-Log-Filter: Health-Check stummschalten ----
class _HealthSilencer(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        return '"GET / HTTP' not in msg


logging.getLogger("uvicorn.access").addFilter(_HealthSilencer())
# -------------------------------------------------------

log = logging.getLogger("uvicorn.error")
req_log = structlog.get_logger("chat_relay.requests")


def create_app(
    settings: Optional[Settings] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    # ohne DATABASE_URL scheitert get_settings() → Start bricht ab
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        engine = create_engine_for(settings.database_url, echo=settings.debug_sql)
        try:
            if settings.db_auto_create:
                await create_all(engine)
            else:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except Exception as e:
            log.error("Database unreachable, aborting startup: %s", e)
            await engine.dispose()
            raise
        log.info("Database connected.")

        client = http_client
        owns_client = client is None and not settings.ai_mock
        if owns_client:
            client = httpx.AsyncClient(timeout=settings.ai_timeout_s)

        chat_service = ChatService(create_session_factory(engine))
        ai = AIReplyGenerator.from_settings(settings, client)
        app.state.settings = settings
        app.state.chat_service = chat_service
        app.state.coordinator = ChatCoordinator(
            chat_service, ai, RoomRegistry(), db_timeout_s=settings.db_timeout_s
        )
        log.info("AI replies: %s (model=%s)", "mock" if ai.mock else "groq", ai.model)

        try:
            yield
        finally:
            await app.state.coordinator.drain()
            if owns_client and client is not None:
                await client.aclose()
            await engine.dispose()

    app = FastAPI(title="Chat Relay", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _log_requests(request: Request, call_next):
        req_log.info(
            "[req]",
            method=request.method,
            path=request.url.path,
            origin=request.headers.get("origin"),
        )
        return await call_next(request)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error on %s %s: %r", request.method, request.url.path, exc)
        return JSONResponse({"message": "Internal Server Error"}, status_code=500)

    app.include_router(api_router)
    return app
