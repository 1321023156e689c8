"""
Shared pytest configuration.

Puts ``backend/`` on sys.path so ``import chat_relay`` works without install,
and provides an in-memory database plus fake connections.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import pytest
import pytest_asyncio

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from chat_relay.core.config import Settings  # noqa: E402
from chat_relay.database import create_all, create_engine_for, create_session_factory  # noqa: E402
from chat_relay.services.chat import ChatService  # noqa: E402
from chat_relay.services.llm import AIReplyGenerator  # noqa: E402
from chat_relay.services.realtime import ChatCoordinator  # noqa: E402

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class FakeConnection:
    """Records every emitted (event, data) pair."""

    def __init__(self, conn_id: str, *, user_agent: str = "pytest-agent", ip_address: Optional[str] = "127.0.0.1") -> None:
        self.id = conn_id
        self.user_agent = user_agent
        self.ip_address = ip_address
        self.events: List[Tuple[str, Any]] = []

    async def send(self, event: str, data: Any) -> bool:
        self.events.append((event, data))
        return True

    def named(self, event: str) -> List[Any]:
        return [data for name, data in self.events if name == event]


class DeadConnection(FakeConnection):
    """Socket already gone: every send is dropped and reported as failed."""

    async def send(self, event: str, data: Any) -> bool:
        self.events.append((event, data))
        return False


def make_settings(database_url: str = MEMORY_URL, **overrides: Any) -> Settings:
    values = dict(
        database_url=database_url,
        db_auto_create=True,
        groq_api_key=None,
        ai_mock_mode=False,
        frontend_origin="*",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest_asyncio.fixture
async def engine():
    eng = create_engine_for(MEMORY_URL)
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def chat_service(engine) -> ChatService:
    return ChatService(create_session_factory(engine))


@pytest.fixture
def mock_ai() -> AIReplyGenerator:
    return AIReplyGenerator(mock=True)


@pytest_asyncio.fixture
async def coordinator(chat_service, mock_ai):
    coord = ChatCoordinator(chat_service, mock_ai, db_timeout_s=5.0)
    yield coord
    await coord.drain()
