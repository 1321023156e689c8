from __future__ import annotations

import pytest
from sqlalchemy import func, select

from chat_relay.models import ChatSession, Message, Sender
from chat_relay.services.chat import ChatService, MessageValidationError


async def _count(engine, model) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_upsert_twice_keeps_one_session_and_touches_updated_at(chat_service, engine):
    first = await chat_service.upsert_session("s1", user_agent="ua", ip_address="10.0.0.1")
    second = await chat_service.upsert_session("s1")

    assert second.id == first.id
    assert second.updated_at >= first.updated_at
    # Metadaten bleiben erhalten, wenn nichts Neues mitkommt
    assert second.user_agent == "ua"
    assert second.ip_address == "10.0.0.1"
    assert await _count(engine, ChatSession) == 1


@pytest.mark.asyncio
async def test_upsert_refreshes_client_metadata(chat_service):
    await chat_service.upsert_session("s1", user_agent="old-agent")
    chat = await chat_service.upsert_session("s1", user_agent="new-agent", ip_address="10.0.0.9")

    assert chat.user_agent == "new-agent"
    assert chat.ip_address == "10.0.0.9"


@pytest.mark.asyncio
async def test_upsert_recovers_from_concurrent_insert(chat_service, engine, monkeypatch):
    existing = await chat_service.upsert_session("race")

    original_find = ChatService._find
    calls = {"n": 0}

    async def stale_find(db, session_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None  # simuliert: der andere Insert war noch nicht sichtbar
        return await original_find(db, session_id)

    monkeypatch.setattr(ChatService, "_find", staticmethod(stale_find))

    chat = await chat_service.upsert_session("race")

    assert chat.id == existing.id
    assert calls["n"] == 2
    assert await _count(engine, ChatSession) == 1


@pytest.mark.asyncio
async def test_upsert_requires_session_id(chat_service):
    with pytest.raises(MessageValidationError):
        await chat_service.upsert_session("")


@pytest.mark.asyncio
async def test_save_message_rejects_unknown_sender(chat_service, engine):
    chat = await chat_service.upsert_session("s1")
    with pytest.raises(MessageValidationError):
        await chat_service.save_message(chat_id=chat.id, sender="BOT", text="hi")
    assert await _count(engine, Message) == 0


@pytest.mark.asyncio
async def test_save_message_rejects_empty_text(chat_service):
    chat = await chat_service.upsert_session("s1")
    with pytest.raises(MessageValidationError):
        await chat_service.save_message(chat_id=chat.id, sender=Sender.USER, text="")


@pytest.mark.asyncio
async def test_save_message_accepts_role_strings(chat_service):
    chat = await chat_service.upsert_session("s1")
    msg = await chat_service.save_message(chat_id=chat.id, sender="admin", text="hello")

    assert msg.id is not None
    assert msg.sender is Sender.ADMIN
    assert msg.chat_id == chat.id


@pytest.mark.asyncio
async def test_get_chat_by_session_id_unknown_is_none(chat_service):
    assert await chat_service.get_chat_by_session_id("nope") is None


@pytest.mark.asyncio
async def test_get_chat_by_session_id_returns_messages_in_order(chat_service):
    chat = await chat_service.upsert_session("s1")
    for sender, text in [(Sender.USER, "one"), (Sender.AI, "two"), (Sender.ADMIN, "three")]:
        await chat_service.save_message(chat_id=chat.id, sender=sender, text=text)

    history = await chat_service.get_chat_by_session_id("s1")

    assert history is not None
    assert history.session.session_id == "s1"
    assert [m.text for m in history.messages] == ["one", "two", "three"]
    assert [m.sender for m in history.messages] == [Sender.USER, Sender.AI, Sender.ADMIN]


@pytest.mark.asyncio
async def test_get_all_chats_most_recent_first_including_empty(chat_service):
    a = await chat_service.upsert_session("a")
    await chat_service.upsert_session("b")
    await chat_service.save_message(chat_id=a.id, sender=Sender.USER, text="hello a")
    await chat_service.upsert_session("a")  # a wird wieder aktuell

    histories = await chat_service.get_all_chats_with_messages()

    assert [h.session.session_id for h in histories] == ["a", "b"]
    assert [m.text for m in histories[0].messages] == ["hello a"]
    assert histories[1].messages == []


@pytest.mark.asyncio
async def test_get_session_does_not_create(chat_service, engine):
    assert await chat_service.get_session("ghost") is None
    assert await _count(engine, ChatSession) == 0
