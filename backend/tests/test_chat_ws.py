from __future__ import annotations

import pytest
from conftest import make_settings
from fastapi.testclient import TestClient

from chat_relay.main import create_app
from chat_relay.services.llm import mock_reply


@pytest.fixture
def client(tmp_path):
    settings = make_settings(f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}")
    with TestClient(create_app(settings)) as c:
        yield c


def _frame(event, data):
    return {"event": event, "data": data}


def _sync(ws):
    """Ping/Pong: alles davor Gesendete ist serverseitig verarbeitet."""
    ws.send_json(_frame("ping", "sync"))
    assert ws.receive_json() == _frame("pong", "sync")


def test_user_message_roundtrip_over_socket(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json(_frame("user_message", {"sessionId": "s1", "text": "hi", "tempId": "c-1"}))

        frames = [ws.receive_json() for _ in range(4)]

    assert [f["event"] for f in frames] == ["new_message", "ai_typing", "ai_typing", "new_message"]
    assert frames[0]["data"]["sender"] == "USER"
    assert frames[0]["data"]["text"] == "hi"
    assert frames[0]["data"]["tempId"] == "c-1"
    assert frames[1]["data"] is True
    assert frames[2]["data"] is False
    assert frames[3]["data"]["sender"] == "AI"
    assert frames[3]["data"]["text"] == mock_reply("hi")

    r = client.get("/api/chats/s1")
    assert [m["sender"] for m in r.json()["messages"]] == ["USER", "AI"]


def test_two_connections_in_one_room(client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        a.send_json(_frame("join_chat", {"sessionId": "s1", "isAdmin": False}))
        b.send_json(_frame("join_chat", {"sessionId": "s1", "isAdmin": True}))
        _sync(a)
        _sync(b)

        a.send_json(_frame("user_message", {"sessionId": "s1", "text": "hello", "tempId": "t"}))
        a_frames = [a.receive_json() for _ in range(4)]
        b_frames = [b.receive_json() for _ in range(4)]

    assert [f["event"] for f in a_frames] == ["new_message", "ai_typing", "ai_typing", "new_message"]
    assert [f["event"] for f in b_frames] == ["new_message", "ai_typing", "ai_typing", "new_message"]
    b_messages = [f["data"] for f in b_frames if f["event"] == "new_message"]
    assert [m["sender"] for m in b_messages] == ["USER", "AI"]


def test_admin_message_to_unknown_session_over_socket(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json(_frame("admin_message", {"sessionId": "ghost", "text": "hello"}))
        assert ws.receive_json() == _frame("message_error", {"error": "no_session"})


def test_malformed_frames_keep_connection_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("this is not json")
        ws.send_json(["not", "an", "object"])
        ws.send_json({"data": {"sessionId": "s1"}})
        ws.send_json(_frame("user_message", {"sessionId": "", "text": "ignored"}))
        ws.send_json(_frame("teleport", {"sessionId": "s1"}))
        _sync(ws)

        ws.send_json(_frame("admin_message", {"sessionId": "nobody", "text": "x"}))
        assert ws.receive_json()["event"] == "message_error"


def test_unknown_event_leaves_connection_usable(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json(_frame("teleport", {"sessionId": "s1", "text": "beam me up"}))
        _sync(ws)

        ws.send_json(_frame("user_message", {"sessionId": "s1", "text": "still there?"}))
        frames = [ws.receive_json() for _ in range(4)]

    assert [f["event"] for f in frames] == ["new_message", "ai_typing", "ai_typing", "new_message"]
    r = client.get("/api/chats/s1")
    assert [m["text"] for m in r.json()["messages"]][0] == "still there?"
