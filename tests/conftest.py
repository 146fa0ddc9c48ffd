"""Shared test fixtures for rpms_chat.

The RPMS backend is faked with an in-memory ``FakeBackend`` served through
``httpx.MockTransport``, so no test touches the network.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from rpms_chat.services.chat_client import ChatClient
from rpms_chat.services.conversation import ConversationManager
from rpms_chat.services.session import Session
from rpms_chat.services.transport import TransportClient

BASE_URL = "http://rpms.test/api/v1"
ME = "u-me"


def make_message(
    id: str,
    sender_id: str = "u-editor",
    receiver_id: str = ME,
    content: str = "hi",
    created_at: str = "2024-03-01T09:00:00",
    **extra: Any,
) -> Dict[str, Any]:
    data = {
        "id": id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "content": content,
        "is_read": False,
        "created_at": created_at,
    }
    data.update(extra)
    return data


class FakeBackend:
    """In-memory stand-in for the /chat endpoints of the RPMS backend."""

    def __init__(self) -> None:
        self.contacts: Any = [
            {"id": "u-editor", "name": "Ada Editor", "email": "ada@rpms.test", "role": "editor",
             "avatar": "", "unread_count": 2},
            {"id": "u-coord", "name": "Carl Coordinator", "email": "carl@rpms.test", "role": "coordinator",
             "avatar": "", "unread_count": 0},
            {"id": "u-admin", "name": "Bea Admin", "email": "bea@rpms.test", "role": "admin",
             "avatar": "", "unread_count": 0},
        ]
        self.threads: Dict[str, List[Dict[str, Any]]] = {
            "u-editor": [
                make_message("m1", content="Your paper is under review", created_at="2024-03-01T09:00:00"),
                make_message("m2", sender_id=ME, receiver_id="u-editor", content="Thanks!",
                             created_at="2024-03-01T09:05:00", is_read=True),
                make_message("m3", content="Reviews are in", created_at="2024-03-02T10:00:00",
                             reply_to_message_id="m2"),
            ],
            "u-coord": [],
            "u-admin": [],
        }
        self.requests: List[httpx.Request] = []
        self.overrides: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.unread = 2
        self._seq = 100
        self._clock = datetime(2024, 3, 3, 12, 0, 0)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, route: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/api/v1{route}"]

    def sent_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.calls("/chat/send")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = request.url.path[len("/api/v1"):]
        if route in self.overrides:
            return self.overrides[route](request)

        if request.method == "GET" and route == "/chat/contacts":
            # json.dumps so that a literal null payload is sent as "null"
            return httpx.Response(200, content=json.dumps(self.contacts).encode(),
                                  headers={"content-type": "application/json"})
        if request.method == "GET" and route == "/chat/messages":
            contact_id = request.url.params.get("contact_id")
            return httpx.Response(200, json=self.threads.get(contact_id, []))
        if request.method == "POST" and route == "/chat/send":
            return self._send(json.loads(request.content))
        if request.method == "POST" and route == "/chat/upload":
            return httpx.Response(200, json={
                "url": "https://files.rpms.test/paper.pdf",
                "name": "paper.pdf",
                "type": "application/pdf",
                "size": 2048,
            })
        if request.method == "GET" and route == "/chat/unread-count":
            return httpx.Response(200, json={"count": self.unread})
        return httpx.Response(404, json={"error": "not found"})

    def _send(self, body: Dict[str, Any]) -> httpx.Response:
        self._seq += 1
        self._clock += timedelta(minutes=1)
        msg = make_message(
            f"m{self._seq}",
            sender_id=ME,
            receiver_id=body["receiver_id"],
            content=body.get("content", ""),
            created_at=self._clock.isoformat(),
        )
        for key in ("attachment_url", "attachment_name", "attachment_type", "attachment_size",
                    "reply_to_message_id", "is_forwarded"):
            if key in body:
                msg[key] = body[key]
        self.threads.setdefault(body["receiver_id"], []).append(msg)
        return httpx.Response(201, json=msg)


def failing(status: int = 500, body: Optional[Dict[str, Any]] = None) -> Callable[[httpx.Request], httpx.Response]:
    def _handler(_: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status, text="<html>boom</html>")
        return httpx.Response(status, json=body)
    return _handler


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def session() -> Session:
    return Session(token="tok-123", user_id=ME, user_name="Me Author")


@pytest.fixture
def transport_client(backend: FakeBackend, session: Session) -> TransportClient:
    return TransportClient(session, base_url=BASE_URL, timeout=5, transport=backend.transport)


@pytest.fixture
def chat_client(transport_client: TransportClient) -> ChatClient:
    return ChatClient(transport_client)


@pytest.fixture
def conversation(chat_client: ChatClient) -> ConversationManager:
    # Long intervals: tests trigger refreshes by hand
    return ConversationManager(chat_client, message_interval=60, contact_interval=60, unread_interval=60)


@pytest.fixture
def message_factory() -> Callable[..., Dict[str, Any]]:
    return make_message


@pytest.fixture
def failing_route() -> Callable[..., Callable[[httpx.Request], httpx.Response]]:
    return failing
