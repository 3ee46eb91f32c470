from __future__ import annotations

import asyncio
import os
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

# Configuration de test avant tout import de app.*
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-with-at-least-32-characters!")
os.environ.setdefault("ENABLE_AI_CHAT", "false")

from app.core.realtime import ConnectionRegistry  # noqa: E402
from app.core.security import issue_access_token  # noqa: E402
from app.services.ai_service import AIReply, AIServiceError  # noqa: E402
from app.services.chat_relay import ChatRelay  # noqa: E402
from app.services.conversation_service import as_uuid  # noqa: E402
from app.services.notification_relay import NotificationRelay  # noqa: E402
from app.services.realtime_server import RealtimeServer  # noqa: E402


class FakeTransport:
    """Transport en mémoire : rooms + journal des émissions par connexion."""

    def __init__(self) -> None:
        self.groups: Dict[str, set] = defaultdict(set)
        self.sids: set = set()
        self.received: Dict[str, List[tuple]] = defaultdict(list)
        self.group_log: List[tuple] = []
        self.broadcasts: List[tuple] = []

    async def join(self, connection_id: str, group: str) -> None:
        self.groups[group].add(connection_id)
        self.sids.add(connection_id)

    async def leave(self, connection_id: str, group: str) -> None:
        self.groups[group].discard(connection_id)

    async def emit_to_group(self, group: str, event: str, payload: Any, *, skip: Optional[str] = None) -> None:
        self.group_log.append((group, event, payload))
        for sid in sorted(self.groups.get(group, ())):
            if sid != skip:
                self.received[sid].append((event, payload))

    async def emit_to_connection(self, connection_id: str, event: str, payload: Any) -> None:
        self.received[connection_id].append((event, payload))

    async def emit_all(self, event: str, payload: Any) -> None:
        self.broadcasts.append((event, payload))
        for sid in sorted(self.sids):
            self.received[sid].append((event, payload))

    def events(self, sid: str, name: str | None = None) -> List[tuple]:
        return [(e, p) for e, p in self.received.get(sid, []) if name is None or e == name]

    def members(self, group: str) -> set:
        return set(self.groups.get(group, ()))


class FakeConversationStore:
    """ConversationStore en mémoire (mêmes signatures que la version SQLAlchemy)."""

    def __init__(self) -> None:
        self.conversations: Dict[uuid.UUID, SimpleNamespace] = {}
        self.messages: List[SimpleNamespace] = []
        self.fail_on: set = set()

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"db down ({name})")

    def seed(self, user_id: str, title: str = "New Chat") -> SimpleNamespace:
        now = datetime.now(timezone.utc)
        conv = SimpleNamespace(id=uuid.uuid4(), user_id=user_id, title=title, created_at=now, updated_at=now)
        self.conversations[conv.id] = conv
        return conv

    async def get_owned(self, conversation_id: Any, user_id: str):
        self._maybe_fail("get_owned")
        conv = self.conversations.get(as_uuid(conversation_id))
        if conv is None or conv.user_id != user_id:
            return None
        return conv

    async def create(self, user_id: str, title: str | None = None):
        self._maybe_fail("create")
        return self.seed(user_id, title or "New Chat")

    async def delete_owned(self, conversation_id: Any, user_id: str) -> int:
        self._maybe_fail("delete_owned")
        conv = await self.get_owned(conversation_id, user_id)
        if conv is None:
            return 0
        del self.conversations[conv.id]
        self.messages = [m for m in self.messages if m.session_id != conv.id]
        return 1

    async def add_message(self, conversation_id, role, content, *, attachments=None, metadata=None):
        self._maybe_fail(f"add_message:{role}")
        message = SimpleNamespace(
            id=uuid.uuid4(),
            session_id=conversation_id,
            role=role,
            content=content,
            attachments=attachments,
            meta=metadata,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message

    async def history(self, conversation_id: Any, user_id: str):
        conv = await self.get_owned(conversation_id, user_id)
        if conv is None:
            return []
        return [m for m in self.messages if m.session_id == conv.id]

    async def recent_messages(self, conversation_id: Any, limit: int = 10):
        cid = as_uuid(conversation_id)
        return [m for m in self.messages if m.session_id == cid][-limit:]


class FakeAI:
    """Collaborateur IA : écho, échec forcé, ou réponse retenue par un asyncio.Event."""

    enabled = True

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.fail = False
        self.gates: Dict[str, asyncio.Event] = {}

    async def reply(self, conversation_id: str, content: str) -> AIReply:
        self.calls.append((conversation_id, content))
        gate = self.gates.get(content)
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise AIServiceError("provider down")
        return AIReply(content=f"echo: {content}", metadata={"model": "fake"})


class FakeNotificationStore:
    def __init__(self) -> None:
        self.unread: Dict[str, set] = defaultdict(set)

    def seed(self, user_id: str) -> str:
        nid = str(uuid.uuid4())
        self.unread[user_id].add(nid)
        return nid

    async def mark_read(self, notification_id: Any, user_id: str) -> bool:
        if notification_id in self.unread[user_id]:
            self.unread[user_id].discard(notification_id)
            return True
        return False

    async def mark_all_read(self, user_id: str) -> int:
        count = len(self.unread[user_id])
        self.unread[user_id].clear()
        return count

    async def unread_count(self, user_id: str) -> int:
        return len(self.unread[user_id])


def token_for(user_id: str, **kwargs: Any) -> str:
    return issue_access_token(
        user_id,
        email=kwargs.pop("email", f"{user_id}@example.com"),
        role=kwargs.pop("role", "CUSTOMER"),
        **kwargs,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def conversations() -> FakeConversationStore:
    return FakeConversationStore()


@pytest.fixture
def ai() -> FakeAI:
    return FakeAI()


@pytest.fixture
def notification_store() -> FakeNotificationStore:
    return FakeNotificationStore()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def server(transport, conversations, ai, notification_store, registry) -> RealtimeServer:
    return RealtimeServer(
        transport,
        registry=registry,
        chat=ChatRelay(transport, conversations, ai),
        notifications=NotificationRelay(transport, registry, notification_store),
    )


@pytest.fixture
def connect(server):
    """Ouvre une connexion admise pour user_id (token valide dans le payload d’auth)."""

    async def _connect(sid: str, user_id: str):
        return await server.on_connect(sid, {}, {"token": token_for(user_id)})

    return _connect


@pytest.fixture
def make_token():
    return token_for
