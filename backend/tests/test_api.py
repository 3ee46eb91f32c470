import pytest
from fastapi.testclient import TestClient

from app.core.settings import settings
from app.db.session import get_db
from app.main import app


class RecordingNotificationService:
    def __init__(self, online):
        self.online = set(online)
        self.calls = []

    async def create_and_push(self, user_id, **fields):
        self.calls.append((user_id, fields))
        return {"notification": {"id": f"n-{user_id}"}, "delivered": user_id in self.online}


@pytest.fixture
def client(monkeypatch, server):
    monkeypatch.setattr(settings, "API_KEY", "internal-key")
    monkeypatch.setattr(app.state, "realtime", server)
    return TestClient(app)


@pytest.fixture
def service(monkeypatch):
    svc = RecordingNotificationService(online={"u1"})
    monkeypatch.setattr(app.state, "notification_service", svc)
    return svc


AUTH = {"X-API-Key": "internal-key"}


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json() == {"status": "ok", "env": settings.ENV, "websocket": settings.ENABLE_WEBSOCKET}


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-Id": "req-123"})
    assert r.headers["X-Request-Id"] == "req-123"


def test_unknown_route_uses_standard_error_payload(client):
    r = client.get("/nope")

    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


def test_internal_routes_require_api_key(client):
    r = client.get("/realtime/online")

    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


def test_online_users(client, registry):
    registry.add_connection("u2", "c1")
    registry.add_connection("u1", "c2")

    r = client.get("/realtime/online", headers={"Authorization": "Bearer internal-key"})

    assert r.status_code == 200
    assert r.json() == {"users": ["u1", "u2"], "count": 2}
    assert client.get("/realtime/online/u1", headers=AUTH).json() == {"user_id": "u1", "online": True}
    assert client.get("/realtime/online/u9", headers=AUTH).json() == {"user_id": "u9", "online": False}


def test_push_to_users_deduplicates_recipients(client, service):
    r = client.post(
        "/notifications",
        headers=AUTH,
        json={"user_ids": ["u1", "u2", "u1"], "type": "ORDER", "title": "Shipped", "message": "On its way"},
    )

    assert r.status_code == 202
    assert r.json() == {"broadcast": False, "created": 2, "delivered": 1, "ids": ["n-u1", "n-u2"]}
    assert [user_id for user_id, _ in service.calls] == ["u1", "u2"]
    assert service.calls[0][1]["type"] == "ORDER"


def test_broadcast_push(client, service, transport):
    r = client.post("/notifications", headers=AUTH, json={"broadcast": True, "title": "Maintenance", "message": "Soon"})

    assert r.status_code == 202
    assert r.json()["broadcast"] is True
    assert service.calls == []
    [(event, payload)] = transport.broadcasts
    assert event == "notification:broadcast"
    assert payload["title"] == "Maintenance"


@pytest.mark.parametrize(
    "body",
    [
        {"title": "No target", "message": "x"},
        {"user_ids": ["u1"], "title": "", "message": "x"},
        {"user_ids": ["u1"], "title": "t", "message": "x", "unexpected": True},
    ],
)
def test_push_validation(client, service, body):
    r = client.post("/notifications", headers=AUTH, json=body)

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"
    assert service.calls == []


class _Session:
    def __init__(self, fail=False):
        self.fail = fail

    async def execute(self, _stmt):
        if self.fail:
            raise ConnectionError("db unreachable")


@pytest.mark.parametrize("fail", [False, True])
def test_system_status(client, registry, fail):
    async def _db():
        yield _Session(fail=fail)

    registry.add_connection("u1", "c1")
    registry.add_connection("u1", "c2")
    app.dependency_overrides[get_db] = _db
    try:
        r = client.get("/system/status")
    finally:
        app.dependency_overrides.pop(get_db, None)

    body = r.json()
    assert r.status_code == 200
    assert body["ok"] is not fail
    assert body["realtime"]["connections"] == 2
    assert body["realtime"]["online_users"] == 1
    assert body["ai"]["enabled"] is True
