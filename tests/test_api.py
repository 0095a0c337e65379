from datetime import UTC

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.core.config import get_settings
from api.core.dependencies import get_account_service, get_slot_service
from api.services import AccountService, SlotService
from shared.models.credential import UserCredential
from shared.slot_engine import SlotEngine


class FakeCredentialRepo:
    def __init__(self):
        self.rows: dict[str, UserCredential] = {}
        self.rehashed: list[str] = []

    async def get_by_username(self, username):
        return self.rows.get(username.lower())

    async def create(self, username, password_hash):
        name = username.lower()
        if name in self.rows:
            return None
        self.rows[name] = UserCredential(
            id=len(self.rows) + 1, username=name, password_hash=password_hash
        )
        return self.rows[name]

    async def update_hash(self, username, password_hash):
        self.rows[username.lower()].password_hash = password_hash
        self.rehashed.append(username.lower())
        return True


@pytest.fixture
def credentials():
    return FakeCredentialRepo()


@pytest.fixture
def app(monkeypatch, store, credentials, now):
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/slotboard_test")
    monkeypatch.setenv("ENABLE_KEEP_ALIVE", "false")
    get_settings.cache_clear()

    app = create_app()
    service = SlotService(store, SlotEngine(tz=UTC), tz=UTC, clock=lambda: now)
    app.dependency_overrides[get_slot_service] = lambda: service
    app.dependency_overrides[get_account_service] = lambda: AccountService(credentials)
    yield app
    get_settings.cache_clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def login_as(app, name, password="secret1"):
    client = TestClient(app)
    response = client.post(
        "/api/auth/register", json={"username": name, "password": password}
    )
    assert response.status_code == 201
    return client


# ==================== Service endpoints ====================


def test_health_and_ping(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/ping").text == "pong"


# ==================== Auth ====================


def test_register_login_me(client):
    response = client.post(
        "/api/auth/register",
        json={"username": " Alice ", "password": "secret1", "confirm_password": "secret1"},
    )
    assert response.status_code == 201
    assert response.json() == {"username": "alice"}
    assert client.get("/api/auth/me").json() == {"username": "alice"}

    client.post("/api/auth/logout")
    fresh = TestClient(client.app)
    assert fresh.get("/api/auth/me").status_code == 401
    assert fresh.post(
        "/api/auth/login", json={"username": "ALICE", "password": "secret1"}
    ).status_code == 200


def test_register_rejections(client):
    short = client.post("/api/auth/register", json={"username": "al", "password": "secret1"})
    assert short.status_code == 422

    weak = client.post("/api/auth/register", json={"username": "alice", "password": "123"})
    assert weak.status_code == 422

    client.post("/api/auth/register", json={"username": "alice", "password": "secret1"})
    taken = client.post("/api/auth/register", json={"username": "Alice", "password": "secret1"})
    assert taken.status_code == 409
    assert taken.json()["detail"]["code"] == "username_taken"


def test_wrong_password(client):
    client.post("/api/auth/register", json={"username": "alice", "password": "secret1"})
    response = client.post("/api/auth/login", json={"username": "alice", "password": "nope12"})
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "invalid_credentials"


def test_legacy_plaintext_password_does_not_log_in(client, credentials):
    credentials.rows["bob"] = UserCredential(id=9, username="bob", password_hash="secret1")
    response = client.post("/api/auth/login", json={"username": "bob", "password": "secret1"})
    assert response.status_code == 401


# ==================== Slots ====================


def test_slot_actions_require_login(client):
    assert client.post("/api/slots", json={"start_time": "18:00"}).status_code == 401


def test_slot_lifecycle(app):
    alice = login_as(app, "alice")
    bob = login_as(app, "bob")
    carol = login_as(app, "carol")

    created = alice.post("/api/slots", json={"start_time": "18:00"})
    assert created.status_code == 201
    slot = created.json()
    assert slot["player1"] == "alice"
    assert slot["notification_sent"] is False
    slot_id = slot["id"]

    joined = bob.post(f"/api/slots/{slot_id}/join")
    assert joined.status_code == 200
    assert joined.json()["player2"] == "bob"

    again = bob.post(f"/api/slots/{slot_id}/join")
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "already_in_slot"

    note = bob.put(f"/api/slots/{slot_id}/notes/2", json={"text": "on mobile"})
    assert note.json()["player2_comment"] == "on mobile"

    forbidden = carol.put(f"/api/slots/{slot_id}/notes/2", json={"text": "hijack"})
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]["code"] == "not_seat_occupant"

    not_owner = bob.post(f"/api/slots/{slot_id}/cancel")
    assert not_owner.status_code == 403

    assert alice.post(f"/api/slots/{slot_id}/cancel").json()["status"] == "cancelled"
    closed = carol.post(f"/api/slots/{slot_id}/join")
    assert closed.status_code == 409
    assert closed.json()["detail"]["code"] == "slot_not_active"

    assert alice.get("/api/slots").json() == []


def test_listing_and_queue_endpoints(app):
    alice = login_as(app, "alice")
    bob = login_as(app, "bob")

    slot_id = alice.post("/api/slots", json={"start_time": "18:00"}).json()["id"]

    queued = bob.post(f"/api/slots/{slot_id}/queue")
    assert queued.json()["waiting_queue"] == ["bob"]
    assert bob.post(f"/api/slots/{slot_id}/queue").status_code == 409
    assert bob.delete(f"/api/slots/{slot_id}/queue").json()["waiting_queue"] == []

    sub = bob.post(f"/api/slots/{slot_id}/substitute")
    assert sub.json()["substitute"] == "bob"
    assert bob.delete(f"/api/slots/{slot_id}/substitute").json()["substitute"] == ""

    moved = alice.put(f"/api/slots/{slot_id}/start-time", json={"start_time": "19:15"})
    assert moved.json()["start_time"].startswith("2026-10-19T19:15")

    listing = bob.get("/api/slots").json()
    assert [s["id"] for s in listing] == [slot_id]
    assert bob.get(f"/api/slots/{slot_id}").json()["creator_name"] == "alice"


def test_invalid_input_and_missing_slot(app):
    alice = login_as(app, "alice")

    bad_time = alice.post("/api/slots", json={"start_time": "6pm"})
    assert bad_time.status_code == 422
    assert bad_time.json()["detail"]["code"] == "invalid_start_time"

    missing = alice.post("/api/slots/nope/join")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "slot_not_found"
