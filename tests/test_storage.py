import threading
import time

import pytest
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from conftest import make_app
from models.credential_store import CredentialStore
from models import storage
from models.db_storage import DBStorage, _engine_options
from utils.exceptions import ServiceUnavailable

UNREACHABLE = "sqlite:////nonexistent-dir/ecomanager/unreachable.db"


def test_concurrent_first_use_initializes_once(monkeypatch):
    db = DBStorage("sqlite://")
    calls = []
    original = db.reload

    def slow_reload():
        calls.append(threading.get_ident())
        time.sleep(0.05)
        original()

    monkeypatch.setattr(db, "reload", slow_reload)

    sessions = []
    threads = [threading.Thread(target=lambda: sessions.append(db.ensure_ready())) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(sessions) == 8
    assert all(s is sessions[0] for s in sessions)
    db.configure("sqlite://")


def test_failed_init_is_retried():
    db = DBStorage(UNREACHABLE)
    with pytest.raises(ServiceUnavailable):
        db.ensure_ready()
    with pytest.raises(ServiceUnavailable):
        db.ensure_ready()
    assert db.status() == "disconnected"

    db.configure("sqlite://")
    assert db.ensure_ready() is not None
    assert db.status() == "connected"
    db.configure("sqlite://")


@pytest.fixture
def broken_app():
    app = make_app(DATABASE_URL=UNREACHABLE)
    yield app
    storage.configure("sqlite://")


def test_unreachable_database_is_a_503(broken_app):
    resp = broken_app.test_client().post(
        "/api/auth/login", json={"email": "a@example.com", "password": "Secret123!"}
    )
    assert resp.status_code == 503
    assert resp.get_json()["error"] == "SERVICE_UNAVAILABLE"


def test_timeout_reaches_the_pool():
    options = _engine_options("postgresql://db.example.com/eco", 7)
    assert options["pool_timeout"] == 7
    assert options["connect_args"] == {"connect_timeout": 7}


def test_pool_timeout_is_a_503(client, monkeypatch):
    def exhausted(self, identifier):
        raise PoolTimeoutError("QueuePool limit of size 10 overflow 0 reached, connection timed out, timeout 5.00")

    monkeypatch.setattr(CredentialStore, "find_by_identifier", exhausted)
    resp = client.post("/api/auth/login", json={"email": "a@example.com", "password": "Secret123!"})
    assert resp.status_code == 503
    body = resp.get_json()
    assert body["error"] == "SERVICE_UNAVAILABLE"
    assert body["status"] == 503
    assert "QueuePool" not in body["message"]


def test_health_reports_database_state(broken_app):
    resp = broken_app.test_client().get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["database"]["status"] == "disconnected"


def test_health_when_connected(client):
    body = client.get("/api/health").get_json()
    assert body["status"] == "ok"
    assert body["database"]["status"] == "connected"


def test_root_and_unknown_route(client):
    assert client.get("/").get_json()["endpoints"]["auth"] == "/api/auth"
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "NOT_FOUND"
