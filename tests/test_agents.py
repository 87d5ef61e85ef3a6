"""Tests for the agent roster API."""
import pytest
from werkzeug.security import generate_password_hash

from app.listdesk import create_app
from app.listdesk.db import session_scope
from app.listdesk.models import AuditEvent, Base, User
from app.listdesk.modules.agents.models import Agent


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("UPLOAD_TMP_DIR", str(tmp_path / "uploads"))

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(name="Admin", email="admin@example.com", password_hash=generate_password_hash("pw1234"), is_active=True))

    return app.test_client()


@pytest.fixture()
def auth(client):
    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "pw1234"})
    return {"Authorization": f"Bearer {r.json['token']}"}


def _new_agent(client, auth, name="Alice Agent", email="alice@agents.test", mobile="+15550001"):
    return client.post(
        "/api/agents",
        json={"name": name, "email": email, "mobileNumber": mobile, "password": "secret1"},
        headers=auth,
    )


def test_agents_require_auth(client):
    assert client.get("/api/agents").status_code == 401
    assert client.post("/api/agents", json={}).status_code == 401


def test_agent_create_and_list(client, auth):
    r = _new_agent(client, auth)
    assert r.status_code == 201
    body = r.json
    assert body["name"] == "Alice Agent"
    assert body["mobileNumber"] == "+15550001"
    assert "password" not in body and "password_hash" not in body

    r = client.get("/api/agents", headers=auth)
    assert r.status_code == 200
    assert [a["email"] for a in r.json] == ["alice@agents.test"]

    with session_scope(client.application) as s:
        agent = s.query(Agent).one()
        assert agent.password_hash != "secret1"
        actions = [e.action for e in s.query(AuditEvent).all()]
        assert "agent.create" in actions


def test_agent_create_validation(client, auth):
    r = client.post(
        "/api/agents",
        json={"name": " ", "email": "not-an-email", "mobileNumber": "", "password": "123"},
        headers=auth,
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json["errors"]}
    assert fields == {"name", "email", "mobileNumber", "password"}


def test_agent_duplicate_email(client, auth):
    assert _new_agent(client, auth).status_code == 201
    r = _new_agent(client, auth, name="Other")
    assert r.status_code == 400
    assert r.json["message"] == "Agent with this email already exists"


def test_agent_update(client, auth):
    a = _new_agent(client, auth).json
    b = _new_agent(client, auth, name="Bob", email="bob@agents.test").json

    r = client.put(
        f"/api/agents/{a['id']}",
        json={"name": "Alice Renamed", "email": "alice@agents.test", "mobileNumber": "+15559999"},
        headers=auth,
    )
    assert r.status_code == 200
    assert r.json["name"] == "Alice Renamed"
    assert r.json["mobileNumber"] == "+15559999"

    # Email owned by another agent
    r = client.put(
        f"/api/agents/{a['id']}",
        json={"name": "Alice", "email": b["email"], "mobileNumber": "1"},
        headers=auth,
    )
    assert r.status_code == 400
    assert r.json["message"] == "Email is already taken by another agent"


def test_agent_detail_and_delete(client, auth):
    a = _new_agent(client, auth).json

    r = client.get(f"/api/agents/{a['id']}", headers=auth)
    assert r.status_code == 200
    assert r.json["email"] == "alice@agents.test"

    r = client.delete(f"/api/agents/{a['id']}", headers=auth)
    assert r.status_code == 200
    assert r.json["message"] == "Agent removed successfully"

    assert client.get(f"/api/agents/{a['id']}", headers=auth).status_code == 404
    assert client.delete(f"/api/agents/{a['id']}", headers=auth).status_code == 404
    assert client.put(
        f"/api/agents/{a['id']}",
        json={"name": "X", "email": "x@agents.test", "mobileNumber": "1"},
        headers=auth,
    ).status_code == 404
