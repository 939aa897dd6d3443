# tests/conftest.py
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from tenantcms import repo
from tenantcms.config import Settings
from tenantcms.db import build_engine
from tenantcms.main import create_app
from tenantcms.mailer import LoggingMailer
from tenantcms.models import Actor, ApprovalState, ResourceKind, Role
from tenantcms.passwords import hash_password

PASSWORD = "correct-horse-battery"
API = "/api/v1"


@pytest.fixture
def settings():
    return Settings(
        environment="development",
        database_url="sqlite://",
        log_level="WARNING",
        log_format="text",
    )


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def mailer():
    return LoggingMailer()


@pytest.fixture
def app(settings, engine, mailer):
    return create_app(settings, engine=engine, mailer=mailer)


@pytest.fixture
def client(app):
    # entering the context runs the lifespan, which creates the schema
    with TestClient(app) as c:
        yield c


def _tenant(engine, name, approval=ApprovalState.APPROVED.value, active=True):
    now = repo.utcnow()
    return repo.create_resource(
        engine,
        ResourceKind.TENANT,
        {
            "name": name,
            "city": "Springfield",
            "country": "US",
            "approval_state": approval,
            "is_active": active,
            "is_featured": False,
            "created_at": now,
            "updated_at": now,
        },
    )


def _user(engine, username, role, tenant_id=None):
    return repo.create_user(
        engine,
        {
            "username": username,
            "email": f"{username}@example.org",
            "full_name": username.title(),
            "password_hash": hash_password(PASSWORD),
            "role": role.value,
            "tenant_id": tenant_id,
            "is_active": True,
        },
    )


@pytest.fixture
def world(client, app, engine):
    """Two approved tenants, one tenant_admin for each, and a platform_admin."""
    sessions = app.state.platform.sessions
    t1 = _tenant(engine, "North Library")
    t2 = _tenant(engine, "South Library")

    def actor_for(user):
        return Actor(id=user["id"], username=user["username"], role=Role(user["role"]), tenant_id=user["tenant_id"])

    root = _user(engine, "root", Role.PLATFORM_ADMIN)
    alice = _user(engine, "alice", Role.TENANT_ADMIN, t1["id"])
    bob = _user(engine, "bob", Role.TENANT_ADMIN, t2["id"])

    def auth(user):
        token = sessions.create(actor_for(user))
        return {"Authorization": f"Bearer {token}"}

    return SimpleNamespace(
        t1=t1,
        t2=t2,
        root=root,
        alice=alice,
        bob=bob,
        root_h=auth(root),
        alice_h=auth(alice),
        bob_h=auth(bob),
        auth=auth,
        actor_for=actor_for,
    )


@pytest.fixture
def create_story(client, world):
    def _create(headers=None, **fields):
        body = {"title": "Rare maps exhibit", "summary": "Old maps", "content": "...", "tags": ["maps", "history"]}
        body.update(fields)
        r = client.post(f"{API}/admin/stories", json=body, headers=headers or world.alice_h)
        assert r.status_code == 201, r.text
        return r.json()["data"]

    return _create
