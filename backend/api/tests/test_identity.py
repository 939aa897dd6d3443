from tenantcms.identity import InMemorySessionStore
from tenantcms.models import Actor, Role

ALICE = Actor(id="u1", username="alice", role=Role.TENANT_ADMIN, tenant_id="t1")


def test_tokens_are_opaque_and_resolve_to_the_actor():
    store = InMemorySessionStore()
    token = store.create(ALICE)
    assert "alice" not in token and len(token) >= 32
    assert store.resolve(token) == ALICE
    assert store.resolve("forged") is None
    assert store.resolve("") is None


def test_destroy_ends_the_session():
    store = InMemorySessionStore()
    token = store.create(ALICE)
    store.destroy(token)
    assert store.resolve(token) is None
    store.destroy(token)


def test_sessions_expire_after_ttl():
    now = [100.0]
    store = InMemorySessionStore(ttl_seconds=60, clock=lambda: now[0])
    token = store.create(ALICE)
    now[0] += 59
    assert store.resolve(token) == ALICE
    now[0] += 1
    assert store.resolve(token) is None


def test_destroy_for_ends_every_session_of_one_user():
    store = InMemorySessionStore()
    bob = Actor(id="u2", username="bob", role=Role.TENANT_ADMIN, tenant_id="t2")
    tokens = [store.create(ALICE), store.create(ALICE)]
    other = store.create(bob)

    assert store.destroy_for("u1") == 2
    assert [store.resolve(t) for t in tokens] == [None, None]
    assert store.resolve(other) == bob


def test_detach_tenant_clears_the_affiliation_of_live_actors():
    store = InMemorySessionStore()
    token = store.create(ALICE)

    assert store.detach_tenant("t1") == 1
    actor = store.resolve(token)
    assert actor.id == "u1"
    assert actor.tenant_id is None
    assert store.detach_tenant("t1") == 0


def test_expired_sessions_are_swept():
    now = [0.0]
    store = InMemorySessionStore(ttl_seconds=60, clock=lambda: now[0], sweep_interval=30)
    for _ in range(100):
        store.create(ALICE)

    now[0] += 61
    fresh = store.create(ALICE)
    assert list(store._sessions) == [fresh]

    now[0] += 61
    assert store.purge_expired() == 1
    assert store._sessions == {}
