PASSWORD = "correct-horse-battery"

API = "/api/v1"


def _login(client, username, password):
    return client.post(f"{API}/auth/login", json={"username": username, "password": password})


def test_login_session_logout(client, world):
    r = _login(client, "alice", PASSWORD)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["user"] == {"id": world.alice["id"], "username": "alice", "role": "tenant_admin", "tenantId": world.t1["id"]}
    assert "cms_session" in r.cookies

    r = client.get(f"{API}/auth/session")
    assert r.status_code == 200
    assert r.json()["data"]["username"] == "alice"

    # bearer works too
    client.cookies.clear()
    r = client.get(f"{API}/auth/session", headers={"Authorization": f"Bearer {data['token']}"})
    assert r.json()["data"]["role"] == "tenant_admin"

    r = client.post(f"{API}/auth/logout", headers={"Authorization": f"Bearer {data['token']}"})
    assert r.status_code == 200
    r = client.get(f"{API}/auth/session", headers={"Authorization": f"Bearer {data['token']}"})
    assert r.status_code == 401


def test_bad_credentials(client, world):
    r = _login(client, "alice", "wrong-password")
    assert r.status_code == 401
    assert r.json()["code"] == "AUTHENTICATION_ERROR"
    assert _login(client, "nobody", PASSWORD).status_code == 401


def test_sixth_failed_login_is_throttled(client, world):
    for _ in range(5):
        assert _login(client, "alice", "wrong-password").status_code == 401

    r = _login(client, "alice", "wrong-password")
    assert r.status_code == 429
    body = r.json()
    assert body["code"] == "RATE_LIMITED"
    assert body["success"] is False
    assert 0 < body["retryAfter"] <= 15 * 60
    assert r.headers["Retry-After"] == str(body["retryAfter"])

    # even a correct password is throttled until the window resets
    assert _login(client, "alice", PASSWORD).status_code == 429


def test_successful_logins_are_not_counted(client, world):
    for _ in range(8):
        assert _login(client, "alice", PASSWORD).status_code == 200


def test_rate_limit_headers_on_success(client, world):
    r = client.get(f"{API}/stories")
    assert r.headers["RateLimit-Limit"] == "500"
    assert r.headers["RateLimit-Remaining"] == "499"
    assert "X-Request-ID" in r.headers
