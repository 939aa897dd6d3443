import pytest

API = "/api/v1"


@pytest.fixture
def submit(client, world):
    def _submit(tenant_id=None, **fields):
        body = {
            "tenantId": tenant_id or world.t1["id"],
            "name": "Pat Reader",
            "email": "pat@example.org",
            "subject": "Opening hours",
            "message": "Are you open on Sundays?",
        }
        body.update(fields)
        return client.post(f"{API}/contact-messages", json=body)

    return _submit


def test_contact_message_reaches_only_its_tenant(client, world, submit):
    r = submit()
    assert r.status_code == 201
    msg_id = r.json()["data"]["id"]

    r = client.get(f"{API}/admin/messages", headers=world.alice_h)
    items = r.json()["data"]["items"]
    assert [m["id"] for m in items] == [msg_id]
    assert items[0]["isRead"] is False
    assert items[0]["responseStatus"] == "pending"

    r = client.get(f"{API}/admin/messages", headers=world.bob_h)
    assert r.json()["data"]["total"] == 0
    assert client.get(f"{API}/admin/messages/{msg_id}", headers=world.bob_h).status_code == 403


def test_contact_message_needs_a_visible_tenant(client, world, submit):
    r = client.post(f"{API}/tenants", json={"name": "Unapproved"}, headers=world.root_h)
    assert submit(tenant_id=r.json()["data"]["id"]).status_code == 404
    assert submit(tenant_id="missing").status_code == 404


def test_contact_message_validation(client, world, submit):
    r = submit(email="not-an-email", subject="")
    assert r.status_code == 400
    errors = r.json()["errors"]
    assert set(errors) == {"email", "subject"}


def test_reply_sends_mail_and_marks_responded(client, world, submit, mailer):
    msg_id = submit().json()["data"]["id"]

    r = client.post(
        f"{API}/admin/messages/{msg_id}/reply",
        json={"subject": "Re: Opening hours", "message": "Yes, 10 to 4."},
        headers=world.alice_h,
    )
    assert r.status_code == 201
    reply = r.json()["data"]
    assert reply["emailSent"] is True
    assert reply["respondedBy"] == world.alice["id"]

    assert len(mailer.sent) == 1
    assert mailer.sent[0].to == "pat@example.org"

    msg = client.get(f"{API}/admin/messages/{msg_id}", headers=world.alice_h).json()["data"]
    assert msg["responseStatus"] == "responded"
    assert msg["isRead"] is True

    replies = client.get(f"{API}/admin/messages/{msg_id}/replies", headers=world.root_h).json()["data"]
    assert [x["id"] for x in replies] == [reply["id"]]


def test_foreign_reply_is_denied_and_sends_nothing(client, world, submit, mailer):
    msg_id = submit().json()["data"]["id"]
    r = client.post(
        f"{API}/admin/messages/{msg_id}/reply", json={"subject": "Re", "message": "Hi"}, headers=world.bob_h
    )
    assert r.status_code == 403
    assert mailer.sent == []


def test_failed_delivery_is_an_internal_error(client, world, submit, mailer, monkeypatch):
    msg_id = submit().json()["data"]["id"]
    monkeypatch.setattr(mailer, "send", lambda email: False)

    r = client.post(
        f"{API}/admin/messages/{msg_id}/reply", json={"subject": "Re", "message": "Hi"}, headers=world.alice_h
    )
    assert r.status_code == 500
    assert r.json()["code"] == "INTERNAL_ERROR"
    assert client.get(f"{API}/admin/messages/{msg_id}/replies", headers=world.alice_h).json()["data"] == []


def test_mark_read_and_delete(client, world, submit):
    msg_id = submit().json()["data"]["id"]

    r = client.patch(f"{API}/admin/messages/{msg_id}", json={"isRead": True}, headers=world.alice_h)
    assert r.json()["data"]["isRead"] is True

    r = client.get(f"{API}/admin/messages", params={"isRead": "false"}, headers=world.alice_h)
    assert r.json()["data"]["total"] == 0

    assert client.delete(f"{API}/admin/messages/{msg_id}", headers=world.bob_h).status_code == 403
    assert client.delete(f"{API}/admin/messages/{msg_id}", headers=world.alice_h).status_code == 200
    assert client.get(f"{API}/admin/messages/{msg_id}", headers=world.alice_h).status_code == 404


def test_contact_form_is_throttled(client, world, submit):
    for _ in range(3):
        assert submit().status_code == 201
    r = submit()
    assert r.status_code == 429
    assert r.json()["error"].startswith("Too many contact form submissions")
