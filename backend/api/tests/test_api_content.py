API = "/api/v1"


def _public_ids(client, kind="stories", **params):
    r = client.get(f"{API}/{kind}", params=params)
    assert r.status_code == 200, r.text
    return [item["id"] for item in r.json()["data"]["items"]]


def test_story_lifecycle_from_draft_to_public(client, world, create_story):
    story = create_story()
    assert story["approvalState"] == "pending"
    assert story["publicationState"] == "draft"
    assert story["tenantId"] == world.t1["id"]
    assert story["id"] not in _public_ids(client)

    # a tenant_admin cannot approve through an edit
    r = client.patch(
        f"{API}/admin/stories/{story['id']}",
        json={"title": "Rare maps", "approvalState": "approved"},
        headers=world.alice_h,
    )
    assert r.status_code == 200
    assert r.json()["data"]["approvalState"] == "pending"
    assert r.json()["data"]["title"] == "Rare maps"

    r = client.patch(
        f"{API}/admin/stories/{story['id']}", json={"publicationState": "published"}, headers=world.alice_h
    )
    assert r.json()["data"]["publishedAt"] is not None
    # published but not approved stays hidden
    assert story["id"] not in _public_ids(client)

    r = client.patch(f"{API}/superadmin/stories/{story['id']}/approve", headers=world.root_h)
    assert r.status_code == 200
    assert r.json()["data"]["approvalState"] == "approved"
    assert story["id"] in _public_ids(client)

    # approving twice is a no-op success
    r = client.patch(f"{API}/superadmin/stories/{story['id']}/approve", headers=world.root_h)
    assert r.status_code == 200

    r = client.get(f"{API}/stories/{story['id']}")
    assert r.status_code == 200
    assert r.json()["data"]["title"] == "Rare maps"


def test_edit_preserves_approval_after_approval(client, world, create_story):
    story = create_story(publicationState="published")
    client.patch(f"{API}/superadmin/stories/{story['id']}/approve", headers=world.root_h)

    r = client.patch(f"{API}/admin/stories/{story['id']}", json={"summary": "Updated"}, headers=world.alice_h)
    assert r.json()["data"]["approvalState"] == "approved"
    assert story["id"] in _public_ids(client)

    # unpublishing hides it again without touching approval
    r = client.patch(
        f"{API}/admin/stories/{story['id']}", json={"publicationState": "draft"}, headers=world.alice_h
    )
    assert r.json()["data"]["approvalState"] == "approved"
    assert r.json()["data"]["publishedAt"] is None
    assert story["id"] not in _public_ids(client)


def test_null_for_required_field_is_a_validation_error(client, world, create_story):
    story = create_story(featuredImageUrl="https://example.org/map.png")
    url = f"{API}/admin/stories/{story['id']}"

    for body in ({"publicationState": None}, {"title": None}, {"tags": None}):
        r = client.patch(url, json=body, headers=world.alice_h)
        assert r.status_code == 400, r.text
        assert r.json()["code"] == "VALIDATION_ERROR"
        assert set(r.json()["errors"]) == set(body)

    # optional columns can still be cleared
    r = client.patch(url, json={"featuredImageUrl": None}, headers=world.alice_h)
    assert r.status_code == 200
    assert r.json()["data"]["featuredImageUrl"] is None
    assert r.json()["data"]["title"] == "Rare maps exhibit"

    r = client.post(
        f"{API}/admin/events",
        json={"title": "Map night", "eventDate": "2030-05-01T18:00:00Z"},
        headers=world.alice_h,
    )
    r = client.patch(f"{API}/admin/events/{r.json()['data']['id']}", json={"eventDate": None}, headers=world.alice_h)
    assert r.status_code == 400
    assert "eventDate" in r.json()["errors"]


def test_foreign_tenant_admin_is_denied(client, world, create_story):
    story = create_story()

    r = client.patch(f"{API}/admin/stories/{story['id']}", json={"title": "Mine now"}, headers=world.bob_h)
    assert r.status_code == 403
    assert r.json()["error"] == "You can only act on your own tenant's resources"
    assert r.json()["code"] == "AUTHORIZATION_ERROR"

    assert client.get(f"{API}/admin/stories/{story['id']}", headers=world.bob_h).status_code == 403
    assert client.delete(f"{API}/admin/stories/{story['id']}", headers=world.bob_h).status_code == 403

    # creating on behalf of another tenant is denied too
    r = client.post(
        f"{API}/admin/stories", json={"title": "Sneaky", "tenantId": world.t1["id"]}, headers=world.bob_h
    )
    assert r.status_code == 403


def test_admin_routes_require_authentication(client, world):
    r = client.get(f"{API}/admin/stories")
    assert r.status_code == 401
    assert r.json()["code"] == "AUTHENTICATION_ERROR"

    r = client.get(f"{API}/admin/stories", headers={"Authorization": "Bearer not-a-session"})
    assert r.status_code == 401


def test_tenant_admin_cannot_moderate(client, world, create_story):
    story = create_story()
    r = client.patch(f"{API}/superadmin/stories/{story['id']}/approve", headers=world.alice_h)
    assert r.status_code == 403
    assert "platform_admin" in r.json()["error"]

    r = client.patch(
        f"{API}/superadmin/stories/{story['id']}/featured", json={"isFeatured": True}, headers=world.alice_h
    )
    assert r.status_code == 403


def test_admin_list_is_scoped_to_own_tenant(client, world, create_story):
    mine = create_story()
    theirs = create_story(headers=world.bob_h, title="Southern stories")

    r = client.get(f"{API}/admin/stories", params={"tenantId": world.t2["id"]}, headers=world.alice_h)
    ids = [s["id"] for s in r.json()["data"]["items"]]
    assert ids == [mine["id"]]

    r = client.get(f"{API}/admin/stories", headers=world.root_h)
    assert {s["id"] for s in r.json()["data"]["items"]} == {mine["id"], theirs["id"]}

    r = client.get(f"{API}/admin/stories", params={"tenantId": world.t2["id"]}, headers=world.root_h)
    assert [s["id"] for s in r.json()["data"]["items"]] == [theirs["id"]]


def test_platform_admin_must_name_a_tenant(client, world):
    r = client.post(f"{API}/admin/stories", json={"title": "Orphan"}, headers=world.root_h)
    assert r.status_code == 400
    assert r.json()["errors"] == {"tenantId": ["tenantId is required"]}

    r = client.post(
        f"{API}/admin/stories", json={"title": "Assigned", "tenantId": world.t2["id"]}, headers=world.root_h
    )
    assert r.status_code == 201
    assert r.json()["data"]["tenantId"] == world.t2["id"]


def test_public_tags_and_tag_filter(client, world, create_story):
    a = create_story(tags=["maps", "history"], publicationState="published")
    b = create_story(title="Jazz nights", tags=["music"], publicationState="published")
    create_story(title="Hidden", tags=["secret"], publicationState="published")
    for story in (a, b):
        client.patch(f"{API}/superadmin/stories/{story['id']}/approve", headers=world.root_h)

    r = client.get(f"{API}/stories/tags")
    assert r.json()["data"] == ["history", "maps", "music"]

    assert _public_ids(client, tags="maps") == [a["id"]]
    assert _public_ids(client, search="jazz") == [b["id"]]


def test_media_and_events_follow_the_same_rules(client, world):
    r = client.post(
        f"{API}/admin/media",
        json={"title": "Reading room", "mediaType": "image", "url": "https://cdn.example.org/r.jpg"},
        headers=world.alice_h,
    )
    assert r.status_code == 201
    media = r.json()["data"]
    assert media["approvalState"] == "pending"

    r = client.post(
        f"{API}/admin/events",
        json={
            "title": "Book fair",
            "eventDate": "2026-05-01T10:00:00Z",
            "endDate": "2026-05-01T18:00:00Z",
            "publicationState": "published",
        },
        headers=world.alice_h,
    )
    assert r.status_code == 201
    event = r.json()["data"]
    assert _public_ids(client, "events") == []

    client.patch(f"{API}/superadmin/events/{event['id']}/approve", headers=world.root_h)
    assert _public_ids(client, "events") == [event["id"]]

    r = client.patch(
        f"{API}/admin/events/{event['id']}", json={"endDate": "2026-04-01T10:00:00Z"}, headers=world.alice_h
    )
    assert r.status_code == 400
    assert "endDate" in r.json()["errors"]


def test_reject_and_feature(client, world, create_story):
    story = create_story(publicationState="published")

    r = client.patch(
        f"{API}/superadmin/stories/{story['id']}/featured", json={"isFeatured": True}, headers=world.root_h
    )
    assert r.json()["data"]["isFeatured"] is True

    r = client.patch(f"{API}/superadmin/stories/{story['id']}/reject", headers=world.root_h)
    assert r.json()["data"]["approvalState"] == "rejected"
    assert story["id"] not in _public_ids(client)

    r = client.get(f"{API}/superadmin/moderation/stories", headers=world.root_h)
    assert r.json()["data"]["total"] == 0


def test_pending_queue_lists_oldest_first(client, world, create_story):
    first = create_story(title="First")
    second = create_story(title="Second", headers=world.bob_h)

    r = client.get(f"{API}/superadmin/moderation/stories", headers=world.root_h)
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["data"]["items"]] == [first["id"], second["id"]]


def test_allowed_transitions_endpoint(client, world, create_story):
    story = create_story()

    r = client.get(f"{API}/admin/stories/{story['id']}/allowed", headers=world.alice_h)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["approvalState"] == "pending"
    assert set(data["allowed"]) == {"create", "edit", "delete"}

    r = client.get(f"{API}/admin/stories/{story['id']}/allowed", headers=world.root_h)
    assert "approve" in r.json()["data"]["allowed"]


def test_delete_is_terminal(client, world, create_story):
    story = create_story()
    r = client.delete(f"{API}/admin/stories/{story['id']}", headers=world.alice_h)
    assert r.status_code == 200

    r = client.get(f"{API}/admin/stories/{story['id']}", headers=world.alice_h)
    assert r.status_code == 404
    assert r.json()["error"] == "Story not found"


def test_hidden_and_missing_look_the_same_publicly(client, world, create_story):
    story = create_story()
    assert client.get(f"{API}/stories/{story['id']}").status_code == 404
    assert client.get(f"{API}/stories/does-not-exist").status_code == 404
