import pytest

from tenantcms.errors import AuthorizationError
from tenantcms.models import Actor, ResourceKind, Role
from tenantcms.ownership import (
    OWNERSHIP_DENIED,
    check_ownership,
    owner_tenant_of,
    public_visibility_filter,
    scope_tenant_filter,
)

ALICE = Actor(id="u1", username="alice", role=Role.TENANT_ADMIN, tenant_id="t1")
DETACHED = Actor(id="u3", username="carol", role=Role.TENANT_ADMIN, tenant_id=None)
ROOT = Actor(id="u0", username="root", role=Role.PLATFORM_ADMIN)


def test_owner_and_platform_admin_pass():
    check_ownership(ALICE, "t1", "Story")
    check_ownership(ROOT, "t1", "Story")
    check_ownership(ROOT, None, "Story")


def test_foreign_tenant_is_denied():
    with pytest.raises(AuthorizationError) as exc:
        check_ownership(ALICE, "t2", "Story")
    assert exc.value.message == OWNERSHIP_DENIED


def test_detached_tenant_admin_never_passes():
    with pytest.raises(AuthorizationError):
        check_ownership(DETACHED, None, "Story")


def test_tenant_owns_itself():
    assert owner_tenant_of(ResourceKind.TENANT, {"id": "t1"}) == "t1"
    assert owner_tenant_of(ResourceKind.STORY, {"id": "s1", "tenant_id": "t2"}) == "t2"


def test_list_scope_forces_own_tenant_for_tenant_admin():
    assert scope_tenant_filter(ALICE, "t2") == "t1"
    assert scope_tenant_filter(ALICE, None) == "t1"
    assert scope_tenant_filter(DETACHED, None) == ""
    assert scope_tenant_filter(ROOT, "t2") == "t2"
    assert scope_tenant_filter(ROOT, None) is None
    assert scope_tenant_filter(None, "t2") == "t2"


def test_public_filter_requires_both_axes():
    assert public_visibility_filter(ResourceKind.STORY) == {
        "approval_state": "approved",
        "publication_state": "published",
    }
    assert public_visibility_filter(ResourceKind.TENANT) == {"approval_state": "approved", "is_active": True}
