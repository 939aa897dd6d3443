from __future__ import annotations

from typing import Any, Dict, Optional

from .errors import AuthorizationError
from .models import ApprovalState, Actor, PublicationState, ResourceKind

OWNERSHIP_DENIED = "You can only act on your own tenant's resources"


def check_ownership(actor: Actor, owner_tenant_id: Optional[str], resource_label: str = "resource") -> None:
    """
    Raise AuthorizationError unless ``actor`` may act on a resource owned by
    ``owner_tenant_id``.

    IMPORTANT:
    - This is the only ownership rule; every handler touching an existing
      resource calls it with the resource's owner tenant.
    - A tenant_admin without a tenant (detached by a tenant delete) never passes.
    """
    if actor.is_platform_admin:
        return
    if actor.is_tenant_admin and actor.tenant_id and actor.tenant_id == owner_tenant_id:
        return
    raise AuthorizationError(OWNERSHIP_DENIED)


def owner_tenant_of(kind: ResourceKind, row: Dict[str, Any]) -> Optional[str]:
    # a Tenant owns itself
    if kind is ResourceKind.TENANT:
        return row.get("id")
    return row.get("tenant_id")


def scope_tenant_filter(actor: Optional[Actor], requested_tenant_id: Optional[str] = None) -> Optional[str]:
    """
    Tenant filter for list operations.

    tenant_admin always sees its own tenant, whatever it asked for;
    platform_admin and anonymous callers get the explicit filter or none.
    """
    if actor is not None and actor.is_tenant_admin:
        # "" matches nothing for a detached admin
        return actor.tenant_id or ""
    return requested_tenant_id or None


def public_visibility_filter(kind: ResourceKind = ResourceKind.STORY) -> Dict[str, Any]:
    """Fixed column filter for anonymous reads; never relaxed."""
    if kind is ResourceKind.TENANT:
        return {"approval_state": ApprovalState.APPROVED.value, "is_active": True}
    return {
        "approval_state": ApprovalState.APPROVED.value,
        "publication_state": PublicationState.PUBLISHED.value,
    }
