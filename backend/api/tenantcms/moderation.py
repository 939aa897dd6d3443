from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .errors import ValidationError
from .guards import ensure_role, has_role
from .models import Actor, ApprovalState, PublicationState, ResourceKind, Role
from .ownership import check_ownership


class Transition(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    APPROVE = "approve"
    REJECT = "reject"
    SET_FEATURED = "set_featured"
    SET_ACTIVE = "set_active"
    REPLY = "reply"
    DELETE = "delete"


ANY_ADMIN: FrozenSet[Role] = frozenset({Role.TENANT_ADMIN, Role.PLATFORM_ADMIN})
PLATFORM_ONLY: FrozenSet[Role] = frozenset({Role.PLATFORM_ADMIN})

_CONTENT_TABLE: Dict[Transition, FrozenSet[Role]] = {
    Transition.CREATE: ANY_ADMIN,
    Transition.EDIT: ANY_ADMIN,
    Transition.APPROVE: PLATFORM_ONLY,
    Transition.REJECT: PLATFORM_ONLY,
    Transition.SET_FEATURED: PLATFORM_ONLY,
    Transition.DELETE: ANY_ADMIN,
}

# Who may perform which lifecycle transition, per resource kind.
# Transitions missing from a kind's table do not exist for that kind.
_TRANSITIONS: Dict[ResourceKind, Dict[Transition, FrozenSet[Role]]] = {
    ResourceKind.STORY: _CONTENT_TABLE,
    ResourceKind.MEDIA: _CONTENT_TABLE,
    ResourceKind.EVENT: _CONTENT_TABLE,
    ResourceKind.TENANT: {
        Transition.CREATE: PLATFORM_ONLY,
        Transition.EDIT: ANY_ADMIN,
        Transition.APPROVE: PLATFORM_ONLY,
        Transition.REJECT: PLATFORM_ONLY,
        Transition.SET_FEATURED: PLATFORM_ONLY,
        Transition.SET_ACTIVE: PLATFORM_ONLY,
        Transition.DELETE: PLATFORM_ONLY,
    },
    ResourceKind.MESSAGE: {
        Transition.EDIT: ANY_ADMIN,
        Transition.REPLY: ANY_ADMIN,
        Transition.DELETE: ANY_ADMIN,
    },
}

# Transitions a tenant_admin may only perform inside its own tenant.
_OWNER_SCOPED = frozenset({Transition.CREATE, Transition.EDIT, Transition.REPLY, Transition.DELETE})

# Never writable through an edit payload.
PROTECTED_FIELDS = frozenset(
    {
        "id",
        "tenant_id",
        "approval_state",
        "is_featured",
        "is_active",
        "published_at",
        "created_at",
        "updated_at",
    }
)


def roles_for(kind: ResourceKind, transition: Transition) -> FrozenSet[Role]:
    table = _TRANSITIONS.get(kind, {})
    if transition not in table:
        raise ValidationError(f"{kind.label} does not support '{transition.value}'")
    return table[transition]


def validate_transition(
    actor: Optional[Actor],
    kind: ResourceKind,
    transition: Transition,
    owner_tenant_id: Optional[str] = None,
) -> Actor:
    """
    Raises AuthenticationError / AuthorizationError if ``actor`` may not
    perform ``transition`` on a ``kind`` resource owned by ``owner_tenant_id``.
    """
    actor = ensure_role(actor, roles_for(kind, transition))
    if transition in _OWNER_SCOPED:
        check_ownership(actor, owner_tenant_id, kind.label)
    return actor


def allowed_transitions(
    actor: Optional[Actor],
    kind: ResourceKind,
    owner_tenant_id: Optional[str] = None,
) -> List[str]:
    """Transitions ``actor`` may perform on a ``kind`` resource; never raises."""
    if actor is None:
        return []
    out: List[str] = []
    for transition, roles in _TRANSITIONS.get(kind, {}).items():
        if not has_role(actor, roles):
            continue
        if transition in _OWNER_SCOPED and not actor.is_platform_admin:
            if not actor.tenant_id or actor.tenant_id != owner_tenant_id:
                continue
        out.append(transition.value)
    return out


# ----------------------------
# State derivation
# ----------------------------

def initial_state(requested_publication: Optional[str], now: datetime) -> Dict[str, Any]:
    """New content always starts pending; the creator picks draft or published."""
    publication = PublicationState(requested_publication or PublicationState.DRAFT.value)
    return {
        "approval_state": ApprovalState.PENDING.value,
        "publication_state": publication.value,
        "is_featured": False,
        "published_at": now if publication is PublicationState.PUBLISHED else None,
    }


def apply_edit(current: Mapping[str, Any], changes: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """
    Column updates for an edit.

    Protected fields are dropped, so approval state survives any edit as-is.
    ``published_at`` follows the publication state: stamped the first time
    the resource is published, cleared when it goes back to draft.
    """
    update = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}

    if "publication_state" in update and "publication_state" in current:
        target = PublicationState(update["publication_state"])
        update["publication_state"] = target.value
        if target is PublicationState.PUBLISHED:
            if current.get("published_at") is None:
                update["published_at"] = now
        else:
            update["published_at"] = None

    if update and "updated_at" in current:
        update["updated_at"] = now
    return update


def _set(current: Mapping[str, Any], column: str, value: Any, now: datetime) -> Dict[str, Any]:
    # repeating a call is a no-op success
    if current.get(column) == value:
        return {}
    return {column: value, "updated_at": now}


def approve(current: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    return _set(current, "approval_state", ApprovalState.APPROVED.value, now)


def reject(current: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    return _set(current, "approval_state", ApprovalState.REJECTED.value, now)


def set_featured(current: Mapping[str, Any], featured: bool, now: datetime) -> Dict[str, Any]:
    return _set(current, "is_featured", bool(featured), now)


def set_active(current: Mapping[str, Any], active: bool, now: datetime) -> Dict[str, Any]:
    return _set(current, "is_active", bool(active), now)
