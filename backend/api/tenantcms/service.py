"""
Business operations.

Every function takes the acting ``Actor`` explicitly and runs its checks in a
fixed order before touching the store: role guard, resource lookup, ownership,
then the moderation rules for the lifecycle change. The first failing check
raises a ``PlatformError``; nothing is written.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.engine import Engine

from . import moderation, repo
from .config import Settings
from .errors import AuthenticationError, InternalError, NotFoundError, ValidationError
from .guards import ensure_role
from .identity import SessionStore
from .mailer import Mailer, OutboundEmail
from .models import CONTENT_KINDS, Actor, ApprovalState, ResourceKind, ResponseStatus, Role
from .moderation import ANY_ADMIN, PLATFORM_ONLY, Transition
from .ownership import check_ownership, owner_tenant_of, public_visibility_filter, scope_tenant_filter
from .passwords import hash_password, verify_password
from .settings_store import PlatformSettingsStore

logger = logging.getLogger("tenantcms.service")

Rows = Tuple[List[Dict[str, Any]], int]


def _load(engine: Engine, kind: ResourceKind, resource_id: str) -> Dict[str, Any]:
    row = repo.get_resource(engine, kind, resource_id)
    if row is None:
        raise NotFoundError(kind.label)
    return row


def _is_public(kind: ResourceKind, row: Mapping[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in public_visibility_filter(kind).items())


def _log(event: str, actor: Optional[Actor], kind: ResourceKind, resource_id: str, **extra: Any) -> None:
    logger.info(
        event,
        extra={
            "kind": kind.value,
            "resource_id": resource_id,
            "actor_id": actor.id if actor else None,
            "actor_role": actor.role.value if actor else None,
            **extra,
        },
    )


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _require_tenant(engine: Engine, tenant_id: Optional[str]) -> Dict[str, Any]:
    if not tenant_id:
        raise ValidationError.for_field("tenantId", "tenantId is required")
    row = repo.get_resource(engine, ResourceKind.TENANT, tenant_id)
    if row is None:
        raise ValidationError.for_field("tenantId", "Tenant does not exist")
    return row


# ----------------------------
# Auth
# ----------------------------

def actor_from_user(user: Mapping[str, Any]) -> Actor:
    return Actor(id=user["id"], username=user["username"], role=Role(user["role"]), tenant_id=user.get("tenant_id"))


def login(engine: Engine, sessions: SessionStore, username: str, password: str) -> Tuple[Actor, str]:
    user = repo.get_user_by_username(engine, username)
    if user is None or not user["is_active"] or not verify_password(password, user["password_hash"]):
        logger.info("login failed", extra={"username": username})
        raise AuthenticationError("Invalid username or password")

    repo.update_user(engine, user["id"], {"last_login_at": repo.utcnow()})
    actor = actor_from_user(user)
    token = sessions.create(actor)
    logger.info("login succeeded", extra={"actor_id": actor.id, "actor_role": actor.role.value})
    return actor, token


def logout(sessions: SessionStore, token: Optional[str]) -> None:
    if token:
        sessions.destroy(token)


def bootstrap_admin(engine: Engine, settings: Settings) -> Optional[Dict[str, Any]]:
    """Create the configured platform_admin once; no-op when unset or already present."""
    username = settings.bootstrap_admin_username
    password = settings.bootstrap_admin_password
    if not username or not password:
        return None
    if repo.get_user_by_username(engine, username) is not None:
        return None

    user = repo.create_user(
        engine,
        {
            "username": username,
            "email": settings.bootstrap_admin_email or f"{username}@localhost.localdomain",
            "full_name": "Platform Administrator",
            "password_hash": hash_password(password),
            "role": Role.PLATFORM_ADMIN.value,
            "tenant_id": None,
            "is_active": True,
        },
    )
    logger.info("bootstrap admin created", extra={"actor_id": user["id"]})
    return user


# ----------------------------
# Public reads
# ----------------------------

def list_public(
    engine: Engine,
    kind: ResourceKind,
    *,
    tenant_id: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    tags: Optional[List[str]] = None,
    limit: int = 20,
    offset: int = 0,
    sort: str = "created_at_desc",
) -> Rows:
    filters: Dict[str, Any] = dict(public_visibility_filter(kind))
    if kind is not ResourceKind.TENANT:
        filters["tenant_id"] = scope_tenant_filter(None, tenant_id)
    filters["is_featured"] = featured
    return repo.list_resources(
        engine, kind, filters=filters, search=search, tags=tags, limit=limit, offset=offset, sort=sort
    )


def get_public(engine: Engine, kind: ResourceKind, resource_id: str) -> Dict[str, Any]:
    row = repo.get_resource(engine, kind, resource_id)
    # hidden and missing look the same to anonymous callers
    if row is None or not _is_public(kind, row):
        raise NotFoundError(kind.label)
    return row


def list_public_tags(engine: Engine, kind: ResourceKind) -> List[str]:
    return repo.list_tags(engine, kind, public_visibility_filter(kind))


# ----------------------------
# Tenants
# ----------------------------

def create_tenant(engine: Engine, actor: Optional[Actor], data: Mapping[str, Any]) -> Dict[str, Any]:
    actor = ensure_role(actor, moderation.roles_for(ResourceKind.TENANT, Transition.CREATE))
    now = repo.utcnow()
    values = dict(data)
    values.update(
        approval_state=ApprovalState.PENDING.value,
        is_active=True,
        is_featured=False,
        created_at=now,
        updated_at=now,
    )
    row = repo.create_resource(engine, ResourceKind.TENANT, values)
    _log("tenant created", actor, ResourceKind.TENANT, row["id"])
    return row


# ----------------------------
# Admin content (stories, media, events) and tenants
# ----------------------------

def list_admin(
    engine: Engine,
    actor: Optional[Actor],
    kind: ResourceKind,
    *,
    tenant_id: Optional[str] = None,
    approval_state: Optional[str] = None,
    publication_state: Optional[str] = None,
    search: Optional[str] = None,
    tags: Optional[List[str]] = None,
    limit: int = 20,
    offset: int = 0,
    sort: str = "created_at_desc",
) -> Rows:
    actor = ensure_role(actor, ANY_ADMIN)
    filters = {
        "tenant_id": scope_tenant_filter(actor, tenant_id),
        "approval_state": approval_state,
        "publication_state": publication_state,
    }
    return repo.list_resources(
        engine, kind, filters=filters, search=search, tags=tags, limit=limit, offset=offset, sort=sort
    )


def get_admin(engine: Engine, actor: Optional[Actor], kind: ResourceKind, resource_id: str) -> Dict[str, Any]:
    actor = ensure_role(actor, ANY_ADMIN)
    row = _load(engine, kind, resource_id)
    check_ownership(actor, owner_tenant_of(kind, row), kind.label)
    return row


def create_content(
    engine: Engine, actor: Optional[Actor], kind: ResourceKind, data: Mapping[str, Any]
) -> Dict[str, Any]:
    actor = ensure_role(actor, moderation.roles_for(kind, Transition.CREATE))
    values = dict(data)
    tenant_id = values.pop("tenant_id", None)
    if tenant_id is None and actor.is_tenant_admin:
        tenant_id = actor.tenant_id

    moderation.validate_transition(actor, kind, Transition.CREATE, tenant_id)
    _require_tenant(engine, tenant_id)

    now = repo.utcnow()
    values.update(moderation.initial_state(values.pop("publication_state", None), now))
    values.update(tenant_id=tenant_id, created_at=now, updated_at=now)

    row = repo.create_resource(engine, kind, values)
    _log("content created", actor, kind, row["id"], tenant_id=tenant_id)
    return row


def _check_event_dates(current: Mapping[str, Any], update: Mapping[str, Any]) -> None:
    start = _utc(update.get("event_date", current.get("event_date")))
    end = _utc(update.get("end_date", current.get("end_date")))
    if start is not None and end is not None and end < start:
        raise ValidationError.for_field("endDate", "endDate must not be before eventDate")


def update_resource(
    engine: Engine,
    actor: Optional[Actor],
    kind: ResourceKind,
    resource_id: str,
    changes: Mapping[str, Any],
) -> Dict[str, Any]:
    """Field edit by the owning tenant_admin or any platform_admin; approval state is never touched."""
    actor = ensure_role(actor, moderation.roles_for(kind, Transition.EDIT))
    current = _load(engine, kind, resource_id)
    moderation.validate_transition(actor, kind, Transition.EDIT, owner_tenant_of(kind, current))

    update = moderation.apply_edit(current, changes, repo.utcnow())
    if kind is ResourceKind.EVENT:
        _check_event_dates(current, update)
    if not update:
        return current

    row = repo.update_resource(engine, kind, resource_id, update)
    if row is None:
        raise NotFoundError(kind.label)
    _log("resource updated", actor, kind, resource_id, fields=sorted(update))
    return row


def delete_resource(engine: Engine, actor: Optional[Actor], kind: ResourceKind, resource_id: str) -> None:
    actor = ensure_role(actor, moderation.roles_for(kind, Transition.DELETE))
    current = _load(engine, kind, resource_id)
    moderation.validate_transition(actor, kind, Transition.DELETE, owner_tenant_of(kind, current))

    if not repo.delete_resource(engine, kind, resource_id):
        raise NotFoundError(kind.label)
    _log("resource deleted", actor, kind, resource_id)


def delete_tenant(engine: Engine, sessions: SessionStore, actor: Optional[Actor], tenant_id: str) -> Dict[str, int]:
    actor = ensure_role(actor, moderation.roles_for(ResourceKind.TENANT, Transition.DELETE))
    _load(engine, ResourceKind.TENANT, tenant_id)
    moderation.validate_transition(actor, ResourceKind.TENANT, Transition.DELETE, tenant_id)

    counts = repo.delete_tenant_cascade(engine, tenant_id)
    if counts is None:
        raise NotFoundError(ResourceKind.TENANT.label)
    counts["sessions_detached"] = sessions.detach_tenant(tenant_id)
    _log("tenant deleted", actor, ResourceKind.TENANT, tenant_id, removed=counts)
    return counts


def allowed_for(engine: Engine, actor: Optional[Actor], kind: ResourceKind, resource_id: str) -> Dict[str, Any]:
    row = get_admin(engine, actor, kind, resource_id)
    return {
        "resource_id": resource_id,
        "kind": kind.value,
        "approval_state": row.get("approval_state"),
        "publication_state": row.get("publication_state"),
        "allowed": moderation.allowed_transitions(actor, kind, owner_tenant_of(kind, row)),
    }


# ----------------------------
# Moderation (platform_admin)
# ----------------------------

_MODERATION_ACTIONS = {
    Transition.APPROVE: lambda row, value, now: moderation.approve(row, now),
    Transition.REJECT: lambda row, value, now: moderation.reject(row, now),
    Transition.SET_FEATURED: lambda row, value, now: moderation.set_featured(row, value, now),
    Transition.SET_ACTIVE: lambda row, value, now: moderation.set_active(row, value, now),
}


def moderate(
    engine: Engine,
    actor: Optional[Actor],
    kind: ResourceKind,
    resource_id: str,
    transition: Transition,
    value: Optional[bool] = None,
) -> Dict[str, Any]:
    """Approve, reject, feature or (tenants only) activate; repeating a call is a no-op."""
    actor = moderation.validate_transition(actor, kind, transition)
    current = _load(engine, kind, resource_id)

    update = _MODERATION_ACTIONS[transition](current, value, repo.utcnow())
    if not update:
        return current

    row = repo.update_resource(engine, kind, resource_id, update)
    if row is None:
        raise NotFoundError(kind.label)
    _log("resource moderated", actor, kind, resource_id, transition=transition.value, changes=sorted(update))
    return row


def list_pending(engine: Engine, actor: Optional[Actor], kind: ResourceKind, *, limit: int = 20, offset: int = 0) -> Rows:
    ensure_role(actor, PLATFORM_ONLY)
    return repo.list_resources(
        engine,
        kind,
        filters={"approval_state": ApprovalState.PENDING.value},
        limit=limit,
        offset=offset,
        sort="created_at_asc",
    )


# ----------------------------
# Contact messages
# ----------------------------

def submit_contact_message(engine: Engine, data: Mapping[str, Any]) -> Dict[str, Any]:
    tenant = repo.get_resource(engine, ResourceKind.TENANT, data["tenant_id"])
    if tenant is None or not _is_public(ResourceKind.TENANT, tenant):
        raise NotFoundError(ResourceKind.TENANT.label)

    values = dict(data)
    values.update(is_read=False, response_status=ResponseStatus.PENDING.value, created_at=repo.utcnow())
    row = repo.create_resource(engine, ResourceKind.MESSAGE, values)
    _log("contact message received", None, ResourceKind.MESSAGE, row["id"], tenant_id=row["tenant_id"])
    return row


def list_messages(
    engine: Engine,
    actor: Optional[Actor],
    *,
    tenant_id: Optional[str] = None,
    is_read: Optional[bool] = None,
    response_status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Rows:
    actor = ensure_role(actor, ANY_ADMIN)
    filters = {
        "tenant_id": scope_tenant_filter(actor, tenant_id),
        "is_read": is_read,
        "response_status": response_status,
    }
    return repo.list_resources(engine, ResourceKind.MESSAGE, filters=filters, search=search, limit=limit, offset=offset)


def reply_to_message(
    engine: Engine,
    mailer: Mailer,
    actor: Optional[Actor],
    message_id: str,
    subject: str,
    body: str,
) -> Dict[str, Any]:
    actor = ensure_role(actor, moderation.roles_for(ResourceKind.MESSAGE, Transition.REPLY))
    message = _load(engine, ResourceKind.MESSAGE, message_id)
    moderation.validate_transition(actor, ResourceKind.MESSAGE, Transition.REPLY, message["tenant_id"])

    if not mailer.send(OutboundEmail(to=message["email"], subject=subject, body=body)):
        raise InternalError("Failed to send reply email")

    reply = repo.create_reply(
        engine,
        {"message_id": message_id, "responded_by": actor.id, "subject": subject, "message": body, "email_sent": True},
        {"response_status": ResponseStatus.RESPONDED.value, "is_read": True},
    )
    _log("message replied", actor, ResourceKind.MESSAGE, message_id, reply_id=reply["id"])
    return reply


def list_replies(engine: Engine, actor: Optional[Actor], message_id: str) -> List[Dict[str, Any]]:
    get_admin(engine, actor, ResourceKind.MESSAGE, message_id)
    return repo.list_replies(engine, message_id)


# ----------------------------
# Users (platform_admin)
# ----------------------------

def list_users(
    engine: Engine,
    actor: Optional[Actor],
    *,
    role: Optional[str] = None,
    tenant_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Rows:
    ensure_role(actor, PLATFORM_ONLY)
    return repo.list_users(engine, role=role, tenant_id=tenant_id, limit=limit, offset=offset)


def create_user(engine: Engine, actor: Optional[Actor], data: Mapping[str, Any]) -> Dict[str, Any]:
    actor = ensure_role(actor, PLATFORM_ONLY)
    values = dict(data)
    if values.get("tenant_id"):
        _require_tenant(engine, values["tenant_id"])
    values["role"] = Role(values["role"]).value
    values["password_hash"] = hash_password(values.pop("password"))
    values.setdefault("is_active", True)

    user = repo.create_user(engine, values)
    logger.info("user created", extra={"actor_id": actor.id, "user_id": user["id"], "user_role": user["role"]})
    return user


# Changing any of these invalidates the Actor snapshot held by live sessions.
_SESSION_FIELDS = frozenset({"username", "role", "tenant_id", "is_active"})


def _load_user(engine: Engine, user_id: str) -> Dict[str, Any]:
    user = repo.get_user(engine, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def update_user(
    engine: Engine, sessions: SessionStore, actor: Optional[Actor], user_id: str, changes: Mapping[str, Any]
) -> Dict[str, Any]:
    actor = ensure_role(actor, PLATFORM_ONLY)
    current = _load_user(engine, user_id)

    values = {k: v for k, v in changes.items() if k not in ("id", "password_hash", "created_at", "last_login_at")}
    if "role" in values:
        values["role"] = Role(values["role"]).value
    role = Role(values.get("role", current["role"]))
    tenant_id = values.get("tenant_id", current["tenant_id"])
    if role is Role.TENANT_ADMIN and not tenant_id:
        raise ValidationError.for_field("tenantId", "tenantId is required for tenant_admin users")
    if values.get("tenant_id"):
        _require_tenant(engine, values["tenant_id"])

    user = repo.update_user(engine, user_id, values)
    if user is None:
        raise NotFoundError("User")
    if _SESSION_FIELDS.intersection(values):
        sessions.destroy_for(user_id)
    logger.info("user updated", extra={"actor_id": actor.id, "user_id": user_id, "fields": sorted(values)})
    return user


def reset_password(engine: Engine, sessions: SessionStore, actor: Optional[Actor], user_id: str, new_password: str) -> None:
    actor = ensure_role(actor, PLATFORM_ONLY)
    _load_user(engine, user_id)
    repo.update_user(engine, user_id, {"password_hash": hash_password(new_password)})
    sessions.destroy_for(user_id)
    logger.info("password reset", extra={"actor_id": actor.id, "user_id": user_id})


# ----------------------------
# Dashboards
# ----------------------------

def dashboard_stats(engine: Engine, actor: Optional[Actor], tenant_id: Optional[str] = None) -> Dict[str, Dict[str, int]]:
    """Counts for one tenant (tenant_admin: always its own) or the whole platform."""
    actor = ensure_role(actor, ANY_ADMIN)
    scope = scope_tenant_filter(actor, tenant_id)

    counts: Dict[str, int] = {}
    pending: Dict[str, int] = {}
    for kind in sorted(CONTENT_KINDS, key=lambda k: k.value):
        counts[kind.value] = repo.count_resources(engine, kind, tenant_id=scope)
        pending[kind.value] = repo.count_resources(
            engine, kind, tenant_id=scope, approval_state=ApprovalState.PENDING.value
        )
    counts["messages"] = repo.count_resources(engine, ResourceKind.MESSAGE, tenant_id=scope)
    counts["unreadMessages"] = repo.count_resources(engine, ResourceKind.MESSAGE, tenant_id=scope, is_read=False)
    return {"counts": counts, "pending": pending}


def platform_stats(engine: Engine, actor: Optional[Actor]) -> Dict[str, Dict[str, int]]:
    ensure_role(actor, PLATFORM_ONLY)
    stats = dashboard_stats(engine, actor)
    stats["counts"]["tenants"] = repo.count_resources(engine, ResourceKind.TENANT)
    stats["counts"]["activeTenants"] = repo.count_resources(engine, ResourceKind.TENANT, is_active=True)
    stats["counts"]["users"] = repo.count_users(engine)
    stats["pending"]["tenants"] = repo.count_resources(
        engine, ResourceKind.TENANT, approval_state=ApprovalState.PENDING.value
    )
    return stats


# ----------------------------
# Platform settings
# ----------------------------

def get_platform_settings(store: PlatformSettingsStore, actor: Optional[Actor]) -> Dict[str, Any]:
    ensure_role(actor, PLATFORM_ONLY)
    return store.get()


def update_platform_settings(store: PlatformSettingsStore, actor: Optional[Actor], patch: Mapping[str, Any]) -> Dict[str, Any]:
    actor = ensure_role(actor, PLATFORM_ONLY)
    updated = store.update(patch)
    logger.info("platform settings updated", extra={"actor_id": actor.id, "groups": sorted(patch)})
    return updated


def set_maintenance(
    store: PlatformSettingsStore, actor: Optional[Actor], enabled: bool, message: Optional[str]
) -> Dict[str, Any]:
    actor = ensure_role(actor, PLATFORM_ONLY)
    state = store.set_maintenance(enabled, message, actor.username)
    logger.warning("maintenance mode changed", extra={"actor_id": actor.id, "enabled": enabled})
    return state
