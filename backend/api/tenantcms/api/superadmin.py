from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from .. import service
from ..guards import require_platform_admin
from ..models import Actor, ModeratedKind, ResourceKind, Role
from ..moderation import Transition
from ..schemas import (
    ActiveIn,
    Envelope,
    FeaturedIn,
    MaintenanceIn,
    MaintenanceOut,
    Page,
    PasswordResetIn,
    UserCreateIn,
    UserOut,
    UserUpdateIn,
)
from ..state import PlatformState, get_platform
from .common import Pagination, ok, page, pagination, serialize

router = APIRouter(prefix="/superadmin", tags=["superadmin"])


# -----------------------------
# Moderation
# -----------------------------
@router.get("/moderation/{kind}")
def pending_items(
    kind: ModeratedKind,
    p: Pagination = Depends(pagination),
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    resource = kind.resource
    items, total = service.list_pending(platform.engine, actor, resource, limit=p.limit, offset=p.offset)
    return ok(page([serialize(resource, r) for r in items], total, p))


def _moderate(
    platform: PlatformState,
    actor: Actor,
    kind: ResourceKind,
    resource_id: str,
    transition: Transition,
    value: Optional[bool] = None,
) -> Dict[str, Any]:
    row = service.moderate(platform.engine, actor, kind, resource_id, transition, value)
    return serialize(kind, row)


@router.patch("/{kind}/{resource_id}/approve")
def approve(
    kind: ModeratedKind,
    resource_id: str,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    data = _moderate(platform, actor, kind.resource, resource_id, Transition.APPROVE)
    return ok(data, f"{kind.resource.label} approved")


@router.patch("/{kind}/{resource_id}/reject")
def reject(
    kind: ModeratedKind,
    resource_id: str,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    data = _moderate(platform, actor, kind.resource, resource_id, Transition.REJECT)
    return ok(data, f"{kind.resource.label} rejected")


@router.patch("/{kind}/{resource_id}/featured")
def set_featured(
    kind: ModeratedKind,
    resource_id: str,
    body: FeaturedIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    data = _moderate(platform, actor, kind.resource, resource_id, Transition.SET_FEATURED, body.is_featured)
    return ok(data, f"{kind.resource.label} featured status updated")


@router.patch("/tenants/{tenant_id}/active")
def set_active(
    tenant_id: str,
    body: ActiveIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    data = _moderate(platform, actor, ResourceKind.TENANT, tenant_id, Transition.SET_ACTIVE, body.is_active)
    return ok(data, "Tenant active status updated")


# -----------------------------
# Users
# -----------------------------
@router.get("/users", response_model=Envelope[Page[UserOut]])
def list_users(
    role: Optional[Role] = Query(None),
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    p: Pagination = Depends(pagination),
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    items, total = service.list_users(
        platform.engine,
        actor,
        role=role.value if role else None,
        tenant_id=tenant_id,
        limit=p.limit,
        offset=p.offset,
    )
    return ok(page(items, total, p))


@router.post("/users", response_model=Envelope[UserOut], status_code=201)
def create_user(
    body: UserCreateIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    return ok(service.create_user(platform.engine, actor, body.model_dump()), "User created")


@router.patch("/users/{user_id}", response_model=Envelope[UserOut])
def update_user(
    user_id: str,
    body: UserUpdateIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    changes = body.model_dump(exclude_unset=True)
    user = service.update_user(platform.engine, platform.sessions, actor, user_id, changes)
    return ok(user, "User updated")


@router.post("/users/{user_id}/reset-password")
def reset_password(
    user_id: str,
    body: PasswordResetIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    service.reset_password(platform.engine, platform.sessions, actor, user_id, body.new_password)
    return ok({"id": user_id}, "Password reset")


# -----------------------------
# Platform settings / maintenance
# -----------------------------
@router.get("/settings")
def get_settings(
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    return ok(service.get_platform_settings(platform.settings_store, actor))


@router.patch("/settings")
def update_settings(
    patch: Dict[str, Dict[str, Any]] = Body(...),
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    return ok(service.update_platform_settings(platform.settings_store, actor, patch), "Settings updated")


@router.get("/maintenance", response_model=Envelope[MaintenanceOut])
def get_maintenance(
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    return ok(platform.settings_store.maintenance())


@router.post("/maintenance", response_model=Envelope[MaintenanceOut])
def set_maintenance(
    body: MaintenanceIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    state = service.set_maintenance(platform.settings_store, actor, body.enabled, body.message)
    return ok(state, "Maintenance mode updated")
