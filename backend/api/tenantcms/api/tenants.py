from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from .. import service
from ..guards import require_any_admin, require_platform_admin
from ..models import Actor, ResourceKind
from ..schemas import Envelope, Page, TenantCreateIn, TenantOut, TenantUpdateIn
from ..state import PlatformState, get_platform
from .common import Pagination, ok, page, pagination

router = APIRouter(prefix="/tenants", tags=["tenants"])

TENANT = ResourceKind.TENANT


@router.get("", response_model=Envelope[Page[TenantOut]])
def list_tenants(
    search: Optional[str] = Query(None, max_length=200),
    featured: Optional[bool] = Query(None),
    sort: str = Query("name_asc"),
    p: Pagination = Depends(pagination),
    platform: PlatformState = Depends(get_platform),
):
    items, total = service.list_public(
        platform.engine, TENANT, featured=featured, search=search, limit=p.limit, offset=p.offset, sort=sort
    )
    return ok(page(items, total, p))


@router.get("/{tenant_id}", response_model=Envelope[TenantOut])
def get_tenant(tenant_id: str, platform: PlatformState = Depends(get_platform)):
    return ok(service.get_public(platform.engine, TENANT, tenant_id))


@router.post("", response_model=Envelope[TenantOut], status_code=201)
def create_tenant(
    body: TenantCreateIn,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    row = service.create_tenant(platform.engine, actor, body.model_dump())
    return ok(row, "Tenant created")


@router.patch("/{tenant_id}", response_model=Envelope[TenantOut])
def update_tenant(
    tenant_id: str,
    body: TenantUpdateIn,
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    row = service.update_resource(platform.engine, actor, TENANT, tenant_id, body.model_dump(exclude_unset=True))
    return ok(row, "Tenant updated")


@router.delete("/{tenant_id}")
def delete_tenant(
    tenant_id: str,
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    removed = service.delete_tenant(platform.engine, platform.sessions, actor, tenant_id)
    return ok({"id": tenant_id, "removed": removed}, "Tenant deleted")
