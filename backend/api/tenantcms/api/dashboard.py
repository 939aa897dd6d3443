from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import service
from ..guards import require_any_admin, require_platform_admin
from ..models import Actor
from ..schemas import Envelope, StatsOut
from ..state import PlatformState, get_platform
from .common import ok

router = APIRouter(tags=["dashboard"])


@router.get("/admin/dashboard/stats", response_model=Envelope[StatsOut])
def dashboard_stats(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    return ok(service.dashboard_stats(platform.engine, actor, tenant_id))


@router.get("/superadmin/stats", response_model=Envelope[StatsOut])
def platform_stats(
    actor: Actor = Depends(require_platform_admin),
    platform: PlatformState = Depends(get_platform),
):
    return ok(service.platform_stats(platform.engine, actor))
