from typing import Any, Dict, List, Optional, Type

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from .. import service
from ..guards import require_any_admin
from ..models import Actor, ApprovalState, ContentKind, PublicationState
from ..schemas import (
    AllowedTransitionsOut,
    Envelope,
    EventCreateIn,
    EventOut,
    EventUpdateIn,
    MediaCreateIn,
    MediaOut,
    MediaUpdateIn,
    Page,
    StoryCreateIn,
    StoryOut,
    StoryUpdateIn,
)
from ..state import PlatformState, get_platform
from .common import Pagination, ok, page, pagination, parse_tags

router = APIRouter(tags=["content"])


def _register(
    kind: ContentKind,
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    out_model: Type[BaseModel],
    *,
    with_tags: bool,
    default_sort: str = "created_at_desc",
) -> None:
    resource = kind.resource
    name = kind.value
    label = resource.label

    # -----------------------------
    # Public reads: approved + published only
    # -----------------------------
    if with_tags:
        @router.get(f"/{name}/tags", response_model=Envelope[List[str]], name=f"{name}_tags")
        def list_tags(platform: PlatformState = Depends(get_platform)):
            return ok(service.list_public_tags(platform.engine, resource))

    @router.get(f"/{name}", response_model=Envelope[Page[out_model]], name=f"list_public_{name}")
    def list_public(
        search: Optional[str] = Query(None, max_length=200),
        tags: Optional[str] = Query(None, max_length=500),
        tenant_id: Optional[str] = Query(None, alias="tenantId"),
        featured: Optional[bool] = Query(None),
        sort: str = Query(default_sort),
        p: Pagination = Depends(pagination),
        platform: PlatformState = Depends(get_platform),
    ):
        items, total = service.list_public(
            platform.engine,
            resource,
            tenant_id=tenant_id,
            featured=featured,
            search=search,
            tags=parse_tags(tags),
            limit=p.limit,
            offset=p.offset,
            sort=sort,
        )
        return ok(page(items, total, p))

    @router.get(f"/{name}/{{resource_id}}", response_model=Envelope[out_model], name=f"get_public_{name}")
    def get_public(resource_id: str, platform: PlatformState = Depends(get_platform)):
        return ok(service.get_public(platform.engine, resource, resource_id))

    # -----------------------------
    # Admin: owning tenant_admin or platform_admin
    # -----------------------------
    @router.get(f"/admin/{name}", response_model=Envelope[Page[out_model]], name=f"list_admin_{name}")
    def list_admin(
        search: Optional[str] = Query(None, max_length=200),
        tags: Optional[str] = Query(None, max_length=500),
        tenant_id: Optional[str] = Query(None, alias="tenantId"),
        approval_state: Optional[ApprovalState] = Query(None, alias="approvalState"),
        publication_state: Optional[PublicationState] = Query(None, alias="publicationState"),
        sort: str = Query("created_at_desc"),
        p: Pagination = Depends(pagination),
        actor: Actor = Depends(require_any_admin),
        platform: PlatformState = Depends(get_platform),
    ):
        items, total = service.list_admin(
            platform.engine,
            actor,
            resource,
            tenant_id=tenant_id,
            approval_state=approval_state.value if approval_state else None,
            publication_state=publication_state.value if publication_state else None,
            search=search,
            tags=parse_tags(tags),
            limit=p.limit,
            offset=p.offset,
            sort=sort,
        )
        return ok(page(items, total, p))

    @router.post(f"/admin/{name}", response_model=Envelope[out_model], status_code=201, name=f"create_{name}")
    def create(
        body: create_model,
        actor: Actor = Depends(require_any_admin),
        platform: PlatformState = Depends(get_platform),
    ):
        row = service.create_content(platform.engine, actor, resource, body.model_dump())
        return ok(row, f"{label} created and awaiting approval")

    @router.get(f"/admin/{name}/{{resource_id}}", response_model=Envelope[out_model], name=f"get_admin_{name}")
    def get_admin(
        resource_id: str,
        actor: Actor = Depends(require_any_admin),
        platform: PlatformState = Depends(get_platform),
    ):
        return ok(service.get_admin(platform.engine, actor, resource, resource_id))

    @router.patch(f"/admin/{name}/{{resource_id}}", response_model=Envelope[out_model], name=f"update_{name}")
    def update(
        resource_id: str,
        body: update_model,
        actor: Actor = Depends(require_any_admin),
        platform: PlatformState = Depends(get_platform),
    ):
        changes = body.model_dump(exclude_unset=True)
        row = service.update_resource(platform.engine, actor, resource, resource_id, changes)
        return ok(row, f"{label} updated")

    @router.delete(f"/admin/{name}/{{resource_id}}", name=f"delete_{name}")
    def delete(
        resource_id: str,
        actor: Actor = Depends(require_any_admin),
        platform: PlatformState = Depends(get_platform),
    ) -> Dict[str, Any]:
        service.delete_resource(platform.engine, actor, resource, resource_id)
        return ok({"id": resource_id}, f"{label} deleted")

    @router.get(
        f"/admin/{name}/{{resource_id}}/allowed",
        response_model=Envelope[AllowedTransitionsOut],
        name=f"allowed_{name}",
    )
    def allowed(
        resource_id: str,
        actor: Actor = Depends(require_any_admin),
        platform: PlatformState = Depends(get_platform),
    ):
        return ok(service.allowed_for(platform.engine, actor, resource, resource_id))


_register(ContentKind.STORY, StoryCreateIn, StoryUpdateIn, StoryOut, with_tags=True)
_register(ContentKind.MEDIA, MediaCreateIn, MediaUpdateIn, MediaOut, with_tags=True)
_register(ContentKind.EVENT, EventCreateIn, EventUpdateIn, EventOut, with_tags=False, default_sort="event_date_asc")
