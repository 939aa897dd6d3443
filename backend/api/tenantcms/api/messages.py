from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from .. import service
from ..guards import require_any_admin
from ..models import Actor, ResourceKind, ResponseStatus
from ..schemas import ContactMessageIn, Envelope, MessageOut, MessageUpdateIn, Page, ReplyIn, ReplyOut
from ..state import PlatformState, get_platform
from .common import Pagination, ok, page, pagination

router = APIRouter(tags=["messages"])

MESSAGE = ResourceKind.MESSAGE


@router.post("/contact-messages", status_code=201)
def submit_contact_message(body: ContactMessageIn, platform: PlatformState = Depends(get_platform)) -> Dict[str, Any]:
    row = service.submit_contact_message(platform.engine, body.model_dump())
    # the sender only learns the message was accepted
    return ok({"id": row["id"]}, "Message sent successfully")


@router.get("/admin/messages", response_model=Envelope[Page[MessageOut]])
def list_messages(
    search: Optional[str] = Query(None, max_length=200),
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    response_status: Optional[ResponseStatus] = Query(None, alias="responseStatus"),
    p: Pagination = Depends(pagination),
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    items, total = service.list_messages(
        platform.engine,
        actor,
        tenant_id=tenant_id,
        is_read=is_read,
        response_status=response_status.value if response_status else None,
        search=search,
        limit=p.limit,
        offset=p.offset,
    )
    return ok(page(items, total, p))


@router.get("/admin/messages/{message_id}", response_model=Envelope[MessageOut])
def get_message(
    message_id: str,
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    return ok(service.get_admin(platform.engine, actor, MESSAGE, message_id))


@router.patch("/admin/messages/{message_id}", response_model=Envelope[MessageOut])
def update_message(
    message_id: str,
    body: MessageUpdateIn,
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    row = service.update_resource(platform.engine, actor, MESSAGE, message_id, body.model_dump(exclude_unset=True))
    return ok(row, "Message updated")


@router.delete("/admin/messages/{message_id}")
def delete_message(
    message_id: str,
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
) -> Dict[str, Any]:
    service.delete_resource(platform.engine, actor, MESSAGE, message_id)
    return ok({"id": message_id}, "Message deleted")


@router.post("/admin/messages/{message_id}/reply", response_model=Envelope[ReplyOut], status_code=201)
def reply_to_message(
    message_id: str,
    body: ReplyIn,
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    reply = service.reply_to_message(platform.engine, platform.mailer, actor, message_id, body.subject, body.message)
    return ok(reply, "Reply sent")


@router.get("/admin/messages/{message_id}/replies", response_model=Envelope[List[ReplyOut]])
def list_replies(
    message_id: str,
    actor: Actor = Depends(require_any_admin),
    platform: PlatformState = Depends(get_platform),
):
    return ok(service.list_replies(platform.engine, actor, message_id))
