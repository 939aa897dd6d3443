from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Type

from fastapi import Query
from pydantic import BaseModel

from ..models import ResourceKind
from ..responses import format_success_response
from ..schemas import EventOut, MediaOut, MessageOut, StoryOut, TenantOut

OUT_MODELS: Dict[ResourceKind, Type[BaseModel]] = {
    ResourceKind.TENANT: TenantOut,
    ResourceKind.STORY: StoryOut,
    ResourceKind.MEDIA: MediaOut,
    ResourceKind.EVENT: EventOut,
    ResourceKind.MESSAGE: MessageOut,
}


@dataclass(frozen=True)
class Pagination:
    limit: int
    offset: int


def pagination(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> Pagination:
    return Pagination(limit=limit, offset=offset)


def parse_tags(raw: Optional[str]) -> Optional[List[str]]:
    """``?tags=a,b`` -> ["a", "b"]; every tag must match."""
    if not raw:
        return None
    tags = [t.strip() for t in raw.split(",") if t.strip()]
    return tags or None


def serialize(kind: ResourceKind, row: Mapping[str, Any]) -> Dict[str, Any]:
    return OUT_MODELS[kind].model_validate(dict(row)).model_dump(by_alias=True, mode="json")


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    return format_success_response(data, message)


def page(items: List[Any], total: int, p: Pagination) -> Dict[str, Any]:
    return {"items": items, "total": total, "limit": p.limit, "offset": p.offset}
