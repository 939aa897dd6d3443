from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    TENANT_ADMIN = "tenant_admin"
    PLATFORM_ADMIN = "platform_admin"


class ApprovalState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PublicationState(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ResponseStatus(str, Enum):
    PENDING = "pending"
    RESPONDED = "responded"
    CLOSED = "closed"


class ResourceKind(str, Enum):
    TENANT = "tenants"
    STORY = "stories"
    MEDIA = "media"
    EVENT = "events"
    MESSAGE = "messages"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_content(self) -> bool:
        return self in CONTENT_KINDS


_LABELS = {
    ResourceKind.TENANT: "Tenant",
    ResourceKind.STORY: "Story",
    ResourceKind.MEDIA: "Media item",
    ResourceKind.EVENT: "Event",
    ResourceKind.MESSAGE: "Message",
}

CONTENT_KINDS = frozenset({ResourceKind.STORY, ResourceKind.MEDIA, ResourceKind.EVENT})


class ContentKind(str, Enum):
    """Path-level subset of ResourceKind carrying approval + publication."""

    STORY = "stories"
    MEDIA = "media"
    EVENT = "events"

    @property
    def resource(self) -> ResourceKind:
        return ResourceKind(self.value)


@dataclass(frozen=True)
class Actor:
    id: str
    username: str
    role: Role
    tenant_id: Optional[str] = None

    @property
    def is_platform_admin(self) -> bool:
        return self.role is Role.PLATFORM_ADMIN

    @property
    def is_tenant_admin(self) -> bool:
        return self.role is Role.TENANT_ADMIN


class ModeratedKind(str, Enum):
    """Kinds carrying an approval state a platform_admin moderates."""

    TENANT = "tenants"
    STORY = "stories"
    MEDIA = "media"
    EVENT = "events"

    @property
    def resource(self) -> ResourceKind:
        return ResourceKind(self.value)
