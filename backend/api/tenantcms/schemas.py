from datetime import datetime, timezone
from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import ApprovalState, PublicationState, ResponseStatus, Role

T = TypeVar("T")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

MediaType = Literal["image", "video", "audio", "document"]


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; unknown fields are ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    timestamp: str


class Page(CamelModel, Generic[T]):
    items: List[T]
    limit: int
    offset: int
    total: int


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _strip_tags(tags: List[str]) -> List[str]:
    seen: List[str] = []
    for t in tags:
        t = t.strip()
        if t and t not in seen:
            seen.append(t)
    return seen


def _present(value):
    # PATCH bodies may omit a field but not null out a required column
    if value is None:
        raise ValueError("Field may not be null")
    return value


# ----------------------------
# Auth
# ----------------------------

class LoginIn(CamelModel):
    username: str = Field(..., min_length=1, max_length=120)
    password: str = Field(..., min_length=1, max_length=200)


class ActorOut(CamelModel):
    id: str
    username: str
    role: Role
    tenant_id: Optional[str] = None


class LoginOut(CamelModel):
    user: ActorOut
    token: str


# ----------------------------
# Tenants
# ----------------------------

class TenantCreateIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000)
    location: str = Field("", max_length=200)
    city: str = Field("", max_length=120)
    country: str = Field("", max_length=120)
    tenant_type: str = Field("library", min_length=1, max_length=60)
    website: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=500)
    featured_image_url: Optional[str] = Field(None, max_length=500)


class TenantUpdateIn(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=120)
    country: Optional[str] = Field(None, max_length=120)
    tenant_type: Optional[str] = Field(None, min_length=1, max_length=60)
    website: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=500)
    featured_image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "description", "location", "city", "country", "tenant_type")
    @classmethod
    def _not_null(cls, v):
        return _present(v)


class TenantOut(CamelModel):
    id: str
    name: str
    description: str
    location: str
    city: str
    country: str
    tenant_type: str
    website: Optional[str] = None
    logo_url: Optional[str] = None
    featured_image_url: Optional[str] = None
    approval_state: ApprovalState
    is_active: bool
    is_featured: bool
    created_at: datetime
    updated_at: datetime


# ----------------------------
# Content: stories, media, events
# ----------------------------

class _ContentIn(CamelModel):
    # platform_admin picks the tenant; tenant_admin may omit it
    tenant_id: Optional[str] = None
    publication_state: PublicationState = PublicationState.DRAFT


class _ContentOut(CamelModel):
    id: str
    tenant_id: str
    title: str
    approval_state: ApprovalState
    publication_state: PublicationState
    is_featured: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class StoryCreateIn(_ContentIn):
    title: str = Field(..., min_length=1, max_length=400)
    summary: str = Field("", max_length=2000)
    content: str = Field("", max_length=100_000)
    featured_image_url: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list, max_length=50)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: List[str]) -> List[str]:
        return _strip_tags(v)


class StoryUpdateIn(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=400)
    summary: Optional[str] = Field(None, max_length=2000)
    content: Optional[str] = Field(None, max_length=100_000)
    featured_image_url: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = Field(None, max_length=50)
    publication_state: Optional[PublicationState] = None

    @field_validator("title", "summary", "content", "tags", "publication_state")
    @classmethod
    def _not_null(cls, v):
        return _present(v)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _strip_tags(v)


class StoryOut(_ContentOut):
    summary: str
    content: str
    featured_image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class MediaCreateIn(_ContentIn):
    title: str = Field(..., min_length=1, max_length=400)
    description: Optional[str] = Field(None, max_length=5000)
    media_type: MediaType
    url: str = Field(..., min_length=1, max_length=1000)
    gallery_id: Optional[str] = Field(None, max_length=120)
    tags: List[str] = Field(default_factory=list, max_length=50)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: List[str]) -> List[str]:
        return _strip_tags(v)


class MediaUpdateIn(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=400)
    description: Optional[str] = Field(None, max_length=5000)
    media_type: Optional[MediaType] = None
    url: Optional[str] = Field(None, min_length=1, max_length=1000)
    gallery_id: Optional[str] = Field(None, max_length=120)
    tags: Optional[List[str]] = Field(None, max_length=50)
    publication_state: Optional[PublicationState] = None

    @field_validator("title", "media_type", "url", "tags", "publication_state")
    @classmethod
    def _not_null(cls, v):
        return _present(v)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _strip_tags(v)


class MediaOut(_ContentOut):
    description: Optional[str] = None
    media_type: str
    url: str
    gallery_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class EventCreateIn(_ContentIn):
    title: str = Field(..., min_length=1, max_length=400)
    description: str = Field("", max_length=5000)
    location: str = Field("", max_length=400)
    event_date: datetime
    end_date: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _check_dates(self) -> "EventCreateIn":
        if self.end_date is not None and _utc(self.end_date) < _utc(self.event_date):
            raise ValueError("endDate must not be before eventDate")
        return self


class EventUpdateIn(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=400)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=400)
    event_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    image_url: Optional[str] = Field(None, max_length=500)
    publication_state: Optional[PublicationState] = None

    @field_validator("title", "description", "location", "event_date", "publication_state")
    @classmethod
    def _not_null(cls, v):
        return _present(v)

    @model_validator(mode="after")
    def _check_dates(self) -> "EventUpdateIn":
        if self.event_date and self.end_date and _utc(self.end_date) < _utc(self.event_date):
            raise ValueError("endDate must not be before eventDate")
        return self


class EventOut(_ContentOut):
    description: str
    location: str
    event_date: datetime
    end_date: Optional[datetime] = None
    image_url: Optional[str] = None


class AllowedTransitionsOut(CamelModel):
    resource_id: str
    kind: str
    approval_state: Optional[ApprovalState] = None
    publication_state: Optional[PublicationState] = None
    allowed: List[str]


class FeaturedIn(CamelModel):
    is_featured: bool


class ActiveIn(CamelModel):
    is_active: bool


# ----------------------------
# Contact messages
# ----------------------------

class ContactMessageIn(CamelModel):
    tenant_id: str = Field(..., min_length=1, max_length=36)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    subject: str = Field(..., min_length=1, max_length=400)
    message: str = Field(..., min_length=1, max_length=10_000)


class MessageUpdateIn(CamelModel):
    is_read: Optional[bool] = None
    response_status: Optional[ResponseStatus] = None

    @field_validator("is_read", "response_status")
    @classmethod
    def _not_null(cls, v):
        return _present(v)


class MessageOut(CamelModel):
    id: str
    tenant_id: str
    name: str
    email: str
    subject: str
    message: str
    is_read: bool
    response_status: ResponseStatus
    created_at: datetime


class ReplyIn(CamelModel):
    subject: str = Field(..., min_length=1, max_length=400)
    message: str = Field(..., min_length=1, max_length=10_000)


class ReplyOut(CamelModel):
    id: str
    message_id: str
    responded_by: str
    subject: str
    message: str
    email_sent: bool
    created_at: datetime


# ----------------------------
# Users
# ----------------------------

class UserCreateIn(CamelModel):
    username: str = Field(..., min_length=3, max_length=120)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=200)
    full_name: str = Field("", max_length=200)
    role: Role
    tenant_id: Optional[str] = None

    @model_validator(mode="after")
    def _tenant_admin_needs_tenant(self) -> "UserCreateIn":
        if self.role == Role.TENANT_ADMIN.value and not self.tenant_id:
            raise ValueError("tenantId is required for tenant_admin users")
        return self


class UserUpdateIn(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=120)
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    full_name: Optional[str] = Field(None, max_length=200)
    role: Optional[Role] = None
    tenant_id: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("username", "email", "full_name", "role", "is_active")
    @classmethod
    def _not_null(cls, v):
        return _present(v)


class PasswordResetIn(CamelModel):
    new_password: str = Field(..., min_length=8, max_length=200)


class UserOut(CamelModel):
    id: str
    username: str
    email: str
    full_name: str
    role: Role
    tenant_id: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


# ----------------------------
# Platform settings
# ----------------------------

class MaintenanceIn(CamelModel):
    enabled: bool
    message: Optional[str] = Field(None, max_length=500)


class MaintenanceOut(CamelModel):
    enabled: bool
    message: Optional[str] = None
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None


class StatsOut(CamelModel):
    counts: Dict[str, int]
    pending: Dict[str, int]
