# backend/api/tenantcms/db.py
from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

metadata = MetaData()


def _id() -> Column:
    return Column("id", String(36), primary_key=True)


def _tenant_fk() -> Column:
    return Column("tenant_id", String(36), ForeignKey("tenants.id"), nullable=False, index=True)


def _lifecycle() -> list:
    return [
        Column("approval_state", String(16), nullable=False, default="pending", index=True),
        Column("publication_state", String(16), nullable=False, default="draft", index=True),
        Column("is_featured", Boolean, nullable=False, default=False),
        Column("published_at", DateTime(timezone=True), nullable=True),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    ]


tenants = Table(
    "tenants",
    metadata,
    _id(),
    Column("name", String(200), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("location", String(200), nullable=False, default=""),
    Column("city", String(120), nullable=False, default=""),
    Column("country", String(120), nullable=False, default=""),
    Column("tenant_type", String(60), nullable=False, default="library"),
    Column("website", String(500)),
    Column("logo_url", String(500)),
    Column("featured_image_url", String(500)),
    Column("approval_state", String(16), nullable=False, default="pending", index=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_featured", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

users = Table(
    "users",
    metadata,
    _id(),
    Column("username", String(120), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(200), nullable=False, default=""),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(32), nullable=False),
    Column("tenant_id", String(36), ForeignKey("tenants.id"), nullable=True, index=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("last_login_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

stories = Table(
    "stories",
    metadata,
    _id(),
    _tenant_fk(),
    Column("title", String(400), nullable=False),
    Column("summary", Text, nullable=False, default=""),
    Column("content", Text, nullable=False, default=""),
    Column("featured_image_url", String(500)),
    Column("tags", JSON, nullable=False, default=list),
    *_lifecycle(),
)

media_items = Table(
    "media_items",
    metadata,
    _id(),
    _tenant_fk(),
    Column("title", String(400), nullable=False),
    Column("description", Text),
    Column("media_type", String(32), nullable=False),
    Column("url", String(1000), nullable=False),
    Column("gallery_id", String(120)),
    Column("tags", JSON, nullable=False, default=list),
    *_lifecycle(),
)

events = Table(
    "events",
    metadata,
    _id(),
    _tenant_fk(),
    Column("title", String(400), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("location", String(400), nullable=False, default=""),
    Column("event_date", DateTime(timezone=True), nullable=False),
    Column("end_date", DateTime(timezone=True)),
    Column("image_url", String(500)),
    *_lifecycle(),
)

contact_messages = Table(
    "contact_messages",
    metadata,
    _id(),
    _tenant_fk(),
    Column("name", String(200), nullable=False),
    Column("email", String(255), nullable=False),
    Column("subject", String(400), nullable=False),
    Column("message", Text, nullable=False),
    Column("is_read", Boolean, nullable=False, default=False),
    Column("response_status", String(16), nullable=False, default="pending"),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

message_responses = Table(
    "message_responses",
    metadata,
    _id(),
    Column("message_id", String(36), ForeignKey("contact_messages.id"), nullable=False, index=True),
    Column("responded_by", String(36), nullable=False),
    Column("subject", String(400), nullable=False),
    Column("message", Text, nullable=False),
    Column("email_sent", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def build_engine(db_url: str) -> Engine:
    if not db_url:
        raise RuntimeError("DATABASE_URL is not set. Ensure it exists in backend/api/.env or set ENV_PATH.")

    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url or db_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            # one shared connection, or every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, future=True, **kwargs)

    return create_engine(db_url, pool_pre_ping=True, future=True)


def init_schema(engine: Engine) -> None:
    metadata.create_all(engine)


def db_ping(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(text("SELECT 1"))
