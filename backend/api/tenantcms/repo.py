from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import Table, and_, delete, func, insert, or_, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from .db import contact_messages, events, media_items, message_responses, stories, tenants, users
from .errors import ConflictError
from .models import ResourceKind


TABLES: Dict[ResourceKind, Table] = {
    ResourceKind.TENANT: tenants,
    ResourceKind.STORY: stories,
    ResourceKind.MEDIA: media_items,
    ResourceKind.EVENT: events,
    ResourceKind.MESSAGE: contact_messages,
}

_SEARCH_COLUMNS: Dict[ResourceKind, Tuple[str, ...]] = {
    ResourceKind.TENANT: ("name", "description", "city", "country"),
    ResourceKind.STORY: ("title", "summary"),
    ResourceKind.MEDIA: ("title", "description"),
    ResourceKind.EVENT: ("title", "description", "location"),
    ResourceKind.MESSAGE: ("name", "email", "subject"),
}

# Owned tables, in delete order for a tenant cascade.
_OWNED_BY_TENANT = (stories, media_items, events)


# ----------------------------
# Helpers (safe + deterministic)
# ----------------------------

def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_to_order_by(table: Table, sort: Optional[str]):
    """
    Allowed sort values are ``<column>_<asc|desc>`` for an allow-listed
    column the table actually has, e.g. ``created_at_desc`` (default),
    ``title_asc``, ``event_date_asc``. Anything else falls back to the default.
    """
    allowed = ("created_at", "updated_at", "published_at", "title", "name", "event_date")
    s = (sort or "").strip().lower()
    column, _, direction = s.rpartition("_")
    if column in allowed and column in table.c and direction in ("asc", "desc"):
        col = table.c[column]
        return col.asc() if direction == "asc" else col.desc()
    return table.c.created_at.desc()


def _where(kind: ResourceKind, filters: Mapping[str, Any], search: Optional[str]) -> list:
    table = TABLES[kind]
    clauses = [table.c[k] == v for k, v in filters.items() if v is not None]
    if search:
        pattern = f"%{search.strip()}%"
        clauses.append(or_(*[table.c[c].ilike(pattern) for c in _SEARCH_COLUMNS[kind]]))
    return clauses


def _has_tags(row: Mapping[str, Any], wanted: Iterable[str]) -> bool:
    have = {str(t).lower() for t in (row.get("tags") or [])}
    return all(t.lower() in have for t in wanted)


# ----------------------------
# Generic resource CRUD
# ----------------------------

def create_resource(engine: Engine, kind: ResourceKind, values: Mapping[str, Any]) -> Dict[str, Any]:
    table = TABLES[kind]
    row = dict(values)
    row.setdefault("id", new_id())
    with engine.begin() as conn:
        conn.execute(insert(table).values(**row))
        created = conn.execute(select(table).where(table.c.id == row["id"])).mappings().one()
    return dict(created)


def get_resource(engine: Engine, kind: ResourceKind, resource_id: str) -> Optional[Dict[str, Any]]:
    table = TABLES[kind]
    with engine.begin() as conn:
        row = conn.execute(select(table).where(table.c.id == resource_id)).mappings().first()
    return dict(row) if row else None


def update_resource(
    engine: Engine, kind: ResourceKind, resource_id: str, values: Mapping[str, Any]
) -> Optional[Dict[str, Any]]:
    table = TABLES[kind]
    with engine.begin() as conn:
        if values:
            conn.execute(update(table).where(table.c.id == resource_id).values(**values))
        row = conn.execute(select(table).where(table.c.id == resource_id)).mappings().first()
    return dict(row) if row else None


def list_resources(
    engine: Engine,
    kind: ResourceKind,
    *,
    filters: Optional[Mapping[str, Any]] = None,
    search: Optional[str] = None,
    tags: Optional[List[str]] = None,
    limit: int = 20,
    offset: int = 0,
    sort: str = "created_at_desc",
) -> Tuple[List[Dict[str, Any]], int]:
    table = TABLES[kind]
    clauses = _where(kind, filters or {}, search)
    where = and_(*clauses) if clauses else None

    q_items = select(table).order_by(_sort_to_order_by(table, sort))
    q_total = select(func.count()).select_from(table)
    if where is not None:
        q_items = q_items.where(where)
        q_total = q_total.where(where)

    with engine.begin() as conn:
        if tags:
            # JSON tag arrays are matched in Python to stay portable across engines
            rows = [dict(r) for r in conn.execute(q_items).mappings().all() if _has_tags(r, tags)]
            return rows[offset: offset + limit], len(rows)

        rows = conn.execute(q_items.limit(int(limit)).offset(int(offset))).mappings().all()
        total = conn.execute(q_total).scalar_one()

    return [dict(r) for r in rows], int(total)


def list_tags(engine: Engine, kind: ResourceKind, filters: Mapping[str, Any]) -> List[str]:
    table = TABLES[kind]
    clauses = _where(kind, filters, None)
    q = select(table.c.tags)
    if clauses:
        q = q.where(and_(*clauses))
    with engine.begin() as conn:
        values = conn.execute(q).scalars().all()
    found = {str(t) for tags in values for t in (tags or []) if str(t).strip()}
    return sorted(found, key=str.lower)


def count_resources(engine: Engine, kind: ResourceKind, **filters: Any) -> int:
    table = TABLES[kind]
    clauses = _where(kind, filters, None)
    q = select(func.count()).select_from(table)
    if clauses:
        q = q.where(and_(*clauses))
    with engine.begin() as conn:
        return int(conn.execute(q).scalar_one())


def _delete_messages(conn: Connection, message_ids: List[str]) -> int:
    if not message_ids:
        return 0
    conn.execute(delete(message_responses).where(message_responses.c.message_id.in_(message_ids)))
    return conn.execute(delete(contact_messages).where(contact_messages.c.id.in_(message_ids))).rowcount


def delete_resource(engine: Engine, kind: ResourceKind, resource_id: str) -> bool:
    if kind is ResourceKind.TENANT:
        return delete_tenant_cascade(engine, resource_id) is not None

    table = TABLES[kind]
    with engine.begin() as conn:
        if kind is ResourceKind.MESSAGE:
            return _delete_messages(conn, [resource_id]) > 0
        result = conn.execute(delete(table).where(table.c.id == resource_id))
    return result.rowcount > 0


def delete_tenant_cascade(engine: Engine, tenant_id: str) -> Optional[Dict[str, int]]:
    """
    Delete a tenant and everything it owns in one transaction.

    Users pointing at the tenant are detached (tenant_id cleared), not deleted.
    Returns per-table counts, or None if the tenant does not exist.
    """
    with engine.begin() as conn:
        exists = conn.execute(select(tenants.c.id).where(tenants.c.id == tenant_id)).first()
        if exists is None:
            return None

        counts: Dict[str, int] = {}
        counts["users_detached"] = conn.execute(
            update(users).where(users.c.tenant_id == tenant_id).values(tenant_id=None)
        ).rowcount

        message_ids = conn.execute(
            select(contact_messages.c.id).where(contact_messages.c.tenant_id == tenant_id)
        ).scalars().all()
        counts["messages"] = _delete_messages(conn, list(message_ids))

        for table in _OWNED_BY_TENANT:
            counts[table.name] = conn.execute(delete(table).where(table.c.tenant_id == tenant_id)).rowcount

        conn.execute(delete(tenants).where(tenants.c.id == tenant_id))

    return counts


# ----------------------------
# Users
# ----------------------------

def _ensure_unique_user(conn: Connection, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None) -> None:
    checks = (("username", username, "Username already exists"), ("email", email, "Email already exists"))
    for column, value, message in checks:
        if value is None:
            continue
        q = select(users.c.id).where(func.lower(users.c[column]) == value.lower())
        if exclude_id:
            q = q.where(users.c.id != exclude_id)
        if conn.execute(q).first() is not None:
            raise ConflictError(message)


def create_user(engine: Engine, values: Mapping[str, Any]) -> Dict[str, Any]:
    row = dict(values)
    row.setdefault("id", new_id())
    row.setdefault("created_at", utcnow())
    try:
        with engine.begin() as conn:
            _ensure_unique_user(conn, row.get("username"), row.get("email"))
            conn.execute(insert(users).values(**row))
            created = conn.execute(select(users).where(users.c.id == row["id"])).mappings().one()
    except IntegrityError:
        raise ConflictError("User with this username or email already exists")
    return dict(created)


def get_user(engine: Engine, user_id: str) -> Optional[Dict[str, Any]]:
    with engine.begin() as conn:
        row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    return dict(row) if row else None


def get_user_by_username(engine: Engine, username: str) -> Optional[Dict[str, Any]]:
    with engine.begin() as conn:
        row = conn.execute(
            select(users).where(func.lower(users.c.username) == username.strip().lower())
        ).mappings().first()
    return dict(row) if row else None


def update_user(engine: Engine, user_id: str, values: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        with engine.begin() as conn:
            if values:
                _ensure_unique_user(conn, values.get("username"), values.get("email"), exclude_id=user_id)
                conn.execute(update(users).where(users.c.id == user_id).values(**values))
            row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    except IntegrityError:
        raise ConflictError("User with this username or email already exists")
    return dict(row) if row else None


def list_users(
    engine: Engine,
    *,
    role: Optional[str] = None,
    tenant_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    clauses = []
    if role:
        clauses.append(users.c.role == role)
    if tenant_id:
        clauses.append(users.c.tenant_id == tenant_id)

    q_items = select(users).order_by(users.c.created_at.desc())
    q_total = select(func.count()).select_from(users)
    if clauses:
        q_items = q_items.where(and_(*clauses))
        q_total = q_total.where(and_(*clauses))

    with engine.begin() as conn:
        rows = conn.execute(q_items.limit(int(limit)).offset(int(offset))).mappings().all()
        total = conn.execute(q_total).scalar_one()
    return [dict(r) for r in rows], int(total)


def count_users(engine: Engine, **filters: Any) -> int:
    clauses = [users.c[k] == v for k, v in filters.items() if v is not None]
    q = select(func.count()).select_from(users)
    if clauses:
        q = q.where(and_(*clauses))
    with engine.begin() as conn:
        return int(conn.execute(q).scalar_one())


# ----------------------------
# Message replies
# ----------------------------

def create_reply(engine: Engine, values: Mapping[str, Any], message_update: Mapping[str, Any]) -> Dict[str, Any]:
    """Record a reply and update the parent message in one transaction."""
    row = dict(values)
    row.setdefault("id", new_id())
    row.setdefault("created_at", utcnow())
    with engine.begin() as conn:
        conn.execute(insert(message_responses).values(**row))
        if message_update:
            conn.execute(
                update(contact_messages)
                .where(contact_messages.c.id == row["message_id"])
                .values(**message_update)
            )
        created = conn.execute(
            select(message_responses).where(message_responses.c.id == row["id"])
        ).mappings().one()
    return dict(created)


def list_replies(engine: Engine, message_id: str) -> List[Dict[str, Any]]:
    with engine.begin() as conn:
        rows = conn.execute(
            select(message_responses)
            .where(message_responses.c.message_id == message_id)
            .order_by(message_responses.c.created_at.asc())
        ).mappings().all()
    return [dict(r) for r in rows]
