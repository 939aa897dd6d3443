"""
Response formatting shared by the exception handlers, the rate limiter and the
routers, so every client sees one error shape:

    {"success": false, "error": str, "code": ErrorKind?, "errors": {path: [msg]}?, "timestamp": iso8601}
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .errors import ErrorKind

GENERIC_MESSAGE = "An unexpected error occurred. Please try again or contact support."
MAX_MESSAGE_LENGTH = 200

# Kinds whose messages are composed by this codebase and contain no internals.
PASS_THROUGH_KINDS = frozenset(
    {
        ErrorKind.VALIDATION_ERROR,
        ErrorKind.AUTHENTICATION_ERROR,
        ErrorKind.AUTHORIZATION_ERROR,
        ErrorKind.NOT_FOUND,
        ErrorKind.CONFLICT,
        ErrorKind.RATE_LIMITED,
    }
)

_BASE_SENSITIVE_PATTERNS = [
    # persistence engines / drivers
    r"\b(?:postgres|postgresql|psycopg2?|asyncpg|mysql|mariadb|sqlite3?|mongodb|redis|sqlalchemy|alembic)\b",
    # connection / network failures
    r"\b(?:ECONNREFUSED|ETIMEDOUT|ENOTFOUND|ECONNRESET|EHOSTUNREACH)\b",
    r"connection (?:refused|reset|timed out)|could not connect|name or service not known",
    # server runtime
    r"\b(?:uvicorn|starlette|gunicorn|traceback)\b",
    # store-internal identifiers (constraints, keys, raw SQL)
    r"\b\w+_(?:pkey|fkey|key)\b",
    r"\bunique constraint\b|\bviolates\b|\bforeign key\b",
    # raw SQL, as drivers render it
    r"(?-i:\b(?:SELECT|INSERT|UPDATE|DELETE)\b.+\b(?:FROM|INTO|SET|WHERE|VALUES)\b)",
    r"\[SQL:|\bselect\s+\*\s+from\b",
    # IP literals
    r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}(?::\d+)?\b",
    r"\b(?:[0-9a-f]{1,4}:){7}[0-9a-f]{1,4}\b",
    r"\b[0-9a-f]{1,4}::(?:[0-9a-f]{1,4}\b)?|::[0-9a-f]{1,4}\b",
    r"\blocalhost(?::\d+)?\b",
    # local filesystem paths
    r"(?:^|[\s'\"(=])/(?:var|usr|home|etc|tmp|opt|root|srv|app|proc)/",
    r"\b[A-Za-z]:\\",
    r"\.py\b",
]


def _compile(extra_terms: Iterable[str]) -> List[re.Pattern]:
    patterns = [re.compile(p, re.IGNORECASE) for p in _BASE_SENSITIVE_PATTERNS]
    for term in extra_terms:
        if term:
            patterns.append(re.compile(re.escape(term), re.IGNORECASE))
    return patterns


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ResponseFormatter:
    """
    Builds error and success bodies.

    In production every message runs through ``sanitize``; Internal errors
    always collapse to the generic message. In development the raw message is
    kept and a ``stack`` may be attached for debugging.
    """

    def __init__(self, production: bool, sensitive_terms: Iterable[str] = ()) -> None:
        self.production = production
        self._patterns = _compile(sensitive_terms)

    def sanitize(self, message: Optional[str]) -> str:
        if not message or not isinstance(message, str):
            return GENERIC_MESSAGE
        if not self.production:
            return message
        trimmed = message.strip()
        if len(trimmed) > MAX_MESSAGE_LENGTH:
            return GENERIC_MESSAGE
        for pattern in self._patterns:
            if pattern.search(trimmed):
                return GENERIC_MESSAGE
        return trimmed

    def error_body(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        *,
        errors: Optional[Dict[str, List[str]]] = None,
        stack: Optional[str] = None,
    ) -> Dict[str, Any]:
        if self.production:
            if kind is None or kind not in PASS_THROUGH_KINDS:
                safe = GENERIC_MESSAGE
            else:
                safe = self.sanitize(message)
        else:
            safe = message or GENERIC_MESSAGE

        body: Dict[str, Any] = {"success": False, "error": safe}
        if kind is not None:
            body["code"] = kind.value
        if errors:
            body["errors"] = {
                path: [self.sanitize(m) if self.production else m for m in msgs]
                for path, msgs in errors.items()
            }
        body["timestamp"] = utc_timestamp()
        if stack and not self.production:
            body["stack"] = stack
        return body


def format_success_response(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    body["timestamp"] = utc_timestamp()
    return body


def group_field_errors(items: Iterable[Dict[str, Any]]) -> Dict[str, List[str]]:
    """
    Group pydantic-style error dicts ({"loc": (...), "msg": ...}) by dotted
    field path. The leading request-part marker (body/query/path/header) is
    dropped so clients see ``title`` rather than ``body.title``.
    """
    grouped: Dict[str, List[str]] = {}
    for item in items:
        loc = list(item.get("loc") or ())
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        path = ".".join(str(p) for p in loc) or "_"
        grouped.setdefault(path, []).append(str(item.get("msg", "Invalid value")))
    return grouped
