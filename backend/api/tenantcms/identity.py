from __future__ import annotations

import secrets
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, Optional, Protocol, Tuple

from fastapi import Request

from .models import Actor


class SessionStore(Protocol):
    def resolve(self, token: str) -> Optional[Actor]:
        ...

    def create(self, actor: Actor) -> str:
        ...

    def destroy(self, token: str) -> None:
        ...

    def destroy_for(self, user_id: str) -> int:
        """End every session of ``user_id``; returns how many were ended."""

    def detach_tenant(self, tenant_id: str) -> int:
        """Clear ``tenant_id`` on every live Actor affiliated with it."""


class InMemorySessionStore:
    """
    Opaque token -> Actor map with an optional absolute TTL.

    Tokens are random and carry no structure; nothing outside this class reads them.
    Expired entries are swept at most once per ``sweep_interval`` seconds when a
    session is created, and on demand through ``purge_expired``.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sessions: Dict[str, Tuple[Actor, Optional[float]]] = {}
        self._next_sweep = clock() + sweep_interval
        self._lock = threading.Lock()

    def create(self, actor: Actor) -> str:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        expires_at = now + self.ttl_seconds if self.ttl_seconds else None
        with self._lock:
            if now >= self._next_sweep:
                self._purge(now)
            self._sessions[token] = (actor, expires_at)
        return token

    def resolve(self, token: str) -> Optional[Actor]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            actor, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._sessions[token]
                return None
            return actor

    def destroy(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def destroy_for(self, user_id: str) -> int:
        with self._lock:
            tokens = [t for t, (actor, _) in self._sessions.items() if actor.id == user_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def detach_tenant(self, tenant_id: str) -> int:
        detached = 0
        with self._lock:
            for token, (actor, expires_at) in list(self._sessions.items()):
                if actor.tenant_id == tenant_id:
                    self._sessions[token] = (replace(actor, tenant_id=None), expires_at)
                    detached += 1
        return detached

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge(self._clock())

    def _purge(self, now: float) -> int:
        expired = [t for t, (_, expires_at) in self._sessions.items() if expires_at is not None and now >= expires_at]
        for token in expired:
            del self._sessions[token]
        self._next_sweep = now + self.sweep_interval
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


def extract_session_token(request: Request, cookie_name: str) -> Optional[str]:
    """An explicit ``Authorization: Bearer <token>`` header wins over the session cookie."""
    auth = request.headers.get("Authorization", "")
    if auth:
        parts = auth.split(None, 1)
        if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
            return parts[1].strip()

    token = request.cookies.get(cookie_name)
    return token.strip() if token else None


def resolve_actor(request: Request) -> Optional[Actor]:
    platform = request.app.state.platform
    token = extract_session_token(request, platform.settings.session_cookie_name)
    if not token:
        return None
    return platform.sessions.resolve(token)


def current_actor(request: Request) -> Optional[Actor]:
    """FastAPI dependency: the request's Actor, or None for anonymous callers."""
    return resolve_actor(request)
