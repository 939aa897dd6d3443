from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine

from .config import Settings
from .db import build_engine
from .identity import InMemorySessionStore, SessionStore
from .mailer import LoggingMailer, Mailer
from .ratelimit import RateLimitBackend, RateLimiter, RequestClassifier, build_rules
from .responses import ResponseFormatter
from .settings_store import PlatformSettingsStore


@dataclass
class PlatformState:
    """Everything a request needs beyond its own data; one per app instance."""

    settings: Settings
    engine: Engine
    sessions: SessionStore
    limiter: RateLimiter
    classifier: RequestClassifier
    formatter: ResponseFormatter
    settings_store: PlatformSettingsStore
    mailer: Mailer
    owns_engine: bool = True

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        engine: Optional[Engine] = None,
        session_store: Optional[SessionStore] = None,
        rate_limit_backend: Optional[RateLimitBackend] = None,
        mailer: Optional[Mailer] = None,
    ) -> "PlatformState":
        return cls(
            settings=settings,
            engine=engine if engine is not None else build_engine(settings.database_url),
            sessions=session_store or InMemorySessionStore(settings.session_ttl_seconds),
            limiter=RateLimiter(build_rules(settings.rate_limit_overrides), rate_limit_backend),
            classifier=RequestClassifier(settings.api_prefix),
            formatter=ResponseFormatter(settings.is_production, sensitive_terms=(settings.session_cookie_name,)),
            settings_store=PlatformSettingsStore(),
            mailer=mailer or LoggingMailer(),
            owns_engine=engine is None,
        )

    def close(self) -> None:
        self.limiter.reset()
        self.settings_store.reset()
        if self.owns_engine:
            self.engine.dispose()


def get_platform(request: Request) -> PlatformState:
    """FastAPI dependency for the app's PlatformState."""
    return request.app.state.platform
