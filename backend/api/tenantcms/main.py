from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from sqlalchemy.engine import Engine

from . import __version__, service
from .api import API_ROUTERS, health
from .config import Settings
from .db import init_schema
from .error_handlers import register_exception_handlers
from .identity import SessionStore
from .logging_config import setup_logging
from .mailer import Mailer
from .middleware import RequestContextMiddleware
from .ratelimit import RateLimitBackend, RateLimitMiddleware
from .state import PlatformState

logger = logging.getLogger("tenantcms.main")


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    session_store: Optional[SessionStore] = None,
    rate_limit_backend: Optional[RateLimitBackend] = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings)

    platform = PlatformState.build(
        settings,
        engine=engine,
        session_store=session_store,
        rate_limit_backend=rate_limit_backend,
        mailer=mailer,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_schema(platform.engine)
        service.bootstrap_admin(platform.engine, settings)
        logger.info(
            "tenantcms started",
            extra={"environment": settings.environment, "api_prefix": settings.api_prefix, "version": __version__},
        )
        try:
            yield
        finally:
            platform.close()
            logger.info("tenantcms stopped")

    app = FastAPI(title="Tenant CMS API", version=__version__, lifespan=lifespan)
    app.state.platform = platform

    register_exception_handlers(app)

    # last added runs first: request context wraps the rate limiter
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # Health checks
    # -----------------------------
    app.include_router(health.router)

    for router in API_ROUTERS:
        app.include_router(router, prefix=settings.api_prefix)

    return app


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
