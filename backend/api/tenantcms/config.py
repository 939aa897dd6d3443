# backend/api/tenantcms/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv


def _load_dotenv() -> None:
    """Load the first .env found: $ENV_PATH, backend/api/.env, then the working directory."""
    candidates = [os.getenv("ENV_PATH"), Path(__file__).resolve().parents[1] / ".env", Path.cwd() / ".env"]
    for candidate in candidates:
        if candidate and Path(candidate).exists():
            # real environment variables always win
            load_dotenv(candidate, override=False)
            return


def env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer, got {raw!r}")


RATE_LIMIT_CATEGORIES = (
    "auth",
    "public",
    "admin",
    "contact",
    "email",
    "search",
    "upload",
    "password_reset",
    "general",
)


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    database_url: str = "sqlite:///./tenantcms.db"
    api_prefix: str = "/api/v1"

    session_cookie_name: str = "cms_session"
    session_ttl_seconds: int = 60 * 60 * 24

    trust_proxy: bool = False
    rate_limit_enabled: bool = True
    # category -> capacity override; windows stay fixed per category
    rate_limit_overrides: Dict[str, int] = field(default_factory=dict)

    log_level: str = "INFO"
    log_format: str = "json"
    log_config_path: Optional[str] = None

    bootstrap_admin_username: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_email: Optional[str] = None

    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        _load_dotenv()

        overrides: Dict[str, int] = {}
        for category in RATE_LIMIT_CATEGORIES:
            key = f"RATE_LIMIT_{category.upper()}"
            if os.getenv(key):
                overrides[category] = _env_int(key, 0)

        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            database_url=os.getenv("DATABASE_URL") or os.getenv("DB_URL") or "sqlite:///./tenantcms.db",
            api_prefix=os.getenv("API_PREFIX", "/api/v1").rstrip("/"),
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "cms_session"),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 60 * 60 * 24),
            trust_proxy=env_bool("TRUST_PROXY", False),
            rate_limit_enabled=env_bool("RATE_LIMIT_ENABLED", True),
            rate_limit_overrides=overrides,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
            log_config_path=os.getenv("LOG_CONFIG_PATH") or None,
            bootstrap_admin_username=os.getenv("BOOTSTRAP_ADMIN_USERNAME") or None,
            bootstrap_admin_password=os.getenv("BOOTSTRAP_ADMIN_PASSWORD") or None,
            bootstrap_admin_email=os.getenv("BOOTSTRAP_ADMIN_EMAIL") or None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
        )
