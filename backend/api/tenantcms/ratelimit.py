"""
Per-category request throttling.

Every request under the API prefix is classified into exactly one category and
counted against a fixed-window bucket keyed by ``(client, category)``. Over
capacity the request is rejected at once with ``RateLimitedError``; nothing is
queued or delayed.
"""
from __future__ import annotations

import logging
import math
import re
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .error_handlers import platform_error_response
from .errors import RateLimitedError

logger = logging.getLogger("tenantcms.ratelimit")

MINUTE = 60
HOUR = 60 * MINUTE


@dataclass(frozen=True)
class RateLimitRule:
    category: str
    capacity: int
    window_seconds: int
    message: str
    skip_successful: bool = False


DEFAULT_RULES: Dict[str, RateLimitRule] = {
    r.category: r
    for r in (
        RateLimitRule("auth", 5, 15 * MINUTE, "Too many login attempts. Please try again in 15 minutes.", skip_successful=True),
        RateLimitRule("public", 500, HOUR, "Too many requests. Please try again in 1 hour."),
        RateLimitRule("admin", 200, HOUR, "Too many admin actions. Please try again in 1 hour."),
        RateLimitRule("contact", 3, HOUR, "Too many contact form submissions. Please try again in 1 hour."),
        RateLimitRule("email", 10, HOUR, "Too many emails sent. Please try again in 1 hour."),
        RateLimitRule("search", 100, 15 * MINUTE, "Too many search requests. Please try again in 15 minutes."),
        RateLimitRule("upload", 10, HOUR, "Too many uploads. Please try again in 1 hour."),
        RateLimitRule("password_reset", 3, HOUR, "Too many password reset attempts. Please try again in 1 hour."),
        RateLimitRule("general", 100, 15 * MINUTE, "Too many API requests, please try again in 15 minutes."),
    )
}


def build_rules(overrides: Optional[Dict[str, int]] = None) -> Dict[str, RateLimitRule]:
    rules = dict(DEFAULT_RULES)
    for category, capacity in (overrides or {}).items():
        if category in rules and capacity > 0:
            rules[category] = replace(rules[category], capacity=capacity)
    return rules


class RateLimitBackend(Protocol):
    """Counter storage. Swap the in-memory map for a shared store in multi-instance deployments."""

    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        """Count one call; return (count in current window, window reset time)."""

    def release(self, key: str) -> None:
        """Undo one counted call in the current window."""

    def reset(self) -> None:
        ...


class InMemoryRateLimitBackend:
    """
    Process-local fixed windows; lost on restart.

    Windows that have ended are swept at most once per ``sweep_interval``
    seconds, so keys from clients that never return do not pile up.
    """

    def __init__(self, sweep_interval: float = 60.0) -> None:
        self.sweep_interval = sweep_interval
        self._windows: Dict[str, List[float]] = {}
        self._next_sweep: Optional[float] = None
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        with self._lock:
            if self._next_sweep is None:
                self._next_sweep = now + self.sweep_interval
            elif now >= self._next_sweep:
                self._purge(now)
            entry = self._windows.get(key)
            if entry is None or now >= entry[1]:
                entry = [0, now + window_seconds]
                self._windows[key] = entry
            entry[0] += 1
            return int(entry[0]), entry[1]

    def release(self, key: str) -> None:
        with self._lock:
            entry = self._windows.get(key)
            if entry is not None and entry[0] > 0:
                entry[0] -= 1

    def purge_expired(self, now: float) -> int:
        with self._lock:
            return self._purge(now)

    def _purge(self, now: float) -> int:
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.sweep_interval
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


@dataclass(frozen=True)
class RateLimitDecision:
    category: str
    count: int
    capacity: int
    reset_in: int

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - self.count)


class RateLimiter:
    def __init__(
        self,
        rules: Optional[Dict[str, RateLimitRule]] = None,
        backend: Optional[RateLimitBackend] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rules = rules or dict(DEFAULT_RULES)
        self.backend = backend or InMemoryRateLimitBackend()
        self._clock = clock

    @staticmethod
    def _key(client: str, category: str) -> str:
        return f"rl:{category}:{client}"

    def rule_for(self, category: str) -> RateLimitRule:
        try:
            return self.rules[category]
        except KeyError:
            raise KeyError(f"Unknown rate limit category: {category}")

    def check(self, client: str, category: str) -> RateLimitDecision:
        """Count the call; raise RateLimitedError when it exceeds the category's capacity."""
        rule = self.rule_for(category)
        now = self._clock()
        count, reset_at = self.backend.hit(self._key(client, category), rule.window_seconds, now)
        reset_in = max(1, math.ceil(reset_at - now))
        if count > rule.capacity:
            logger.warning(
                "rate limit exceeded",
                extra={"category": category, "client_ip": client, "count": count, "capacity": rule.capacity},
            )
            raise RateLimitedError(rule.message, retry_after=reset_in, category=category)
        return RateLimitDecision(category, count, rule.capacity, reset_in)

    def release(self, client: str, category: str) -> None:
        self.backend.release(self._key(client, category))

    def reset(self) -> None:
        self.backend.reset()


# ----------------------------
# Request classification
# ----------------------------

_PUBLIC_COLLECTIONS = r"(?:tenants|stories|media|events)"


@dataclass(frozen=True)
class _Route:
    methods: Tuple[str, ...]
    pattern: "re.Pattern[str]"
    category: str
    needs_search: bool = False


def _routes(prefix: str) -> List[_Route]:
    p = re.escape(prefix.rstrip("/"))

    def rx(path: str) -> "re.Pattern[str]":
        return re.compile(rf"^{p}{path}/?$")

    # Order matters: first match wins.
    return [
        _Route(("POST",), rx(r"/auth/login"), "auth"),
        _Route(("POST",), rx(r"/contact-messages"), "contact"),
        _Route(("POST",), rx(r"/admin/messages/[^/]+/reply"), "email"),
        _Route(("POST",), rx(r"/superadmin/users/[^/]+/reset-password"), "password_reset"),
        _Route(("POST",), rx(r"/admin/media"), "upload"),
        _Route(("GET", "POST", "PATCH", "PUT", "DELETE"), rx(r"/(?:admin|superadmin)(?:/.*)?"), "admin"),
        _Route(("GET",), rx(rf"/{_PUBLIC_COLLECTIONS}"), "search", needs_search=True),
        _Route(("GET",), rx(rf"/{_PUBLIC_COLLECTIONS}(?:/.*)?"), "public"),
    ]


class RequestClassifier:
    def __init__(self, api_prefix: str) -> None:
        self.prefix = api_prefix.rstrip("/")
        self._routes = _routes(self.prefix)

    def classify(self, method: str, path: str, query_keys: Iterable[str] = ()) -> Optional[str]:
        if not (path == self.prefix or path.startswith(self.prefix + "/")):
            return None
        keys = set(query_keys)
        for route in self._routes:
            if method.upper() not in route.methods:
                continue
            if route.needs_search and "search" not in keys:
                continue
            if route.pattern.match(path):
                return route.category
        return "general"


def get_client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Extract client IP from request, handling X-Forwarded-For if trusted"""
    if trust_proxy:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            return xff.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Runs ahead of routing: classify, count, and short-circuit with 429 when over capacity."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        platform = request.app.state.platform
        if not platform.settings.rate_limit_enabled:
            return await call_next(request)

        category = platform.classifier.classify(request.method, request.url.path, request.query_params.keys())
        if category is None:
            return await call_next(request)

        client = get_client_ip(request, platform.settings.trust_proxy)
        limiter: RateLimiter = platform.limiter
        try:
            decision = limiter.check(client, category)
        except RateLimitedError as exc:
            return platform_error_response(exc, platform.formatter)

        response = await call_next(request)

        rule = limiter.rule_for(category)
        if rule.skip_successful and response.status_code < 400:
            limiter.release(client, category)

        response.headers["RateLimit-Limit"] = str(decision.capacity)
        response.headers["RateLimit-Remaining"] = str(decision.remaining)
        response.headers["RateLimit-Reset"] = str(decision.reset_in)
        return response
