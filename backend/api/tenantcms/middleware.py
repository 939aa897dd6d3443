import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import trace_id_var

logger = logging.getLogger("tenantcms.http")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request tracing: X-Request-ID propagation plus one structured log line per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = trace_id_var.set(trace_id)

        client_ip = request.client.host if request.client else "unknown"
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            latency_ms = round((time.time() - start_time) * 1000, 2)
            logger.error(
                "HTTP Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": 500,
                    "latency_ms": latency_ms,
                    "client_ip": client_ip,
                },
            )
            raise
        else:
            latency_ms = round((time.time() - start_time) * 1000, 2)
            self._log_request(request.method, request.url.path, response.status_code, latency_ms, client_ip)
            response.headers["X-Request-ID"] = trace_id
            return response
        finally:
            trace_id_var.reset(token)

    @staticmethod
    def _log_request(method: str, path: str, status: int, latency_ms: float, client_ip: str) -> None:
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "HTTP Request",
            extra={
                "method": method,
                "path": path,
                "status": status,
                "latency_ms": latency_ms,
                "client_ip": client_ip,
            },
        )
