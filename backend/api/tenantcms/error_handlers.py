from __future__ import annotations

import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import ErrorKind, HTTP_STATUS, PlatformError, RateLimitedError, ValidationError
from .responses import ResponseFormatter, group_field_errors

logger = logging.getLogger("tenantcms.errors")

_STATUS_TO_KIND = {v: k for k, v in HTTP_STATUS.items()}


def _formatter(request: Request) -> ResponseFormatter:
    return request.app.state.platform.formatter


def _stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def platform_error_response(exc: PlatformError, formatter: ResponseFormatter) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationError) else None
    body = formatter.error_body(exc.message, exc.kind, errors=errors)
    headers = None
    if isinstance(exc, RateLimitedError):
        body["retryAfter"] = exc.retry_after
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def _log_context(request: Request, **extra) -> dict:
    client = request.client.host if request.client else None
    return {"method": request.method, "path": request.url.path, "client_ip": client, **extra}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PlatformError)
    async def handle_platform_error(request: Request, exc: PlatformError):
        level = logging.ERROR if exc.kind is ErrorKind.INTERNAL_ERROR else logging.INFO
        logger.log(level, "request rejected: %s", exc.message, extra=_log_context(request, code=exc.kind.value))
        return platform_error_response(exc, _formatter(request))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = group_field_errors(exc.errors())
        logger.info("validation failed", extra=_log_context(request, fields=sorted(errors)))
        return platform_error_response(ValidationError("Validation failed", errors), _formatter(request))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        kind: Optional[ErrorKind] = _STATUS_TO_KIND.get(exc.status_code)
        detail = exc.detail if isinstance(exc.detail, str) else None
        if exc.status_code == 404:
            detail = "Route not found"
        body = _formatter(request).error_body(detail or "Request failed", kind)
        return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "unhandled error: %s",
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
            extra=_log_context(request),
        )
        formatter = _formatter(request)
        body = formatter.error_body(str(exc), ErrorKind.INTERNAL_ERROR, stack=_stack(exc))
        return JSONResponse(status_code=500, content=body)
