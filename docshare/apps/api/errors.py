from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docshare.apps.api.response import error_response, under_api_prefix
from docshare.services.access.results import AccessErrorKind, AccessFailure
from docshare.services.cursors import CursorError


logger = logging.getLogger(__name__)

# (status, code) per service failure kind; codes are part of the public contract.
ACCESS_FAILURE_HTTP: dict[AccessErrorKind, tuple[int, str]] = {
    AccessErrorKind.UNAUTHENTICATED: (401, "AUTH_UNAUTHORIZED"),
    AccessErrorKind.FORBIDDEN: (403, "AUTH_FORBIDDEN"),
    AccessErrorKind.NOT_FOUND: (404, "NOT_FOUND"),
    AccessErrorKind.OWNER_IMMUTABLE: (400, "OWNER_IMMUTABLE"),
    AccessErrorKind.UNKNOWN_GROUP: (400, "UNKNOWN_GROUP"),
    AccessErrorKind.STORE_UNAVAILABLE: (503, "STORE_UNAVAILABLE"),
    AccessErrorKind.CONFLICT: (409, "CONFLICT"),
}

_STATUS_CODES: dict[int, str] = {status: code for status, code in ACCESS_FAILURE_HTTP.values()}
_STATUS_CODES.update({400: "BAD_REQUEST", 405: "METHOD_NOT_ALLOWED", 500: "INTERNAL_ERROR"})


def _code_for(status_code: int) -> str:
    return _STATUS_CODES.get(status_code, f"HTTP_{status_code}")


def access_failure_exception(failure: AccessFailure) -> HTTPException:
    status_code, code = ACCESS_FAILURE_HTTP[failure.kind]
    headers: dict[str, str] = {}
    if failure.kind is AccessErrorKind.UNAUTHENTICATED:
        headers["WWW-Authenticate"] = "Gateway"
    if failure.retryable:
        headers["Retry-After"] = "1"
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": failure.message, "retryable": failure.retryable},
        headers=headers or None,
    )


def _unpack(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    if isinstance(detail, str):
        return _code_for(status_code), detail, None
    if not isinstance(detail, dict):
        return _code_for(status_code), "Request failed", None
    extra = {key: value for key, value in detail.items() if key not in ("code", "message")}
    return (
        str(detail.get("code") or _code_for(status_code)),
        str(detail.get("message") or "Request failed"),
        extra or None,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if not under_api_prefix(request):
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    code, message, details = _unpack(exc.detail, exc.status_code)
    return JSONResponse(
        error_response(request=request, code=code, message=message, details=details),
        status_code=exc.status_code,
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not under_api_prefix(request):
        return JSONResponse({"detail": errors}, status_code=422)
    body = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": errors},
    )
    return JSONResponse(body, status_code=422)


async def cursor_exception_handler(request: Request, exc: CursorError) -> JSONResponse:
    logger.info("invalid_cursor path=%s reason=%s", request.url.path, exc)
    body = error_response(request=request, code="INVALID_CURSOR", message=str(exc))
    return JSONResponse(body, status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception path=%s", request.url.path, exc_info=exc)
    if not under_api_prefix(request):
        return JSONResponse({"detail": "Internal Server Error"}, status_code=500)
    body = error_response(request=request, code="INTERNAL_ERROR", message="Internal server error")
    return JSONResponse(body, status_code=500)
