from __future__ import annotations

from typing import Any

from docshare.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str) -> dict[str, Any]:
    return {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }


def _error_response(description: str, code: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _error_response("Bad request", "UNKNOWN_GROUP", "Group eng does not exist"),
    401: _error_response("Unauthenticated", "AUTH_UNAUTHORIZED", "Sign in to access documents"),
    403: _error_response("Forbidden", "AUTH_FORBIDDEN", "edit access to document d1 is required"),
    404: _error_response("Not found", "NOT_FOUND", "Document d1 not found"),
    409: _error_response("Conflict", "CONFLICT", "Concurrent update on document d1"),
    503: _error_response("Store unavailable", "STORE_UNAVAILABLE", "Document store unavailable"),
}
