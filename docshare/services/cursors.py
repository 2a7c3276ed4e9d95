from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, or_
from sqlalchemy.sql import ColumnElement

from docshare.services.ports import DocumentQuery


DOCUMENTS_SCOPE = "documents"
# Listings are always newest first with the id as tiebreaker.
DOCUMENTS_ORDERING = "-created_at,-id"
CURSOR_VERSION = 1


class CursorError(ValueError):
    # Raised for malformed, tampered or foreign cursor tokens.
    pass


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class CursorPosition:
    """Last row of a served page plus the filters that produced it.

    Carrying the filters means the next page can be fetched from the token
    alone, and a client cannot widen a listing by editing query parameters.
    """

    created_at: datetime
    document_id: str
    query: DocumentQuery

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_at", _to_utc(self.created_at))

    def precedes(self, created_at: datetime, document_id: str) -> bool:
        # True when the row sorts after this position in newest-first order.
        return (_to_utc(created_at), document_id) < (self.created_at, self.document_id)


def query_filters(query: DocumentQuery) -> dict[str, Any]:
    return {
        "group_ids": list(query.group_ids),
        "user_id": query.user_id,
        "document_type": query.document_type,
        "limit": query.limit,
    }


def query_from_filters(filters: Any) -> DocumentQuery:
    if not isinstance(filters, dict):
        raise CursorError("Cursor filters missing")
    try:
        return DocumentQuery(
            group_ids=tuple(str(item) for item in filters.get("group_ids") or []),
            user_id=filters.get("user_id"),
            document_type=filters.get("document_type"),
            limit=int(filters.get("limit") or 0),
        )
    except (TypeError, ValueError) as exc:
        raise CursorError("Invalid cursor filters") from exc


def _signature(secret: str, raw: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def encode_cursor(position: CursorPosition, secret: str) -> str:
    body = {
        "v": CURSOR_VERSION,
        "scope": DOCUMENTS_SCOPE,
        "order": DOCUMENTS_ORDERING,
        "at": position.created_at.isoformat(),
        "id": position.document_id,
        "filters": query_filters(position.query),
    }
    raw = json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8")
    token = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    return f"{token}.{_signature(secret, raw)}"


def _read_body(token: str, secret: str) -> dict[str, Any]:
    encoded, sep, signature = token.partition(".")
    if not sep or not encoded:
        raise CursorError("Invalid cursor format")
    try:
        raw = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))
    except (ValueError, binascii.Error) as exc:
        raise CursorError("Invalid cursor encoding") from exc
    if not hmac.compare_digest(_signature(secret, raw), signature):
        raise CursorError("Invalid cursor signature")
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CursorError("Invalid cursor payload") from exc
    if not isinstance(body, dict):
        raise CursorError("Invalid cursor payload")
    return body


def decode_cursor(token: str, secret: str) -> CursorPosition:
    body = _read_body(token, secret)
    if body.get("v") != CURSOR_VERSION:
        raise CursorError("Unsupported cursor version")
    if body.get("scope") != DOCUMENTS_SCOPE:
        raise CursorError("Cursor scope mismatch")
    if body.get("order") != DOCUMENTS_ORDERING:
        raise CursorError("Cursor ordering mismatch")
    document_id = body.get("id")
    if not isinstance(document_id, str) or not document_id:
        raise CursorError("Cursor id missing")
    try:
        created_at = datetime.fromisoformat(str(body.get("at")))
    except ValueError as exc:
        raise CursorError("Invalid cursor position") from exc
    return CursorPosition(
        created_at=created_at,
        document_id=document_id,
        query=query_from_filters(body.get("filters")),
    )


def keyset_filter(
    position: CursorPosition,
    *,
    created_at_column: ColumnElement[Any],
    id_column: ColumnElement[Any],
) -> ColumnElement[bool]:
    # Rows strictly after the position in (created_at desc, id desc) order.
    return or_(
        created_at_column < position.created_at,
        and_(created_at_column == position.created_at, id_column < position.document_id),
    )
