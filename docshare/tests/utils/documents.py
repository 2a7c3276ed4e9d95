from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from docshare.domain.access import AccessLevel
from docshare.domain.permissions import DocumentRecord, PermissionState, Principal


_BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def principal(user_id: str, *group_ids: str) -> Principal:
    # Build principals the way the gateway headers would.
    return Principal(user_id=user_id, group_ids=frozenset(group_ids))


def make_state(
    owner: str = "alice",
    *,
    default: AccessLevel = AccessLevel.NONE,
    users: dict[str, AccessLevel] | None = None,
    groups: dict[str, AccessLevel] | None = None,
) -> PermissionState:
    return PermissionState(
        owner=owner,
        default_access=default,
        user_grants=users or {},
        group_grants=groups or {},
    )


def make_document(
    state: PermissionState,
    *,
    document_id: str | None = None,
    name: str = "Roadmap",
    document_type: str = "whiteboard",
    offset_s: int = 0,
) -> DocumentRecord:
    # Offsets give deterministic created_at ordering for listing tests.
    return DocumentRecord(
        id=document_id or uuid4().hex,
        name=name,
        document_type=document_type,
        created_at=_BASE_TIME + timedelta(seconds=offset_s),
        state=state,
    )
