from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from docshare.core.config import get_settings
from docshare.domain.permissions import Principal
from docshare.persistence.db import get_sessionmaker
from docshare.persistence.repos.directory import SqlGroupDirectory, SqlUserDirectory
from docshare.persistence.repos.documents import SqlDocumentStore
from docshare.services.access import DocumentAccessService
from docshare.services.notifications import NotificationDispatcher, build_notification_sink


def _split_group_ids(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def get_principal(request: Request) -> Principal | None:
    # Identity is verified upstream by the gateway; a missing user header means anonymous.
    settings = get_settings()
    user_id = (request.headers.get(settings.identity_user_header) or "").strip()
    if not user_id:
        return None
    return Principal(
        user_id=user_id,
        group_ids=_split_group_ids(request.headers.get(settings.identity_groups_header)),
    )


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    # One dispatcher per process so in-flight deliveries can be drained on shutdown.
    return NotificationDispatcher(build_notification_sink())


def get_access_service() -> DocumentAccessService:
    sessionmaker = get_sessionmaker()
    return DocumentAccessService(
        SqlDocumentStore(sessionmaker),
        groups=SqlGroupDirectory(sessionmaker),
        users=SqlUserDirectory(sessionmaker),
        notifications=get_notification_dispatcher(),
    )
