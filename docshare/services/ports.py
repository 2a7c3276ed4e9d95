from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

from docshare.domain.access import AccessCapabilities
from docshare.domain.permissions import DocumentRecord, Group, User


# Sentinel for "leave the stored default untouched" in partial updates.
UNCHANGED = object()


@dataclass(frozen=True)
class DocumentQuery:
    # Store-side prefilter; documents matching any listed group or the user are returned.
    group_ids: tuple[str, ...] = ()
    user_id: str | None = None
    document_type: str | None = None
    limit: int = 20


@dataclass(frozen=True)
class StorePage:
    documents: list[DocumentRecord]
    # None signals the listing is exhausted.
    next_cursor: str | None


class DocumentStore(Protocol):
    async def get_document(self, document_id: str) -> DocumentRecord | None: ...

    async def create_document(self, document: DocumentRecord) -> DocumentRecord: ...

    async def update_access(
        self,
        document_id: str,
        *,
        users: Mapping[str, AccessCapabilities | None] | None = None,
        groups: Mapping[str, AccessCapabilities | None] | None = None,
        default: AccessCapabilities | None | object = UNCHANGED,
    ) -> DocumentRecord | None: ...

    async def list_documents(
        self,
        query: DocumentQuery | None = None,
        cursor: str | None = None,
    ) -> StorePage: ...


class GroupDirectory(Protocol):
    async def get_group(self, group_id: str) -> Group | None: ...


class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> User | None: ...
