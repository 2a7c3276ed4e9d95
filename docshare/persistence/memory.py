from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping

from docshare.core.config import get_settings
from docshare.core.errors import StoreConflictError
from docshare.domain.access import AccessCapabilities
from docshare.domain.permissions import DocumentRecord, Group, User, decode_state, encode_state
from docshare.services.cursors import CursorPosition, decode_cursor, encode_cursor
from docshare.services.ports import UNCHANGED, DocumentQuery, StorePage


@dataclass
class _Room:
    # Raw stored shape: capability flags per key, owner kept only as metadata plus a write grant.
    id: str
    name: str
    document_type: str
    owner: str
    created_at: datetime
    default: AccessCapabilities | None
    users: dict[str, AccessCapabilities] = field(default_factory=dict)
    groups: dict[str, AccessCapabilities] = field(default_factory=dict)

    def to_record(self) -> DocumentRecord:
        state = decode_state(self.owner, default=self.default, users=self.users, groups=self.groups)
        return DocumentRecord(
            id=self.id,
            name=self.name,
            document_type=self.document_type,
            created_at=self.created_at,
            state=state,
        )

    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)


def _apply_keys(
    target: dict[str, AccessCapabilities],
    changes: Mapping[str, AccessCapabilities | None] | None,
) -> None:
    for key, caps in (changes or {}).items():
        if caps is None:
            target.pop(key, None)
        else:
            target[key] = caps


class InMemoryDocumentStore:
    """Process-local document store for development and tests.

    Mirrors the external store contract: capability-flag encoding, partial
    updates applied key by key, and newest-first keyset pagination with signed
    cursors.
    """

    def __init__(self, *, cursor_secret: str | None = None) -> None:
        self._rooms: dict[str, _Room] = {}
        self._lock = asyncio.Lock()
        self._cursor_secret = cursor_secret or get_settings().cursor_secret

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        room = self._rooms.get(document_id)
        return room.to_record() if room is not None else None

    async def create_document(self, document: DocumentRecord) -> DocumentRecord:
        stored = encode_state(document.state)
        created_at = document.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        room = _Room(
            id=document.id,
            name=document.name,
            document_type=document.document_type,
            owner=document.owner,
            created_at=created_at,
            default=stored.default,
            users=dict(stored.users),
            groups=dict(stored.groups),
        )
        async with self._lock:
            if room.id in self._rooms:
                raise StoreConflictError(f"Document {room.id} already exists")
            self._rooms[room.id] = room
        return room.to_record()

    async def update_access(
        self,
        document_id: str,
        *,
        users: Mapping[str, AccessCapabilities | None] | None = None,
        groups: Mapping[str, AccessCapabilities | None] | None = None,
        default: AccessCapabilities | None | object = UNCHANGED,
    ) -> DocumentRecord | None:
        async with self._lock:
            room = self._rooms.get(document_id)
            if room is None:
                return None
            _apply_keys(room.users, users)
            _apply_keys(room.groups, groups)
            if default is not UNCHANGED:
                room.default = default  # type: ignore[assignment]
            return room.to_record()

    async def list_documents(
        self,
        query: DocumentQuery | None = None,
        cursor: str | None = None,
    ) -> StorePage:
        position = decode_cursor(cursor, self._cursor_secret) if cursor else None
        if position is not None:
            query = position.query
        query = query or DocumentQuery()
        rooms = sorted(
            (room for room in self._rooms.values() if self._matches(room, query)),
            key=_Room.sort_key,
            reverse=True,
        )
        if position is not None:
            rooms = [room for room in rooms if position.precedes(room.created_at, room.id)]
        limit = max(1, query.limit)
        page = rooms[:limit]
        next_cursor = None
        if len(rooms) > limit:
            last = page[-1]
            next_cursor = encode_cursor(
                CursorPosition(created_at=last.created_at, document_id=last.id, query=query),
                self._cursor_secret,
            )
        return StorePage(documents=[room.to_record() for room in page], next_cursor=next_cursor)

    @staticmethod
    def _matches(room: _Room, query: DocumentQuery) -> bool:
        if query.document_type and room.document_type != query.document_type:
            return False
        if not query.group_ids and query.user_id is None:
            return True
        if query.user_id is not None and query.user_id in room.users:
            return True
        return any(group_id in room.groups for group_id in query.group_ids)


class InMemoryGroupDirectory:
    def __init__(self, groups: Iterable[Group] = ()) -> None:
        self._groups = {group.id: group for group in groups}

    def add(self, group: Group) -> None:
        self._groups[group.id] = group

    async def get_group(self, group_id: str) -> Group | None:
        return self._groups.get(group_id)


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users = {user.id: user for user in users}

    def add(self, user: User) -> None:
        self._users[user.id] = user

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)
