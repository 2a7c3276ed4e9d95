from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Mapping

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docshare.core.config import get_settings
from docshare.core.errors import StoreConflictError, StoreUnavailableError
from docshare.domain.access import AccessCapabilities
from docshare.domain.models import Document, DocumentGroupGrant, DocumentUserGrant
from docshare.domain.permissions import DocumentRecord, decode_state, encode_state
from docshare.services.cursors import CursorPosition, decode_cursor, encode_cursor, keyset_filter
from docshare.services.ports import UNCHANGED, DocumentQuery, StorePage


def _utc(value: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _caps(row: DocumentUserGrant | DocumentGroupGrant) -> AccessCapabilities:
    return AccessCapabilities(can_write=row.can_write, can_read=row.can_read or row.can_write)


def _default_caps(doc: Document) -> AccessCapabilities | None:
    if not doc.default_can_write and not doc.default_can_read:
        return None
    return AccessCapabilities(can_write=doc.default_can_write, can_read=True)


def _to_record(
    doc: Document,
    user_rows: list[DocumentUserGrant],
    group_rows: list[DocumentGroupGrant],
) -> DocumentRecord:
    state = decode_state(
        doc.owner_id,
        default=_default_caps(doc),
        users={row.user_id: _caps(row) for row in user_rows},
        groups={row.group_id: _caps(row) for row in group_rows},
    )
    return DocumentRecord(
        id=doc.id,
        name=doc.name,
        document_type=doc.document_type,
        created_at=_utc(doc.created_at),
        state=state,
    )


async def _load_record(session: AsyncSession, document_id: str) -> DocumentRecord | None:
    doc = await session.get(Document, document_id)
    if doc is None:
        return None
    user_rows = (
        await session.execute(select(DocumentUserGrant).where(DocumentUserGrant.document_id == document_id))
    ).scalars().all()
    group_rows = (
        await session.execute(select(DocumentGroupGrant).where(DocumentGroupGrant.document_id == document_id))
    ).scalars().all()
    return _to_record(doc, list(user_rows), list(group_rows))


async def _apply_user_keys(
    session: AsyncSession,
    document_id: str,
    changes: Mapping[str, AccessCapabilities | None],
) -> None:
    # Touch only the listed keys so concurrent updates on other keys survive.
    for user_id, caps in changes.items():
        if caps is None:
            await session.execute(
                delete(DocumentUserGrant).where(
                    DocumentUserGrant.document_id == document_id,
                    DocumentUserGrant.user_id == user_id,
                )
            )
            continue
        row = await session.get(DocumentUserGrant, (document_id, user_id))
        if row is None:
            session.add(
                DocumentUserGrant(
                    document_id=document_id,
                    user_id=user_id,
                    can_write=caps.can_write,
                    can_read=caps.can_read,
                )
            )
        else:
            row.can_write = caps.can_write
            row.can_read = caps.can_read


async def _apply_group_keys(
    session: AsyncSession,
    document_id: str,
    changes: Mapping[str, AccessCapabilities | None],
) -> None:
    for group_id, caps in changes.items():
        if caps is None:
            await session.execute(
                delete(DocumentGroupGrant).where(
                    DocumentGroupGrant.document_id == document_id,
                    DocumentGroupGrant.group_id == group_id,
                )
            )
            continue
        row = await session.get(DocumentGroupGrant, (document_id, group_id))
        if row is None:
            session.add(
                DocumentGroupGrant(
                    document_id=document_id,
                    group_id=group_id,
                    can_write=caps.can_write,
                    can_read=caps.can_read,
                )
            )
        else:
            row.can_write = caps.can_write
            row.can_read = caps.can_read


class SqlDocumentStore:
    """Document store backed by SQLAlchemy async sessions.

    Each call runs in its own session. Updates are partial: only the keys in
    the request are inserted, updated or deleted.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        *,
        cursor_secret: str | None = None,
    ) -> None:
        self._sessionmaker = sessionmaker
        self._cursor_secret = cursor_secret or get_settings().cursor_secret

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        try:
            async with self._sessionmaker() as session:
                return await _load_record(session, document_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Document store unavailable") from exc

    async def create_document(self, document: DocumentRecord) -> DocumentRecord:
        stored = encode_state(document.state)
        default = stored.default
        try:
            async with self._sessionmaker() as session:
                session.add(
                    Document(
                        id=document.id,
                        name=document.name,
                        document_type=document.document_type,
                        owner_id=document.owner,
                        default_can_write=default.can_write if default else False,
                        default_can_read=default.can_read if default else False,
                        created_at=_utc(document.created_at),
                    )
                )
                # Flush the parent row first so grant foreign keys resolve.
                await session.flush()
                await _apply_user_keys(session, document.id, stored.users)
                await _apply_group_keys(session, document.id, stored.groups)
                await session.commit()
                record = await _load_record(session, document.id)
        except IntegrityError as exc:
            raise StoreConflictError(f"Document {document.id} already exists") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Document store unavailable") from exc
        if record is None:
            raise StoreUnavailableError(f"Document {document.id} vanished after create")
        return record

    async def update_access(
        self,
        document_id: str,
        *,
        users: Mapping[str, AccessCapabilities | None] | None = None,
        groups: Mapping[str, AccessCapabilities | None] | None = None,
        default: AccessCapabilities | None | object = UNCHANGED,
    ) -> DocumentRecord | None:
        try:
            async with self._sessionmaker() as session:
                doc = await session.get(Document, document_id)
                if doc is None:
                    return None
                await _apply_user_keys(session, document_id, users or {})
                await _apply_group_keys(session, document_id, groups or {})
                if default is not UNCHANGED:
                    caps = default if isinstance(default, AccessCapabilities) else None
                    doc.default_can_write = caps.can_write if caps else False
                    doc.default_can_read = caps.can_read if caps else False
                doc.updated_at = datetime.now(timezone.utc)
                await session.commit()
                return await _load_record(session, document_id)
        except IntegrityError as exc:
            # A concurrent insert of the same key won the race.
            raise StoreConflictError(f"Concurrent update on document {document_id}") from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Document store unavailable") from exc

    async def list_documents(
        self,
        query: DocumentQuery | None = None,
        cursor: str | None = None,
    ) -> StorePage:
        position = decode_cursor(cursor, self._cursor_secret) if cursor else None
        if position is not None:
            query = position.query
        query = query or DocumentQuery()
        limit = max(1, query.limit)

        stmt = select(Document)
        if query.document_type:
            stmt = stmt.where(Document.document_type == query.document_type)
        membership = []
        if query.user_id is not None:
            membership.append(
                exists().where(
                    DocumentUserGrant.document_id == Document.id,
                    DocumentUserGrant.user_id == query.user_id,
                )
            )
        if query.group_ids:
            membership.append(
                exists().where(
                    DocumentGroupGrant.document_id == Document.id,
                    DocumentGroupGrant.group_id.in_(query.group_ids),
                )
            )
        if membership:
            stmt = stmt.where(or_(*membership))
        if position is not None:
            stmt = stmt.where(
                keyset_filter(position, created_at_column=Document.created_at, id_column=Document.id)
            )
        stmt = stmt.order_by(Document.created_at.desc(), Document.id.desc()).limit(limit + 1)

        try:
            async with self._sessionmaker() as session:
                docs = list((await session.execute(stmt)).scalars().all())
                page = docs[:limit]
                ids = [doc.id for doc in page]
                user_rows: dict[str, list[DocumentUserGrant]] = defaultdict(list)
                group_rows: dict[str, list[DocumentGroupGrant]] = defaultdict(list)
                if ids:
                    for row in (
                        await session.execute(
                            select(DocumentUserGrant).where(DocumentUserGrant.document_id.in_(ids))
                        )
                    ).scalars():
                        user_rows[row.document_id].append(row)
                    for row in (
                        await session.execute(
                            select(DocumentGroupGrant).where(DocumentGroupGrant.document_id.in_(ids))
                        )
                    ).scalars():
                        group_rows[row.document_id].append(row)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("Document store unavailable") from exc

        records = [_to_record(doc, user_rows[doc.id], group_rows[doc.id]) for doc in page]
        next_cursor = None
        if len(docs) > limit:
            last = page[-1]
            next_cursor = encode_cursor(
                CursorPosition(created_at=_utc(last.created_at), document_id=last.id, query=query),
                self._cursor_secret,
            )
        return StorePage(documents=records, next_cursor=next_cursor)
