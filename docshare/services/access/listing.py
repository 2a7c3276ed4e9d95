from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Iterator

from docshare.core.config import get_settings
from docshare.domain.access import AccessLevel
from docshare.domain.drafts import draft_group_id, is_draft_group_id
from docshare.domain.permissions import DocumentRecord, Principal
from docshare.services.access.resolver import effective_access
from docshare.services.ports import DocumentQuery, DocumentStore
from docshare.services.resilience import call_with_timeout


@dataclass(frozen=True)
class DocumentPage:
    documents: list[DocumentRecord]
    # None once the store has no further pages.
    next_cursor: str | None


def filter_visible(
    documents: Iterable[DocumentRecord],
    principal: Principal,
) -> Iterator[DocumentRecord]:
    # Re-check visibility after the store prefilter; filtering drops items and never reorders.
    for document in documents:
        if effective_access(document.state, principal) >= AccessLevel.READONLY:
            yield document


def clamp_page_size(limit: int | None) -> int:
    settings = get_settings()
    if limit is None:
        return min(settings.documents_default_page_size, settings.documents_max_page_size)
    return max(1, min(int(limit), settings.documents_max_page_size))


def build_document_query(
    principal: Principal,
    *,
    document_type: str | None = None,
    drafts: bool = False,
    limit: int | None = None,
) -> DocumentQuery:
    """Build the store prefilter for a principal's document listing.

    Drafts are found through the principal's own draft group only. Regular
    listings match the principal's real groups or direct user grants.
    """
    own_drafts = draft_group_id(principal.user_id)
    if drafts:
        return DocumentQuery(
            group_ids=(own_drafts,),
            document_type=document_type,
            limit=clamp_page_size(limit),
        )
    group_ids = tuple(sorted(group_id for group_id in principal.group_ids if not is_draft_group_id(group_id)))
    return DocumentQuery(
        group_ids=group_ids,
        user_id=principal.user_id,
        document_type=document_type,
        limit=clamp_page_size(limit),
    )


async def list_visible_documents(
    store: DocumentStore,
    principal: Principal,
    *,
    query: DocumentQuery | None = None,
    cursor: str | None = None,
    timeout_s: float | None = None,
) -> DocumentPage:
    # With a cursor the store restores the original filters, so query is ignored.
    page = await call_with_timeout(
        lambda: store.list_documents(None if cursor else query, cursor),
        integration="documents.list",
        timeout_s=timeout_s,
    )
    return DocumentPage(
        documents=list(filter_visible(page.documents, principal)),
        next_cursor=page.next_cursor,
    )


async def iter_visible_documents(
    store: DocumentStore,
    principal: Principal,
    *,
    query: DocumentQuery | None = None,
    cursor: str | None = None,
    timeout_s: float | None = None,
) -> AsyncIterator[DocumentRecord]:
    # Walk pages lazily until the store stops issuing cursors.
    while True:
        page = await list_visible_documents(
            store, principal, query=query, cursor=cursor, timeout_s=timeout_s
        )
        for document in page.documents:
            yield document
        if page.next_cursor is None:
            return
        cursor = page.next_cursor
