from __future__ import annotations

import pytest

from docshare.domain.access import AccessLevel
from docshare.domain.drafts import draft_group_id
from docshare.domain.permissions import PermissionState
from docshare.services.access.listing import (
    build_document_query,
    clamp_page_size,
    filter_visible,
    iter_visible_documents,
    list_visible_documents,
)
from docshare.services.cursors import CursorError
from docshare.tests.utils.documents import make_document, make_state, principal


BOB = principal("bob", "engineering")


async def _seed_many(store, count: int, **state_kwargs) -> list[str]:
    ids = []
    for index in range(count):
        document = make_document(
            make_state("alice", **state_kwargs),
            document_id=f"doc-{index:02d}",
            offset_s=index,
        )
        await store.create_document(document)
        ids.append(document.id)
    return ids


def test_filter_visible_preserves_order() -> None:
    documents = [
        make_document(make_state("alice", groups={"engineering": AccessLevel.READONLY}), document_id="a"),
        make_document(make_state("alice"), document_id="b"),
        make_document(make_state("alice", users={"bob": AccessLevel.EDIT}), document_id="c"),
        make_document(make_state("alice", default=AccessLevel.READONLY), document_id="d"),
    ]
    assert [doc.id for doc in filter_visible(documents, BOB)] == ["a", "c", "d"]


def test_regular_query_excludes_draft_groups() -> None:
    viewer = principal("bob", "engineering", draft_group_id("bob"), draft_group_id("alice"), "design")
    query = build_document_query(viewer, document_type="whiteboard", limit=5)

    assert query.group_ids == ("design", "engineering")
    assert query.user_id == "bob"
    assert query.document_type == "whiteboard"
    assert query.limit == 5


def test_draft_query_targets_own_draft_group_only() -> None:
    query = build_document_query(BOB, drafts=True)

    assert query.group_ids == (draft_group_id("bob"),)
    assert query.user_id is None


def test_page_size_is_clamped(monkeypatch) -> None:
    from docshare.core.config import get_settings

    monkeypatch.setenv("DOCUMENTS_MAX_PAGE_SIZE", "10")
    get_settings.cache_clear()
    assert clamp_page_size(None) == 10
    assert clamp_page_size(500) == 10
    assert clamp_page_size(0) == 1


@pytest.mark.asyncio
async def test_listing_is_newest_first_and_paginates(store) -> None:
    ids = await _seed_many(store, 5, groups={"engineering": AccessLevel.READONLY})
    query = build_document_query(BOB, limit=2)

    first = await list_visible_documents(store, BOB, query=query)
    second = await list_visible_documents(store, BOB, query=query, cursor=first.next_cursor)
    third = await list_visible_documents(store, BOB, query=query, cursor=second.next_cursor)

    assert [doc.id for doc in first.documents] == [ids[4], ids[3]]
    assert [doc.id for doc in second.documents] == [ids[2], ids[1]]
    assert [doc.id for doc in third.documents] == [ids[0]]
    assert third.next_cursor is None


@pytest.mark.asyncio
async def test_iterating_walks_every_page(store) -> None:
    ids = await _seed_many(store, 5, users={"bob": AccessLevel.READONLY})
    query = build_document_query(BOB, limit=2)

    seen = [doc.id async for doc in iter_visible_documents(store, BOB, query=query)]

    assert seen == list(reversed(ids))


@pytest.mark.asyncio
async def test_drafts_listing_only_returns_own_drafts(store) -> None:
    await store.create_document(
        make_document(PermissionState.for_new_document("bob", draft=True), document_id="bob-draft", offset_s=0)
    )
    await store.create_document(
        make_document(PermissionState.for_new_document("alice", draft=True), document_id="alice-draft", offset_s=1)
    )
    await store.create_document(
        make_document(make_state("bob", groups={"engineering": AccessLevel.EDIT}), document_id="bob-shared", offset_s=2)
    )

    drafts = await list_visible_documents(store, BOB, query=build_document_query(BOB, drafts=True))
    regular = await list_visible_documents(store, BOB, query=build_document_query(BOB))

    assert [doc.id for doc in drafts.documents] == ["bob-draft"]
    # Owned drafts still match the owner's own write grant in regular listings.
    assert [doc.id for doc in regular.documents] == ["bob-shared", "bob-draft"]


@pytest.mark.asyncio
async def test_document_type_filter(store) -> None:
    await store.create_document(
        make_document(make_state("alice", users={"bob": AccessLevel.READONLY}), document_id="w", document_type="whiteboard")
    )
    await store.create_document(
        make_document(make_state("alice", users={"bob": AccessLevel.READONLY}), document_id="n", document_type="note")
    )

    page = await list_visible_documents(store, BOB, query=build_document_query(BOB, document_type="note"))

    assert [doc.id for doc in page.documents] == ["n"]


@pytest.mark.asyncio
async def test_tampered_cursor_is_rejected(store) -> None:
    await _seed_many(store, 3, groups={"engineering": AccessLevel.READONLY})
    first = await list_visible_documents(store, BOB, query=build_document_query(BOB, limit=1))

    with pytest.raises(CursorError):
        await list_visible_documents(store, BOB, cursor=first.next_cursor + "0")


@pytest.mark.asyncio
async def test_service_listing_requires_principal(service) -> None:
    result = await service.list_documents(None)
    assert not result.ok
