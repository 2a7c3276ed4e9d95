from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from docshare.core.config import get_settings
from docshare.core.errors import StoreConflictError, StoreUnavailableError
from docshare.domain.access import READ_CAPABILITIES, WRITE_CAPABILITIES, AccessLevel
from docshare.domain.drafts import draft_group_id
from docshare.domain.models import DocumentUserGrant
from docshare.domain.permissions import PermissionState
from docshare.persistence.db import build_engine, create_all, get_engine, get_session, get_sessionmaker
from docshare.persistence.repos import directory as directory_repo
from docshare.persistence.repos.directory import SqlGroupDirectory, SqlUserDirectory
from docshare.persistence.repos import documents as documents_repo
from docshare.persistence.repos.documents import SqlDocumentStore
from docshare.services.access import DocumentAccessService, build_document_query, list_visible_documents
from docshare.services.access.results import AccessError, AccessErrorKind, AccessResult
from docshare.services.ports import UNCHANGED
from docshare.tests.utils.documents import make_document, make_state, principal


@pytest.fixture
async def sessionmaker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'docshare.db'}")
    await create_all(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_store(sessionmaker) -> SqlDocumentStore:
    return SqlDocumentStore(sessionmaker, cursor_secret="sql-test-secret")


@pytest.mark.asyncio
async def test_create_and_load_round_trips_state(sql_store, sessionmaker) -> None:
    state = make_state(
        "alice",
        default=AccessLevel.READONLY,
        users={"bob": AccessLevel.EDIT},
        groups={"design": AccessLevel.READONLY},
    )
    created = await sql_store.create_document(make_document(state, document_id="doc-1"))
    loaded = await sql_store.get_document("doc-1")

    assert created.state == state
    assert loaded.state == state
    assert loaded.created_at.tzinfo is not None

    # The owner is stored as a plain write grant.
    async with sessionmaker() as session:
        owner_row = await session.get(DocumentUserGrant, ("doc-1", "alice"))
    assert owner_row is not None and owner_row.can_write


@pytest.mark.asyncio
async def test_duplicate_create_is_a_conflict(sql_store) -> None:
    document = make_document(make_state("alice"), document_id="doc-1")
    await sql_store.create_document(document)

    with pytest.raises(StoreConflictError):
        await sql_store.create_document(document)


@pytest.mark.asyncio
async def test_partial_update_touches_only_listed_keys(sql_store) -> None:
    state = make_state("alice", users={"carol": AccessLevel.READONLY}, groups={"design": AccessLevel.EDIT})
    await sql_store.create_document(make_document(state, document_id="doc-1"))

    updated = await sql_store.update_access(
        "doc-1",
        users={"bob": WRITE_CAPABILITIES},
        groups={"design": None},
    )

    assert updated.state.user_grants == {"carol": AccessLevel.READONLY, "bob": AccessLevel.EDIT}
    assert updated.state.group_grants == {}
    assert updated.state.default_access == AccessLevel.NONE


@pytest.mark.asyncio
async def test_default_access_updates(sql_store) -> None:
    await sql_store.create_document(make_document(make_state("alice"), document_id="doc-1"))

    readonly = await sql_store.update_access("doc-1", default=READ_CAPABILITIES)
    unchanged = await sql_store.update_access("doc-1", default=UNCHANGED)
    cleared = await sql_store.update_access("doc-1", default=None)

    assert readonly.state.default_access == AccessLevel.READONLY
    assert unchanged.state.default_access == AccessLevel.READONLY
    assert cleared.state.default_access == AccessLevel.NONE


@pytest.mark.asyncio
async def test_update_missing_document_returns_none(sql_store) -> None:
    assert await sql_store.update_access("missing", users={"bob": READ_CAPABILITIES}) is None


@pytest.mark.asyncio
async def test_listing_paginates_newest_first(sql_store) -> None:
    for index in range(5):
        state = make_state("alice", groups={"engineering": AccessLevel.READONLY})
        await sql_store.create_document(make_document(state, document_id=f"doc-{index}", offset_s=index))
    await sql_store.create_document(make_document(make_state("alice"), document_id="hidden", offset_s=10))

    bob = principal("bob", "engineering")
    query = build_document_query(bob, limit=2)
    seen: list[str] = []
    cursor = None
    while True:
        page = await list_visible_documents(sql_store, bob, query=query, cursor=cursor)
        seen.extend(doc.id for doc in page.documents)
        if page.next_cursor is None:
            break
        cursor = page.next_cursor

    assert seen == ["doc-4", "doc-3", "doc-2", "doc-1", "doc-0"]


@pytest.mark.asyncio
async def test_listing_by_user_grant_and_type(sql_store) -> None:
    await sql_store.create_document(
        make_document(make_state("alice", users={"bob": AccessLevel.READONLY}), document_id="w")
    )
    await sql_store.create_document(
        make_document(
            make_state("alice", users={"bob": AccessLevel.READONLY}),
            document_id="n",
            document_type="note",
            offset_s=1,
        )
    )

    bob = principal("bob")
    everything = await list_visible_documents(sql_store, bob, query=build_document_query(bob))
    notes = await list_visible_documents(sql_store, bob, query=build_document_query(bob, document_type="note"))

    assert [doc.id for doc in everything.documents] == ["n", "w"]
    assert [doc.id for doc in notes.documents] == ["n"]


@pytest.mark.asyncio
async def test_directory_lookups(sessionmaker) -> None:
    async with sessionmaker() as session:
        await directory_repo.upsert_group(session, "engineering", "Engineering")
        await directory_repo.upsert_group(session, "design", "Design")
        await session.flush()
        await directory_repo.upsert_user(session, "bob", "Bob", ["engineering", "design"])
        await session.commit()

    groups = SqlGroupDirectory(sessionmaker)
    users = SqlUserDirectory(sessionmaker)

    assert (await groups.get_group("engineering")).name == "Engineering"
    assert await groups.get_group("ghost") is None
    bob = await users.get_user("bob")
    assert bob.group_ids == frozenset({"engineering", "design"})
    assert await users.get_user("ghost") is None


@pytest.mark.asyncio
async def test_service_draft_flow_against_sql(sessionmaker, sql_store) -> None:
    async with sessionmaker() as session:
        await directory_repo.upsert_group(session, "engineering", "Engineering")
        await directory_repo.upsert_user(session, "alice", "Alice")
        await directory_repo.upsert_user(session, "bob", "Bob")
        await session.commit()
    service = DocumentAccessService(
        sql_store,
        groups=SqlGroupDirectory(sessionmaker),
        users=SqlUserDirectory(sessionmaker),
    )
    alice = principal("alice")

    created = (await service.create_document(alice, name="Sketch", document_type="whiteboard", draft=True)).value
    assert created.state == PermissionState.for_new_document("alice", draft=True)

    shared = await service.grant_group(alice, created.id, "engineering", AccessLevel.EDIT)

    assert shared.ok
    assert draft_group_id("alice") not in shared.value.state.group_grants
    assert shared.value.state.group_grants == {"engineering": AccessLevel.EDIT}
    assert (await service.get_access(principal("bob", "engineering"), created.id)).value == AccessLevel.EDIT

    async with sessionmaker() as session:
        rows = (await session.execute(select(DocumentUserGrant.user_id))).scalars().all()
    assert rows == ["alice"]


@pytest.mark.asyncio
async def test_concurrent_grants_on_different_users_all_land(sessionmaker, sql_store) -> None:
    async with sessionmaker() as session:
        for user_id in ("alice", "bob", "carol", "dave"):
            await directory_repo.upsert_user(session, user_id, user_id.title())
        await session.commit()
    service = DocumentAccessService(
        sql_store,
        groups=SqlGroupDirectory(sessionmaker),
        users=SqlUserDirectory(sessionmaker),
    )
    alice = principal("alice")
    document = await sql_store.create_document(make_document(make_state("alice"), document_id="doc-1"))

    results = await asyncio.gather(
        *(
            service.grant_user(alice, document.id, user_id, AccessLevel.READONLY)
            for user_id in ("bob", "carol", "dave")
        )
    )

    assert all(result.ok for result in results)
    stored = await sql_store.get_document(document.id)
    assert stored.state.user_grants == {
        "bob": AccessLevel.READONLY,
        "carol": AccessLevel.READONLY,
        "dave": AccessLevel.READONLY,
    }


@pytest.mark.asyncio
async def test_create_that_cannot_be_reloaded_is_unavailable(sql_store, monkeypatch) -> None:
    async def _vanished(session, document_id):
        return None

    monkeypatch.setattr(documents_repo, "_load_record", _vanished)

    with pytest.raises(StoreUnavailableError):
        await sql_store.create_document(make_document(make_state("alice"), document_id="doc-1"))


@pytest.mark.asyncio
async def test_unwrapped_error_passes_through_db_session(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'session.db'}")
    get_settings.cache_clear()
    get_engine.cache_clear()
    get_sessionmaker.cache_clear()
    failed = AccessResult.failure(AccessErrorKind.NOT_FOUND, "Document doc-1 not found")
    try:
        with pytest.raises(AccessError) as excinfo:
            async with get_session():
                failed.unwrap()
    finally:
        await get_engine().dispose()
        get_engine.cache_clear()
        get_sessionmaker.cache_clear()

    assert excinfo.value.kind is AccessErrorKind.NOT_FOUND
    assert excinfo.value.message == "Document doc-1 not found"
