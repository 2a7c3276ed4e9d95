from __future__ import annotations

import pytest

from docshare.domain.access import (
    READ_CAPABILITIES,
    WRITE_CAPABILITIES,
    AccessCapabilities,
    AccessLevel,
    decode_access,
    encode_access,
    merge_levels,
    parse_access_level,
)
from docshare.domain.drafts import draft_group_id, is_draft_group_id
from docshare.domain.permissions import PermissionState, decode_state, encode_state
from docshare.tests.utils.documents import make_document


def test_levels_are_totally_ordered() -> None:
    assert AccessLevel.NONE < AccessLevel.READONLY < AccessLevel.EDIT < AccessLevel.FULL


def test_merge_takes_the_maximum() -> None:
    assert merge_levels([AccessLevel.READONLY, AccessLevel.EDIT, AccessLevel.NONE]) == AccessLevel.EDIT
    assert merge_levels([]) == AccessLevel.NONE


def test_capability_helpers() -> None:
    assert not AccessLevel.NONE.can_read
    assert AccessLevel.READONLY.can_read and not AccessLevel.READONLY.can_write
    assert AccessLevel.EDIT.can_write and not AccessLevel.EDIT.can_manage
    assert AccessLevel.FULL.can_manage


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("readonly", AccessLevel.READONLY), (" EDIT ", AccessLevel.EDIT), (3, AccessLevel.FULL)],
)
def test_parse_access_level(raw, expected) -> None:
    assert parse_access_level(raw) == expected


def test_parse_access_level_rejects_unknown_labels() -> None:
    with pytest.raises(ValueError):
        parse_access_level("owner")


def test_store_encoding_is_lossy_above_edit() -> None:
    assert encode_access(AccessLevel.FULL) == WRITE_CAPABILITIES
    assert encode_access(AccessLevel.EDIT) == WRITE_CAPABILITIES
    assert encode_access(AccessLevel.READONLY) == READ_CAPABILITIES
    assert encode_access(AccessLevel.NONE) is None
    assert decode_access(WRITE_CAPABILITIES) == AccessLevel.EDIT
    assert decode_access(READ_CAPABILITIES) == AccessLevel.READONLY
    assert decode_access(None) == AccessLevel.NONE


def test_capabilities_require_a_flag() -> None:
    with pytest.raises(ValueError):
        AccessCapabilities(can_write=False, can_read=False)


def test_draft_group_ids_use_configured_prefix(monkeypatch) -> None:
    from docshare.core.config import get_settings

    monkeypatch.setenv("DRAFT_GROUP_PREFIX", "private/")
    get_settings.cache_clear()
    assert draft_group_id("alice") == "private/alice"
    assert is_draft_group_id("private/alice")
    assert not is_draft_group_id("product")


def test_state_codec_restores_owner_and_draft_group() -> None:
    state = PermissionState.for_new_document("alice", draft=True)
    stored = encode_state(state)

    # The store has no owner concept; the owner travels as a write grant.
    assert stored.users == {"alice": WRITE_CAPABILITIES}
    assert stored.default is None

    decoded = decode_state("alice", default=stored.default, users=stored.users, groups=stored.groups)
    assert decoded.user_grants == {}
    assert decoded.group_grants == {draft_group_id("alice"): AccessLevel.FULL}
    assert decoded.is_draft


def test_state_codec_reads_back_full_grants_as_edit() -> None:
    state = PermissionState(
        owner="alice",
        default_access=AccessLevel.READONLY,
        user_grants={"bob": AccessLevel.FULL},
        group_grants={"product": AccessLevel.FULL},
    )
    stored = encode_state(state)
    decoded = decode_state("alice", default=stored.default, users=stored.users, groups=stored.groups)

    assert decoded.user_grants == {"bob": AccessLevel.EDIT}
    assert decoded.group_grants == {"product": AccessLevel.EDIT}
    assert decoded.default_access == AccessLevel.READONLY


def test_state_is_sparse_and_excludes_owner() -> None:
    state = PermissionState(
        owner="alice",
        user_grants={"alice": AccessLevel.READONLY, "bob": AccessLevel.NONE, "carol": AccessLevel.EDIT},
        group_grants={"design": AccessLevel.NONE},
    )
    assert state.user_grants == {"carol": AccessLevel.EDIT}
    assert state.group_grants == {}


def test_equal_states_hash_alike() -> None:
    users = {"bob": AccessLevel.EDIT}
    groups = {"design": AccessLevel.READONLY}
    first = PermissionState(owner="alice", user_grants=users, group_grants=groups)
    second = PermissionState(owner="alice", group_grants=dict(groups), user_grants=dict(users))

    assert first == second
    assert hash(first) == hash(second)
    assert len({first, second, PermissionState(owner="alice")}) == 2


def test_document_records_are_hashable() -> None:
    state = PermissionState(owner="alice", group_grants={"design": AccessLevel.EDIT})
    record = make_document(state, document_id="doc-1")
    same = make_document(PermissionState(owner="alice", group_grants=dict(state.group_grants)), document_id="doc-1")

    assert record == same
    assert hash(record) == hash(same)
