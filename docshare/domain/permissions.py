from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from docshare.domain.access import (
    WRITE_CAPABILITIES,
    AccessCapabilities,
    AccessLevel,
    decode_access,
    encode_access,
)
from docshare.domain.drafts import draft_group_id


class Principal(BaseModel):
    # Already-verified identity supplied by the session collaborator; never authenticated here.
    model_config = ConfigDict(frozen=True)

    user_id: str
    group_ids: frozenset[str] = Field(default_factory=frozenset)


def _sparse(grants: Mapping[str, AccessLevel]) -> dict[str, AccessLevel]:
    # NONE is represented by absence, never by a stored value.
    return {key: AccessLevel(level) for key, level in grants.items() if level != AccessLevel.NONE}


@dataclass(frozen=True)
class PermissionState:
    """Declared access configuration of a single document.

    The owner is always implicitly FULL and is never stored in ``user_grants``.
    A document is a draft while its owner's draft group holds a grant; sharing
    removes that grant and there is no way back.
    """

    owner: str
    default_access: AccessLevel = AccessLevel.NONE
    user_grants: Mapping[str, AccessLevel] = field(default_factory=dict)
    group_grants: Mapping[str, AccessLevel] = field(default_factory=dict)

    def __post_init__(self) -> None:
        users = _sparse(self.user_grants)
        users.pop(self.owner, None)
        object.__setattr__(self, "user_grants", users)
        object.__setattr__(self, "group_grants", _sparse(self.group_grants))
        object.__setattr__(self, "default_access", AccessLevel(self.default_access))

    @classmethod
    def for_new_document(
        cls,
        owner: str,
        *,
        draft: bool = False,
        group_ids: Iterable[str] = (),
    ) -> "PermissionState":
        # Drafts get the owner's draft group only; otherwise initial groups get write access.
        if draft:
            return cls(owner=owner, group_grants={draft_group_id(owner): AccessLevel.FULL})
        return cls(owner=owner, group_grants={group_id: AccessLevel.EDIT for group_id in group_ids})

    @property
    def draft_group_id(self) -> str:
        return draft_group_id(self.owner)

    @property
    def is_draft(self) -> bool:
        return self.draft_group_id in self.group_grants

    def __hash__(self) -> int:
        # Grant maps are dicts; hash their items so equal states hash alike.
        return hash(
            (
                self.owner,
                self.default_access,
                frozenset(self.user_grants.items()),
                frozenset(self.group_grants.items()),
            )
        )

    def user_level(self, user_id: str) -> AccessLevel:
        return self.user_grants.get(user_id, AccessLevel.NONE)

    def group_level(self, group_id: str) -> AccessLevel:
        return self.group_grants.get(group_id, AccessLevel.NONE)

    def with_user_grant(self, user_id: str, level: AccessLevel) -> "PermissionState":
        users = dict(self.user_grants)
        if level == AccessLevel.NONE:
            users.pop(user_id, None)
        else:
            users[user_id] = level
        return replace(self, user_grants=users)

    def with_group_grant(self, group_id: str, level: AccessLevel) -> "PermissionState":
        groups = dict(self.group_grants)
        if level == AccessLevel.NONE:
            groups.pop(group_id, None)
        else:
            groups[group_id] = level
        return replace(self, group_grants=groups)

    def with_default_access(self, level: AccessLevel) -> "PermissionState":
        return replace(self, default_access=level)


@dataclass(frozen=True)
class DocumentRecord:
    # A collaboratively edited document (an external "room") and its permission state.
    id: str
    name: str
    document_type: str
    created_at: datetime
    state: PermissionState

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def is_draft(self) -> bool:
        return self.state.is_draft


@dataclass(frozen=True)
class Group:
    id: str
    name: str


@dataclass(frozen=True)
class User:
    id: str
    name: str
    group_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class DocumentUser:
    # Collaborator row shown by sharing views.
    id: str
    name: str
    access: AccessLevel
    is_owner: bool
    is_current_user: bool


@dataclass(frozen=True)
class DocumentGroup:
    id: str
    name: str
    access: AccessLevel


@dataclass(frozen=True)
class StoredAccesses:
    # Store-boundary encoding of a PermissionState; the owner appears as a write grant.
    default: AccessCapabilities | None
    users: dict[str, AccessCapabilities]
    groups: dict[str, AccessCapabilities]


def encode_state(state: PermissionState) -> StoredAccesses:
    users = {user_id: encode_access(level) for user_id, level in state.user_grants.items()}
    users[state.owner] = WRITE_CAPABILITIES
    groups = {group_id: encode_access(level) for group_id, level in state.group_grants.items()}
    return StoredAccesses(default=encode_access(state.default_access), users=users, groups=groups)


def decode_state(
    owner: str,
    *,
    default: AccessCapabilities | None,
    users: Mapping[str, AccessCapabilities],
    groups: Mapping[str, AccessCapabilities],
) -> PermissionState:
    # FULL only survives the two-flag encoding for the owner and its draft group.
    owner_draft_group = draft_group_id(owner)
    group_grants = {
        group_id: AccessLevel.FULL if group_id == owner_draft_group else decode_access(caps)
        for group_id, caps in groups.items()
    }
    return PermissionState(
        owner=owner,
        default_access=decode_access(default),
        user_grants={user_id: decode_access(caps) for user_id, caps in users.items() if user_id != owner},
        group_grants=group_grants,
    )
