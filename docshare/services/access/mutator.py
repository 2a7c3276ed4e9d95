from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from docshare.domain.access import AccessCapabilities, AccessLevel, encode_access
from docshare.domain.permissions import PermissionState
from docshare.services.access.results import OwnerImmutableError


@dataclass(frozen=True)
class PermissionDelta:
    """Minimal partial update: only changed keys, ``None`` meaning delete."""

    users: Mapping[str, AccessLevel | None] = field(default_factory=dict)
    groups: Mapping[str, AccessLevel | None] = field(default_factory=dict)
    # None leaves the stored default untouched; AccessLevel.NONE is a real value.
    default_access: AccessLevel | None = None

    @property
    def is_empty(self) -> bool:
        return not self.users and not self.groups and self.default_access is None

    def encoded_users(self) -> dict[str, AccessCapabilities | None]:
        return {key: _encode(level) for key, level in self.users.items()}

    def encoded_groups(self) -> dict[str, AccessCapabilities | None]:
        return {key: _encode(level) for key, level in self.groups.items()}


@dataclass(frozen=True)
class Mutation:
    # Planned result of a mutator operation; the delta is what gets sent to the store.
    state: PermissionState
    delta: PermissionDelta
    notify_user_id: str | None = None


def _encode(level: AccessLevel | None) -> AccessCapabilities | None:
    if level is None:
        return None
    return encode_access(level)


def _key_update(level: AccessLevel) -> AccessLevel | None:
    return None if level == AccessLevel.NONE else level


def apply_delta(state: PermissionState, delta: PermissionDelta) -> PermissionState:
    for user_id, level in delta.users.items():
        state = state.with_user_grant(user_id, level or AccessLevel.NONE)
    for group_id, level in delta.groups.items():
        state = state.with_group_grant(group_id, level or AccessLevel.NONE)
    if delta.default_access is not None:
        state = state.with_default_access(delta.default_access)
    return state


def _draft_exit(state: PermissionState) -> dict[str, AccessLevel | None]:
    # Sharing a draft removes the draft group in the same update.
    if state.is_draft:
        return {state.draft_group_id: None}
    return {}


def grant_user(state: PermissionState, user_id: str, level: AccessLevel) -> Mutation:
    if user_id == state.owner:
        raise OwnerImmutableError(user_id)
    had_access = user_id in state.user_grants
    delta = PermissionDelta(users={user_id: _key_update(level)})
    notify = user_id if not had_access and level != AccessLevel.NONE else None
    return Mutation(state=apply_delta(state, delta), delta=delta, notify_user_id=notify)


def revoke_user(state: PermissionState, user_id: str) -> Mutation:
    if user_id == state.owner:
        raise OwnerImmutableError(user_id)
    delta = PermissionDelta(users={user_id: None})
    return Mutation(state=apply_delta(state, delta), delta=delta)


def grant_group(state: PermissionState, group_id: str, level: AccessLevel) -> Mutation:
    groups: dict[str, AccessLevel | None] = {}
    if level != AccessLevel.NONE and group_id != state.draft_group_id:
        groups.update(_draft_exit(state))
    groups[group_id] = _key_update(level)
    delta = PermissionDelta(groups=groups)
    return Mutation(state=apply_delta(state, delta), delta=delta)


def revoke_group(state: PermissionState, group_id: str) -> Mutation:
    delta = PermissionDelta(groups={group_id: None})
    return Mutation(state=apply_delta(state, delta), delta=delta)


def set_default_access(state: PermissionState, level: AccessLevel) -> Mutation:
    groups = _draft_exit(state) if level != AccessLevel.NONE else {}
    delta = PermissionDelta(groups=groups, default_access=level)
    return Mutation(state=apply_delta(state, delta), delta=delta)
