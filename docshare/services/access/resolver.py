from __future__ import annotations

from docshare.domain.access import AccessLevel, CheckMode, merge_levels
from docshare.domain.drafts import is_draft_group_id
from docshare.domain.permissions import PermissionState, Principal


def principal_group_ids(state: PermissionState, principal: Principal) -> frozenset[str]:
    # Draft groups are never claimed through identity; only the owner is a member of its own.
    groups = frozenset(group_id for group_id in principal.group_ids if not is_draft_group_id(group_id))
    if principal.user_id == state.owner:
        return groups | {state.draft_group_id}
    return groups


def user_access(state: PermissionState, principal: Principal) -> AccessLevel:
    # Direct access only: owner status or an explicit user grant.
    if principal.user_id == state.owner:
        return AccessLevel.FULL
    return state.user_level(principal.user_id)


def group_access(state: PermissionState, principal: Principal) -> AccessLevel:
    return merge_levels(
        state.group_grants[group_id]
        for group_id in principal_group_ids(state, principal)
        if group_id in state.group_grants
    )


def effective_access(state: PermissionState, principal: Principal) -> AccessLevel:
    """Resolve the principal's access to a document.

    The owner is always FULL. For everyone else the user grant, the best
    matching group grant and the default level are all evaluated and the
    maximum wins, so a lower explicit grant never masks a higher one.
    """
    if principal.user_id == state.owner:
        return AccessLevel.FULL
    user_level = state.user_level(principal.user_id)
    group_level = group_access(state, principal)
    default_level = state.default_access
    return merge_levels((user_level, group_level, default_level))


def is_allowed(
    state: PermissionState,
    principal: Principal,
    required: AccessLevel,
    mode: CheckMode = CheckMode.ANY,
) -> bool:
    # USER_ONLY ignores group and default grants so shared access cannot be laundered into sharing rights.
    if mode is CheckMode.USER_ONLY:
        level = user_access(state, principal)
    else:
        level = effective_access(state, principal)
    return level >= required
