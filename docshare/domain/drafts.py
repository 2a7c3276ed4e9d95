from __future__ import annotations

from docshare.core.config import get_settings


def draft_group_id(owner_user_id: str) -> str:
    # Draft groups are synthetic and never persisted in the group directory.
    return f"{get_settings().draft_group_prefix}{owner_user_id}"


def is_draft_group_id(group_id: str) -> bool:
    return group_id.startswith(get_settings().draft_group_prefix)
