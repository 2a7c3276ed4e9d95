from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable


class AccessLevel(IntEnum):
    # Integer values encode the total order so max() merges grants.
    NONE = 0
    READONLY = 1
    EDIT = 2
    FULL = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def can_read(self) -> bool:
        return self >= AccessLevel.READONLY

    @property
    def can_write(self) -> bool:
        return self >= AccessLevel.EDIT

    @property
    def can_manage(self) -> bool:
        # Only FULL may invite/remove collaborators and change the default level.
        return self is AccessLevel.FULL


class CheckMode(str, Enum):
    # ANY resolves owner, user, group and default; USER_ONLY ignores group and default grants.
    ANY = "any"
    USER_ONLY = "user_only"


def merge_levels(levels: Iterable[AccessLevel]) -> AccessLevel:
    # Merging is a maximum; an empty merge is NONE.
    return max(levels, default=AccessLevel.NONE)


def parse_access_level(value: str | int | AccessLevel) -> AccessLevel:
    if isinstance(value, AccessLevel):
        return value
    if isinstance(value, int):
        return AccessLevel(value)
    try:
        return AccessLevel[value.strip().upper()]
    except KeyError as exc:
        raise ValueError(f"Unknown access level: {value}") from exc


@dataclass(frozen=True)
class AccessCapabilities:
    """Two-flag encoding of an access level used at the store boundary.

    FULL and EDIT both encode as ``can_write``; READONLY encodes as
    ``can_read`` (read plus presence). NONE has no encoding: the key is deleted.
    """

    can_write: bool
    can_read: bool = True

    def __post_init__(self) -> None:
        if not self.can_write and not self.can_read:
            raise ValueError("Capabilities must grant write or read access")


WRITE_CAPABILITIES = AccessCapabilities(can_write=True, can_read=True)
READ_CAPABILITIES = AccessCapabilities(can_write=False, can_read=True)


def encode_access(level: AccessLevel) -> AccessCapabilities | None:
    if level >= AccessLevel.EDIT:
        return WRITE_CAPABILITIES
    if level is AccessLevel.READONLY:
        return READ_CAPABILITIES
    return None


def decode_access(capabilities: AccessCapabilities | None) -> AccessLevel:
    # FULL is never decoded here; callers reconstruct it from ownership.
    if capabilities is None:
        return AccessLevel.NONE
    if capabilities.can_write:
        return AccessLevel.EDIT
    return AccessLevel.READONLY
