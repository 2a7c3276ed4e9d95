from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from docshare.core.errors import DocshareError


T = TypeVar("T")


class AccessErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    OWNER_IMMUTABLE = "owner_immutable"
    UNKNOWN_GROUP = "unknown_group"
    STORE_UNAVAILABLE = "store_unavailable"
    CONFLICT = "conflict"

    @property
    def retryable(self) -> bool:
        # Only store-side failures may be retried by the caller; preconditions never change on retry.
        return self in {AccessErrorKind.STORE_UNAVAILABLE, AccessErrorKind.CONFLICT}

    @property
    def is_precondition(self) -> bool:
        return not self.retryable


class AccessError(DocshareError):
    # Raised inside the engine and converted to a typed failure at the service boundary.
    def __init__(self, kind: AccessErrorKind, message: str) -> None:
        super().__init__(kind, message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class OwnerImmutableError(AccessError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            AccessErrorKind.OWNER_IMMUTABLE,
            f"User {user_id} owns the document and cannot be modified",
        )


@dataclass(frozen=True)
class AccessFailure:
    kind: AccessErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


@dataclass(frozen=True)
class AccessResult(Generic[T]):
    """Outcome of an engine operation: either ``value`` or ``error`` is set."""

    value: T | None = None
    error: AccessFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "AccessResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: AccessErrorKind, message: str) -> "AccessResult[T]":
        return cls(error=AccessFailure(kind=kind, message=message))

    def unwrap(self) -> T:
        if self.error is not None:
            raise AccessError(self.error.kind, self.error.message)
        return self.value  # type: ignore[return-value]
