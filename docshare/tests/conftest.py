from __future__ import annotations

from typing import Iterator

import pytest

from docshare.core.config import get_settings
from docshare.domain.permissions import Group, User
from docshare.persistence.memory import (
    InMemoryDocumentStore,
    InMemoryGroupDirectory,
    InMemoryUserDirectory,
)
from docshare.services.access import DocumentAccessService
from docshare.services.notifications import InMemoryNotificationSink, NotificationDispatcher
from docshare.services.telemetry import reset_telemetry


CURSOR_SECRET = "test-cursor-secret"


@pytest.fixture(autouse=True)
def reset_state_between_tests() -> Iterator[None]:
    # Settings and counters are process-wide; keep each test isolated.
    get_settings.cache_clear()
    reset_telemetry()
    yield
    get_settings.cache_clear()
    reset_telemetry()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(cursor_secret=CURSOR_SECRET)


@pytest.fixture
def groups() -> InMemoryGroupDirectory:
    return InMemoryGroupDirectory(
        [
            Group(id="product", name="Product"),
            Group(id="engineering", name="Engineering"),
            Group(id="design", name="Design"),
        ]
    )


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(
        [
            User(id="alice", name="Alice", group_ids=frozenset({"product"})),
            User(id="bob", name="Bob", group_ids=frozenset({"engineering"})),
            User(id="carol", name="Carol", group_ids=frozenset({"design"})),
            User(id="dave", name="Dave"),
        ]
    )


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def dispatcher(sink: InMemoryNotificationSink) -> NotificationDispatcher:
    return NotificationDispatcher(sink, enabled=True)


@pytest.fixture
def service(
    store: InMemoryDocumentStore,
    groups: InMemoryGroupDirectory,
    users: InMemoryUserDirectory,
    dispatcher: NotificationDispatcher,
) -> DocumentAccessService:
    return DocumentAccessService(
        store,
        groups=groups,
        users=users,
        notifications=dispatcher,
        timeout_s=1.0,
    )
