from __future__ import annotations

import json

import httpx
import pytest

from docshare.services.notifications import (
    GRANTED_ACCESS,
    InMemoryNotificationSink,
    NotificationDispatcher,
    WebhookNotificationSink,
    build_notification_signature,
    build_notification_sink,
    granted_access_event,
)
from docshare.services.notifications.sinks import LoggingNotificationSink
from docshare.services.telemetry import get_counters


def test_event_payload_shape() -> None:
    event = granted_access_event(target_user_id="bob", document_id="doc-1")
    payload = event.to_payload()

    assert payload["kind"] == GRANTED_ACCESS
    assert payload["targetUserId"] == "bob"
    assert payload["documentId"] == "doc-1"
    assert payload["id"] == event.id


@pytest.mark.asyncio
async def test_webhook_posts_signed_payload() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(202)

    sink = WebhookNotificationSink(
        "https://hooks.example.test/notify",
        secret="hook-secret",
        timeout_ms=500,
        transport=httpx.MockTransport(handler),
    )
    event = granted_access_event(target_user_id="bob", document_id="doc-1")

    result = await sink.deliver(event)

    assert result.sent
    assert result.status_code == 202
    request = captured[0]
    assert request.headers["X-Docshare-Event"] == GRANTED_ACCESS
    assert request.headers["X-Docshare-Signature"] == build_notification_signature("hook-secret", request.content)
    assert json.loads(request.content)["targetUserId"] == "bob"


@pytest.mark.asyncio
async def test_webhook_rejection_is_reported_not_raised() -> None:
    sink = WebhookNotificationSink(
        "https://hooks.example.test/notify",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    result = await sink.deliver(granted_access_event(target_user_id="bob", document_id="doc-1"))

    assert not result.sent
    assert result.status_code == 500


@pytest.mark.asyncio
async def test_webhook_transport_error_is_reported_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    sink = WebhookNotificationSink("https://hooks.example.test/notify", transport=httpx.MockTransport(handler))

    result = await sink.deliver(granted_access_event(target_user_id="bob", document_id="doc-1"))

    assert not result.sent
    assert result.status_code is None


@pytest.mark.asyncio
async def test_dispatcher_delivers_in_background() -> None:
    sink = InMemoryNotificationSink()
    dispatcher = NotificationDispatcher(sink, enabled=True)

    dispatcher.dispatch(granted_access_event(target_user_id="bob", document_id="doc-1"))
    dispatcher.dispatch(granted_access_event(target_user_id="carol", document_id="doc-1"))
    await dispatcher.drain()

    assert [event.target_user_id for event in sink.events] == ["bob", "carol"]
    assert get_counters()["notifications_sent_total"] == 2


def test_sink_selection_follows_settings(monkeypatch) -> None:
    from docshare.core.config import get_settings

    assert isinstance(build_notification_sink(), LoggingNotificationSink)

    monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "https://hooks.example.test/notify")
    get_settings.cache_clear()
    assert isinstance(build_notification_sink(), WebhookNotificationSink)
