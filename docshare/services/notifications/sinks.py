from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from docshare.core.config import get_settings
from docshare.services.notifications.events import NotificationEvent
from docshare.services.telemetry import record_external_call


logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def deliver(self, event: NotificationEvent) -> None: ...


class InMemoryNotificationSink:
    # Collect events in order; used by tests and local development.
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def deliver(self, event: NotificationEvent) -> None:
        self.events.append(event)


class LoggingNotificationSink:
    async def deliver(self, event: NotificationEvent) -> None:
        logger.info(
            "notification kind=%s target_user_id=%s document_id=%s",
            event.kind,
            event.target_user_id,
            event.document_id,
        )


@dataclass(frozen=True)
class WebhookDeliveryResult:
    # Summarize webhook delivery attempts for logging and tests.
    sent: bool
    status_code: int | None
    message: str


def build_notification_signature(secret: str, payload: bytes) -> str:
    # Compute HMAC SHA256 signatures for notification webhook payloads.
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class WebhookNotificationSink:
    """Post notification events to an HTTP endpoint.

    Failures are logged and reported in the returned result; they are never
    raised, since the mutation that triggered the event has already succeeded.
    """

    def __init__(
        self,
        url: str,
        *,
        secret: str | None = None,
        timeout_ms: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._secret = secret
        self._timeout_s = (timeout_ms or get_settings().notification_webhook_timeout_ms) / 1000.0
        self._transport = transport

    async def deliver(self, event: NotificationEvent) -> WebhookDeliveryResult:  # type: ignore[override]
        body = json.dumps(event.to_payload(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Docshare-Event": event.kind,
        }
        if self._secret:
            headers["X-Docshare-Signature"] = build_notification_signature(self._secret, body)

        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.post(self._url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            record_external_call(
                integration="notifications.webhook",
                latency_ms=(time.monotonic() - start) * 1000.0,
                success=False,
            )
            logger.warning("notification_webhook_send_failed event_id=%s", event.id, exc_info=exc)
            return WebhookDeliveryResult(sent=False, status_code=None, message=str(exc))

        success = response.status_code < 400
        record_external_call(
            integration="notifications.webhook",
            latency_ms=(time.monotonic() - start) * 1000.0,
            success=success,
        )
        if not success:
            logger.warning(
                "notification_webhook_rejected event_id=%s status=%s",
                event.id,
                response.status_code,
            )
            return WebhookDeliveryResult(
                sent=False,
                status_code=response.status_code,
                message=f"Webhook responded with status {response.status_code}",
            )
        return WebhookDeliveryResult(
            sent=True,
            status_code=response.status_code,
            message="Webhook delivered successfully",
        )


def build_notification_sink() -> NotificationSink:
    # Prefer the webhook when configured; otherwise log events locally.
    settings = get_settings()
    if settings.notification_webhook_url:
        return WebhookNotificationSink(
            settings.notification_webhook_url,
            secret=settings.notification_webhook_secret,
            timeout_ms=settings.notification_webhook_timeout_ms,
        )
    return LoggingNotificationSink()
