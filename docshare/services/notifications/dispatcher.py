from __future__ import annotations

import asyncio
import logging

from docshare.core.config import get_settings
from docshare.services.notifications.events import NotificationEvent
from docshare.services.notifications.sinks import NotificationSink
from docshare.services.telemetry import increment_counter


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fire-and-forget delivery of notification events.

    ``dispatch`` schedules delivery on the running loop and returns at once.
    Delivery errors are logged and counted, never propagated.
    """

    def __init__(self, sink: NotificationSink, *, enabled: bool | None = None) -> None:
        self._sink = sink
        self._enabled = get_settings().notifications_enabled if enabled is None else enabled
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    def dispatch(self, event: NotificationEvent) -> None:
        if not self._enabled:
            increment_counter("notifications_skipped_total")
            return
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        # Hold a reference until completion so the task is not garbage collected mid-flight.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self._sink.deliver(event)
        except Exception as exc:  # noqa: BLE001 - delivery failures never affect the mutation
            increment_counter("notifications_failed_total")
            logger.warning(
                "notification_delivery_failed kind=%s target_user_id=%s document_id=%s",
                event.kind,
                event.target_user_id,
                event.document_id,
                exc_info=exc,
            )
            return
        increment_counter("notifications_sent_total")

    async def drain(self) -> None:
        # Wait for in-flight deliveries; used on shutdown and in tests.
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
