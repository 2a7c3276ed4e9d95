from docshare.services.notifications.dispatcher import NotificationDispatcher
from docshare.services.notifications.events import (
    GRANTED_ACCESS,
    NotificationEvent,
    granted_access_event,
)
from docshare.services.notifications.sinks import (
    InMemoryNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
    WebhookDeliveryResult,
    WebhookNotificationSink,
    build_notification_signature,
    build_notification_sink,
)

__all__ = [
    "GRANTED_ACCESS",
    "NotificationEvent",
    "granted_access_event",
    "NotificationDispatcher",
    "NotificationSink",
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "WebhookNotificationSink",
    "WebhookDeliveryResult",
    "build_notification_signature",
    "build_notification_sink",
]
