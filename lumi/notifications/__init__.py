"""Email delivery, staff alert routing and the alert audit trail."""

from .alerts import AlertDispatcher, AlertMessage
from .audit import AuditLog
from .email import (
    LoggingNotifier,
    Notifier,
    RecordingNotifier,
    ResendNotifier,
    get_notifier,
)

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "AuditLog",
    "LoggingNotifier",
    "Notifier",
    "RecordingNotifier",
    "ResendNotifier",
    "get_notifier",
]
