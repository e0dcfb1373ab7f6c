"""Service layer: persistence gateway, notifications and registration."""

from adwatch.services.query_store import QueryStore
from adwatch.services.notifier import (
    LogNotifier,
    Notifier,
    TelegramNotifier,
    build_notifier,
    format_ad_message,
)
from adwatch.services.registration import RegistrationResult, RegistrationService, Preview

__all__ = [
    "QueryStore",
    "Notifier",
    "TelegramNotifier",
    "LogNotifier",
    "build_notifier",
    "format_ad_message",
    "RegistrationService",
    "RegistrationResult",
    "Preview",
]
