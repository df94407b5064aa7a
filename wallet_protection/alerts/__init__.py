"""Alert log and operator notifications."""
from .dispatcher import AlertDispatcher, WebhookNotifier

__all__ = ["AlertDispatcher", "WebhookNotifier"]
