"""Alert rendering and delivery."""

from .dispatcher import CompositeNotifier, LoggingNotifier, Notifier, TelegramNotifier
from .templates import SERVICE_DOWN, SERVICE_RECOVERED, SSL_EXPIRING, render_message

__all__ = [
    "CompositeNotifier",
    "LoggingNotifier",
    "Notifier",
    "SERVICE_DOWN",
    "SERVICE_RECOVERED",
    "SSL_EXPIRING",
    "TelegramNotifier",
    "render_message",
]
