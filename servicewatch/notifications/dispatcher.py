"""Alert delivery channels."""

from __future__ import annotations

import json
from typing import Optional, Protocol

import httpx
import structlog

from servicewatch.notifications.templates import render_message


logger = structlog.get_logger(__name__)

TELEGRAM_MAX_MESSAGE_LEN = 3900


class Notifier(Protocol):
    def notify(self, event_type: str, target_id: int, variables: dict[str, str]) -> bool:
        ...


def split_telegram_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        parts.append(s[:cut].rstrip())
        s = s[cut:].lstrip()
    return parts


class LoggingNotifier:
    """Writes every alert to the structured log."""

    def notify(self, event_type: str, target_id: int, variables: dict[str, str]) -> bool:
        logger.warning(
            "Alert",
            event_type=event_type,
            target_id=target_id,
            message=render_message(event_type, variables),
        )
        return True


class TelegramNotifier:
    """Sends alerts to a Telegram chat through the Bot API."""

    def __init__(self, client: httpx.Client, bot_token: str, chat_id: str, timeout_seconds: float = 15.0):
        self.client = client
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout_seconds = timeout_seconds

    def _redact(self, text: str) -> str:
        if self.bot_token:
            return text.replace(self.bot_token, "<redacted>")
        return text

    def send_message(self, text: str) -> bool:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        ok_all = True
        for part in split_telegram_message(text):
            try:
                resp = self.client.post(
                    url, json={"chat_id": self.chat_id, "text": part}, timeout=self.timeout_seconds
                )
                data = resp.json()
            except (httpx.HTTPError, json.JSONDecodeError) as e:
                logger.error("Telegram send failed", error=self._redact(f"{type(e).__name__}: {e}"))
                ok_all = False
                continue
            if not data.get("ok"):
                logger.error("Telegram API rejected message", description=data.get("description"))
                ok_all = False
        return ok_all

    def notify(self, event_type: str, target_id: int, variables: dict[str, str]) -> bool:
        return self.send_message(render_message(event_type, variables))


class CompositeNotifier:
    """Fans an alert out to several channels.

    A failing channel is logged and does not stop the others.
    """

    def __init__(self, notifiers: Optional[list[Notifier]] = None):
        self.notifiers: list[Notifier] = list(notifiers or [])

    def add(self, notifier: Notifier) -> None:
        self.notifiers.append(notifier)

    def notify(self, event_type: str, target_id: int, variables: dict[str, str]) -> bool:
        delivered = False
        for notifier in self.notifiers:
            try:
                delivered = notifier.notify(event_type, target_id, variables) or delivered
            except Exception as e:
                logger.error(
                    "Notification channel failed",
                    channel=type(notifier).__name__,
                    event_type=event_type,
                    error=str(e),
                )
        return delivered
