from __future__ import annotations

import json

import httpx

from servicewatch.notifications import (
    SERVICE_DOWN,
    SERVICE_RECOVERED,
    SSL_EXPIRING,
    CompositeNotifier,
    LoggingNotifier,
    TelegramNotifier,
    render_message,
)
from servicewatch.notifications.dispatcher import TELEGRAM_MAX_MESSAGE_LEN, split_telegram_message


def test_render_service_down() -> None:
    text = render_message(
        SERVICE_DOWN,
        {
            "service_name": "Shop",
            "service_url": "https://shop.example",
            "down_time": "2024-01-01T10:05:00",
            "error_message": "timeout: ConnectTimeout",
            "http_code": "N/A",
            "incident_id": "12",
        },
    )
    assert text.startswith("Shop is DOWN")
    assert "https://shop.example" in text
    assert "timeout: ConnectTimeout" in text
    assert "#12" in text


def test_render_recovered_without_optional_fields() -> None:
    text = render_message(
        SERVICE_RECOVERED,
        {"service_name": "Shop", "service_url": "https://shop.example", "recovered_time": "now"},
    )
    assert "back UP" in text
    assert "Incident" not in text
    assert "Response time" not in text


def test_render_ssl_expiring() -> None:
    text = render_message(
        SSL_EXPIRING,
        {
            "service_name": "Shop",
            "domain": "shop.example",
            "days_remaining": "5",
            "threshold_days": "30",
            "expiry_date": "2024-01-06",
        },
    )
    assert "Days remaining: 5 (threshold 30)" in text


def test_unknown_event_falls_back_to_listing() -> None:
    assert render_message("CUSTOM", {"b": "2", "a": "1"}) == "CUSTOM\na: 1\nb: 2"


def test_split_telegram_message_respects_max_len() -> None:
    text = ("line\n" * 2000).strip()
    parts = split_telegram_message(text, max_len=500)
    assert len(parts) > 1
    assert all(0 < len(p) <= 500 for p in parts)

    parts = split_telegram_message("a" * (TELEGRAM_MAX_MESSAGE_LEN + 10))
    assert len(parts) == 2


def test_telegram_notifier_posts_rendered_message() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = TelegramNotifier(client, "123:secret", "42")

    assert notifier.notify("CUSTOM", 1, {"k": "v"}) is True
    assert len(requests) == 1
    assert requests[0].url.path == "/bot123:secret/sendMessage"
    assert json.loads(requests[0].content) == {"chat_id": "42", "text": "CUSTOM\nk: v"}


def test_telegram_notifier_reports_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    assert TelegramNotifier(client, "123:secret", "42").send_message("hello") is False

    rejected = httpx.Client(
        transport=httpx.MockTransport(lambda r: httpx.Response(400, json={"ok": False, "description": "bad"}))
    )
    assert TelegramNotifier(rejected, "123:secret", "42").send_message("hello") is False


def test_composite_isolates_failing_channel() -> None:
    delivered = []

    class Broken:
        def notify(self, event_type, target_id, variables):
            raise RuntimeError("boom")

    class Recording:
        def notify(self, event_type, target_id, variables):
            delivered.append((event_type, target_id))
            return True

    composite = CompositeNotifier([Broken()])
    composite.add(Recording())

    assert composite.notify(SERVICE_DOWN, 3, {"service_name": "x"}) is True
    assert delivered == [(SERVICE_DOWN, 3)]
    assert CompositeNotifier().notify(SERVICE_DOWN, 3, {}) is False


def test_logging_notifier_renders() -> None:
    assert LoggingNotifier().notify("CUSTOM", 1, {"a": "b"}) is True
