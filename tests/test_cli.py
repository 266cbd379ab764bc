from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from servicewatch import cli


def test_validate_schedule_prints_next_due_times(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["validate-schedule", "*/15 * * * *", "--count", "3"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0] == "every 15 minutes"
    assert len(lines) == 4
    assert all(line[-2:] in {"00", "15", "30", "45"} for line in lines[1:])


def test_validate_schedule_rejects_bad_expression(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["validate-schedule", "*/0 * * * *"]) == 2
    assert "Invalid schedule" in capsys.readouterr().err


def test_check_exits_non_zero_when_a_target_is_down(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    path = tmp_path / "servicewatch.yaml"
    path.write_text(
        "\n".join(
            [
                "notifications:",
                "  console: false",
                "monitoring:",
                "  max_retries: 1",
                "targets:",
                "  - {id: 1, name: Up, url: 'https://up.example'}",
                "  - {id: 2, name: Down, url: 'https://down.example'}",
            ]
        ),
        encoding="utf-8",
    )
    for name in ("SERVICEWATCH_DB_PATH", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID"):
        monkeypatch.delenv(name, raising=False)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "down.example":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200)

    real_client = httpx.Client
    monkeypatch.setattr(httpx, "Client", lambda: real_client(transport=httpx.MockTransport(handler)))

    assert cli.main(["--config", str(path), "--log-level", "WARNING", "check", "--skip-tls"]) == 1
    out = capsys.readouterr().out
    assert "1/2 targets up" in out
