from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from servicewatch.config import ServiceWatchConfig, load_config
from servicewatch.scheduler import CronSchedule


_ENV_VARS = (
    "SERVICEWATCH_CONFIG",
    "SERVICEWATCH_ENV",
    "LOG_LEVEL",
    "SERVICEWATCH_DB_PATH",
    "SERVICEWATCH_WORKERS",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path: Path) -> None:
    config = load_config(str(tmp_path / "missing.yaml"))

    assert config.targets == []
    assert config.scheduler.worker_pool_size == 5
    assert config.scheduler.tick_interval_seconds == 60.0
    assert config.scheduler.allow_overlap is False
    assert config.monitoring.uptime_schedule == "*/5 * * * *"
    assert config.monitoring.tls_schedule == "0 */6 * * *"
    assert "hourly" in type(config.monitoring).model_fields["tls_schedule"].description
    assert config.monitoring.tls_expiry_threshold_days == 30
    assert config.monitoring.down_status_codes == []
    assert config.database_path == ""


def test_yaml_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "servicewatch.yaml"
    path.write_text(
        "\n".join(
            [
                "environment: staging",
                "targets:",
                "  - id: 1",
                "    name: Shop",
                "    url: https://shop.example",
                "    headers:",
                "      X-Probe: '1'",
                "monitoring:",
                "  uptime_schedule: '*/2 * * * *'",
                "  down_status_codes: [502, 503]",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("SERVICEWATCH_CONFIG", str(path))
    monkeypatch.setenv("SERVICEWATCH_DB_PATH", str(tmp_path / "sw.db"))
    monkeypatch.setenv("SERVICEWATCH_WORKERS", "3")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")

    config = load_config()

    assert config.environment == "staging"
    assert config.targets[0].headers == {"X-Probe": "1"}
    assert config.monitoring.uptime_schedule == "*/2 * * * *"
    assert config.monitoring.down_status_codes == [502, 503]
    assert config.database_path == str(tmp_path / "sw.db")
    assert config.scheduler.worker_pool_size == 3
    assert config.notifications.telegram_bot_token == "123:abc"
    assert config.notifications.telegram_chat_id == "42"


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        ServiceWatchConfig(scheduler={"worker_pool_size": 0})
    with pytest.raises(ValidationError):
        ServiceWatchConfig(targets=[{"name": "missing id", "url": "https://x.example"}])


def test_shipped_example_config_is_valid() -> None:
    path = Path(__file__).resolve().parents[1] / "config" / "servicewatch.yaml"
    config = load_config(str(path))

    assert config.targets
    for target in config.targets:
        assert target.url.startswith(("http://", "https://"))
    CronSchedule(config.monitoring.uptime_schedule)
    CronSchedule(config.monitoring.tls_schedule)
