from __future__ import annotations

import ssl
from datetime import datetime, timedelta, timezone

import pytest

from servicewatch.probes import ProbeRunner, Target, TlsProbe, UptimeProbe
from servicewatch.probes.tls import build_tls_result, format_name, parse_cert_time, tls_host_port_from_url


NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _cert(not_after: datetime, issuer: str = "Test CA", subject: str = "example.com") -> dict:
    return {
        "notBefore": "Jan  1 00:00:00 2023 GMT",
        "notAfter": not_after.strftime("%b %d %H:%M:%S %Y GMT"),
        "issuer": ((("commonName", issuer),),),
        "subject": ((("commonName", subject),),),
        "serialNumber": "0A1B2C",
    }


def test_host_port_from_url() -> None:
    assert tls_host_port_from_url("http://example.com") is None
    assert tls_host_port_from_url("ftp://example.com") is None
    assert tls_host_port_from_url("https://example.com/path") == ("example.com", 443)
    assert tls_host_port_from_url("https://example.com:8443") == ("example.com", 8443)


def test_parse_cert_time_and_names() -> None:
    dt = parse_cert_time("Feb  6 12:00:00 2026 GMT")
    assert dt == datetime(2026, 2, 6, 12, 0, tzinfo=timezone.utc)
    assert parse_cert_time("not a date") is None
    assert parse_cert_time(None) is None

    assert format_name(((("countryName", "US"),), (("commonName", "R3"),))) == "countryName=US, commonName=R3"
    assert format_name(None) is None


def test_certificate_expiring_within_threshold() -> None:
    target = Target(id=1, name="shop", url="https://shop.example")
    result = build_tls_result(target, "shop.example", 443, _cert(NOW + timedelta(days=5, hours=1)), now=NOW)

    assert result.ok
    assert result.days_remaining == 5
    assert result.expiring_within(30)
    assert result.issuer == "commonName=Test CA"
    assert result.serial_number == "0A1B2C"
    assert result.self_signed is False


def test_certificate_outside_threshold_is_not_expiring() -> None:
    target = Target(id=1, name="shop", url="https://shop.example")
    result = build_tls_result(target, "shop.example", 443, _cert(NOW + timedelta(days=45, hours=1)), now=NOW)

    assert result.days_remaining == 45
    assert not result.expiring_within(30)


def test_expired_certificate_is_reported_but_not_expiring() -> None:
    target = Target(id=1, name="old", url="https://old.example")
    result = build_tls_result(target, "old.example", 443, _cert(NOW - timedelta(days=3)), now=NOW)

    assert result.days_remaining < 0
    assert not result.expiring_within(30)


def test_self_signed_and_missing_not_after() -> None:
    target = Target(id=2, name="lab", url="https://lab.example")
    result = build_tls_result(
        target, "lab.example", 443, _cert(NOW + timedelta(days=90), issuer="lab", subject="lab"), now=NOW
    )
    assert result.self_signed is True

    broken = build_tls_result(target, "lab.example", 443, {}, now=NOW)
    assert not broken.ok
    assert broken.error == "missing_notAfter"
    assert broken.days_remaining is None


def test_non_https_target_is_skipped() -> None:
    assert TlsProbe().check(Target(id=3, name="plain", url="http://plain.example")) is None


@pytest.mark.parametrize(
    "exc",
    [
        ConnectionRefusedError("refused"),
        ssl.SSLCertVerificationError("certificate verify failed"),
        TimeoutError("timed out"),
    ],
)
def test_handshake_failure_becomes_error_result(monkeypatch: pytest.MonkeyPatch, exc: Exception) -> None:
    def fake_fetch(self, host: str, port: int):
        raise exc

    monkeypatch.setattr(TlsProbe, "fetch_peer_cert", fake_fetch)
    result = TlsProbe().check(Target(id=4, name="broken", url="https://broken.example:444"))

    assert result is not None
    assert (result.host, result.port) == ("broken.example", 444)
    assert result.error
    assert not result.ok
    assert not result.expiring_within(30)


def test_check_uses_fetched_certificate(monkeypatch: pytest.MonkeyPatch) -> None:
    not_after = datetime.now(timezone.utc) + timedelta(days=10, hours=1)
    monkeypatch.setattr(TlsProbe, "fetch_peer_cert", lambda self, host, port: _cert(not_after))

    result = TlsProbe().check(Target(id=5, name="ok", url="https://ok.example"))
    assert result.ok
    assert result.days_remaining == 10


def test_tls_batch_only_checks_https_targets(monkeypatch: pytest.MonkeyPatch) -> None:
    import httpx

    seen = []

    def fake_fetch(self, host: str, port: int):
        seen.append(host)
        return _cert(datetime.now(timezone.utc) + timedelta(days=100))

    monkeypatch.setattr(TlsProbe, "fetch_peer_cert", fake_fetch)
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    runner = ProbeRunner(UptimeProbe(client), TlsProbe())
    try:
        results = runner.check_tls_batch(
            [
                Target(id=1, name="a", url="https://a.example"),
                Target(id=2, name="b", url="http://b.example"),
            ]
        )
    finally:
        runner.close()

    assert [r.target_id for r in results] == [1]
    assert seen == ["a.example"]
