"""ScanSettings defaults, env loading and validation."""

import pytest

from ocr_scanner.config import ScanSettings
from ocr_scanner.orchestrator.matcher import IP_ADDRESS_PATTERN


def test_from_env_defaults(monkeypatch) -> None:
    for name in ("OCR_PATTERN", "DEVICE_SCAN_TIMEOUT", "CLOUD_OCR_ENDPOINT", "CLOUD_OCR_KEY",
                 "CLOUD_POLL_INTERVAL", "CLOUD_POLL_TIMEOUT", "CLOUD_REQUEST_TIMEOUT", "JPEG_QUALITY"):
        monkeypatch.delenv(name, raising=False)
    settings = ScanSettings.from_env()
    assert settings.pattern == IP_ADDRESS_PATTERN
    assert settings.device_timeout == 10.0
    assert settings.poll_interval == 5.0
    assert settings.poll_timeout == 30.0
    assert not settings.cloud_configured


def test_from_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("OCR_PATTERN", r"\d{4}")
    monkeypatch.setenv("DEVICE_SCAN_TIMEOUT", "2.5")
    monkeypatch.setenv("CLOUD_OCR_ENDPOINT", "https://cloud.test/recognize")
    monkeypatch.setenv("CLOUD_OCR_KEY", "k")
    settings = ScanSettings.from_env()
    assert settings.pattern == r"\d{4}"
    assert settings.device_timeout == 2.5
    assert settings.cloud_configured


@pytest.mark.parametrize("kw", [
    {"device_timeout": 0},
    {"poll_timeout": -1},
    {"request_timeout": 0},
    {"poll_interval": -0.1},
    {"jpeg_quality": 0},
])
def test_invalid_values_rejected(kw) -> None:
    with pytest.raises(ValueError):
        ScanSettings(**kw)


def test_with_overrides_ignores_none() -> None:
    settings = ScanSettings(device_timeout=4.0)
    updated = settings.with_overrides(device_timeout=None, poll_timeout=12.0)
    assert updated.device_timeout == 4.0
    assert updated.poll_timeout == 12.0
    assert settings.poll_timeout == 30.0
