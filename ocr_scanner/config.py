"""
Scan configuration, read from environment variables (ocr_scanner/.env is
loaded by the API module):

  OCR_PATTERN            regex to find (default: IPv4 address)
  DEVICE_SCAN_TIMEOUT    seconds spent on on-device OCR (default 10)
  CLOUD_OCR_ENDPOINT     remote recognizeText/read URL (escalation disabled if empty)
  CLOUD_OCR_KEY          subscription key sent with every remote request
  CLOUD_POLL_INTERVAL    seconds between poll requests (default 5)
  CLOUD_POLL_TIMEOUT     overall poll budget in seconds (default 30)
  CLOUD_REQUEST_TIMEOUT  per-request timeout in seconds (default 10)
  JPEG_QUALITY           quality of the submitted frame (default 85)
"""
import os
from dataclasses import dataclass, replace

from ocr_scanner.orchestrator.matcher import IP_ADDRESS_PATTERN

DEFAULT_CLOUD_ENDPOINT = "https://westeurope.api.cognitive.microsoft.com/vision/v2.0/recognizeText?mode=Printed"


@dataclass(frozen=True)
class ScanSettings:
    pattern: str = IP_ADDRESS_PATTERN
    device_timeout: float = 10.0
    cloud_endpoint: str = ""
    cloud_api_key: str = ""
    poll_interval: float = 5.0
    poll_timeout: float = 30.0
    request_timeout: float = 10.0
    jpeg_quality: int = 85

    def __post_init__(self):
        for name in ("device_timeout", "poll_timeout", "request_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.poll_interval < 0:
            raise ValueError(f"poll_interval must not be negative, got {self.poll_interval}")
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be within 1-100, got {self.jpeg_quality}")

    @property
    def cloud_configured(self) -> bool:
        return bool(self.cloud_endpoint and self.cloud_api_key)

    def with_overrides(self, **kw) -> "ScanSettings":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in kw.items() if v is not None})

    @classmethod
    def from_env(cls) -> "ScanSettings":
        return cls(
            pattern=os.getenv("OCR_PATTERN") or IP_ADDRESS_PATTERN,
            device_timeout=float(os.getenv("DEVICE_SCAN_TIMEOUT", "10")),
            cloud_endpoint=os.getenv("CLOUD_OCR_ENDPOINT", ""),
            cloud_api_key=os.getenv("CLOUD_OCR_KEY", ""),
            poll_interval=float(os.getenv("CLOUD_POLL_INTERVAL", "5")),
            poll_timeout=float(os.getenv("CLOUD_POLL_TIMEOUT", "30")),
            request_timeout=float(os.getenv("CLOUD_REQUEST_TIMEOUT", "10")),
            jpeg_quality=int(os.getenv("JPEG_QUALITY", "85")),
        )
