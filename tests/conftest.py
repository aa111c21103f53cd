"""Shared fixtures: scripted frame sources, recognizers, and a fake cloud service."""

import os
import threading
import time

# Keep the module-level API app away from real hardware and tesseract.
os.environ.setdefault("CAMERA_ADAPTER", "mock")
os.environ.setdefault("RECOGNIZER_ADAPTER", "mock")

import httpx
import pytest

from ocr_scanner.adapters.camera.mock_camera import MockFrameSource
from ocr_scanner.adapters.recognizer.base import TextRecognizer
from ocr_scanner.adapters.recognizer.mock_recognizer import MockRecognizer, solid_frame
from ocr_scanner.services.status_store import StatusStore

SUBMIT_URL = "https://cloud.test/vision/v2.0/recognizeText"
POLL_URL = "https://cloud.test/operations/op-1"


@pytest.fixture
def status() -> StatusStore:
    return StatusStore()


@pytest.fixture
def make_source(status):
    """Build a MockFrameSource over solid frames with the given keys; stopped on teardown."""
    created = []

    def _make(keys, interval: float = 0.01, repeat: bool = True) -> MockFrameSource:
        source = MockFrameSource(status, frames=[solid_frame(k) for k in keys],
                                 interval=interval, repeat=repeat)
        created.append(source)
        return source

    yield _make
    for source in created:
        source.stop()


@pytest.fixture
def make_recognizer(status):
    def _make(script) -> MockRecognizer:
        return MockRecognizer(status, script)

    return _make


class SlowRecognizer(TextRecognizer):
    """Sleeps on every call and records whether two calls ever overlapped."""

    def __init__(self, delay: float, lines=None):
        self.delay = delay
        self.lines = lines or ["some text without an address"]
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._lock = threading.Lock()

    def recognize(self, image):
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
            reentered = self.active > 1
        try:
            assert not reentered, "recognizer re-entered"
            time.sleep(self.delay)
            return list(self.lines)
        finally:
            with self._lock:
                self.active -= 1


class FakeCloud:
    """httpx handler that scripts the remote service.

    `statuses` is consumed one entry per poll; the last entry repeats.
    """

    def __init__(self, statuses=("Succeeded",), lines=(), submit_status: int = 202,
                 poll_errors: dict | None = None, location: str | None = POLL_URL):
        self.statuses = list(statuses)
        self.lines = list(lines)
        self.submit_status = submit_status
        self.poll_errors = poll_errors or {}
        self.location = location
        self.submits: list[httpx.Request] = []
        self.polls: list[httpx.Request] = []
        self.poll_times: list[float] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.submits.append(request)
            headers = {"Operation-Location": self.location} if self.location else {}
            return httpx.Response(self.submit_status, headers=headers)

        self.polls.append(request)
        self.poll_times.append(time.monotonic())
        n = len(self.polls)
        if n in self.poll_errors:
            return httpx.Response(self.poll_errors[n], text="error")
        status = self.statuses[min(n, len(self.statuses)) - 1]
        body = {"status": status}
        if status == "Succeeded":
            body["recognitionResult"] = {"lines": [{"text": t} for t in self.lines]}
        return httpx.Response(200, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)
