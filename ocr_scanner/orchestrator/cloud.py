"""
Remote (cloud) text recognition: submit one frame, then poll the operation.

Protocol (Azure Computer Vision recognizeText / read style):
  Submit:  POST <endpoint>  body=<jpeg bytes>  Ocp-Apim-Subscription-Key: <key>
           → 202 + Operation-Location: <poll uri>
  Poll:    GET <poll uri>   Ocp-Apim-Subscription-Key: <key>
           → {"status": "NotStarted|Running|Succeeded|Failed",
              "recognitionResult": {"lines": [{"text": "..."}]}}
           (newer API versions nest lines under analyzeResult.readResults[])

Submission is a single attempt. Polling treats HTTP-level errors, 429
included, as "still running" and keeps a fixed interval until the overall
deadline.
"""
import time
from typing import Optional

import cv2
import httpx

from ocr_scanner.orchestrator.contracts import OwnedImage, Outcome, PollStatus, ScanResult
from ocr_scanner.orchestrator.matcher import PatternMatcher

API_KEY_HEADER = "Ocp-Apim-Subscription-Key"
OPERATION_LOCATION_HEADER = "Operation-Location"

JSON_STATUS = "status"
JSON_RECOGNITION_RESULT = "recognitionResult"
JSON_ANALYZE_RESULT = "analyzeResult"
JSON_READ_RESULTS = "readResults"
JSON_LINES = "lines"
JSON_TEXT = "text"


def encode_jpeg(image, quality: int = 85) -> bytes | None:
    ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        return None
    return bytes(buf)


def extract_lines(body: dict) -> list[str]:
    """Text of every recognized line in a succeeded poll response, in order."""
    line_objs = []
    recognition = body.get(JSON_RECOGNITION_RESULT)
    if isinstance(recognition, dict):
        line_objs.extend(recognition.get(JSON_LINES) or [])
    analyze = body.get(JSON_ANALYZE_RESULT)
    if isinstance(analyze, dict):
        for page in analyze.get(JSON_READ_RESULTS) or []:
            if isinstance(page, dict):
                line_objs.extend(page.get(JSON_LINES) or [])
    return [
        obj[JSON_TEXT] for obj in line_objs
        if isinstance(obj, dict) and isinstance(obj.get(JSON_TEXT), str)
    ]


class CloudSubmitter:
    def __init__(self, status_store, transport: httpx.BaseTransport | None = None,
                 timeout: float = 10.0, jpeg_quality: int = 85):
        self.status = status_store
        self._transport = transport
        self.timeout = timeout
        self.jpeg_quality = jpeg_quality

    def submit(self, image: OwnedImage, endpoint: str, api_key: str) -> Optional[str]:
        """Send the frame once and return the poll location, or None on any failure.

        Takes ownership of `image` and releases it once encoded.
        """
        try:
            body = encode_jpeg(image.array, self.jpeg_quality)
        finally:
            image.release()
        if body is None:
            self.status.log("cloud_submit: jpeg encoding failed")
            return None

        headers = {API_KEY_HEADER: api_key, "Content-Type": "application/octet-stream"}
        self.status.log(f"cloud_submit: POST {len(body)} bytes")
        try:
            with httpx.Client(transport=self._transport, timeout=self.timeout) as client:
                resp = client.post(endpoint, content=body, headers=headers)
        except httpx.HTTPError as e:
            self.status.log(f"cloud_submit: request error {type(e).__name__}: {e}")
            return None

        if not resp.is_success:
            self.status.log(f"cloud_submit: HTTP {resp.status_code} — {resp.text[:300]}")
            return None
        location = resp.headers.get(OPERATION_LOCATION_HEADER)
        if not location:
            self.status.log(f"cloud_submit: HTTP {resp.status_code} without {OPERATION_LOCATION_HEADER}")
            return None
        self.status.log(f"cloud_submit: accepted → {location}")
        return location


class CloudPoller:
    """Polling → Succeeded | Failed | TimedOut."""

    def __init__(self, matcher: PatternMatcher, status_store,
                 transport: httpx.BaseTransport | None = None, request_timeout: float = 10.0):
        self.matcher = matcher
        self.status = status_store
        self._transport = transport
        self.request_timeout = request_timeout
        self.attempts = 0

    def poll(self, location: str, api_key: str, interval: float, timeout: float) -> ScanResult:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if interval < 0:
            raise ValueError(f"interval must not be negative, got {interval}")

        t0 = time.time()
        deadline = time.monotonic() + timeout
        result = ScanResult(outcome=Outcome.REMOTE_POLL_TIMED_OUT)
        self.attempts = 0

        with httpx.Client(transport=self._transport, headers={API_KEY_HEADER: api_key}) as client:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.attempts += 1
                status, body = self._poll_once(client, location, min(self.request_timeout, remaining))

                if status is PollStatus.SUCCEEDED:
                    lines = extract_lines(body)
                    text = self.matcher.find_first_match(lines)
                    result.matched_text = text
                    result.outcome = Outcome.MATCHED if text else Outcome.REMOTE_NO_MATCH
                    self.status.log(f"cloud_poll: succeeded, {len(lines)} line(s), match={text!r}")
                    break
                if status is PollStatus.FAILED:
                    result.outcome = Outcome.REMOTE_SUBMIT_FAILED
                    self.status.log("cloud_poll: remote reported Failed")
                    break

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                time.sleep(min(interval, remaining))

        if result.outcome is Outcome.REMOTE_POLL_TIMED_OUT:
            self.status.log(f"cloud_poll: gave up after {self.attempts} attempt(s)")
        result.duration_ms = int((time.time() - t0) * 1000)
        return result

    def _poll_once(self, client: httpx.Client, location: str, timeout: float) -> tuple[PollStatus, dict]:
        try:
            resp = client.get(location, timeout=timeout)
        except httpx.HTTPError as e:
            self.status.log(f"cloud_poll: request error {type(e).__name__}: {e}")
            return PollStatus.RUNNING, {}
        if not resp.is_success:
            # rate limiting (429) included: keep the fixed interval
            self.status.log(f"cloud_poll: HTTP {resp.status_code} — {resp.text[:300]}")
            return PollStatus.RUNNING, {}
        try:
            body = resp.json()
        except ValueError:
            self.status.log("cloud_poll: response is not JSON")
            return PollStatus.RUNNING, {}
        if not isinstance(body, dict):
            return PollStatus.RUNNING, {}
        status = PollStatus.parse(body.get(JSON_STATUS))
        self.status.log(f"cloud_poll: attempt {self.attempts} status={status.value}")
        return status, body
