import re
import time

import httpx

from ocr_scanner.adapters.camera.base import FrameSource
from ocr_scanner.adapters.recognizer.base import TextRecognizer
from ocr_scanner.config import ScanSettings
from ocr_scanner.orchestrator import errors
from ocr_scanner.orchestrator.cloud import CloudPoller, CloudSubmitter
from ocr_scanner.orchestrator.contracts import DeviceScanResult, Outcome, ScanReport, ScanResult
from ocr_scanner.orchestrator.evaluator import FrameEvaluator
from ocr_scanner.orchestrator.matcher import PatternMatcher
from ocr_scanner.orchestrator.scan_loop import OnDeviceScanLoop


class Scanner:
    """Device-first text scanner with optional cloud escalation.

    Device pass: scan live frames until the pattern matches or the timeout
    elapses, keeping the frame with the most recognized text.
    Cloud pass: only after a device timeout that kept such a frame; submit
    it to the remote service and poll for the result.
    """

    def __init__(self, source: FrameSource, recognizer: TextRecognizer, status_store,
                 settings: ScanSettings | None = None, transport: httpx.BaseTransport | None = None):
        self.source = source
        self.recognizer = recognizer
        self.status = status_store
        self._transport = transport
        self.configure(settings or ScanSettings())

    def configure(self, settings: ScanSettings):
        """Rebuild the matcher and cloud clients from settings. Raises re.error on a bad pattern."""
        matcher = PatternMatcher(settings.pattern)
        self.matcher = matcher
        self.submitter = CloudSubmitter(self.status, transport=self._transport,
                                        timeout=settings.request_timeout, jpeg_quality=settings.jpeg_quality)
        self.poller = CloudPoller(matcher, self.status, transport=self._transport,
                                  request_timeout=settings.request_timeout)

    def match_on_device(self, timeout: float) -> DeviceScanResult:
        """The caller owns the returned result and must release() it (or use it as a context manager)."""
        loop = OnDeviceScanLoop(self.source, FrameEvaluator(self.recognizer, self.matcher), self.status)
        return loop.run(timeout)

    def match_on_cloud(self, device_result: DeviceScanResult, endpoint: str, api_key: str,
                       poll_interval: float, poll_timeout: float) -> ScanResult:
        if device_result.outcome is not Outcome.TIMED_OUT_WITH_CANDIDATE:
            raise errors.ScanStateError(
                f"cloud escalation needs a device timeout with a candidate, got {device_result.outcome.value}"
            )
        t0 = time.time()
        image = device_result.take_candidate()
        self.status.log(f"cloud: escalating candidate len={device_result.candidate_text_length}")
        location = self.submitter.submit(image, endpoint, api_key)
        if not location:
            return ScanResult(outcome=Outcome.REMOTE_SUBMIT_FAILED, duration_ms=int((time.time() - t0) * 1000))
        result = self.poller.poll(location, api_key, poll_interval, poll_timeout)
        result.duration_ms = int((time.time() - t0) * 1000)
        return result

    def run_scan(self, settings: ScanSettings, allow_cloud: bool = True) -> ScanReport:
        """Full flow: device scan, then cloud escalation when it is possible and allowed."""
        if not self.status.try_set_busy():
            return ScanReport(ok=False, duration_ms=0, error_code=errors.ERR_BUSY)

        t0 = time.time()
        device_outcome = None
        try:
            self.configure(settings)
            self.status.log(f"scan: start pattern={self.matcher.pattern.pattern!r} cloud={allow_cloud}")
            with self.match_on_device(settings.device_timeout) as device_result:
                device_outcome = device_result.outcome
                if device_outcome is Outcome.MATCHED:
                    report = self._report(t0, device_result, "device", device_outcome)
                elif (device_outcome is Outcome.TIMED_OUT_WITH_CANDIDATE
                      and allow_cloud and settings.cloud_configured):
                    cloud_result = self.match_on_cloud(
                        device_result, settings.cloud_endpoint, settings.cloud_api_key,
                        settings.poll_interval, settings.poll_timeout,
                    )
                    report = self._report(t0, cloud_result, "cloud", device_outcome)
                else:
                    if device_outcome is Outcome.TIMED_OUT_WITH_CANDIDATE:
                        self.status.log("scan: candidate kept but cloud escalation disabled/unconfigured")
                    report = self._report(t0, device_result, "device", device_outcome)
            self.status.last_report = report
            self.status.log(f"scan: done stage={report.stage} outcome={report.outcome.value} dt={report.duration_ms}ms")
            return report

        except errors.ScanStateError:
            raise
        except re.error as e:
            self.status.log(f"scan: bad pattern {settings.pattern!r}: {e}")
            return ScanReport(ok=False, duration_ms=0, error_code=errors.ERR_BAD_REQUEST)
        except TimeoutError:
            dt = int((time.time() - t0) * 1000)
            self.status.log("scan: error timeout")
            self.status.last_error = errors.ERR_TIMEOUT
            return ScanReport(ok=False, duration_ms=dt, device_outcome=device_outcome, error_code=errors.ERR_TIMEOUT)
        except Exception as e:
            dt = int((time.time() - t0) * 1000)
            self.status.log(f"scan: error {type(e).__name__}: {e}")
            self.status.last_error = f"{type(e).__name__}: {e}"
            return ScanReport(ok=False, duration_ms=dt, device_outcome=device_outcome, error_code=errors.ERR_UNKNOWN)
        finally:
            self.status.set_busy(False)

    @staticmethod
    def _report(t0: float, result: ScanResult, stage, device_outcome: Outcome) -> ScanReport:
        return ScanReport(
            ok=result.outcome is Outcome.MATCHED,
            duration_ms=int((time.time() - t0) * 1000),
            outcome=result.outcome,
            matched_text=result.matched_text,
            stage=stage,
            device_outcome=device_outcome,
        )
