import base64
import binascii
import os
import re

import cv2
import numpy as np
from dotenv import load_dotenv
from fastapi import FastAPI

from ocr_scanner.config import ScanSettings
from ocr_scanner.orchestrator import errors
from ocr_scanner.orchestrator.contracts import ScanReport
from ocr_scanner.orchestrator.matcher import PatternMatcher
from ocr_scanner.orchestrator.state_machine import Scanner
from ocr_scanner.services.models import (
    ScanRequest, ScanResponse, DeviceScanRequest, DeviceScanResponse,
    RecognizeFrameRequest, RecognizeFrameResponse, StatusResponse,
)
from ocr_scanner.services.status_store import StatusStore

load_dotenv(dotenv_path="ocr_scanner/.env", override=False)


def _bytes_to_bgr(image_bytes: bytes):
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def _report_out(report: ScanReport | None) -> ScanResponse | None:
    if report is None:
        return None
    return ScanResponse(
        ok=report.ok, duration_ms=report.duration_ms, outcome=report.outcome,
        matched_text=report.matched_text, stage=report.stage,
        device_outcome=report.device_outcome, error_code=report.error_code,
    )


def _make_source(status):
    # Camera: CAMERA_ADAPTER=cv2 (default) | mock (MOCK_FRAMES_DIR images)
    if os.getenv("CAMERA_ADAPTER", "cv2").lower() == "mock":
        from ocr_scanner.adapters.camera.mock_camera import MockFrameSource
        source = MockFrameSource(status, images_dir=os.getenv("MOCK_FRAMES_DIR"))
    else:
        from ocr_scanner.adapters.camera.cv2_camera import CV2FrameSource
        source = CV2FrameSource(status)
    status.log(f"camera adapter: {type(source).__name__}")
    return source


def _make_recognizer(status):
    # Recognizer: RECOGNIZER_ADAPTER=tesseract (default) | mock
    if os.getenv("RECOGNIZER_ADAPTER", "tesseract").lower() == "mock":
        from ocr_scanner.adapters.recognizer.mock_recognizer import MockRecognizer
        recognizer = MockRecognizer(status)
    else:
        from ocr_scanner.adapters.recognizer.tesseract_recognizer import TesseractRecognizer
        recognizer = TesseractRecognizer(status)
        recognizer.check_ready()
    status.log(f"recognizer adapter: {type(recognizer).__name__}")
    return recognizer


def create_app(settings: ScanSettings | None = None, source=None, recognizer=None,
               status: StatusStore | None = None, transport=None) -> FastAPI:
    status = status or StatusStore()
    settings = settings or ScanSettings.from_env()
    source = source or _make_source(status)
    recognizer = recognizer or _make_recognizer(status)
    status.log(f"cloud escalation: {'configured' if settings.cloud_configured else 'disabled'}")

    app = FastAPI(title="ocr-scanner")
    app.state.status = status
    app.state.settings = settings

    scanner = Scanner(source, recognizer, status, settings=settings, transport=transport)

    @app.get("/status", response_model=StatusResponse)
    def get_status():
        return StatusResponse(
            busy=status.busy,
            last_error=status.last_error,
            last_report=_report_out(status.last_report),
            logs=status.logs,
        )

    @app.get("/health")
    def health():
        checks = {
            "api": True,
            "camera_adapter": type(source).__name__,
            "recognizer_adapter": type(recognizer).__name__,
            "cloud_configured": settings.cloud_configured,
        }
        checks["recognizer_ready"] = recognizer.check_ready() if hasattr(recognizer, "check_ready") else True
        checks["all_ok"] = checks["api"] and checks["recognizer_ready"]
        return checks

    @app.post("/scan", response_model=ScanResponse)
    def scan(req: ScanRequest):
        """Device scan, then cloud escalation if the device pass kept a candidate frame."""
        run_settings = settings.with_overrides(
            pattern=req.pattern or None,
            device_timeout=req.device_timeout,
            poll_interval=req.poll_interval,
            poll_timeout=req.poll_timeout,
        )
        return _report_out(scanner.run_scan(run_settings, allow_cloud=req.allow_cloud))

    @app.post("/scan/device", response_model=DeviceScanResponse)
    def scan_device(req: DeviceScanRequest):
        """On-device pass only; any candidate frame is discarded afterwards."""
        run_settings = settings.with_overrides(pattern=req.pattern or None, device_timeout=req.timeout)
        if not status.try_set_busy():
            return DeviceScanResponse(ok=False, error_code=errors.ERR_BUSY)
        try:
            try:
                scanner.configure(run_settings)
            except re.error as e:
                status.log(f"SCAN_DEVICE bad pattern: {e}")
                return DeviceScanResponse(ok=False, error_code=errors.ERR_BAD_REQUEST)
            with scanner.match_on_device(run_settings.device_timeout) as result:
                return DeviceScanResponse(
                    ok=result.matched_text is not None,
                    duration_ms=result.duration_ms,
                    outcome=result.outcome,
                    matched_text=result.matched_text,
                    candidate_text_length=result.candidate_text_length,
                    frames_evaluated=result.frames_evaluated,
                    frames_dropped=result.frames_dropped,
                    frames_failed=result.frames_failed,
                )
        except Exception as e:
            status.log(f"SCAN_DEVICE error {type(e).__name__}: {e}")
            status.last_error = f"{type(e).__name__}: {e}"
            return DeviceScanResponse(ok=False, error_code=errors.ERR_UNKNOWN)
        finally:
            status.set_busy(False)

    @app.post("/recognize_frame", response_model=RecognizeFrameResponse)
    def recognize_frame(req: RecognizeFrameRequest):
        """Run the local recognizer + matcher on one uploaded image (no camera)."""
        try:
            image = _bytes_to_bgr(base64.b64decode(req.image, validate=True))
        except (binascii.Error, ValueError) as e:
            status.log(f"RECOGNIZE_FRAME decode error: {e}")
            return RecognizeFrameResponse(ok=False, error="base64 decode failed")
        if image is None:
            return RecognizeFrameResponse(ok=False, error="image decode failed")
        try:
            matcher = PatternMatcher(req.pattern or settings.pattern)
        except re.error as e:
            return RecognizeFrameResponse(ok=False, error=f"bad pattern: {e}")

        try:
            lines = recognizer.recognize(image)
        except Exception as e:
            status.log(f"RECOGNIZE_FRAME recognizer error: {e}")
            return RecognizeFrameResponse(ok=False, error=str(e))
        matched = matcher.find_first_match(lines)
        status.log(f"RECOGNIZE_FRAME {len(lines)} line(s) match={matched!r}")
        return RecognizeFrameResponse(ok=True, lines=lines, matched_text=matched)

    return app


app = create_app()
