"""
One-shot scan from the local camera: on-device OCR first, cloud if needed.

Usage:
  python ocr_scanner/scripts/scan_once.py --key <subscription key>
  python ocr_scanner/scripts/scan_once.py --width 1280 --min-fps 30 --pattern '\\d{3}-\\d{4}'

Picks the first camera that opens and the first profile passing the
width/fps filters, scans for --device-timeout seconds, and escalates the best
frame to the cloud endpoint when the device pass found text but no match.
"""
import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).parents[2]
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

from ocr_scanner.adapters.camera.finder import (
    FilterSet, FrameSourceFinder, VideoCaptureDeviceFinder, first, first_opened,
)
from ocr_scanner.adapters.recognizer.tesseract_recognizer import TesseractRecognizer
from ocr_scanner.config import DEFAULT_CLOUD_ENDPOINT, ScanSettings
from ocr_scanner.orchestrator.contracts import Outcome
from ocr_scanner.orchestrator.state_machine import Scanner
from ocr_scanner.services.status_store import StatusStore


def parse_args(defaults: ScanSettings):
    p = argparse.ArgumentParser(description="Find text matching a pattern with the local camera")
    p.add_argument("--pattern", default=defaults.pattern, help="regex to look for (default: IPv4 address)")
    p.add_argument("--device-timeout", type=float, default=defaults.device_timeout)
    p.add_argument("--endpoint", default=defaults.cloud_endpoint or DEFAULT_CLOUD_ENDPOINT)
    p.add_argument("--key", default=defaults.cloud_api_key, help="cloud subscription key (no cloud call if empty)")
    p.add_argument("--poll-interval", type=float, default=defaults.poll_interval)
    p.add_argument("--poll-timeout", type=float, default=defaults.poll_timeout)
    p.add_argument("--request-timeout", type=float, default=defaults.request_timeout)
    p.add_argument("--jpeg-quality", type=int, default=defaults.jpeg_quality)
    p.add_argument("--width", type=int, default=None, help="required frame width")
    p.add_argument("--min-fps", type=float, default=0.0)
    p.add_argument("--verbose", action="store_true", help="print the scanner log at the end")
    return p.parse_args()


def main():
    load_dotenv(dotenv_path=ROOT / "ocr_scanner" / ".env", override=False)
    defaults = ScanSettings.from_env()
    args = parse_args(defaults)
    settings = defaults.with_overrides(
        pattern=args.pattern, device_timeout=args.device_timeout,
        cloud_endpoint=args.endpoint, cloud_api_key=args.key,
        poll_interval=args.poll_interval, poll_timeout=args.poll_timeout,
        request_timeout=args.request_timeout, jpeg_quality=args.jpeg_quality,
    )
    status = StatusStore()

    devices = VideoCaptureDeviceFinder(status)
    devices.initialise(first_opened)
    if not devices.has_device:
        print("No camera found")
        return 1

    filters = FilterSet().append(lambda p: p.fps >= args.min_fps)
    if args.width:
        filters.append(lambda p: p.width == args.width)
    sources = FrameSourceFinder(devices)
    sources.initialise(first, filters)
    if not sources.has_source:
        print("No camera profile matches the filters")
        return 1

    scanner = Scanner(sources.create_source(status), TesseractRecognizer(status), status, settings=settings)
    print("Matching with the local device camera...")
    code = 1
    with scanner.match_on_device(settings.device_timeout) as device_result:
        if device_result.outcome is Outcome.MATCHED:
            print(f"Found result {device_result.matched_text}")
            code = 0
        elif device_result.outcome is Outcome.TIMED_OUT_WITH_CANDIDATE and settings.cloud_configured:
            print("Calling cloud...")
            result = scanner.match_on_cloud(device_result, settings.cloud_endpoint, settings.cloud_api_key,
                                            settings.poll_interval, settings.poll_timeout)
            if result.outcome is Outcome.MATCHED:
                print(f"Found result {result.matched_text}")
                code = 0
            else:
                print(f"Didn't work {result.outcome.value}")
        else:
            print(f"Result returned {device_result.outcome.value}")

    if args.verbose:
        print("\n".join(status.logs))
    return code


if __name__ == "__main__":
    sys.exit(main())
