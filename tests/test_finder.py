"""Device and profile selection with probed data injected (no camera needed)."""

import pytest

from ocr_scanner.adapters.camera.cv2_camera import CV2FrameSource
from ocr_scanner.adapters.camera.finder import (
    CameraDevice, FilterSet, FrameSourceFinder, SourceProfile, VideoCaptureDeviceFinder, first, first_opened,
)
from ocr_scanner.orchestrator.errors import ScanStateError

DEVICES = [CameraDevice(0, False), CameraDevice(1, True), CameraDevice(2, True)]
PROFILES = [
    SourceProfile(1, 640, 480, 30.0),
    SourceProfile(1, 1280, 720, 15.0),
    SourceProfile(1, 1280, 720, 30.0),
]


@pytest.fixture
def devices(status) -> VideoCaptureDeviceFinder:
    finder = VideoCaptureDeviceFinder(status, probe=lambda: DEVICES)
    finder.initialise(first_opened)
    return finder


def test_first_opened_device(devices) -> None:
    assert devices.has_device
    assert devices.device.index == 1


def test_custom_selector(status) -> None:
    finder = VideoCaptureDeviceFinder(status, probe=lambda: DEVICES)
    finder.initialise(lambda ds: ds[-1])
    assert finder.device.index == 2


def test_no_device_raises(status) -> None:
    finder = VideoCaptureDeviceFinder(status, probe=lambda: [CameraDevice(0, False)])
    finder.initialise(first_opened)
    assert not finder.has_device
    with pytest.raises(ScanStateError):
        _ = finder.device


def test_filter_chain_selects_profile(devices, status) -> None:
    sources = FrameSourceFinder(devices, probe=lambda device: PROFILES)
    filters = FilterSet().append(lambda p: p.width == 1280).append(lambda p: p.fps >= 30)
    sources.initialise(first, filters)

    assert sources.profile == SourceProfile(1, 1280, 720, 30.0)
    source = sources.create_source(status)
    assert isinstance(source, CV2FrameSource)


def test_no_matching_profile(devices) -> None:
    sources = FrameSourceFinder(devices, probe=lambda device: PROFILES)
    sources.initialise(first, FilterSet().append(lambda p: p.width == 1920))
    assert not sources.has_source
    with pytest.raises(ScanStateError):
        _ = sources.profile


def test_without_filters_first_profile(devices) -> None:
    sources = FrameSourceFinder(devices, probe=lambda device: PROFILES)
    sources.initialise()
    assert sources.profile.width == 640
