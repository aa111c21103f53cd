"""
Camera device and stream-profile selection.

OpenCV has no device enumeration API, so devices are discovered by probing
indices, and profiles by requesting common resolutions and reading back what
the driver actually granted.

    devices = VideoCaptureDeviceFinder(status)
    devices.initialise(first_opened)
    sources = FrameSourceFinder(devices)
    sources.initialise(first, FilterSet().append(lambda p: p.width == 1280 and p.fps >= 30))
    source = sources.create_source(status)
"""
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import cv2

from ocr_scanner.adapters.camera.cv2_camera import CV2FrameSource
from ocr_scanner.orchestrator.errors import ScanStateError

COMMON_RESOLUTIONS = [(640, 480), (1280, 720), (1920, 1080)]


@dataclass(frozen=True)
class CameraDevice:
    index: int
    opened: bool


@dataclass(frozen=True)
class SourceProfile:
    index: int
    width: int
    height: int
    fps: float


def probe_devices(max_index: int = 4) -> list[CameraDevice]:
    devices = []
    for index in range(max_index + 1):
        cap = cv2.VideoCapture(index)
        try:
            devices.append(CameraDevice(index=index, opened=cap.isOpened()))
        finally:
            cap.release()
    return devices


def probe_profiles(device: CameraDevice, resolutions=COMMON_RESOLUTIONS) -> list[SourceProfile]:
    profiles: list[SourceProfile] = []
    cap = cv2.VideoCapture(device.index)
    try:
        if not cap.isOpened():
            return profiles
        for width, height in resolutions:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            profile = SourceProfile(
                index=device.index,
                width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                fps=float(cap.get(cv2.CAP_PROP_FPS) or 0.0),
            )
            if profile not in profiles:
                profiles.append(profile)
    finally:
        cap.release()
    return profiles


# ── Selectors ───────────────────────────────────────────────────────────────

def first(items: Iterable):
    return next(iter(items), None)


def first_opened(devices: Iterable[CameraDevice]) -> Optional[CameraDevice]:
    return next((d for d in devices if d.opened), None)


# ── Finders ─────────────────────────────────────────────────────────────────

class VideoCaptureDeviceFinder:
    def __init__(self, status_store, probe: Callable[[], list[CameraDevice]] = probe_devices):
        self.status = status_store
        self._probe = probe
        self._device: Optional[CameraDevice] = None

    def initialise(self, selector: Callable[[list[CameraDevice]], Optional[CameraDevice]] = first_opened):
        devices = self._probe()
        self._device = selector(devices)
        self.status.log(f"device_finder: {len(devices)} probed, selected {self._device}")

    @property
    def has_device(self) -> bool:
        return self._device is not None

    @property
    def device(self) -> CameraDevice:
        if self._device is None:
            raise ScanStateError("no capture device selected")
        return self._device


class FilterSet:
    """Chain of profile predicates; a profile passes only if all accept it."""

    def __init__(self):
        self._predicates: list[Callable[[SourceProfile], bool]] = []

    def append(self, *predicates: Callable[[SourceProfile], bool]) -> "FilterSet":
        self._predicates.extend(predicates)
        return self

    def all(self, profile: SourceProfile) -> bool:
        return all(p(profile) for p in self._predicates)


class FrameSourceFinder:
    def __init__(self, device_finder: VideoCaptureDeviceFinder,
                 probe: Callable[[CameraDevice], list[SourceProfile]] = probe_profiles):
        self.device_finder = device_finder
        self._probe = probe
        self._profile: Optional[SourceProfile] = None

    def initialise(self, selector: Callable[[list[SourceProfile]], Optional[SourceProfile]] = first,
                   filters: FilterSet | None = None):
        profiles = self._probe(self.device_finder.device)
        matching = [p for p in profiles if filters is None or filters.all(p)]
        self._profile = selector(matching)
        self.device_finder.status.log(
            f"source_finder: {len(matching)}/{len(profiles)} profiles match, selected {self._profile}"
        )

    @property
    def has_source(self) -> bool:
        return self._profile is not None

    @property
    def profile(self) -> SourceProfile:
        if self._profile is None:
            raise ScanStateError("no frame source profile selected")
        return self._profile

    def create_source(self, status_store) -> CV2FrameSource:
        p = self.profile
        return CV2FrameSource(status_store, index=p.index, width=p.width, height=p.height, fps=p.fps or None)
