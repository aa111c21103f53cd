"""
OpenCV webcam frame source.
CAMERA_INDEX env var (default 0) selects the webcam device.

A reader thread pulls frames as fast as the device delivers them, keeps the
latest one, and notifies subscribers on every arrival. Delivery is never
throttled; slow subscribers are expected to drop notifications.
"""
import os
import threading
import time
from typing import Optional

import cv2

from ocr_scanner.adapters.camera.base import Frame, FrameSource

_READ_RETRY_S = 0.05
_MAX_READ_FAILURES = 50
_STOP_JOIN_S = 2.0


class CV2FrameSource(FrameSource):
    def __init__(self, status_store, index: int | None = None,
                 width: int | None = None, height: int | None = None, fps: float | None = None):
        super().__init__()
        self.status = status_store
        self._index = index if index is not None else int(os.getenv("CAMERA_INDEX", "0"))
        self._width = width
        self._height = height
        self._fps = fps
        self._cap = None
        self._latest: Optional[Frame] = None
        self._latest_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._release_on_exit = False
        self._reader_running = False
        self._handoff = threading.Lock()

    def _open(self) -> bool:
        if self._cap is None or not self._cap.isOpened():
            self._cap = cv2.VideoCapture(self._index)
            if not self._cap.isOpened():
                self.status.log(f"cv2_camera: failed to open device {self._index}")
                return False
            if self._width:
                self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
            if self._height:
                self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
            if self._fps:
                self._cap.set(cv2.CAP_PROP_FPS, self._fps)
        return True

    def start(self):
        if self._reader_running:
            if self._stop.is_set():
                raise RuntimeError(f"camera device {self._index} reader has not exited yet")
            return
        if not self._open():
            raise RuntimeError(f"camera device {self._index} could not be opened")
        self._stop.clear()
        with self._latest_lock:
            self._latest = None
        self._release_on_exit = False
        self._reader_running = True
        self._thread = threading.Thread(target=self._read_loop, daemon=True, name="cv2-frames")
        self._thread.start()
        self.status.log(f"cv2_camera: started device {self._index}")

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=_STOP_JOIN_S)
            with self._handoff:
                # still inside cap.read(); the reader releases the device on exit
                self._release_on_exit = self._reader_running
            if self._release_on_exit:
                self.status.log(f"cv2_camera: reader for device {self._index} still blocked, release deferred")
                return
            self._thread = None
        self.release()
        self.status.log(f"cv2_camera: stopped device {self._index}")

    def try_acquire_latest_frame(self) -> Optional[Frame]:
        with self._latest_lock:
            return self._latest

    def _read_loop(self):
        try:
            self._read_frames()
        finally:
            with self._handoff:
                self._reader_running = False
                release_now = self._release_on_exit
            if release_now:
                self.release()
                self.status.log(f"cv2_camera: stopped device {self._index}")

    def _read_frames(self):
        index = 0
        failures = 0
        while not self._stop.is_set():
            ret, image = self._cap.read()
            if not ret or image is None:
                failures += 1
                if failures >= _MAX_READ_FAILURES:
                    self.status.log(f"cv2_camera: {failures} consecutive read failures, giving up")
                    return
                time.sleep(_READ_RETRY_S)
                continue
            failures = 0
            with self._latest_lock:
                self._latest = Frame(image=image, index=index, timestamp=time.monotonic())
            index += 1
            try:
                self._notify()
            except Exception as e:
                self.status.log(f"cv2_camera: frame handler error {type(e).__name__}: {e}")

    def release(self):
        if self._cap and self._cap.isOpened():
            self._cap.release()
        self._cap = None
