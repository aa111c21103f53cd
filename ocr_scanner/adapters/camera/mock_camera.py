"""Mock frame source: replays a fixed list of images (or every image in a directory)."""
import threading
import time
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from ocr_scanner.adapters.camera.base import Frame, FrameSource


class MockFrameSource(FrameSource):
    def __init__(self, status_store, frames: list[np.ndarray] | None = None,
                 images_dir: str | Path | None = None, interval: float = 0.02, repeat: bool = True):
        super().__init__()
        self.status = status_store
        self.frames = list(frames) if frames is not None else self._load_dir(images_dir)
        self.interval = interval
        self.repeat = repeat
        self.running = False
        self.frames_delivered = 0
        self._latest: Optional[Frame] = None
        self._latest_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _load_dir(self, images_dir) -> list[np.ndarray]:
        if images_dir is None:
            return []
        paths = sorted(p for p in Path(images_dir).iterdir() if p.suffix.lower() in (".jpg", ".jpeg", ".png"))
        frames = [img for img in (cv2.imread(str(p), cv2.IMREAD_COLOR) for p in paths) if img is not None]
        if not frames:
            self.status.log(f"mock_camera: no images found in {images_dir}")
        return frames

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self.running = True
        self._thread = threading.Thread(target=self._produce, daemon=True, name="mock-frames")
        self._thread.start()
        self.status.log(f"mock_camera: serving {len(self.frames)} frame(s)")

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self.running = False

    def try_acquire_latest_frame(self) -> Optional[Frame]:
        with self._latest_lock:
            return self._latest

    def _produce(self):
        index = 0
        while not self._stop.is_set() and self.frames:
            if index >= len(self.frames) and not self.repeat:
                return
            image = self.frames[index % len(self.frames)]
            with self._latest_lock:
                self._latest = Frame(image=image, index=index, timestamp=time.monotonic())
            index += 1
            self.frames_delivered += 1
            try:
                self._notify()
            except Exception as e:
                self.status.log(f"mock_camera: frame handler error {type(e).__name__}: {e}")
            self._stop.wait(self.interval)
