"""
Mock recognizer: looks the frame up in a script keyed by its first pixel value.

Useful with MockFrameSource, where each scripted frame can be a flat image
filled with a distinct value.
"""
import numpy as np

from ocr_scanner.adapters.recognizer.base import TextRecognizer


def solid_frame(key: int, shape=(48, 64, 3)) -> np.ndarray:
    """A flat BGR frame whose pixels all equal `key` (0-255)."""
    return np.full(shape, key, dtype=np.uint8)


def frame_key(image: np.ndarray) -> int:
    return int(image.reshape(-1)[0])


class MockRecognizer(TextRecognizer):
    def __init__(self, status_store, script: dict[int, list[str] | Exception] | None = None):
        self.status = status_store
        self.script = script or {}
        self.calls = 0

    def recognize(self, image) -> list[str]:
        self.calls += 1
        lines = self.script.get(frame_key(image), [])
        if isinstance(lines, Exception):
            raise lines
        return list(lines)
