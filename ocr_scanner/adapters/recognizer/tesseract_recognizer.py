"""
Tesseract text recognizer (local, offline).
Requires the tesseract binary on PATH; TESSERACT_LANG selects the language (default eng),
TESSERACT_TIMEOUT caps one call in seconds (default 5). A call that runs over is
killed and reported as a failed frame.

Pipeline:
  1. BGR → grayscale
  2. Upscale small frames so glyphs are tall enough for tesseract
  3. Otsu threshold to flatten uneven lighting
  4. pytesseract.image_to_string, split into non-empty lines
"""
import os

import cv2
import pytesseract

from ocr_scanner.adapters.recognizer.base import TextRecognizer
from ocr_scanner.orchestrator.errors import RecognizerError

# Frames narrower than this are upscaled before OCR
MIN_WIDTH = 960
# --psm 6: assume a single uniform block of text
DEFAULT_CONFIG = "--psm 6"
DEFAULT_TIMEOUT_S = 5.0


def _preprocess(bgr_img):
    gray = cv2.cvtColor(bgr_img, cv2.COLOR_BGR2GRAY)
    h, w = gray.shape[:2]
    if 0 < w < MIN_WIDTH:
        scale = MIN_WIDTH / w
        gray = cv2.resize(gray, (MIN_WIDTH, int(h * scale)), interpolation=cv2.INTER_CUBIC)
    _, thresh = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return thresh


class TesseractRecognizer(TextRecognizer):
    def __init__(self, status_store, lang: str | None = None, config: str = DEFAULT_CONFIG,
                 timeout: float | None = None):
        self.status = status_store
        self.lang = lang or os.getenv("TESSERACT_LANG", "eng")
        self.config = config
        self.timeout = timeout if timeout is not None else float(os.getenv("TESSERACT_TIMEOUT", DEFAULT_TIMEOUT_S))
        if self.timeout <= 0:
            raise ValueError(f"tesseract timeout must be positive, got {self.timeout}")

    def recognize(self, image) -> list[str]:
        try:
            text = pytesseract.image_to_string(
                _preprocess(image), lang=self.lang, config=self.config, timeout=self.timeout
            )
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            raise RecognizerError(f"tesseract failed: {e}") from e
        return [line.strip() for line in text.splitlines() if line.strip()]

    def check_ready(self) -> bool:
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError:
            self.status.log("tesseract: binary not found on PATH")
            return False
        self.status.log(f"tesseract: ready (version={version}, lang={self.lang})")
        return True
