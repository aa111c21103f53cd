"""
Single-frame evaluation: recognize text, test it against the pattern, and
decide whether the frame beats the best candidate kept so far.
"""
from ocr_scanner.adapters.camera.base import Frame
from ocr_scanner.adapters.recognizer.base import TextRecognizer
from ocr_scanner.orchestrator.contracts import NO_IMPROVEMENT, FrameVerdict, OwnedImage
from ocr_scanner.orchestrator.matcher import PatternMatcher


def text_length(lines: list[str]) -> int:
    """Length of the recognized text as one string, lines joined by a space."""
    return len(" ".join(lines))


class FrameEvaluator:
    def __init__(self, recognizer: TextRecognizer, matcher: PatternMatcher):
        self.recognizer = recognizer
        self.matcher = matcher

    def evaluate(self, frame: Frame, best_length: int) -> FrameVerdict:
        # Recognizer failures propagate: the scan loop skips the frame.
        lines = [line for line in self.recognizer.recognize(frame.image) if line]
        if not lines:
            return NO_IMPROVEMENT

        matched = self.matcher.find_first_match(lines)
        if matched:
            return FrameVerdict(kind="matched", text=matched)

        length = text_length(lines)
        if length > best_length:
            # The frame buffer is borrowed from the source; keep our own copy.
            return FrameVerdict(kind="candidate", image=OwnedImage(frame.image.copy()), length=length)
        return NO_IMPROVEMENT
