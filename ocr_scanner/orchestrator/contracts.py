from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

import numpy as np

from ocr_scanner.orchestrator.errors import ScanStateError


class Outcome(str, Enum):
    MATCHED = "matched"
    TIMED_OUT_WITH_CANDIDATE = "timed_out_with_candidate"
    TIMED_OUT_NO_CANDIDATE = "timed_out_no_candidate"
    REMOTE_SUBMIT_FAILED = "remote_submit_failed"
    REMOTE_POLL_TIMED_OUT = "remote_poll_timed_out"
    REMOTE_NO_MATCH = "remote_no_match"


class PollStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @classmethod
    def parse(cls, raw) -> "PollStatus":
        """Map a remote status string to a PollStatus.

        Case and spacing are ignored ("Not started", "notStarted" and
        "succeeded" all parse). Unknown values keep the poller running.
        """
        if not isinstance(raw, str):
            return cls.RUNNING
        return _POLL_STATUS_LOOKUP.get(raw.replace(" ", "").lower(), cls.RUNNING)


_POLL_STATUS_LOOKUP = {s.value.lower(): s for s in PollStatus}


class OwnedImage:
    """A frame image with a single owner and an explicit release step."""

    def __init__(self, array: np.ndarray):
        self._array: Optional[np.ndarray] = array

    @property
    def array(self) -> np.ndarray:
        if self._array is None:
            raise ScanStateError("image already released")
        return self._array

    @property
    def released(self) -> bool:
        return self._array is None

    def release(self):
        self._array = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()
        return False


@dataclass
class ScanResult:
    outcome: Outcome
    matched_text: Optional[str] = None
    duration_ms: int = 0


@dataclass
class DeviceScanResult(ScanResult):
    outcome: Outcome = Outcome.TIMED_OUT_NO_CANDIDATE
    candidate: Optional[OwnedImage] = None
    candidate_text_length: int = 0
    frames_evaluated: int = 0
    frames_dropped: int = 0
    frames_failed: int = 0

    def offer_candidate(self, image: OwnedImage, length: int):
        """Replace the retained frame with a better one, releasing the old one first."""
        if length <= self.candidate_text_length:
            image.release()
            raise ValueError(
                f"candidate length {length} does not improve on {self.candidate_text_length}"
            )
        if self.candidate is not None:
            self.candidate.release()
        self.candidate = image
        self.candidate_text_length = length

    def mark_matched(self, text: str):
        if not text:
            raise ValueError("matched text must be non-empty")
        self.matched_text = text
        self._drop_candidate()

    def finalize(self) -> "DeviceScanResult":
        if self.matched_text:
            self.outcome = Outcome.MATCHED
        elif self.candidate is not None:
            self.outcome = Outcome.TIMED_OUT_WITH_CANDIDATE
        else:
            self.outcome = Outcome.TIMED_OUT_NO_CANDIDATE
        return self

    def take_candidate(self) -> OwnedImage:
        """Hand the retained image to a new owner. Allowed once."""
        if self.outcome is not Outcome.TIMED_OUT_WITH_CANDIDATE:
            raise ScanStateError(f"no candidate available for outcome {self.outcome.value}")
        if self.candidate is None:
            raise ScanStateError("candidate image already handed off")
        image, self.candidate = self.candidate, None
        return image

    def release(self):
        self._drop_candidate()

    def _drop_candidate(self):
        if self.candidate is not None:
            self.candidate.release()
            self.candidate = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()
        return False


VerdictKind = Literal["matched", "candidate", "no_improvement"]


@dataclass
class FrameVerdict:
    kind: VerdictKind
    text: Optional[str] = None
    image: Optional[OwnedImage] = None
    length: int = 0


NO_IMPROVEMENT = FrameVerdict(kind="no_improvement")

Stage = Literal["device", "cloud"]


@dataclass
class ScanReport:
    ok: bool
    duration_ms: int
    outcome: Optional[Outcome] = None
    matched_text: Optional[str] = None
    stage: Optional[Stage] = None
    device_outcome: Optional[Outcome] = None
    error_code: Optional[str] = None
