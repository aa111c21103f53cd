"""OnDeviceScanLoop: match vs timeout race, candidate tracking, re-entrancy guard."""

import time

import pytest

from conftest import SlowRecognizer
from ocr_scanner.adapters.camera.mock_camera import MockFrameSource
from ocr_scanner.adapters.recognizer.mock_recognizer import frame_key, solid_frame
from ocr_scanner.orchestrator.contracts import Outcome
from ocr_scanner.orchestrator.errors import RecognizerError
from ocr_scanner.orchestrator.evaluator import FrameEvaluator
from ocr_scanner.orchestrator.matcher import PatternMatcher
from ocr_scanner.orchestrator.scan_loop import OnDeviceScanLoop


def _loop(source, recognizer, status) -> OnDeviceScanLoop:
    return OnDeviceScanLoop(source, FrameEvaluator(recognizer, PatternMatcher()), status)


def test_match_before_timeout(make_source, make_recognizer, status) -> None:
    source = make_source([1, 2])
    recognizer = make_recognizer({1: ["nothing useful here"], 2: ["server 10.0.0.5 ready"]})
    t0 = time.monotonic()
    result = _loop(source, recognizer, status).run(timeout=5.0)

    assert result.outcome is Outcome.MATCHED
    assert result.matched_text == "10.0.0.5"
    assert result.candidate is None
    assert time.monotonic() - t0 < 4.0


def test_timeout_keeps_longest_text_frame(make_source, make_recognizer, status) -> None:
    source = make_source([1, 2, 3])
    recognizer = make_recognizer({
        1: ["short"],
        2: ["a much longer line of text"],
        3: ["medium text"],
    })
    result = _loop(source, recognizer, status).run(timeout=0.4)
    try:
        assert result.outcome is Outcome.TIMED_OUT_WITH_CANDIDATE
        assert result.candidate_text_length == len("a much longer line of text")
        assert frame_key(result.candidate.array) == 2
        assert result.matched_text is None
    finally:
        result.release()


def test_timeout_without_text(make_source, make_recognizer, status) -> None:
    result = _loop(make_source([1, 2]), make_recognizer({}), status).run(timeout=0.2)
    assert result.outcome is Outcome.TIMED_OUT_NO_CANDIDATE
    assert result.candidate is None
    assert result.frames_evaluated > 0


def test_no_frames_times_out(make_source, make_recognizer, status) -> None:
    result = _loop(make_source([]), make_recognizer({}), status).run(timeout=0.1)
    assert result.outcome is Outcome.TIMED_OUT_NO_CANDIDATE
    assert result.frames_evaluated == 0


def test_candidate_superseded_by_match(make_source, make_recognizer, status) -> None:
    source = make_source([1, 2], repeat=False, interval=0.05)
    recognizer = make_recognizer({1: ["lots of text but no address"], 2: ["at 172.16.0.9"]})
    result = _loop(source, recognizer, status).run(timeout=3.0)
    assert result.outcome is Outcome.MATCHED
    assert result.matched_text == "172.16.0.9"
    assert result.candidate is None


def test_recognizer_failures_are_skipped(make_source, make_recognizer, status) -> None:
    source = make_source([1, 2])
    recognizer = make_recognizer({1: RecognizerError("driver fault"), 2: ["ip 10.9.8.7"]})
    result = _loop(source, recognizer, status).run(timeout=3.0)
    assert result.outcome is Outcome.MATCHED
    assert result.matched_text == "10.9.8.7"
    assert any("skipped" in line for line in status.logs)


def test_failing_frames_never_become_candidates(make_source, make_recognizer, status) -> None:
    source = make_source([1])
    result = _loop(source, make_recognizer({1: RecognizerError("boom")}), status).run(timeout=0.2)
    assert result.outcome is Outcome.TIMED_OUT_NO_CANDIDATE
    assert result.frames_failed > 0
    assert result.candidate is None


def test_teardown_on_both_paths(make_source, make_recognizer, status) -> None:
    matched_source = make_source([1])
    _loop(matched_source, make_recognizer({1: ["1.1.1.1"]}), status).run(timeout=3.0)
    timed_out_source = make_source([1])
    _loop(timed_out_source, make_recognizer({}), status).run(timeout=0.1)

    for source in (matched_source, timed_out_source):
        assert source.subscriber_count == 0
        assert not source.running


def test_at_most_one_evaluation_in_flight(make_source, status) -> None:
    source = make_source([1], interval=0.002)
    recognizer = SlowRecognizer(delay=0.05)
    result = _loop(source, recognizer, status).run(timeout=0.5)
    try:
        assert recognizer.max_active == 1
        assert result.frames_failed == 0
        assert result.frames_dropped > 0
        assert result.frames_evaluated == recognizer.calls
    finally:
        result.release()


class _BrokenSource(MockFrameSource):
    def start(self):
        raise RuntimeError("camera unplugged")


def test_teardown_on_exceptional_exit(status, make_recognizer) -> None:
    source = _BrokenSource(status, frames=[])
    with pytest.raises(RuntimeError, match="unplugged"):
        _loop(source, make_recognizer({}), status).run(timeout=1.0)
    assert source.subscriber_count == 0


def test_timeout_must_be_positive(make_source, make_recognizer, status) -> None:
    with pytest.raises(ValueError):
        _loop(make_source([1]), make_recognizer({}), status).run(timeout=0)


def test_match_finishing_after_deadline_is_ignored(make_source, status) -> None:
    recognizer = SlowRecognizer(delay=0.5, lines=["at 10.0.0.5"])
    result = _loop(make_source([1]), recognizer, status).run(timeout=0.1)

    assert result.outcome is Outcome.TIMED_OUT_NO_CANDIDATE
    assert result.matched_text is None
    assert result.candidate is None
    assert recognizer.calls >= 1
    assert any("after the deadline, matched ignored" in line for line in status.logs)


def test_late_verdict_keeps_earlier_candidate(status) -> None:
    class SlowSecondFrame(SlowRecognizer):
        def recognize(self, image):
            if self.calls == 0:
                self.calls += 1
                return ["label without an address"]
            return super().recognize(image)

    source = MockFrameSource(status, frames=[solid_frame(1), solid_frame(2)], interval=0.02, repeat=False)
    recognizer = SlowSecondFrame(delay=0.5, lines=["label with address 10.9.8.7"])
    result = _loop(source, recognizer, status).run(timeout=0.2)
    try:
        assert result.outcome is Outcome.TIMED_OUT_WITH_CANDIDATE
        assert result.matched_text is None
        assert result.candidate_text_length == len("label without an address")
    finally:
        result.release()
        source.stop()
