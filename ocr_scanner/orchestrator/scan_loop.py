"""
On-device scan loop.

Scanning → Matched | TimedOut

Every frame-arrival notification tries to take a non-blocking guard. If an
evaluation is already in flight the notification is dropped (never queued),
otherwise the latest frame is evaluated on a single worker thread so the
source's producer thread is never blocked. The loop driver waits on the
"matched" event with the caller's timeout; whichever happens first decides
the outcome. Teardown (unsubscribe, stop delivery, drain the worker) runs on
every exit path.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from ocr_scanner.adapters.camera.base import FrameSource
from ocr_scanner.orchestrator.contracts import DeviceScanResult, FrameVerdict
from ocr_scanner.orchestrator.evaluator import FrameEvaluator


class OnDeviceScanLoop:
    def __init__(self, source: FrameSource, evaluator: FrameEvaluator, status_store):
        self.source = source
        self.evaluator = evaluator
        self.status = status_store

    def run(self, timeout: float) -> DeviceScanResult:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        result = DeviceScanResult()
        matched = threading.Event()
        guard = threading.Lock()
        # verdicts landing after the deadline are discarded
        state = threading.Lock()
        expired = False
        dropped = 0
        worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ocr-eval")

        def evaluate_latest():
            try:
                frame = self.source.try_acquire_latest_frame()
                if frame is None:
                    return
                try:
                    verdict = self.evaluator.evaluate(frame, result.candidate_text_length)
                except Exception as e:
                    result.frames_failed += 1
                    self.status.log(f"scan_loop: frame {frame.index} skipped, {type(e).__name__}: {e}")
                    return
                result.frames_evaluated += 1
                with state:
                    if expired:
                        self._discard(verdict, frame.index)
                    else:
                        self._apply(result, verdict, matched, frame.index)
            finally:
                guard.release()

        def on_frame_arrived(_source):
            nonlocal dropped
            if matched.is_set():
                return
            if not guard.acquire(blocking=False):
                dropped += 1
                return
            try:
                worker.submit(evaluate_latest)
            except RuntimeError:
                # worker already shut down; loop is exiting
                guard.release()

        t0 = time.time()
        self.status.log(f"scan_loop: start timeout={timeout}s")
        self.source.subscribe(on_frame_arrived)
        try:
            self.source.start()
            matched.wait(timeout)
            with state:
                expired = True
                fired = matched.is_set()
            if fired:
                self.status.log("scan_loop: match signalled")
            else:
                self.status.log("scan_loop: timed out")
        except BaseException:
            self._teardown(on_frame_arrived, worker)
            result.release()
            raise
        self._teardown(on_frame_arrived, worker)

        result.frames_dropped = dropped
        result.duration_ms = int((time.time() - t0) * 1000)
        result.finalize()
        self.status.log(
            f"scan_loop: done outcome={result.outcome.value} evaluated={result.frames_evaluated} "
            f"dropped={result.frames_dropped} failed={result.frames_failed} dt={result.duration_ms}ms"
        )
        return result

    def _teardown(self, handler, worker: ThreadPoolExecutor):
        self.source.unsubscribe(handler)
        try:
            self.source.stop()
        finally:
            # in-flight evaluation finishes before the result is read
            worker.shutdown(wait=True)

    def _apply(self, result: DeviceScanResult, verdict: FrameVerdict, matched: threading.Event, index: int):
        if verdict.kind == "matched":
            result.mark_matched(verdict.text)
            self.status.log(f"scan_loop: frame {index} matched '{verdict.text}'")
            matched.set()
        elif verdict.kind == "candidate":
            result.offer_candidate(verdict.image, verdict.length)
            self.status.log(f"scan_loop: frame {index} new candidate len={verdict.length}")

    def _discard(self, verdict: FrameVerdict, index: int):
        if verdict.image is not None:
            verdict.image.release()
        if verdict.kind != "no_improvement":
            self.status.log(f"scan_loop: frame {index} finished after the deadline, {verdict.kind} ignored")
