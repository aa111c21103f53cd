import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ocr_scanner.orchestrator.contracts import ScanReport


@dataclass
class StatusStore:
    busy: bool = False
    last_error: Optional[str] = None
    last_report: Optional[ScanReport] = None
    logs: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def try_set_busy(self) -> bool:
        """Claim the scanner; False if a scan is already running."""
        with self._lock:
            if self.busy:
                return False
            self.busy = True
            return True

    def set_busy(self, v: bool):
        with self._lock:
            self.busy = v

    def log(self, msg: str):
        with self._lock:
            self.logs.append(msg)
            if len(self.logs) > 200:
                self.logs = self.logs[-200:]
