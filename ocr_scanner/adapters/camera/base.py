import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np


@dataclass
class Frame:
    image: np.ndarray          # BGR, borrowed from the source
    index: int
    timestamp: float


FrameHandler = Callable[["FrameSource"], None]


class FrameSource(ABC):
    """Delivers frames and notifies subscribers on every arrival.

    Handlers run on the source's producer thread and receive the source
    itself; they fetch the frame with try_acquire_latest_frame().
    """

    def __init__(self):
        self._handlers: list[FrameHandler] = []
        self._handlers_lock = threading.Lock()

    @abstractmethod
    def start(self):
        ...

    @abstractmethod
    def stop(self):
        ...

    @abstractmethod
    def try_acquire_latest_frame(self) -> Optional[Frame]:
        """Most recent frame, or None if nothing has arrived yet."""
        ...

    def subscribe(self, handler: FrameHandler):
        with self._handlers_lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: FrameHandler):
        with self._handlers_lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def subscriber_count(self) -> int:
        with self._handlers_lock:
            return len(self._handlers)

    def _notify(self):
        with self._handlers_lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(self)
