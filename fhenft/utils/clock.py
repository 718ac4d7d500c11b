"""Time sources. The engine only ever asks for the current second."""

import threading
import time


class SystemClock:
    """Wall-clock time in whole seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and the demo to replay scenarios at exact instants.
    """

    def __init__(self, now: int = 0):
        self._now = now
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            self._now = timestamp
