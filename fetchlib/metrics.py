import threading
import time
from dataclasses import dataclass, replace
from typing import Callable


@dataclass
class Totals:
    fetches: int = 0
    errors: int = 0
    bytes: int = 0
    header_ms_sum: float = 0.0

    @property
    def avg_header_ms(self) -> float:
        return self.header_ms_sum / max(1, self.fetches)


class Metrics:
    """Running totals for an HttpFetchService; safe to share across threads."""

    def __init__(self, now: Callable[[], float] | None = None):
        self._now = now or time.monotonic
        self._started = self._now()
        self._totals = Totals()
        self._lock = threading.Lock()

    def record_fetch(self, ok: bool, header_ms: float) -> None:
        with self._lock:
            self._totals.fetches += 1
            self._totals.errors += 0 if ok else 1
            self._totals.header_ms_sum += header_ms

    def record_bytes(self, bytes_read: int) -> None:
        if bytes_read <= 0:
            return
        with self._lock:
            self._totals.bytes += bytes_read

    def snapshot(self) -> tuple[Totals, float]:
        """Copy of the totals and the seconds since this Metrics was created."""
        with self._lock:
            totals = replace(self._totals)
        return totals, max(1e-6, self._now() - self._started)
