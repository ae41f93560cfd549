from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger


@dataclass(frozen=True)
class ProgressEvent:
    checked: int
    total: int
    best_weight: Optional[float]
    elapsed_s: float
    eta_s: Optional[float]
    message: str = ""

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return int(max(0, min(100, round(100.0 * self.checked / self.total))))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ProgressSink = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Throttled side channel for search progress.

    Emits at most one event per interval (plus advisories and the final
    event). A failing callback is logged and ignored; the search never sees it.
    """

    def __init__(self, total: int, callback: Optional[ProgressSink] = None, interval_s: float = 0.5) -> None:
        self.total = int(total)
        self.callback = callback
        self.interval_s = float(interval_s)
        self._start = time.monotonic()
        self._last_emit = float("-inf")
        self._lock = threading.Lock()

    @property
    def elapsed_s(self) -> float:
        return time.monotonic() - self._start

    def _event(self, checked: int, best_weight: Optional[float], message: str) -> ProgressEvent:
        elapsed = self.elapsed_s
        eta = None
        if 0 < checked < self.total:
            eta = elapsed / checked * (self.total - checked)
        elif checked >= self.total:
            eta = 0.0
        return ProgressEvent(checked, self.total, best_weight, elapsed, eta, message)

    def _deliver(self, event: ProgressEvent) -> None:
        if self.callback is None:
            return
        try:
            self.callback(event)
        except Exception:
            logger.exception("Progress callback raised; continuing search")

    def update(self, checked: int, best_weight: Optional[float] = None, message: str = "") -> None:
        if self.callback is None:
            return
        now = time.monotonic()
        with self._lock:
            if now - self._last_emit < self.interval_s:
                return
            self._last_emit = now
        self._deliver(self._event(checked, best_weight, message))

    def advise(self, message: str, checked: int = 0, best_weight: Optional[float] = None) -> None:
        """Unthrottled informational event."""
        self._deliver(self._event(checked, best_weight, message))

    def finish(self, checked: int, best_weight: Optional[float], message: str = "Search complete") -> None:
        self._deliver(self._event(checked, best_weight, message))
