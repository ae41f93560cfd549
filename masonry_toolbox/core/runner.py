from __future__ import annotations
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger

@dataclass
class RunResult:
    ok: bool
    output: Dict[str, Any]
    error: Optional[str] = None

class ToolRunner:
    """
    Runs tools off the caller's thread using a single-worker executor.

    Tools can optionally accept progress callbacks by defining `run_with_context`.
    Signature:
      run_with_context(inputs, progress_cb, status_cb, is_cancelled_cb) -> dict
    Otherwise we call `run(inputs)`.
    """
    def __init__(
        self,
        on_progress: Optional[Callable[[int], None]] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tool-runner")
        self._cancelled = threading.Event()
        self._on_progress = on_progress
        self._on_status = on_status

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _progress(self, p: int) -> None:
        if self._on_progress is not None:
            self._on_progress(int(max(0, min(100, p))))

    def _status(self, s: str) -> None:
        if self._on_status is not None:
            self._on_status(str(s))

    def _execute(self, tool: Any, inputs: Dict[str, Any]) -> RunResult:
        try:
            if hasattr(tool, "run_with_context"):
                out = tool.run_with_context(inputs, self._progress, self._status, self.is_cancelled)
            else:
                out = tool.run(inputs)
            return RunResult(ok=bool(out.get("ok", True)), output=out, error=out.get("error"))
        except Exception as e:
            logger.exception(e)
            return RunResult(ok=False, output={}, error=str(e))

    def start(self, tool: Any, inputs: Dict[str, Any]) -> "Future[RunResult]":
        self._cancelled.clear()
        return self.pool.submit(self._execute, tool, inputs)

    def shutdown(self) -> None:
        self.pool.shutdown(wait=True)
