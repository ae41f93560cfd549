from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Tuple

from loguru import logger

RUN_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[tool_id]} | {extra[input_hash]} | {message}"


def get_run_logger(run_dir: Path, tool_id: str, input_hash: Optional[str] = None) -> Tuple[Any, int]:
    """Create a run-scoped logger writing to <run_dir>/run.log.

    The application sinks are configured once by core.logging; this adds a
    sink that only accepts records bound to this tool and run directory.
    Engine modules that log through the global logger inside
    ``logger.contextualize(...)`` land in the same file.

    Returns:
      (bound_logger, sink_id)
    """
    run_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_dir / "run.log"
    run_key = str(run_dir)

    def _only_this_run(record: dict) -> bool:
        extra = record["extra"]
        return extra.get("tool_id") == tool_id and extra.get("run_dir") == run_key

    bound = logger.bind(tool_id=tool_id, run_dir=run_key, input_hash=input_hash or "")
    sink_id = logger.add(
        str(log_path),
        level="DEBUG",
        enqueue=False,
        backtrace=True,
        diagnose=False,
        format=RUN_LOG_FORMAT,
        filter=_only_this_run,
    )
    return bound, int(sink_id)


def remove_run_logger_sink(sink_id: Optional[int]) -> None:
    """Remove a sink created by get_run_logger (no-op for None or an already removed sink)."""
    if sink_id is None:
        return
    try:
        logger.remove(sink_id)
    except ValueError:
        pass
