from __future__ import annotations

import hashlib
import json
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from masonry_toolbox.core.paths import databases_dir, user_data_dir

TOOL_ID = "masonry_support_designer"


def create_run_dir(tool_id: str = TOOL_ID, input_hash: str | None = None) -> Path:
    """Authoritative run directory creator.

    Location:
      <user_data_dir>/<tool_id>/runs/YYYYMMDD_HHMMSS_<short_hash>/

    Timestamp plus a short hash keeps repeated runs of the same inputs apart.
    """
    root = user_data_dir() / tool_id / "runs"
    root.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")

    # Collision-resistant suffix
    seed = f"{ts}:{os.getpid()}:{time.time_ns()}"
    rand = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8]

    short = f"{str(input_hash)[:6]}{rand[:2]}" if input_hash else rand

    run_dir = root / f"{ts}_{short}"
    run_dir.mkdir(parents=True, exist_ok=False)
    return run_dir


def user_override_capacity_path() -> Optional[Path]:
    # Optional user override: <user_data_dir>/databases/masonry_support/channel_capacities.csv
    p = databases_dir() / "masonry_support" / "channel_capacities.csv"
    return p if p.exists() else None


def _normalize(v: Any) -> Any:
    if isinstance(v, float):
        # Stable float repr for hashing (keeps determinism across platforms)
        return float(f"{v:.12g}")
    if isinstance(v, dict):
        return {k: _normalize(v[k]) for k in sorted(v.keys())}
    if isinstance(v, (list, tuple)):
        return [_normalize(x) for x in v]
    return v


def compute_input_hash(inputs: Dict[str, Any]) -> str:
    """Deterministic input hash computed from normalized, sorted keys."""
    payload = json.dumps(_normalize(inputs), sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]
