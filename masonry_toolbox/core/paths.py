from __future__ import annotations
import os
from pathlib import Path

APP_NAME = "MasonryToolbox"

def user_data_dir() -> Path:
    """
    Writable location for runs/logs/cache/settings. Never the installed code folder.
    Windows default: %LOCALAPPDATA%\\MasonryToolbox\\
    MASONRY_TOOLBOX_HOME overrides the base (used by CI and tests).
    """
    base = (
        os.environ.get("MASONRY_TOOLBOX_HOME")
        or os.environ.get("LOCALAPPDATA")
        or os.environ.get("APPDATA")
        or str(Path.home())
    )
    p = Path(base) / APP_NAME
    p.mkdir(parents=True, exist_ok=True)
    return p

def logs_dir() -> Path:
    p = user_data_dir() / "logs"
    p.mkdir(parents=True, exist_ok=True)
    return p

def databases_dir() -> Path:
    p = user_data_dir() / "databases"
    p.mkdir(parents=True, exist_ok=True)
    return p

def settings_path() -> Path:
    return user_data_dir() / "settings.json"
