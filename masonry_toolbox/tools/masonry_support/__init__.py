"""Masonry support bracket/angle designer.

Keep this package import light. The host loader only needs `TOOL`.
"""

from __future__ import annotations

__all__ = ["TOOL"]


def __getattr__(name: str):
    if name == "TOOL":
        from .tool import TOOL

        return TOOL
    raise AttributeError(name)
