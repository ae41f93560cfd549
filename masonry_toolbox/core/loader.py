from __future__ import annotations
import importlib
import pkgutil
from typing import List, Optional
from loguru import logger
from .tool_base import ToolBase

TOOLS_PKG = "masonry_toolbox.tools"


class ToolNotFoundError(LookupError):
    pass


def _load_tool(mod_name: str) -> Optional[ToolBase]:
    try:
        mod = importlib.import_module(mod_name)
    except Exception as e:
        logger.exception(f"Failed loading tool {mod_name}: {e}")
        return None
    tool = getattr(mod, "TOOL", None)
    if tool is None:
        logger.warning(f"Module {mod_name} has no TOOL export; skipping.")
    return tool


def discover_tools() -> List[ToolBase]:
    """
    Tool packages under masonry_toolbox.tools.* that expose `TOOL`.
    Private packages (leading underscore) are skipped; a package that fails to
    import is logged and left out rather than breaking discovery.
    """
    pkg = importlib.import_module(TOOLS_PKG)
    tools: List[ToolBase] = []
    for m in pkgutil.iter_modules(pkg.__path__):
        if not m.ispkg or m.name.startswith("_"):
            continue
        tool = _load_tool(f"{TOOLS_PKG}.{m.name}")
        if tool is not None:
            tools.append(tool)
    tools.sort(key=lambda t: (t.meta.category.lower(), t.meta.name.lower()))
    return tools


def get_tool(tool_id: str) -> ToolBase:
    for tool in discover_tools():
        if tool.meta.id == tool_id:
            return tool
    raise ToolNotFoundError(f"No tool with id '{tool_id}'.")
