from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Type

from pydantic import BaseModel

ProgressCallback = Callable[[int], None]
StatusCallback = Callable[[str], None]
CancelCallback = Callable[[], bool]

@dataclass(frozen=True)
class ToolMeta:
    id: str
    name: str
    category: str
    version: str
    description: str

class ToolBase(Protocol):
    """
    Tool contract.

    Tools declare an `InputModel` (Pydantic) for typed inputs, so validation
    errors are reported before any calculation starts.

    Long-running tools also implement
      run_with_context(inputs, progress_cb, status_cb, is_cancelled_cb) -> dict
    which ToolRunner prefers over run().
    """
    meta: ToolMeta
    InputModel: Optional[Type[BaseModel]]

    def default_inputs(self) -> Dict[str, Any]:
        ...

    def run(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        ...
