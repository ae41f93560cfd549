from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError


def format_validation_error(e: ValidationError) -> str:
    """One line per failing field, as `dotted.path: message`."""
    lines: List[str] = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "(inputs)"
        lines.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "\n".join(lines)


def validate_inputs(model: Optional[Type[BaseModel]], raw: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Returns (validated_dict, error_message). If model is None, returns raw as-is.
    """
    if model is None:
        return raw, None
    try:
        obj = model.model_validate(raw)
    except ValidationError as e:
        return {}, format_validation_error(e)
    return obj.model_dump(), None
