from __future__ import annotations

from typing import Optional


class MasonrySupportError(RuntimeError):
    pass


class CapacityDataError(MasonrySupportError):
    """Capacity source could not be read or produced no usable rows."""


class ManufacturingLimitError(MasonrySupportError):
    def __init__(self, required_angle_height_mm: float, limit_mm: float) -> None:
        self.required_angle_height_mm = float(required_angle_height_mm)
        self.limit_mm = float(limit_mm)
        super().__init__(
            f"Angle extension exceeds manufacturing limits: required angle height "
            f"{self.required_angle_height_mm:g} mm > {self.limit_mm:g} mm."
        )


class SearchAbortedError(MasonrySupportError):
    def __init__(self, message: str, checked: int = 0, total: Optional[int] = None) -> None:
        self.checked = int(checked)
        self.total = total
        super().__init__(message)


class SearchTimeoutError(SearchAbortedError):
    pass


class SearchCancelledError(SearchAbortedError):
    pass


class NoLayoutError(MasonrySupportError):
    pass
