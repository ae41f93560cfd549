from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..constants import MAX_ANGLE_HEIGHT_MM
from ..errors import ManufacturingLimitError
from ..precision import round12


@dataclass(frozen=True)
class AngleExtensionResult:
    applied: bool
    original_bracket_height_mm: float
    limited_bracket_height_mm: float
    max_bracket_height_mm: Optional[float]
    reduction_mm: float
    original_vertical_leg_mm: float
    extended_vertical_leg_mm: float

    @property
    def extension_mm(self) -> float:
        return round12(self.extended_vertical_leg_mm - self.original_vertical_leg_mm)


def should_apply(max_allowable_extension_mm: Optional[float]) -> bool:
    return max_allowable_extension_mm is not None and max_allowable_extension_mm > 0.0


def apply_angle_extension(
    bracket_height_mm: float,
    max_allowable_extension_mm: Optional[float],
    fixing_position_mm: float,
    vertical_leg_mm: float,
    max_angle_height_mm: float = MAX_ANGLE_HEIGHT_MM,
) -> AngleExtensionResult:
    """Cap bracket height at the exclusion-zone limit and extend the angle leg 1:1.

    Raises ManufacturingLimitError when the extended leg would exceed the
    manufacturing ceiling; the height is never silently clamped.
    """
    if not should_apply(max_allowable_extension_mm):
        return AngleExtensionResult(False, bracket_height_mm, bracket_height_mm, None, 0.0, vertical_leg_mm, vertical_leg_mm)

    max_height = fixing_position_mm + float(max_allowable_extension_mm)
    if bracket_height_mm <= max_height:
        return AngleExtensionResult(
            False, bracket_height_mm, bracket_height_mm, max_height, 0.0, vertical_leg_mm, vertical_leg_mm
        )

    reduction = bracket_height_mm - max_height
    extended = vertical_leg_mm + reduction
    if extended > max_angle_height_mm:
        raise ManufacturingLimitError(extended, max_angle_height_mm)

    return AngleExtensionResult(
        applied=True,
        original_bracket_height_mm=bracket_height_mm,
        limited_bracket_height_mm=round12(max_height),
        max_bracket_height_mm=round12(max_height),
        reduction_mm=round12(reduction),
        original_vertical_leg_mm=vertical_leg_mm,
        extended_vertical_leg_mm=round12(extended),
    )
