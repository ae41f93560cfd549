from __future__ import annotations

from typing import List, Literal, Tuple

from ..constants import BASELINE_FIXING_LEVEL_MM

BracketType = Literal["Standard", "Inverted"]
AngleOrientation = Literal["Standard", "Inverted"]

BOTH: Tuple[AngleOrientation, ...] = ("Standard", "Inverted")

# (low, high, orientations), inclusive on both ends. Support levels outside
# every band have no valid bracket/angle combination.
_ORIENTATION_BANDS: Tuple[Tuple[float, float, Tuple[AngleOrientation, ...]], ...] = (
    (0.0, float("inf"), BOTH),
    (-50.0, -25.0, ("Standard",)),
    (-135.0, -75.0, ("Inverted",)),
    (-175.0, -150.0, BOTH),
    (float("-inf"), -175.0, BOTH),
)


def classify_bracket_type(support_level_mm: float) -> BracketType:
    """Standard when the support sits at or below the -75 mm baseline fixing level."""
    return "Standard" if support_level_mm <= BASELINE_FIXING_LEVEL_MM else "Inverted"


def valid_angle_orientations(support_level_mm: float) -> List[AngleOrientation]:
    for low, high, orientations in _ORIENTATION_BANDS:
        if low <= support_level_mm <= high:
            return list(orientations)
    return []


def valid_combinations(support_level_mm: float) -> List[Tuple[BracketType, AngleOrientation]]:
    bt = classify_bracket_type(support_level_mm)
    return [(bt, ao) for ao in valid_angle_orientations(support_level_mm)]


def is_valid_combination(support_level_mm: float, bracket_type: str, angle_orientation: str) -> bool:
    return (bracket_type, angle_orientation) in valid_combinations(support_level_mm)


def needs_leg_adjustment(bracket_type: str, angle_orientation: str) -> bool:
    """Mixed bracket/angle orientation puts the angle's vertical leg inside the bracket height."""
    return bracket_type != angle_orientation
