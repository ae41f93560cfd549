from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ..constants import (
    DEFAULT_FIXING_POSITION_MM,
    DISTANCE_FROM_TOP_TO_FIXING_MM,
    FIXING_PERFORMANCE_LIMIT_MM,
    INVERTED_BRACKET_MIN_HEIGHT_MM,
    WORST_CASE_ADJUSTMENT_MM,
)
from ..models import DimDOff, DimDScan, FixedFixingPosition, OptimizedFixingPosition
from ..precision import round12
from .classification import needs_leg_adjustment

# ------------------------------
# Fixing position (depth below top of slab, positive down)
# ------------------------------

def fixing_position_to_ssl(position_from_top_mm: float) -> float:
    return -position_from_top_mm


def fixing_position_from_ssl(position_from_ssl_mm: float) -> float:
    return -position_from_ssl_mm


def max_fixing_position(
    slab_thickness_mm: float,
    bottom_edge_mm: float,
    performance_limit_mm: float = FIXING_PERFORMANCE_LIMIT_MM,
) -> float:
    restrictive = min(slab_thickness_mm - bottom_edge_mm, slab_thickness_mm - performance_limit_mm)
    return max(DEFAULT_FIXING_POSITION_MM, restrictive)


@dataclass(frozen=True)
class FixingValidation:
    is_valid: bool
    error: str = ""


def validate_fixing_position(position_mm: float, slab_thickness_mm: float, bottom_edge_mm: float) -> FixingValidation:
    if position_mm <= 0.0:
        return FixingValidation(False, f"Fixing position must be positive, got {position_mm:g} mm")
    if position_mm > slab_thickness_mm:
        return FixingValidation(
            False, f"Fixing position ({position_mm:g} mm) exceeds slab thickness ({slab_thickness_mm:g} mm)"
        )
    clearance = slab_thickness_mm - position_mm
    if clearance < bottom_edge_mm:
        return FixingValidation(
            False, f"Insufficient bottom clearance: {clearance:g} mm < {bottom_edge_mm:g} mm required"
        )
    return FixingValidation(True)


# ------------------------------
# Bracket height / rise to bolts
# ------------------------------

def bracket_height(
    support_level_mm: float,
    fixing_position_mm: float,
    vertical_leg_mm: float,
    bracket_type: str,
    angle_orientation: str,
    distance_from_top_to_fixing_mm: float = DISTANCE_FROM_TOP_TO_FIXING_MM,
) -> float:
    base = abs(support_level_mm) - fixing_position_mm + distance_from_top_to_fixing_mm
    if bracket_type == "Inverted":
        implied_rise = base - (distance_from_top_to_fixing_mm + WORST_CASE_ADJUSTMENT_MM)
        if implied_rise < 0.0:
            base = INVERTED_BRACKET_MIN_HEIGHT_MM
    if needs_leg_adjustment(bracket_type, angle_orientation):
        base += vertical_leg_mm
    return round12(base)


def projects_below_slab(support_level_mm: float, slab_thickness_mm: float, fixing_position_mm: float) -> bool:
    return abs(support_level_mm) > slab_thickness_mm - fixing_position_mm


def rise_to_bolts(
    bracket_height_mm: float,
    support_level_mm: float,
    slab_thickness_mm: float,
    fixing_position_mm: float,
    bottom_edge_mm: float,
    distance_from_top_to_fixing_mm: float = DISTANCE_FROM_TOP_TO_FIXING_MM,
) -> float:
    base = bracket_height_mm - (distance_from_top_to_fixing_mm + WORST_CASE_ADJUSTMENT_MM)
    if projects_below_slab(support_level_mm, slab_thickness_mm, fixing_position_mm):
        return round12(min(base, bottom_edge_mm))
    return round12(base)


def drop_below_slab(support_level_mm: float, slab_thickness_mm: float) -> float:
    return round12(max(0.0, abs(support_level_mm) - slab_thickness_mm))


def notch_rise_reduction(notch_height_mm: float, support_level_mm: float, slab_thickness_mm: float) -> float:
    """Portion of a notch that sits above the slab soffit and so eats into the rise to bolts."""
    if notch_height_mm <= 0.0:
        return 0.0
    below = max(0.0, abs(support_level_mm) - slab_thickness_mm)
    return max(0.0, notch_height_mm - below)


# ------------------------------
# Sub-searches
# ------------------------------

def optimal_fixing_position(
    config: Union[FixedFixingPosition, OptimizedFixingPosition],
    support_level_mm: float,
    vertical_leg_mm: float,
    bracket_type: str,
    angle_orientation: str,
    slab_thickness_mm: float,
    allowed_positions: Optional[Iterable[float]] = None,
    bottom_edge_mm: Optional[float] = None,
) -> float:
    """Deepest fixing position that keeps the rise to bolts above the configured minimum.

    With a channel's bottom edge distance the scan stops at max_fixing_position
    for that channel; without one (steel) it stops at the configured bottom
    clearance. Returns the start position when nothing qualifies. Never fails.
    """
    if isinstance(config, FixedFixingPosition):
        return config.position_mm

    start = config.start_position_mm
    if bottom_edge_mm is None:
        edge = config.min_bottom_clearance_mm
        limit = slab_thickness_mm - edge
    else:
        edge = bottom_edge_mm
        limit = max_fixing_position(slab_thickness_mm, edge)
    if config.max_position_mm:
        limit = min(config.max_position_mm, limit)

    allowed = None if allowed_positions is None else {round12(p) for p in allowed_positions}
    best = start
    n_steps = int(math.floor((limit - start) / config.increment_mm + 1e-9))
    for i in range(n_steps + 1):
        p = round12(start + i * config.increment_mm)
        if allowed is not None and p not in allowed:
            continue
        h = bracket_height(support_level_mm, p, vertical_leg_mm, bracket_type, angle_orientation)
        rise = rise_to_bolts(h, support_level_mm, slab_thickness_mm, p, edge)
        if rise >= config.min_rise_to_bolts_mm:
            best = p
    return best


def select_dim_d(
    config: Union[DimDOff, DimDScan],
    bracket_height_mm: float,
    max_dim_d_mm: Optional[float] = None,
) -> Optional[float]:
    """Smallest Dim D on the scan grid that leaves the required clearance under the bracket height.

    Widths deeper than max_dim_d_mm (slab below the fixing) are skipped.
    None means no admissible width (or the sub-search is off).
    """
    if isinstance(config, DimDOff):
        return None
    n_steps = int(math.floor((config.end_mm - config.start_mm) / config.step_mm + 1e-9))
    for i in range(n_steps + 1):
        d = config.start_mm + i * config.step_mm
        if max_dim_d_mm is not None and d > max_dim_d_mm:
            break
        if bracket_height_mm >= d + config.clearance_mm:
            return round12(d)
    return None
