from __future__ import annotations

import math

from ..constants import ANGLE_IXX_FOR_SPAN_MM4, LOAD_FACTOR, MAX_SYSTEM_DEFLECTION_MM, STEEL_E_N_MM2
from ..precision import round12
from .outcome import VerificationOutcome, outcome


def bracket_lateral_deflection(
    v_ed_kn: float,
    effective_drop_mm: float,
    design_cavity_mm: float,
    eccentricity_mm: float,
    bracket_thickness_mm: float,
    bracket_projection_mm: float,
) -> float:
    """Lateral sway of the bracket portion hanging below the slab soffit (mm)."""
    if effective_drop_mm <= 0.0:
        return 0.0
    V_ek = v_ed_kn / LOAD_FACTOR
    M = V_ek * (design_cavity_mm + eccentricity_mm) / 1000.0
    ixx2 = 2.0 * bracket_thickness_mm * bracket_projection_mm**3 / 12.0
    return M * 1e6 * effective_drop_mm**2 / (2.0 * STEEL_E_N_MM2 * ixx2)


def span_deflection(characteristic_udl_kn_per_m: float, bracket_centres_mm: float, secant_modulus: float, angle_thickness_mm: int) -> float:
    """Angle sagging between brackets as a simply supported span (mm)."""
    ixx3 = ANGLE_IXX_FOR_SPAN_MM4.get(int(angle_thickness_mm))
    if not ixx3 or secant_modulus <= 0.0:
        return 0.0
    return 5.0 * characteristic_udl_kn_per_m * 1000.0 * bracket_centres_mm**3 / (384.0 * secant_modulus * ixx3)


def dropping_below_slab(
    v_ed_kn: float,
    *,
    drop_below_slab_mm: float,
    notch_height_mm: float,
    design_cavity_mm: float,
    eccentricity_mm: float,
    bearing_mm: float,
    bracket_thickness_mm: float,
    bracket_projection_mm: float,
    angle_deflection_mm: float,
    secant_modulus: float,
    characteristic_udl_kn_per_m: float,
    bracket_centres_mm: float,
    angle_thickness_mm: int,
) -> VerificationOutcome:
    """Total system deflection at the masonry bearing, including drop below slab / notch.

    Passes iff total <= 2 mm.
    """
    p_eff = max(drop_below_slab_mm, notch_height_mm)
    lateral = bracket_lateral_deflection(
        v_ed_kn, p_eff, design_cavity_mm, eccentricity_mm, bracket_thickness_mm, bracket_projection_mm
    )
    if p_eff > 0.0:
        rotation = math.atan(lateral / p_eff)
        heel2 = (design_cavity_mm + bearing_mm) * math.sin(rotation)
    else:
        rotation = 0.0
        heel2 = 0.0
    vertical = angle_deflection_mm + heel2
    span = span_deflection(characteristic_udl_kn_per_m, bracket_centres_mm, secant_modulus, angle_thickness_mm)
    total = vertical + span
    return outcome(
        "dropping_below_slab",
        total,
        MAX_SYSTEM_DEFLECTION_MM,
        effective_drop_mm=round12(p_eff),
        lateral_deflection_mm=round12(lateral),
        bracket_rotation_rad=round12(rotation),
        heel_deflection_mm=round12(heel2),
        vertical_deflection_mm=round12(vertical),
        span_deflection_mm=round12(span),
        total_system_deflection_mm=round12(total),
    )
