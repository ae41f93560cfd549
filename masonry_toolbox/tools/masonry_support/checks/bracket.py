from __future__ import annotations

from ..constants import EPSILON, GAMMA_M0, STEEL_YIELD_N_MM2
from ..precision import round12
from .outcome import VerificationOutcome, failed, outcome

CLASS_1_LIMIT = 56.0
PLATES = 2


def bracket_design(
    v_ed_kn: float,
    bracket_height_mm: float,
    notch_height_mm: float,
    bracket_thickness_mm: float,
    cavity_mm: float,
    eccentricity_mm: float,
) -> VerificationOutcome:
    """Bending of the two bracket side plates at the slab face."""
    d_c = bracket_height_mm - notch_height_mm
    if d_c <= 0.0:
        return failed("bracket_design", "Notch consumes the full bracket depth", d_c_mm=round12(d_c))
    t = bracket_thickness_mm
    slenderness = d_c / t
    is_class_1 = CLASS_1_LIMIT * EPSILON > slenderness
    M_ed = v_ed_kn * (cavity_mm + eccentricity_mm) / 1000.0
    W = 1.2 * t * d_c**2 / 6.0 * PLATES
    M_rd = STEEL_YIELD_N_MM2 * W / (GAMMA_M0 * 1e6)
    return outcome(
        "bracket_design",
        M_ed,
        M_rd,
        d_c_mm=round12(d_c),
        slenderness=round12(slenderness),
        class_1=is_class_1,
        M_ed_knm=round12(M_ed),
        M_rd_knm=round12(M_rd),
    )
