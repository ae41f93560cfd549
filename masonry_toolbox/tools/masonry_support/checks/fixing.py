from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..capacity_table import CapacityLookup
from ..constants import (
    EQUILIBRIUM_TOLERANCE,
    INTERACTION_LINEAR_DIVISOR,
    INTERACTION_POWER,
    TENSION_INTERACTION_FACTOR,
)
from ..precision import round12
from ..steel_fixings import SteelFixingCapacity
from .outcome import VerificationOutcome, failed, outcome


@dataclass(frozen=True)
class TensileLoadResult:
    tensile_load_kn: float
    compression_zone_mm: float
    moment_equilibrium_passes: bool
    shear_equilibrium_passes: bool
    depth_check_passes: bool

    @property
    def all_checks_pass(self) -> bool:
        return self.moment_equilibrium_passes and self.shear_equilibrium_passes and self.depth_check_passes


def calculate_tensile_load(m_ed_knm: float, plate_width_mm: float, rise_to_bolts_mm: float, bearing_stress_n_mm2: float) -> TensileLoadResult:
    """Bolt tension from moment equilibrium of a plate bearing on a triangular stress block.

    Solves (2/3)/(f*w) * N^2 - x*N + M = 0 in SI units and takes the smaller root.
    No real root means the moment cannot be resisted: zero tension, all sub-checks fail.
    """
    M = m_ed_knm * 1000.0  # Nm
    w = plate_width_mm / 1000.0  # m
    x = rise_to_bolts_mm / 1000.0  # m
    f = bearing_stress_n_mm2 * 1e6  # N/m2

    if f <= 0.0 or w <= 0.0:
        return TensileLoadResult(0.0, 0.0, False, False, False)

    a = (2.0 / 3.0) / (f * w)
    b = -x
    c = M
    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        return TensileLoadResult(0.0, 0.0, False, False, False)

    N = (-b - math.sqrt(disc)) / (2.0 * a)
    cz = 2.0 * N / (f * w)

    moment_eq = N * (x - cz) + f * w * (1.0 / 3.0) * cz * cz - M
    shear_eq = N - cz * f * w * 0.5

    return TensileLoadResult(
        tensile_load_kn=round12(N / 1000.0),
        compression_zone_mm=round12(cz * 1000.0),
        moment_equilibrium_passes=abs(moment_eq) < EQUILIBRIUM_TOLERANCE,
        shear_equilibrium_passes=abs(shear_eq) < EQUILIBRIUM_TOLERANCE,
        depth_check_passes=cz <= x,
    )


def fixing_moment(v_ed_kn: float, design_cavity_mm: float, eccentricity_mm: float) -> float:
    return v_ed_kn * (design_cavity_mm + eccentricity_mm) / 1000.0


def _interaction(n_ratio: float, v_ratio: float) -> tuple[float, float]:
    f1 = n_ratio**INTERACTION_POWER + v_ratio**INTERACTION_POWER
    f2 = (n_ratio + v_ratio) / INTERACTION_LINEAR_DIVISOR
    return f1, f2


def channel_fixing(v_ed_kn: float, tensile: TensileLoadResult, capacity: CapacityLookup) -> VerificationOutcome:
    """Applied tension/shear against the tabulated channel capacity."""
    details = {
        "tensile_load_kn": tensile.tensile_load_kn,
        "compression_zone_mm": tensile.compression_zone_mm,
        "moment_equilibrium": tensile.moment_equilibrium_passes,
        "shear_equilibrium": tensile.shear_equilibrium_passes,
        "depth_check": tensile.depth_check_passes,
        "capacity_note": capacity.note,
        "capacity_fallback": capacity.fallback,
    }
    if capacity.spec is None:
        return failed("fixing", capacity.note or "No capacity data", **details)
    if tensile.tensile_load_kn <= 0.0:
        return failed("fixing", "Tensile load <= 0 (moment cannot be resolved)", **details)
    if not tensile.all_checks_pass:
        return failed("fixing", "Plate bearing equilibrium sub-checks failed", **details)

    spec = capacity.spec
    n_ratio = tensile.tensile_load_kn / spec.max_tension_kn
    v_ratio = v_ed_kn / spec.max_shear_kn
    f1, f2 = _interaction(n_ratio, v_ratio)
    governing = max(n_ratio, v_ratio, min(f1, f2))
    details.update(
        channel_id=spec.id,
        N_rd_kn=spec.max_tension_kn,
        V_rd_kn=spec.max_shear_kn,
        interaction=round12(min(f1, f2)),
    )
    return outcome("fixing", governing, 1.0, **details)


def channel_combined(v_ed_kn: float, tensile: TensileLoadResult, capacity: CapacityLookup) -> VerificationOutcome:
    """Both tension/shear interaction formulas must hold for a channel fixing."""
    if capacity.spec is None:
        return failed("combined", capacity.note or "No capacity data")
    details = {
        "tensile_load_kn": tensile.tensile_load_kn,
        "moment_equilibrium": tensile.moment_equilibrium_passes,
        "shear_equilibrium": tensile.shear_equilibrium_passes,
        "depth_check": tensile.depth_check_passes,
    }
    if not tensile.all_checks_pass:
        return failed("combined", "Plate bearing equilibrium sub-checks failed", **details)
    spec = capacity.spec
    n_ratio = tensile.tensile_load_kn / spec.max_tension_kn
    v_ratio = v_ed_kn / spec.max_shear_kn
    f1, f2 = _interaction(n_ratio, v_ratio)
    details.update(
        tension_ratio=round12(n_ratio),
        shear_ratio=round12(v_ratio),
        power_interaction=round12(f1),
        linear_interaction=round12(f2),
    )
    return outcome("combined", max(f1, f2), 1.0, **details)


def steel_fixing(
    v_ed_kn: float,
    tensile: TensileLoadResult,
    capacity: Optional[SteelFixingCapacity],
    edge_ok: bool = True,
) -> VerificationOutcome:
    """Bolt into a steel section: individual tension/shear limits and edge distance."""
    details = {"tensile_load_kn": tensile.tensile_load_kn, "edge_distance_ok": edge_ok}
    if capacity is None:
        return failed("fixing", "No steel fixing capacity", **details)
    if tensile.tensile_load_kn <= 0.0 or not tensile.all_checks_pass:
        return failed("fixing", "Tensile load could not be resolved", **details)
    if not edge_ok:
        return failed("fixing", "Fixing too close to section edge", **details)
    n_ratio = tensile.tensile_load_kn / capacity.tension_kn
    v_ratio = v_ed_kn / capacity.shear_kn
    details.update(fixing=capacity.label, Ft_rd_kn=capacity.tension_kn, Fv_rd_kn=capacity.shear_kn)
    return outcome("fixing", max(n_ratio, v_ratio), 1.0, **details)


def steel_combined(v_ed_kn: float, tensile: TensileLoadResult, capacity: Optional[SteelFixingCapacity]) -> VerificationOutcome:
    if capacity is None:
        return failed("combined", "No steel fixing capacity")
    if not tensile.all_checks_pass:
        return failed("combined", "Tensile load could not be resolved", tensile_load_kn=tensile.tensile_load_kn)
    shear_u = v_ed_kn / capacity.shear_kn
    tension_u = tensile.tensile_load_kn / (TENSION_INTERACTION_FACTOR * capacity.tension_kn)
    return outcome(
        "combined",
        shear_u + tension_u,
        1.0,
        shear_utilization=round12(shear_u),
        adjusted_tension_utilization=round12(tension_u),
        fixing=capacity.label,
    )
