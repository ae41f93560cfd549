from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..capacity_table import CapacityLookup
from ..constants import BASE_PLATE_WIDTH_MM, CONCRETE_GRADE_N_MM2
from ..sections import AngleModel, AngleSection
from ..steel_fixings import SteelFixingCapacity
from .angle import angle_deflection, moment_resistance, shear_resistance
from .bracket import bracket_design
from .connection import angle_to_bracket, shear_reduction_packers
from .deflection import dropping_below_slab
from .fixing import (
    TensileLoadResult,
    calculate_tensile_load,
    channel_combined,
    channel_fixing,
    fixing_moment,
    steel_combined,
    steel_fixing,
)
from .outcome import VerificationOutcome

CHECK_ORDER: Tuple[str, ...] = (
    "shear",
    "moment",
    "deflection",
    "connection",
    "fixing",
    "combined",
    "dropping_below_slab",
    "packers",
    "bracket_design",
)


@dataclass(frozen=True)
class CheckInputs:
    v_ed_kn: float
    characteristic_udl_kn_per_m: float
    section: AngleSection
    model: AngleModel
    angle_thickness_mm: int
    horizontal_leg_mm: float
    bolt_diameter_mm: int
    bracket_height_mm: float
    bracket_thickness_mm: float
    bracket_projection_mm: float
    bracket_centres_mm: float
    rise_to_bolts_mm: float
    drop_below_slab_mm: float
    notch_height_mm: float
    cavity_mm: float
    design_cavity_mm: float
    capacity: Optional[CapacityLookup] = None
    steel_capacity: Optional[SteelFixingCapacity] = None
    steel_edge_ok: bool = True
    bearing_stress_n_mm2: float = CONCRETE_GRADE_N_MM2
    base_plate_width_mm: float = BASE_PLATE_WIDTH_MM


@dataclass(frozen=True)
class VerificationResults:
    outcomes: Tuple[VerificationOutcome, ...]
    tensile: TensileLoadResult

    @property
    def passes(self) -> bool:
        return all(o.passes for o in self.outcomes)

    def get(self, name: str) -> VerificationOutcome:
        for o in self.outcomes:
            if o.name == name:
                return o
        raise KeyError(name)

    def failed_checks(self) -> Tuple[str, ...]:
        return tuple(o.name for o in self.outcomes if not o.passes)

    def governing(self) -> VerificationOutcome:
        return max(self.outcomes, key=lambda o: o.utilization)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passes": self.passes,
            "checks": {o.name: o.to_dict() for o in self.outcomes},
            "tensile_load_kn": self.tensile.tensile_load_kn,
        }


def verify_all(ci: CheckInputs) -> VerificationResults:
    """Run every check in fixed order. All checks always run so reports are complete."""
    shear = shear_resistance(ci.v_ed_kn, ci.section)
    moment = moment_resistance(ci.v_ed_kn, ci.section, ci.model, ci.angle_thickness_mm)
    deflection = angle_deflection(
        ci.v_ed_kn,
        moment.details["M_ed_knm"],
        ci.section,
        ci.model,
        ci.angle_thickness_mm,
        ci.horizontal_leg_mm,
    )
    connection = angle_to_bracket(ci.v_ed_kn, ci.model, ci.horizontal_leg_mm, ci.bolt_diameter_mm)

    M_fix = fixing_moment(ci.v_ed_kn, ci.design_cavity_mm, ci.model.eccentricity_mm)
    tensile = calculate_tensile_load(M_fix, ci.base_plate_width_mm, ci.rise_to_bolts_mm, ci.bearing_stress_n_mm2)
    if ci.capacity is not None:
        fixing = channel_fixing(ci.v_ed_kn, tensile, ci.capacity)
        combined = channel_combined(ci.v_ed_kn, tensile, ci.capacity)
    else:
        fixing = steel_fixing(ci.v_ed_kn, tensile, ci.steel_capacity, ci.steel_edge_ok)
        combined = steel_combined(ci.v_ed_kn, tensile, ci.steel_capacity)

    dropping = dropping_below_slab(
        ci.v_ed_kn,
        drop_below_slab_mm=ci.drop_below_slab_mm,
        notch_height_mm=ci.notch_height_mm,
        design_cavity_mm=ci.design_cavity_mm,
        eccentricity_mm=ci.model.eccentricity_mm,
        bearing_mm=ci.section.bearing_mm,
        bracket_thickness_mm=ci.bracket_thickness_mm,
        bracket_projection_mm=ci.bracket_projection_mm,
        angle_deflection_mm=deflection.details["total_deflection_mm"],
        secant_modulus=deflection.details["secant_modulus_n_mm2"],
        characteristic_udl_kn_per_m=ci.characteristic_udl_kn_per_m,
        bracket_centres_mm=ci.bracket_centres_mm,
        angle_thickness_mm=ci.angle_thickness_mm,
    )
    packers = shear_reduction_packers(ci.v_ed_kn, ci.model, ci.horizontal_leg_mm, ci.bolt_diameter_mm)
    bracket = bracket_design(
        ci.v_ed_kn,
        ci.bracket_height_mm,
        ci.notch_height_mm,
        ci.bracket_thickness_mm,
        ci.cavity_mm,
        ci.model.eccentricity_mm,
    )
    return VerificationResults(
        outcomes=(shear, moment, deflection, connection, fixing, combined, dropping, packers, bracket),
        tensile=tensile,
    )
