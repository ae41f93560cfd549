from __future__ import annotations

from ..constants import (
    ALPHA_TENSION,
    BOLT_FUB_N_MM2,
    BOLT_STRESS_AREA_MM2,
    GAMMA_M2,
    PACKER_THICKNESS_MM,
    TENSION_INTERACTION_FACTOR,
)
from ..precision import round12
from ..sections import AngleModel
from .outcome import VerificationOutcome, failed, outcome


def bolt_resistances(bolt_diameter_mm: int) -> tuple[float, float]:
    """(shear, tension) resistance of one bolt in kN."""
    As = BOLT_STRESS_AREA_MM2[int(bolt_diameter_mm)]
    v_res = 0.5 * BOLT_FUB_N_MM2 * As / GAMMA_M2 / 1000.0
    n_res = ALPHA_TENSION * As * BOLT_FUB_N_MM2 / GAMMA_M2 / 1000.0
    return v_res, n_res


def bolt_tension(v_ed_kn: float, model: AngleModel, horizontal_leg_mm: float) -> float:
    M_b = v_ed_kn * (horizontal_leg_mm - model.b_mm + 10.0) / 1000.0
    return M_b / (model.i_mm / 1000.0)


def angle_to_bracket(v_ed_kn: float, model: AngleModel, horizontal_leg_mm: float, bolt_diameter_mm: int) -> VerificationOutcome:
    """Bolt shear plus prying tension at the angle/bracket connection."""
    if int(bolt_diameter_mm) not in BOLT_STRESS_AREA_MM2:
        return failed("connection", f"Unsupported bolt diameter M{bolt_diameter_mm}")
    if model.i_mm <= 0.0:
        return failed("connection", "Vertical leg too short for a bolt lever arm", i_mm=round12(model.i_mm))
    v_res, n_res = bolt_resistances(bolt_diameter_mm)
    n_bolt = bolt_tension(v_ed_kn, model, horizontal_leg_mm)
    u_shear = v_ed_kn / v_res * 100.0
    u_combined = u_shear + n_bolt / (TENSION_INTERACTION_FACTOR * n_res) * 100.0
    return outcome(
        "connection",
        u_combined,
        100.0,
        bolt_shear_resistance_kn=round12(v_res),
        bolt_tension_resistance_kn=round12(n_res),
        bolt_tension_kn=round12(n_bolt),
        shear_utilization=round12(u_shear),
    )


def packer_reduction_factor(bolt_diameter_mm: int, packer_thickness_mm: float = PACKER_THICKNESS_MM) -> float:
    d = float(bolt_diameter_mm)
    return min(9.0 * d / (8.0 * d + 3.0 * packer_thickness_mm), 1.0)


def shear_reduction_packers(v_ed_kn: float, model: AngleModel, horizontal_leg_mm: float, bolt_diameter_mm: int) -> VerificationOutcome:
    """Connection check repeated with bolt shear reduced for packing."""
    if int(bolt_diameter_mm) not in BOLT_STRESS_AREA_MM2 or model.i_mm <= 0.0:
        return failed("packers", "Connection geometry invalid")
    beta = packer_reduction_factor(bolt_diameter_mm)
    v_res, n_res = bolt_resistances(bolt_diameter_mm)
    v_rd = beta * v_res
    n_bolt = bolt_tension(v_ed_kn, model, horizontal_leg_mm)
    u = v_ed_kn / v_rd * 100.0 + n_bolt / (TENSION_INTERACTION_FACTOR * n_res) * 100.0
    return outcome(
        "packers",
        u,
        100.0,
        beta_p=round12(beta),
        reduced_shear_resistance_kn=round12(v_rd),
        packer_thickness_mm=PACKER_THICKNESS_MM,
    )
