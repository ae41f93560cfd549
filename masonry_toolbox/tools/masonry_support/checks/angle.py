from __future__ import annotations

import math

from ..constants import (
    GAMMA_M0,
    LOAD_FACTOR,
    MAX_ANGLE_DEFLECTION_MM,
    RAMBERG_OSGOOD_N,
    SQRT_3,
    STEEL_E_N_MM2,
    STEEL_YIELD_N_MM2,
)
from ..precision import round12
from ..sections import AngleModel, AngleSection
from .outcome import VerificationOutcome, outcome


def moment_lever_arm(section: AngleSection, model: AngleModel, angle_thickness_mm: float) -> float:
    return model.eccentricity_mm + section.d_mm + angle_thickness_mm


def moment_resistance(v_ed_kn: float, section: AngleSection, model: AngleModel, angle_thickness_mm: float) -> VerificationOutcome:
    """ULS bending of the angle horizontal leg at the heel."""
    L1 = moment_lever_arm(section, model, angle_thickness_mm)
    M_ed = v_ed_kn * L1 / 1000.0
    Mc_rd = (section.section_modulus_mm3 / 1e6) * (STEEL_YIELD_N_MM2 / GAMMA_M0)
    return outcome(
        "moment",
        M_ed,
        Mc_rd,
        lever_arm_mm=round12(L1),
        M_ed_knm=round12(M_ed),
        Mc_rd_knm=round12(Mc_rd),
    )


def shear_resistance(v_ed_kn: float, section: AngleSection) -> VerificationOutcome:
    V_rd = section.shear_area_mm2 * (STEEL_YIELD_N_MM2 / SQRT_3) / GAMMA_M0 / 1000.0
    return outcome(
        "shear",
        v_ed_kn,
        V_rd,
        V_ed_kn=round12(v_ed_kn),
        V_rd_kn=round12(V_rd),
        shear_area_mm2=round12(section.shear_area_mm2),
    )


def secant_modulus(stress_n_mm2: float) -> float:
    """Ramberg-Osgood secant modulus at a service stress."""
    if stress_n_mm2 <= 0.0:
        return STEEL_E_N_MM2
    E = STEEL_E_N_MM2
    Es = E / (1.0 + 0.002 * (E / stress_n_mm2) * (stress_n_mm2 / STEEL_YIELD_N_MM2) ** RAMBERG_OSGOOD_N)
    return round12(Es)


def angle_deflection(
    v_ed_kn: float,
    m_ed_knm: float,
    section: AngleSection,
    model: AngleModel,
    angle_thickness_mm: float,
    horizontal_leg_mm: float,
) -> VerificationOutcome:
    """SLS deflection at the angle toe: leg bending plus heel rotation."""
    L1 = moment_lever_arm(section, model, angle_thickness_mm)
    V_ek = v_ed_kn / LOAD_FACTOR
    M_ek = V_ek * L1 / 1000.0
    stress = m_ed_knm * 1e6 / section.section_modulus_mm3 / LOAD_FACTOR
    Es = secant_modulus(stress)
    a = model.a_mm
    b = model.b_mm
    I = model.i_mm
    Ixx = section.ixx_mm4

    d_tip = V_ek * 1000.0 * a**2 * (3.0 * (a + b) - a) / (6.0 * Es * Ixx)
    d_horz = M_ek * 1e6 * I**2 / (2.0 * Es * Ixx)
    rotation = math.atan(d_horz / I) if I > 0.0 else 0.0
    d_heel = horizontal_leg_mm * math.sin(rotation)
    total = d_tip + d_heel

    out = outcome(
        "deflection",
        total,
        MAX_ANGLE_DEFLECTION_MM,
        V_ek_kn=round12(V_ek),
        M_ek_knm=round12(M_ek),
        sls_stress_n_mm2=round12(stress),
        secant_modulus_n_mm2=Es,
        tip_deflection_mm=round12(d_tip),
        horizontal_deflection_mm=round12(d_horz),
        rotation_rad=round12(rotation),
        heel_deflection_mm=round12(d_heel),
        total_deflection_mm=round12(total),
    )
    return out
