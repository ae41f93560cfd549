from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import (
    ANGLE_SHIM_MM,
    BRACKET_SPINE_WIDTH_MM,
    CAVITY_TOLERANCE_MM,
    DESIGN_CAVITY_ALLOWANCE_MM,
    HEAVY_ANGLE_THICKNESS_MM,
    HORIZONTAL_LEG_MM,
    MODEL_LEG_ALLOWANCE_MM,
    STEEL_KG_PER_MM3,
    VERTICAL_LEG_HEAVY_MM,
    VERTICAL_LEG_MM,
)
from .precision import round12


@dataclass(frozen=True)
class AngleSection:
    """Angle geometry and section properties over one bracket spacing."""

    d_mm: float  # distance from slab face to angle heel
    bearing_mm: float  # horizontal leg bearing length b
    root_radius_mm: float
    section_modulus_mm3: float
    shear_area_mm2: float
    ixx_mm4: float


@dataclass(frozen=True)
class AngleModel:
    eccentricity_mm: float
    a_mm: float
    b_mm: float
    i_mm: float


def vertical_leg_for(angle_thickness_mm: float) -> float:
    return VERTICAL_LEG_HEAVY_MM if int(angle_thickness_mm) == HEAVY_ANGLE_THICKNESS_MM else VERTICAL_LEG_MM


def design_cavity(cavity_mm: float) -> float:
    return cavity_mm + DESIGN_CAVITY_ALLOWANCE_MM


def bracket_projection(cavity_mm: float) -> float:
    """Cavity less 10 mm, rounded down to a 5 mm increment."""
    return math.floor((cavity_mm - CAVITY_TOLERANCE_MM) / 5.0) * 5.0


def angle_section(
    cavity_mm: float,
    angle_thickness_mm: float,
    bracket_centres_mm: float,
    horizontal_leg_mm: float = HORIZONTAL_LEG_MM,
) -> AngleSection:
    C = cavity_mm
    D = C - CAVITY_TOLERANCE_MM
    T = angle_thickness_mm
    d = (C - D - ANGLE_SHIM_MM) + (6.0 if int(T) == 5 else 5.0)
    b = horizontal_leg_mm - T - d
    return AngleSection(
        d_mm=d,
        bearing_mm=b,
        root_radius_mm=T,
        section_modulus_mm3=bracket_centres_mm * T**2 / 6.0,
        shear_area_mm2=bracket_centres_mm * T,
        ixx_mm4=bracket_centres_mm * T**3 / 12.0,
    )


def angle_model(
    section: AngleSection,
    angle_thickness_mm: float,
    vertical_leg_mm: float,
    facade_thickness_mm: float,
    load_position: float,
) -> AngleModel:
    """Lever arms of the angle cantilever (mm)."""
    T = angle_thickness_mm
    R = section.root_radius_mm
    ecc = facade_thickness_mm * load_position
    a = section.d_mm + ecc - (T + R) + math.pi * (T / 2.0 + R)
    b = section.bearing_mm - ecc
    i = vertical_leg_mm - (R + T) - MODEL_LEG_ALLOWANCE_MM
    return AngleModel(eccentricity_mm=ecc, a_mm=a, b_mm=b, i_mm=i)


@dataclass(frozen=True)
class SystemWeight:
    bracket_volume_mm3: float
    angle_volume_mm3: float
    bracket_kg: float
    bracket_kg_per_m: float
    angle_kg_per_m: float
    total_kg_per_m: float


def system_weight(
    bracket_height_mm: float,
    bracket_projection_mm: float,
    bracket_thickness_mm: float,
    bracket_centres_mm: float,
    angle_thickness_mm: float,
    vertical_leg_mm: float,
    horizontal_leg_mm: float = HORIZONTAL_LEG_MM,
) -> SystemWeight:
    """Steel mass per metre of run: one angle metre plus 1000/centres brackets."""
    t = int(bracket_thickness_mm)
    if t not in BRACKET_SPINE_WIDTH_MM:
        raise ValueError(f"Invalid bracket thickness: {bracket_thickness_mm}. Must be 3 or 4.")
    bracket_vol = (bracket_projection_mm * 2.0 + BRACKET_SPINE_WIDTH_MM[t]) * bracket_height_mm * bracket_thickness_mm
    angle_vol = (vertical_leg_mm + horizontal_leg_mm - angle_thickness_mm) * 1000.0 * angle_thickness_mm
    per_m = 1000.0 / bracket_centres_mm
    bracket_kg = bracket_vol * STEEL_KG_PER_MM3
    angle_kg = angle_vol * STEEL_KG_PER_MM3
    return SystemWeight(
        bracket_volume_mm3=round12(bracket_vol),
        angle_volume_mm3=round12(angle_vol),
        bracket_kg=round12(bracket_kg),
        bracket_kg_per_m=round12(bracket_kg * per_m),
        angle_kg_per_m=round12(angle_kg),
        total_kg_per_m=round12(angle_kg + bracket_kg * per_m),
    )
