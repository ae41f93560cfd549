from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .constants import GRAVITY, LOAD_FACTOR
from .precision import round12


@dataclass(frozen=True)
class Loading:
    characteristic_udl_kn_per_m: float
    design_udl_kn_per_m: float
    shear_force_kn: float
    area_load_kn_per_mm2: Optional[float] = None


def area_load(density_kg_m3: float, height_m: float) -> float:
    """Masonry self weight per unit elevation area (kN/mm2) for a height in metres."""
    return density_kg_m3 * GRAVITY * 1e-12 * (height_m * 1000.0)


def characteristic_udl_from_masonry(density_kg_m3: float, height_m: float, thickness_mm: float) -> float:
    """Characteristic line load (kN/m): area load x leaf thickness, scaled from kN/mm."""
    return area_load(density_kg_m3, height_m) * thickness_mm * 1000.0


def calculate_loading(
    bracket_centres_mm: float,
    characteristic_load_kn_per_m: Optional[float] = None,
    *,
    density_kg_m3: float = 2000.0,
    height_m: float = 3.0,
    thickness_mm: float = 102.5,
) -> Loading:
    area = None
    char = characteristic_load_kn_per_m
    if not char:
        area = area_load(density_kg_m3, height_m)
        char = characteristic_udl_from_masonry(density_kg_m3, height_m, thickness_mm)
    design = char * LOAD_FACTOR
    v_ed = design * bracket_centres_mm / 1000.0
    return Loading(
        characteristic_udl_kn_per_m=round12(char),
        design_udl_kn_per_m=round12(design),
        shear_force_kn=round12(v_ed),
        area_load_kn_per_mm2=area,
    )
