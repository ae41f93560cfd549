from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import SteelSection


class SteelFixingNotFoundError(RuntimeError):
    pass


@dataclass(frozen=True)
class SteelFixingCapacity:
    method: str  # SET_SCREW | BLIND_BOLT
    bolt_size: str  # M10 | M12 | M16
    tension_kn: float
    shear_kn: float

    @property
    def label(self) -> str:
        return f"{self.method} {self.bolt_size}"


# Design resistances per fixing (kN)
_CAPACITIES: Dict[Tuple[str, str], Tuple[float, float]] = {
    ("BLIND_BOLT", "M10"): (12.7, 19.5),
    ("BLIND_BOLT", "M12"): (22.0, 28.3),
    ("BLIND_BOLT", "M16"): (42.9, 52.8),
    ("SET_SCREW", "M10"): (20.9, 18.0),
    ("SET_SCREW", "M12"): (30.3, 26.2),
    ("SET_SCREW", "M16"): (56.5, 48.7),
}

HOLE_DIAMETER_MM: Dict[str, float] = {"M10": 11.0, "M12": 13.0, "M16": 18.0}
EDGE_DISTANCE_FACTOR = 1.2
STEEL_BOLT_SIZES: Tuple[str, ...] = ("M10", "M12", "M16")
FIXING_POSITION_STEP_MM = 5.0


def get_steel_fixing_capacity(method: str, bolt_size: str) -> SteelFixingCapacity:
    key = (method.upper(), bolt_size.upper())
    if key not in _CAPACITIES:
        raise SteelFixingNotFoundError(f"No capacity for {method} {bolt_size}.")
    t, v = _CAPACITIES[key]
    return SteelFixingCapacity(method=key[0], bolt_size=key[1], tension_kn=t, shear_kn=v)


def min_edge_distance_mm(bolt_size: str) -> float:
    return EDGE_DISTANCE_FACTOR * HOLE_DIAMETER_MM[bolt_size.upper()]


def edge_distance_ok(fixing_position_mm: float, section_height_mm: float, bolt_size: str) -> bool:
    e = min_edge_distance_mm(bolt_size)
    return fixing_position_mm >= e and (section_height_mm - fixing_position_mm) >= e


def steel_fixing_positions(section_height_mm: float, bolt_size: str = "M12") -> List[float]:
    """Admissible fixing depths, on a 5 mm grid, clear of both section edges."""
    e = min_edge_distance_mm(bolt_size)
    start = math.ceil(e / FIXING_POSITION_STEP_MM) * FIXING_POSITION_STEP_MM
    out: List[float] = []
    p = start
    while p <= section_height_mm - e + 1e-9:
        out.append(p)
        p += FIXING_POSITION_STEP_MM
    return out


def steel_fixing_options(section: SteelSection) -> List[Tuple[str, str]]:
    """(method, bolt size) pairs allowed for a section, in search order."""
    return [(m, s) for m in section.fixing_methods() for s in STEEL_BOLT_SIZES]


def lookup_steel_capacity(method: Optional[str], bolt_size: Optional[str]) -> Optional[SteelFixingCapacity]:
    if not method or not bolt_size:
        return None
    try:
        return get_steel_fixing_capacity(method, bolt_size)
    except SteelFixingNotFoundError:
        return None
