from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..errors import NoLayoutError
from ..precision import round12

PIECE_GAP_MM = 10.0
MIN_BRACKET_EDGE_MM = 35.0
MAX_EDGE_FRACTION = 0.5
SINGLE_BRACKET_MAX_LENGTH_MM = 150.0
MAX_PIECE_LENGTH_MM = 1490.0
SLOT_PITCH_MM = 50.0
LENGTH_ROUNDING_MM = 5.0

# Standard angle piece lengths (mm) per bracket centres, longest first.
STANDARD_LENGTHS: Dict[int, Tuple[float, ...]] = {
    500: (1490.0, 990.0),
    450: (1340.0, 890.0),
    400: (1190.0, 790.0),
    350: (1390.0, 1040.0, 690.0),
    300: (1490.0, 1190.0, 890.0, 590.0),
    250: (1490.0, 1240.0, 990.0, 740.0, 490.0),
    200: (1390.0, 1190.0, 990.0, 790.0, 590.0, 390.0),
}


@dataclass(frozen=True)
class AnglePiece:
    length_mm: float
    standard: bool
    bracket_positions_mm: Tuple[float, ...]
    start_mm: float = 0.0

    @property
    def bracket_count(self) -> int:
        return len(self.bracket_positions_mm)

    @property
    def bracket_spacing_mm(self) -> Optional[float]:
        p = self.bracket_positions_mm
        return round12(p[1] - p[0]) if len(p) > 1 else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "length_mm": self.length_mm,
            "standard": self.standard,
            "start_mm": self.start_mm,
            "bracket_count": self.bracket_count,
            "bracket_spacing_mm": self.bracket_spacing_mm,
            "bracket_positions_mm": list(self.bracket_positions_mm),
        }


@dataclass(frozen=True)
class RunLayout:
    run_length_mm: float
    bracket_centres_mm: float
    pieces: Tuple[AnglePiece, ...]
    gap_mm: float = PIECE_GAP_MM
    length_limited: bool = False

    @property
    def total_brackets(self) -> int:
        return sum(p.bracket_count for p in self.pieces)

    @property
    def distinct_lengths(self) -> int:
        return len({p.length_mm for p in self.pieces})

    @property
    def score(self) -> Tuple[int, int, int]:
        return (self.total_brackets, self.distinct_lengths, len(self.pieces))

    def material_summary(self) -> Dict[str, Any]:
        breakdown: Dict[float, int] = {}
        for p in self.pieces:
            breakdown[p.length_mm] = breakdown.get(p.length_mm, 0) + 1
        return {
            "total_angle_length_mm": round12(sum(p.length_mm for p in self.pieces)),
            "piece_count": len(self.pieces),
            "bracket_count": self.total_brackets,
            "distinct_lengths": self.distinct_lengths,
            "pieces_by_length_mm": {f"{k:g}": v for k, v in sorted(breakdown.items(), reverse=True)},
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_length_mm": self.run_length_mm,
            "bracket_centres_mm": self.bracket_centres_mm,
            "gap_mm": self.gap_mm,
            "length_limited": self.length_limited,
            "pieces": [p.to_dict() for p in self.pieces],
            "summary": self.material_summary(),
        }


# ------------------------------
# Per-piece bracket placement
# ------------------------------

def standard_lengths(bracket_centres_mm: float, max_length_mm: float = MAX_PIECE_LENGTH_MM) -> Tuple[float, ...]:
    """Tabulated lengths, or k*C - 10 on a 5 mm grid for centres outside the table."""
    key = int(round(bracket_centres_mm))
    if abs(bracket_centres_mm - key) < 1e-9 and key in STANDARD_LENGTHS:
        return tuple(L for L in STANDARD_LENGTHS[key] if L <= max_length_mm)
    out: List[float] = []
    k = 2
    while True:
        L = round((k * bracket_centres_mm - PIECE_GAP_MM) / LENGTH_ROUNDING_MM) * LENGTH_ROUNDING_MM
        if L > max_length_mm:
            break
        out.append(float(L))
        k += 1
    return tuple(sorted(out, reverse=True))


def standard_piece_brackets(length_mm: float, bracket_centres_mm: float) -> Tuple[float, ...]:
    k = max(1, int(round((length_mm + PIECE_GAP_MM) / bracket_centres_mm)))
    first = bracket_centres_mm / 2.0 - PIECE_GAP_MM / 2.0
    return tuple(round12(first + i * bracket_centres_mm) for i in range(k))


def _spacing_candidates(bracket_centres_mm: float) -> List[float]:
    out = [float(bracket_centres_mm)]
    m = math.floor(bracket_centres_mm / SLOT_PITCH_MM) * SLOT_PITCH_MM
    while m >= SLOT_PITCH_MM:
        if m < bracket_centres_mm:
            out.append(float(m))
        m -= SLOT_PITCH_MM
    return out


def custom_piece_brackets(length_mm: float, bracket_centres_mm: float) -> Optional[Tuple[float, ...]]:
    """Symmetric bracket placement on a non-standard piece.

    Edge distance must lie in [35, 0.5*C]. Pieces over 150 mm carry at least
    two brackets. None when no spacing satisfies the rules.
    """
    max_edge = MAX_EDGE_FRACTION * bracket_centres_mm
    if length_mm <= SINGLE_BRACKET_MAX_LENGTH_MM:
        edge = length_mm / 2.0
        if MIN_BRACKET_EDGE_MM <= edge <= max_edge:
            return (round12(edge),)
        return None

    for s in _spacing_candidates(bracket_centres_mm):
        n = max(2, math.ceil((length_mm - bracket_centres_mm) / s - 1e-9) + 1)
        span = (n - 1) * s
        if span > length_mm - 2.0 * MIN_BRACKET_EDGE_MM + 1e-9:
            continue
        edge = (length_mm - span) / 2.0
        if edge > max_edge + 1e-9:
            continue
        return tuple(round12(edge + i * s) for i in range(n))
    return None


def _place(length_mm: float, standard: bool, bracket_centres_mm: float) -> Optional[Tuple[float, ...]]:
    if standard:
        return standard_piece_brackets(length_mm, bracket_centres_mm)
    return custom_piece_brackets(length_mm, bracket_centres_mm)


def _build(
    run_length_mm: float,
    bracket_centres_mm: float,
    lengths: Sequence[Tuple[float, bool]],
    length_limited: bool = False,
) -> Optional[RunLayout]:
    pieces: List[AnglePiece] = []
    cursor = PIECE_GAP_MM
    for length, standard in lengths:
        brackets = _place(length, standard, bracket_centres_mm)
        if brackets is None:
            return None
        pieces.append(AnglePiece(round12(length), standard, brackets, start_mm=round12(cursor)))
        cursor += length + PIECE_GAP_MM
    if not pieces or abs(cursor - run_length_mm) > 1e-6:
        return None
    return RunLayout(run_length_mm, bracket_centres_mm, tuple(pieces), length_limited=length_limited)


# ------------------------------
# Tilings
# ------------------------------

def _remainder_splits(space_mm: float, max_length_mm: float) -> List[List[float]]:
    """Ways to fill the remaining space with at most two custom pieces."""
    if abs(space_mm) < 1e-6:
        return [[]]
    if space_mm <= PIECE_GAP_MM:
        return []
    one = space_mm - PIECE_GAP_MM
    out: List[List[float]] = []
    if one <= max_length_mm:
        out.append([one])
    two_total = space_mm - 2.0 * PIECE_GAP_MM
    if two_total > 0.0:
        a = math.floor(two_total / 2.0 / LENGTH_ROUNDING_MM) * LENGTH_ROUNDING_MM
        b = two_total - a
        if 0.0 < a and b <= max_length_mm:
            out.append([b, a])
    return out


def _candidate_tilings(run_length_mm: float, standards: Sequence[float], max_length_mm: float) -> List[List[Tuple[float, bool]]]:
    space0 = run_length_mm - PIECE_GAP_MM
    tilings: List[List[Tuple[float, bool]]] = []

    if standards:
        longest = standards[0]
        max_m = int(space0 // (longest + PIECE_GAP_MM))
        # greedy fill with each suffix of the shorter lengths, or none at all
        fills = [standards[j:] for j in range(1, len(standards))] + [()]
        for m in range(max_m, -1, -1):
            for fill in fills:
                chosen = [longest] * m
                space = space0 - m * (longest + PIECE_GAP_MM)
                for L in fill:
                    while space >= L + PIECE_GAP_MM - 1e-9:
                        chosen.append(L)
                        space -= L + PIECE_GAP_MM
                for rest in _remainder_splits(space, max_length_mm):
                    tilings.append([(L, True) for L in chosen] + [(r, False) for r in rest])

    # all-custom equal splits
    n_min = max(1, math.ceil((space0) / (max_length_mm + PIECE_GAP_MM)))
    for n in range(n_min, n_min + 3):
        total = run_length_mm - PIECE_GAP_MM * (n + 1)
        if total <= 0.0:
            break
        base = math.floor(total / n)
        extra = total - base * n
        lengths = [base + extra] + [base] * (n - 1)
        if max(lengths) <= max_length_mm:
            tilings.append([(float(L), L in standards) for L in lengths])
    return tilings


def optimize_run_layout(
    run_length_mm: float,
    bracket_centres_mm: float,
    max_piece_length_mm: float = MAX_PIECE_LENGTH_MM,
) -> RunLayout:
    """Split a support run into angle pieces.

    Minimises total brackets, then distinct piece lengths, then piece count.
    The first candidate wins ties.
    """
    if run_length_mm <= 2.0 * PIECE_GAP_MM:
        raise NoLayoutError(f"Run length {run_length_mm:g} mm is too short for an angle piece.")
    if bracket_centres_mm <= 0.0:
        raise NoLayoutError("Bracket centres must be positive.")

    standards = standard_lengths(bracket_centres_mm, max_piece_length_mm)
    best: Optional[RunLayout] = None
    for tiling in _candidate_tilings(run_length_mm, standards, max_piece_length_mm):
        layout = _build(run_length_mm, bracket_centres_mm, tiling)
        if layout is not None and (best is None or layout.score < best.score):
            best = layout
    if best is None:
        raise NoLayoutError(
            f"No angle layout satisfies bracket edge rules for a {run_length_mm:g} mm run at {bracket_centres_mm:g} mm centres."
        )
    logger.debug(f"Run layout {run_length_mm:g} mm @ {bracket_centres_mm:g}: score={best.score}")
    return best


def fixed_length_layout(run_length_mm: float, bracket_centres_mm: float, piece_length_mm: float) -> RunLayout:
    """Tile the run with a fixed piece length plus custom remainder piece(s)."""
    if run_length_mm <= 2.0 * PIECE_GAP_MM:
        raise NoLayoutError(f"Run length {run_length_mm:g} mm is too short for an angle piece.")
    is_standard = piece_length_mm in standard_lengths(bracket_centres_mm)
    space0 = run_length_mm - PIECE_GAP_MM
    max_m = int(space0 // (piece_length_mm + PIECE_GAP_MM))
    for m in range(max_m, -1, -1):
        space = space0 - m * (piece_length_mm + PIECE_GAP_MM)
        for rest in _remainder_splits(space, piece_length_mm):
            tiling = [(piece_length_mm, is_standard)] * m + [(r, False) for r in rest]
            layout = _build(run_length_mm, bracket_centres_mm, tiling, length_limited=True)
            if layout is not None:
                return layout
    raise NoLayoutError(
        f"No layout with {piece_length_mm:g} mm pieces satisfies bracket edge rules for a {run_length_mm:g} mm run."
    )
