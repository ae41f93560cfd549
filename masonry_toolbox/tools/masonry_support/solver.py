from __future__ import annotations

import bisect
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from .analysis.classification import valid_combinations
from .analysis.geometry import bracket_height, optimal_fixing_position, select_dim_d
from .calc_trace import CalcTrace
from .capacity_table import CapacityTable
from .constants import (
    ANGLE_THICKNESSES_MM,
    BOLT_DIAMETERS_MM,
    BRACKET_CENTRES_MM,
    BRACKET_THICKNESSES_MM,
    CAST_IN_CHANNELS,
    HEAVY_LOAD_CENTRES_LIMIT_MM,
    HEAVY_LOAD_KN_PER_M,
    HORIZONTAL_LEG_MM,
    LARGE_SEARCH_SPACE,
    LIGHT_LOAD_CENTRES_LIMIT_MM,
    POST_FIX_CHANNELS,
    REVIEW_REQUIRED_CHANNELS,
    THICK_BRACKET_LOAD_KN_PER_M,
    THICK_BRACKET_OVERHANG_MM,
)
from .errors import CapacityDataError, ManufacturingLimitError, SearchCancelledError, SearchTimeoutError
from .evaluation import CandidateEvaluation, CandidateParameters, evaluate_fast, evaluate_with_trace, fixing_bottom_edge
from .loads import characteristic_udl_from_masonry
from .models import DesignInputs, DimDScan, FixedFixingPosition, SearchConfig
from .precision import round12
from .progress import ProgressReporter, ProgressSink
from .sections import vertical_leg_for
from .steel_fixings import steel_fixing_options, steel_fixing_positions

DEFAULT_TIMEOUT_S = 120.0
STATUS_SUCCESS = "success"
STATUS_NO_DESIGN = "no_valid_design"
NO_DESIGN_MESSAGE = "No valid design found"


@dataclass(frozen=True)
class FixingOption:
    channel_type: Optional[str] = None
    steel_fixing_method: Optional[str] = None
    steel_bolt_size: Optional[str] = None


@dataclass(frozen=True)
class Alternative:
    evaluation: CandidateEvaluation
    weight_difference_pct: float
    differences: Dict[str, Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        d = self.evaluation.to_dict()
        d["weight_difference_pct"] = self.weight_difference_pct
        d["differences"] = self.differences
        return d


@dataclass(frozen=True)
class OptimizationResult:
    status: str
    message: str
    best: Optional[CandidateEvaluation]
    alternatives: Tuple[Alternative, ...] = ()
    combinations_total: int = 0
    combinations_checked: int = 0
    feasible_count: int = 0
    rejected_candidates: int = 0
    elapsed_s: float = 0.0
    warnings: Tuple[str, ...] = ()
    alerts: Tuple[str, ...] = ()

    @property
    def feasible(self) -> bool:
        return self.status == STATUS_SUCCESS and self.best is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "best": self.best.to_dict() if self.best is not None else None,
            "alternatives": [a.to_dict() for a in self.alternatives],
            "combinations_total": self.combinations_total,
            "combinations_checked": self.combinations_checked,
            "feasible_count": self.feasible_count,
            "rejected_candidates": self.rejected_candidates,
            "elapsed_s": self.elapsed_s,
            "warnings": list(self.warnings),
            "alerts": list(self.alerts),
        }


# ------------------------------
# Search domain
# ------------------------------

def characteristic_load(design: DesignInputs) -> float:
    if design.characteristic_load_kn_per_m:
        return float(design.characteristic_load_kn_per_m)
    return characteristic_udl_from_masonry(design.masonry_density_kg_m3, design.masonry_height_m, design.masonry_thickness_mm)


def centres_limit(load_kn_per_m: float) -> float:
    return HEAVY_LOAD_CENTRES_LIMIT_MM if load_kn_per_m > HEAVY_LOAD_KN_PER_M else LIGHT_LOAD_CENTRES_LIMIT_MM


def bracket_thicknesses(design: DesignInputs, load_kn_per_m: float) -> Tuple[int, ...]:
    """Only the 4 mm bracket when heavily loaded and extending well above or below the slab."""
    SL = design.support_level_mm
    slab = design.effective_slab_thickness_mm()
    extends = SL > THICK_BRACKET_OVERHANG_MM or SL < -slab - THICK_BRACKET_OVERHANG_MM
    if load_kn_per_m > THICK_BRACKET_LOAD_KN_PER_M and extends:
        return (4,)
    return BRACKET_THICKNESSES_MM


def fixing_options(design: DesignInputs, table: Optional[CapacityTable]) -> Tuple[List[FixingOption], List[str]]:
    warnings: List[str] = []
    if design.fixing_family == "steel":
        # the input model guarantees a section for the steel family
        opts = [FixingOption(steel_fixing_method=m, steel_bolt_size=s) for m, s in steel_fixing_options(design.steel_section)]
        return opts, warnings

    if table is None:
        raise CapacityDataError("A capacity table is required for channel fixings.")

    if design.channel_types:
        requested = list(design.channel_types)
    elif design.fixing_family == "cast_in":
        requested = list(CAST_IN_CHANNELS)
    elif design.fixing_family == "post_fix":
        requested = list(POST_FIX_CHANNELS)
    else:
        requested = list(CAST_IN_CHANNELS) + list(POST_FIX_CHANNELS)

    available = set(table.channel_types())
    missing = [c for c in requested if c not in available]
    if missing and design.channel_types:
        warnings.append(f"No capacity data for channel types {missing}; they were not searched.")
    return [FixingOption(channel_type=c) for c in requested if c in available], warnings


def _centres_for(option: FixingOption, design: DesignInputs, table: Optional[CapacityTable], limit: float) -> Tuple[List[float], str]:
    if option.channel_type is None:
        return [float(c) for c in BRACKET_CENTRES_MM if c <= limit], ""
    centres, note = table.valid_bracket_centres(option.channel_type, design.effective_slab_thickness_mm())
    return [c for c in centres if c <= limit], note


def enumerate_candidates(
    design: DesignInputs,
    table: Optional[CapacityTable],
    config: SearchConfig,
) -> Tuple[List[CandidateParameters], List[str]]:
    """Cartesian product of the discrete domains, in a fixed order.

    Inadmissible bracket/angle pairs for the support level are pruned here and
    never evaluated. Fixing position is the configured start; the nested
    sub-searches run per candidate during evaluation.
    """
    load = characteristic_load(design)
    limit = centres_limit(load)
    options, warnings = fixing_options(design, table)
    combos = valid_combinations(design.support_level_mm)
    if not combos:
        warnings.append(
            f"Support level {design.support_level_mm:g} mm has no valid bracket/angle orientation combination."
        )
    fp = config.fixing_position
    start = fp.position_mm if isinstance(fp, FixedFixingPosition) else fp.start_position_mm

    out: List[CandidateParameters] = []
    for option in options:
        centres, note = _centres_for(option, design, table, limit)
        if note:
            warnings.append(note)
        for Bcc in centres:
            for bt in bracket_thicknesses(design, load):
                for T in ANGLE_THICKNESSES_MM:
                    for bolt in BOLT_DIAMETERS_MM:
                        for bracket_type, orientation in combos:
                            out.append(
                                CandidateParameters(
                                    bracket_centres_mm=float(Bcc),
                                    bracket_thickness_mm=int(bt),
                                    angle_thickness_mm=int(T),
                                    vertical_leg_mm=vertical_leg_for(T),
                                    horizontal_leg_mm=HORIZONTAL_LEG_MM,
                                    bolt_diameter_mm=int(bolt),
                                    bracket_type=bracket_type,
                                    angle_orientation=orientation,
                                    fixing_position_mm=float(start),
                                    channel_type=option.channel_type,
                                    steel_bolt_size=option.steel_bolt_size,
                                    steel_fixing_method=option.steel_fixing_method,
                                )
                            )
    return out, warnings


def resolve_sub_searches(
    design: DesignInputs,
    seed: CandidateParameters,
    config: SearchConfig,
    table: Optional[CapacityTable] = None,
) -> Optional[CandidateParameters]:
    """Run the fixing-position and Dim D sub-searches for one candidate.

    Channel candidates are bounded by their own tabulated bottom edge distance.
    Returns None when an Inverted bracket has no admissible Dim D.
    """
    slab = design.effective_slab_thickness_mm()
    allowed = None
    if seed.is_steel:
        allowed = steel_fixing_positions(slab, seed.steel_bolt_size or "M12")
    position = optimal_fixing_position(
        config.fixing_position,
        design.support_level_mm,
        seed.vertical_leg_mm,
        seed.bracket_type,
        seed.angle_orientation,
        slab,
        allowed_positions=allowed,
        bottom_edge_mm=fixing_bottom_edge(seed, table, slab),
    )
    dim_d = None
    if seed.bracket_type == "Inverted" and isinstance(config.dim_d, DimDScan):
        H = bracket_height(design.support_level_mm, position, seed.vertical_leg_mm, seed.bracket_type, seed.angle_orientation)
        dim_d = select_dim_d(config.dim_d, H, max_dim_d_mm=slab - position)
        if dim_d is None:
            return None
    if position == seed.fixing_position_mm and dim_d is None:
        return seed
    return replace(seed, fixing_position_mm=position, dim_d_mm=dim_d)


# ------------------------------
# Search
# ------------------------------

@dataclass
class _Collector:
    """Feasible designs ordered by (weight, enumeration index), bounded to top N+1."""

    keep: int
    ranked: List[Tuple[float, int, CandidateEvaluation]] = field(default_factory=list)
    feasible_count: int = 0
    rejected: int = 0
    checked: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def offer(self, index: int, ev: CandidateEvaluation) -> None:
        key = (ev.weight_kg_per_m, index)
        with self.lock:
            self.feasible_count += 1
            pos = bisect.bisect_left(self.ranked, key, key=lambda r: (r[0], r[1]))
            if pos >= self.keep:
                return
            self.ranked.insert(pos, (key[0], key[1], ev))
            del self.ranked[self.keep :]
            if pos == 0:
                logger.debug(f"New best design #{index}: {ev.params.fixing_label} {ev.weight_kg_per_m:.3f} kg/m")

    def best_weight(self) -> Optional[float]:
        with self.lock:
            return self.ranked[0][0] if self.ranked else None


class _Search:
    def __init__(
        self,
        design: DesignInputs,
        table: Optional[CapacityTable],
        config: SearchConfig,
        seeds: Sequence[CandidateParameters],
        reporter: ProgressReporter,
        is_cancelled: Optional[Callable[[], bool]],
        timeout_s: float,
    ) -> None:
        self.design = design
        self.table = table
        self.config = config
        self.seeds = seeds
        self.reporter = reporter
        self.is_cancelled = is_cancelled
        self.deadline = time.monotonic() + timeout_s
        self.timeout_s = timeout_s
        self.collector = _Collector(keep=config.top_n_alternatives + 1)

    def _check_abort(self) -> None:
        checked = self.collector.checked
        if self.is_cancelled is not None and self.is_cancelled():
            raise SearchCancelledError(f"Search cancelled after {checked} of {len(self.seeds)} combinations.", checked, len(self.seeds))
        if time.monotonic() > self.deadline:
            raise SearchTimeoutError(
                f"Search timed out after {self.timeout_s:g} s ({checked} of {len(self.seeds)} combinations checked).",
                checked,
                len(self.seeds),
            )

    def step(self, index: int) -> None:
        self._check_abort()
        c = self.collector
        params = resolve_sub_searches(self.design, self.seeds[index], self.config, self.table)
        if params is None:
            with c.lock:
                c.rejected += 1
        else:
            try:
                ev = evaluate_fast(self.design, params, self.table)
            except ManufacturingLimitError as e:
                logger.debug(f"Candidate #{index} rejected: {e}")
                with c.lock:
                    c.rejected += 1
            else:
                if ev.all_checks_pass:
                    c.offer(index, ev)
        with c.lock:
            c.checked += 1
            checked = c.checked
        self.reporter.update(checked, c.best_weight())

    def run_sequential(self) -> None:
        for i in range(len(self.seeds)):
            self.step(i)

    def run_parallel(self, workers: int) -> None:
        stop = threading.Event()
        n = len(self.seeds)
        chunks = [range(k, n, workers) for k in range(workers)]

        def work(chunk: range) -> None:
            for i in chunk:
                if stop.is_set():
                    return
                self.step(i)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="masonry-search") as pool:
            futures = [pool.submit(work, ch) for ch in chunks]
            try:
                for f in as_completed(futures):
                    f.result()
            except BaseException:
                stop.set()
                raise


def _differences(best: CandidateParameters, other: CandidateParameters) -> Dict[str, Dict[str, Any]]:
    a = best.to_dict()
    b = other.to_dict()
    return {k: {"best": a[k], "alternative": b[k]} for k in a if a[k] != b[k]}


def _dedupe(items: Sequence[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(i for i in items if i))


def _alerts(best: CandidateEvaluation) -> List[str]:
    out: List[str] = []
    p = best.params
    g = best.geometry
    if p.angle_orientation == "Inverted" and g.drop_below_slab_mm > 0.0:
        out.append("Inverted angle with the support below the slab soffit: a notch may be required.")
    if p.channel_type in REVIEW_REQUIRED_CHANNELS:
        out.append(f"{p.channel_type} post-fix anchor selected: engineering review required.")
    if g.angle_extension.applied:
        out.append(
            f"Bracket height capped at {g.bracket_height_mm:g} mm; angle vertical leg extended by "
            f"{g.angle_extension.extension_mm:g} mm to {g.effective_vertical_leg_mm:g} mm."
        )
    return out


def optimize(
    design: DesignInputs,
    table: Optional[CapacityTable],
    config: Optional[SearchConfig] = None,
    *,
    progress_cb: Optional[ProgressSink] = None,
    is_cancelled: Optional[Callable[[], bool]] = None,
    timeout_s: Optional[float] = None,
    trace: Optional[CalcTrace] = None,
) -> OptimizationResult:
    """Exhaustive discrete search for the lightest design that passes every check.

    Ties on weight go to the first candidate in enumeration order, so results
    are reproducible and independent of the worker count. Timeout and
    cancellation raise; no partial result is returned.
    """
    config = config or SearchConfig()
    limit_s = float(config.timeout_s or timeout_s or DEFAULT_TIMEOUT_S)
    t0 = time.monotonic()

    seeds, warnings = enumerate_candidates(design, table, config)
    total = len(seeds)
    if config.max_combinations is not None and total > config.max_combinations:
        raise ValueError(f"Search space of {total} combinations exceeds max_combinations={config.max_combinations}.")

    reporter = ProgressReporter(total, progress_cb, config.progress_interval_s)
    logger.info(f"Starting design search: {total} combinations, workers={config.workers}, timeout={limit_s:g} s")
    if total > LARGE_SEARCH_SPACE:
        advisory = f"Large search space ({total} combinations); this may take a while."
        logger.warning(advisory)
        reporter.advise(advisory)

    search = _Search(design, table, config, seeds, reporter, is_cancelled, limit_s)
    if config.workers > 1 and total > 1:
        search.run_parallel(min(config.workers, total))
    else:
        search.run_sequential()

    c = search.collector
    elapsed = time.monotonic() - t0
    reporter.finish(c.checked, c.best_weight())

    if not c.ranked:
        logger.info(f"Design search finished: no valid design in {total} combinations ({elapsed:.2f} s)")
        return OptimizationResult(
            status=STATUS_NO_DESIGN,
            message=NO_DESIGN_MESSAGE,
            best=None,
            combinations_total=total,
            combinations_checked=c.checked,
            feasible_count=c.feasible_count,
            rejected_candidates=c.rejected,
            elapsed_s=elapsed,
            warnings=_dedupe(warnings),
        )

    best = c.ranked[0][2]
    if trace is not None:
        best = evaluate_with_trace(trace, design, best.params, table)

    alternatives = []
    for w, _i, ev in c.ranked[1:]:
        diff_pct = round12((w - best.weight_kg_per_m) / best.weight_kg_per_m * 100.0) if best.weight_kg_per_m else math.inf
        alternatives.append(Alternative(ev, diff_pct, _differences(best.params, ev.params)))

    notes = [best.capacity_note] if best.capacity_note else []
    notes += [a.evaluation.capacity_note for a in alternatives if a.evaluation.capacity_fallback]
    logger.info(
        f"Design search finished: best {best.params.fixing_label} @ {best.params.bracket_centres_mm:g} mm, "
        f"{best.weight_kg_per_m:.3f} kg/m ({c.feasible_count} feasible, {elapsed:.2f} s)"
    )
    return OptimizationResult(
        status=STATUS_SUCCESS,
        message=f"Valid design found ({c.feasible_count} feasible of {total} combinations).",
        best=best,
        alternatives=tuple(alternatives),
        combinations_total=total,
        combinations_checked=c.checked,
        feasible_count=c.feasible_count,
        rejected_candidates=c.rejected,
        elapsed_s=elapsed,
        warnings=_dedupe(warnings + notes),
        alerts=_dedupe(_alerts(best)),
    )
