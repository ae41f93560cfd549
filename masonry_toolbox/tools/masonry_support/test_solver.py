from __future__ import annotations

import math
import time
from pathlib import Path
from typing import List

import pytest

from .calc_trace import CalcTrace
from .capacity_table import CapacityTable
from .errors import CapacityDataError, SearchCancelledError, SearchTimeoutError
from .evaluation import CandidateParameters
from .models import DesignInputs, DimDOff, OptimizedFixingPosition, SearchConfig, SteelSection
from .progress import ProgressEvent, ProgressReporter
from .solver import (
    STATUS_NO_DESIGN,
    STATUS_SUCCESS,
    bracket_thicknesses,
    enumerate_candidates,
    optimize,
    resolve_sub_searches,
)

DATA_CSV = Path(__file__).resolve().parent / "data" / "channel_capacities.csv"


def _table() -> CapacityTable:
    return CapacityTable.from_csv_path(DATA_CSV)


def _design(**overrides) -> DesignInputs:
    base = dict(slab_thickness_mm=200.0, cavity_mm=100.0, support_level_mm=-100.0, characteristic_load_kn_per_m=5.0)
    base.update(overrides)
    return DesignInputs(**base)


def _seed(bracket_type: str, orientation: str) -> CandidateParameters:
    return CandidateParameters(
        bracket_centres_mm=300.0,
        bracket_thickness_mm=3,
        angle_thickness_mm=5,
        vertical_leg_mm=60.0,
        horizontal_leg_mm=90.0,
        bolt_diameter_mm=10,
        bracket_type=bracket_type,
        angle_orientation=orientation,
        fixing_position_mm=75.0,
        channel_type="CPRO38",
    )


def test_end_to_end_reference_design() -> None:
    res = optimize(_design(), _table())
    assert res.status == STATUS_SUCCESS
    assert res.feasible
    best = res.best
    assert best.all_checks_pass
    assert math.isfinite(best.weight_kg_per_m) and best.weight_kg_per_m > 0.0
    assert best.params.bracket_type == "Standard"
    assert best.params.angle_orientation == "Inverted"
    assert res.combinations_checked == res.combinations_total
    assert res.feasible_count >= 1 + len(res.alternatives)


def test_optimizer_is_deterministic() -> None:
    a = optimize(_design(), _table())
    b = optimize(_design(), _table())
    assert a.best.to_dict() == b.best.to_dict()
    assert [x.evaluation.params for x in a.alternatives] == [x.evaluation.params for x in b.alternatives]


def test_parallel_search_matches_sequential() -> None:
    seq = optimize(_design(), _table(), SearchConfig(workers=1))
    par = optimize(_design(), _table(), SearchConfig(workers=3))
    assert par.best.params == seq.best.params
    assert par.best.weight_kg_per_m == seq.best.weight_kg_per_m
    assert [x.evaluation.params for x in par.alternatives] == [x.evaluation.params for x in seq.alternatives]
    assert par.feasible_count == seq.feasible_count


def test_alternatives_are_ranked_by_weight() -> None:
    res = optimize(_design(), _table(), SearchConfig(top_n_alternatives=5))
    assert len(res.alternatives) <= 5
    weights = [res.best.weight_kg_per_m] + [a.evaluation.weight_kg_per_m for a in res.alternatives]
    assert weights == sorted(weights)
    for alt in res.alternatives:
        assert alt.weight_difference_pct >= 0.0
        assert alt.evaluation.all_checks_pass
        assert alt.differences
        assert alt.evaluation.params != res.best.params


def test_no_valid_design_is_a_status_not_an_error() -> None:
    # -60 mm sits between the orientation bands: nothing is admissible
    res = optimize(_design(support_level_mm=-60.0), _table())
    assert res.status == STATUS_NO_DESIGN
    assert res.best is None
    assert res.message == "No valid design found"
    assert res.combinations_total == 0
    assert any("no valid bracket/angle" in w for w in res.warnings)
    assert res.to_dict()["best"] is None


def test_enumeration_prunes_inadmissible_orientations() -> None:
    seeds, _ = enumerate_candidates(_design(), _table(), SearchConfig())
    # (CPRO38 7 + CPRO50 7 + R-HPTIII-70 3 + R-HPTIII-90 1 centres) x 2 bracket thicknesses
    # x 5 angle thicknesses x 2 bolts x 1 combination
    assert len(seeds) == 360
    assert {s.channel_type for s in seeds} == {"CPRO38", "CPRO50", "R-HPTIII-70", "R-HPTIII-90"}
    assert {(s.bracket_type, s.angle_orientation) for s in seeds} == {("Standard", "Inverted")}
    assert {s.vertical_leg_mm for s in seeds if s.angle_thickness_mm == 8} == {75.0}


def test_heavy_overhanging_run_uses_thick_brackets_only() -> None:
    assert bracket_thicknesses(_design(support_level_mm=-300.0), 5.0) == (4,)
    assert bracket_thicknesses(_design(support_level_mm=-300.0), 3.0) == (3, 4)
    assert bracket_thicknesses(_design(), 5.0) == (3, 4)


def test_dim_d_sub_search() -> None:
    design = _design(slab_thickness_mm=250.0, support_level_mm=0.0)
    # inverted/inverted at SSL: bracket height floor 165 < 130 + 40, no admissible Dim D
    assert resolve_sub_searches(design, _seed("Inverted", "Inverted"), SearchConfig()) is None
    # mixed orientation adds the vertical leg: 225 mm leaves room for the smallest width
    p = resolve_sub_searches(design, _seed("Inverted", "Standard"), SearchConfig())
    assert p is not None and p.dim_d_mm == pytest.approx(130.0)
    # on a 200 slab only 125 mm sits below the fixing, narrower than any width on the grid
    assert resolve_sub_searches(_design(support_level_mm=0.0), _seed("Inverted", "Standard"), SearchConfig()) is None
    # switched off: candidate passes through untouched
    seed = _seed("Inverted", "Inverted")
    assert resolve_sub_searches(design, seed, SearchConfig(dim_d=DimDOff())) == seed


def test_fixing_position_sub_search_uses_channel_bottom_edge() -> None:
    cfg = SearchConfig(fixing_position=OptimizedFixingPosition())
    seed = _seed("Standard", "Standard")
    # CPRO38 on a 225 slab has a 150 mm bottom edge: nothing deeper than 75 validates
    shallow = resolve_sub_searches(_design(slab_thickness_mm=225.0, support_level_mm=-250.0), seed, cfg, _table())
    assert shallow.fixing_position_mm == 75.0
    # on a 300 slab the 250 mm row applies (175 mm bottom edge)
    deep = resolve_sub_searches(_design(slab_thickness_mm=300.0, support_level_mm=-250.0), seed, cfg, _table())
    assert deep.fixing_position_mm == pytest.approx(125.0)


def test_optimized_fixing_position_is_never_heavier_than_fixed() -> None:
    design = _design(slab_thickness_mm=225.0, support_level_mm=-250.0, characteristic_load_kn_per_m=3.0)
    fixed = optimize(design, _table())
    optimized = optimize(design, _table(), SearchConfig(fixing_position=OptimizedFixingPosition()))
    assert fixed.feasible and optimized.feasible
    assert optimized.best.weight_kg_per_m <= fixed.best.weight_kg_per_m
    assert optimized.best.admissible


def test_bracket_extension_beyond_manufacturing_limit_rejects_candidates() -> None:
    # 465 mm brackets capped at 85 mm would need angles over 400 mm tall
    design = _design(support_level_mm=-500.0, max_bracket_extension_mm=10.0)
    res = optimize(design, _table())
    assert res.status == STATUS_NO_DESIGN
    assert res.combinations_total > 0
    assert res.rejected_candidates == res.combinations_total
    assert res.feasible_count == 0


def test_steel_section_search() -> None:
    design = _design(
        slab_thickness_mm=200.0,
        fixing_family="steel",
        steel_section=SteelSection(section_type="I-BEAM", effective_height_mm=300.0),
    )
    res = optimize(design, None)
    assert res.feasible
    assert res.best.params.is_steel
    assert res.best.params.steel_fixing_method == "SET_SCREW"
    assert res.best.params.channel_type is None


def test_channel_search_without_table_raises() -> None:
    with pytest.raises(CapacityDataError):
        optimize(_design(), None)


def test_unknown_explicit_channel_is_reported() -> None:
    res = optimize(_design(channel_types=["CPRO38", "XYZ"]), _table())
    assert res.feasible
    assert any("XYZ" in w for w in res.warnings)
    assert res.best.params.channel_type == "CPRO38"


def test_max_combinations_is_an_input_error() -> None:
    with pytest.raises(ValueError):
        optimize(_design(), _table(), SearchConfig(max_combinations=10))


def test_cancellation_raises() -> None:
    with pytest.raises(SearchCancelledError):
        optimize(_design(), _table(), is_cancelled=lambda: True)


def test_timeout_raises_without_partial_result() -> None:
    def slow(_event: ProgressEvent) -> None:
        time.sleep(0.01)

    cfg = SearchConfig(timeout_s=1e-6, progress_interval_s=0.0)
    with pytest.raises(SearchTimeoutError) as exc:
        optimize(_design(), _table(), cfg, progress_cb=slow)
    assert exc.value.total == 360


def test_progress_events_and_final_event() -> None:
    events: List[ProgressEvent] = []
    res = optimize(_design(), _table(), SearchConfig(progress_interval_s=0.0), progress_cb=events.append)
    assert events
    last = events[-1]
    assert last.checked == last.total == res.combinations_total
    assert last.percent == 100
    assert last.best_weight == pytest.approx(res.best.weight_kg_per_m)
    assert all(e.eta_s is None or e.eta_s >= 0.0 for e in events)


def test_failing_progress_callback_does_not_change_outcome() -> None:
    def boom(_event: ProgressEvent) -> None:
        raise RuntimeError("listener failed")

    quiet = optimize(_design(), _table())
    noisy = optimize(_design(), _table(), SearchConfig(progress_interval_s=0.0), progress_cb=boom)
    assert noisy.best.params == quiet.best.params


def test_progress_reporter_throttles() -> None:
    seen: List[ProgressEvent] = []
    rep = ProgressReporter(100, seen.append, interval_s=3600.0)
    for i in range(1, 50):
        rep.update(i)
    assert len(seen) == 1
    rep.finish(100, 1.0)
    assert len(seen) == 2 and seen[-1].eta_s == 0.0


def test_traced_best_matches_search() -> None:
    trace = CalcTrace.new(tool_id="t", tool_version="0", inputs=_design().model_dump())
    plain = optimize(_design(), _table())
    traced = optimize(_design(), _table(), trace=trace)
    assert traced.best.params == plain.best.params
    assert traced.best.weight_kg_per_m == plain.best.weight_kg_per_m
    assert trace.steps
    checks = [c for s in trace.steps for c in s.checks]
    assert checks and all(c.pass_fail == "PASS" for c in checks)
