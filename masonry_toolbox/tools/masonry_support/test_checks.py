from __future__ import annotations

import math
from pathlib import Path

import pytest

from .capacity_table import CapacityLookup, CapacityTable
from .checks.bracket import bracket_design
from .checks.chain import CHECK_ORDER
from .checks.connection import angle_to_bracket, bolt_resistances, packer_reduction_factor
from .checks.deflection import dropping_below_slab, span_deflection
from .checks.fixing import calculate_tensile_load, channel_combined, channel_fixing, steel_combined, steel_fixing
from .checks.outcome import outcome
from .checks.angle import angle_deflection, moment_resistance, secant_modulus, shear_resistance
from .evaluation import CandidateParameters, evaluate_fast
from .models import DesignInputs
from .sections import AngleModel, AngleSection
from .steel_fixings import get_steel_fixing_capacity

DATA_CSV = Path(__file__).resolve().parent / "data" / "channel_capacities.csv"


def _table() -> CapacityTable:
    return CapacityTable.from_csv_path(DATA_CSV)


def _params(**overrides) -> CandidateParameters:
    base = dict(
        bracket_centres_mm=500.0,
        bracket_thickness_mm=3,
        angle_thickness_mm=5,
        vertical_leg_mm=60.0,
        horizontal_leg_mm=90.0,
        bolt_diameter_mm=10,
        bracket_type="Standard",
        angle_orientation="Inverted",
        fixing_position_mm=75.0,
        channel_type="CPRO38",
    )
    base.update(overrides)
    return CandidateParameters(**base)


def test_outcome_equality_passes() -> None:
    assert outcome("x", 1.0, 1.0).passes
    assert outcome("x", 1.0, 1.0).utilization == pytest.approx(100.0)
    assert not outcome("x", 1.0000001, 1.0).passes
    zero = outcome("x", 1.0, 0.0)
    assert not zero.passes and math.isinf(zero.utilization)


def test_tensile_load_zero_moment() -> None:
    r = calculate_tensile_load(0.0, 56.0, 70.0, 30.0)
    assert r.tensile_load_kn == 0.0
    assert r.moment_equilibrium_passes
    assert r.shear_equilibrium_passes
    assert r.depth_check_passes
    assert r.all_checks_pass


def test_tensile_load_equilibrium() -> None:
    r = calculate_tensile_load(0.5, 56.0, 70.0, 30.0)
    assert r.tensile_load_kn > 0.0
    assert r.all_checks_pass
    assert r.compression_zone_mm < 70.0


def test_tensile_load_unresolvable_moment_fails() -> None:
    r = calculate_tensile_load(1000.0, 56.0, 70.0, 30.0)
    assert r.tensile_load_kn == 0.0
    assert not r.all_checks_pass


def test_channel_fixing_missing_capacity_fails_only_that_check() -> None:
    tensile = calculate_tensile_load(0.5, 56.0, 70.0, 30.0)
    lookup = CapacityLookup(spec=None, note="No capacity data for X")
    fx = channel_fixing(3.0, tensile, lookup)
    comb = channel_combined(3.0, tensile, lookup)
    assert not fx.passes and not comb.passes
    assert fx.details["reason"] == "No capacity data for X"


def test_channel_fixing_with_table_row() -> None:
    lookup = _table().lookup("CPRO38", 200.0, 300.0)
    tensile = calculate_tensile_load(0.4, 56.0, 70.0, 30.0)
    fx = channel_fixing(2.0, tensile, lookup)
    assert fx.passes
    assert fx.details["N_rd_kn"] == pytest.approx(10.75)
    assert fx.details["V_rd_kn"] == pytest.approx(10.35)
    comb = channel_combined(2.0, tensile, lookup)
    assert comb.details["linear_interaction"] == pytest.approx(
        (tensile.tensile_load_kn / 10.75 + 2.0 / 10.35) / 1.2
    )


def test_steel_fixing_and_combined() -> None:
    cap = get_steel_fixing_capacity("SET_SCREW", "M12")
    tensile = calculate_tensile_load(0.5, 56.0, 70.0, 190.0)
    fx = steel_fixing(3.0, tensile, cap, edge_ok=True)
    assert fx.passes
    assert not steel_fixing(3.0, tensile, cap, edge_ok=False).passes
    comb = steel_combined(3.0, tensile, cap)
    expected = 3.0 / 26.2 + tensile.tensile_load_kn / (1.4 * 30.3)
    assert comb.utilization == pytest.approx(expected * 100.0)
    assert not steel_combined(3.0, tensile, None).passes


def test_bolt_resistances_and_packers() -> None:
    v, n = bolt_resistances(10)
    assert v == pytest.approx(0.5 * 700.0 * 58.0 / 1.25 / 1000.0)
    assert n == pytest.approx(0.9 * 700.0 * 58.0 / 1.25 / 1000.0)
    assert packer_reduction_factor(10) == pytest.approx(90.0 / 110.0)
    assert packer_reduction_factor(100) == 1.0


def test_secant_modulus() -> None:
    assert secant_modulus(0.0) == 200000.0
    assert secant_modulus(100.0) < 200000.0
    assert secant_modulus(200.0) < secant_modulus(100.0)


def test_span_deflection_unknown_thickness_is_zero() -> None:
    assert span_deflection(5.0, 500.0, 200000.0, 7) == 0.0
    expected = 5.0 * 5.0 * 1000.0 * 500.0**3 / (384.0 * 200000.0 * 218359.0)
    assert span_deflection(5.0, 500.0, 200000.0, 5) == pytest.approx(expected)


def test_dropping_below_slab_without_drop_is_angle_plus_span() -> None:
    o = dropping_below_slab(
        3.0,
        drop_below_slab_mm=0.0,
        notch_height_mm=0.0,
        design_cavity_mm=120.0,
        eccentricity_mm=34.0,
        bearing_mm=72.0,
        bracket_thickness_mm=3,
        bracket_projection_mm=90.0,
        angle_deflection_mm=0.5,
        secant_modulus=200000.0,
        characteristic_udl_kn_per_m=5.0,
        bracket_centres_mm=500.0,
        angle_thickness_mm=5,
    )
    assert o.details["heel_deflection_mm"] == 0.0
    assert o.details["total_system_deflection_mm"] == pytest.approx(0.5 + span_deflection(5.0, 500.0, 200000.0, 5))


def test_bracket_design() -> None:
    o = bracket_design(3.375, 125.0, 0.0, 3, 100.0, 34.0)
    W = 1.2 * 3 * 125.0**2 / 6.0 * 2
    assert o.details["M_rd_knm"] == pytest.approx(210.0 * W / 1.1e6)
    assert o.passes
    assert not bracket_design(3.375, 125.0, 125.0, 3, 100.0, 34.0).passes


def test_evaluate_fast_runs_every_check_in_order() -> None:
    design = DesignInputs(slab_thickness_mm=200.0, cavity_mm=100.0, support_level_mm=-100.0, characteristic_load_kn_per_m=5.0)
    ev = evaluate_fast(design, _params(), _table())
    assert tuple(o.name for o in ev.verification.outcomes) == CHECK_ORDER
    assert ev.geometry.bracket_height_mm == pytest.approx(125.0)
    assert ev.geometry.rise_to_bolts_mm == pytest.approx(70.0)
    assert ev.admissible
    assert ev.weight_kg_per_m > 0.0


def test_evaluate_fast_flags_inadmissible_orientation() -> None:
    design = DesignInputs(support_level_mm=-100.0)
    ev = evaluate_fast(design, _params(angle_orientation="Standard"), _table())
    assert not ev.admissible
    assert not ev.all_checks_pass


def test_evaluate_fast_missing_channel_fails_fixing_only() -> None:
    design = DesignInputs(support_level_mm=-100.0)
    ev = evaluate_fast(design, _params(channel_type="CPRO99"), _table())
    failed = set(ev.verification.failed_checks())
    assert {"fixing", "combined"} <= failed
    assert "shear" not in failed


# Reference angle: 14 kN on a 5 mm angle at 300 mm centres, 200 mm cavity.
REF_SECTION = AngleSection(
    d_mm=195.0,
    bearing_mm=55.83,
    root_radius_mm=5.0,
    section_modulus_mm3=1250.0,
    shear_area_mm2=1500.0,
    ixx_mm4=3125.0,
)
REF_MODEL = AngleModel(eccentricity_mm=34.17, a_mm=229.91, b_mm=55.83, i_mm=38.5)


def _five(value: float):
    return pytest.approx(value, abs=1e-5)


def test_moment_resistance_reference_values() -> None:
    o = moment_resistance(14.0, REF_SECTION, REF_MODEL, 5)
    L1 = 34.17 + 195.0 + 5.0
    M_ed = 14.0 * L1 / 1000.0
    Mc_rd = 1250.0 / 1e6 * (210.0 / 1.1)
    assert o.details["lever_arm_mm"] == _five(234.17)
    assert o.details["M_ed_knm"] == _five(M_ed)
    assert o.details["Mc_rd_knm"] == _five(Mc_rd)
    assert o.utilization == _five(M_ed / Mc_rd * 100.0)
    assert o.passes is (o.utilization <= 100.0)


def test_shear_resistance_reference_values() -> None:
    o = shear_resistance(14.0, REF_SECTION)
    V_rd = 1500.0 * (210.0 / math.sqrt(3.0)) / 1.1 / 1000.0
    assert o.details["V_rd_kn"] == _five(V_rd)
    assert o.utilization == _five(14.0 / V_rd * 100.0)
    assert o.passes


def test_secant_modulus_closed_form() -> None:
    E = 200000.0
    for stress in (50.0, 150.0, 205.0):
        expected = E / (1.0 + 0.002 * (E / stress) * (stress / 210.0) ** 8)
        assert secant_modulus(stress) == _five(expected)


def test_angle_deflection_reference_values() -> None:
    L1 = 34.17 + 195.0 + 5.0
    M_ed = 14.0 * L1 / 1000.0
    o = angle_deflection(14.0, M_ed, REF_SECTION, REF_MODEL, 5, 90.0)

    V_ek = 14.0 / 1.35
    M_ek = V_ek * L1 / 1000.0
    stress = M_ed * 1e6 / 1250.0 / 1.35
    Es = 200000.0 / (1.0 + 0.002 * (200000.0 / stress) * (stress / 210.0) ** 8)
    d_tip = V_ek * 1000.0 * 229.91**2 * (3.0 * (229.91 + 55.83) - 229.91) / (6.0 * Es * 3125.0)
    d_horz = M_ek * 1e6 * 38.5**2 / (2.0 * Es * 3125.0)
    rotation = math.atan(d_horz / 38.5)
    d_heel = 90.0 * math.sin(rotation)

    assert o.details["V_ek_kn"] == _five(V_ek)
    assert o.details["M_ek_knm"] == _five(M_ek)
    assert o.details["sls_stress_n_mm2"] == _five(stress)
    assert o.details["secant_modulus_n_mm2"] == _five(Es)
    assert o.details["tip_deflection_mm"] == _five(d_tip)
    assert o.details["horizontal_deflection_mm"] == _five(d_horz)
    assert o.details["rotation_rad"] == _five(rotation)
    assert o.details["heel_deflection_mm"] == _five(d_heel)
    assert o.details["total_deflection_mm"] == _five(d_tip + d_heel)
    assert o.utilization == _five((d_tip + d_heel) / 1.5 * 100.0)


def test_angle_to_bracket_m10_reference_values() -> None:
    model = AngleModel(eccentricity_mm=34.17, a_mm=229.91, b_mm=50.0, i_mm=30.0)
    o = angle_to_bracket(1.5, model, 100.0, 10)
    # M_b = 0.09 kNm over a 30 mm lever: 3 kN in the bolt
    assert o.details["bolt_tension_kn"] == _five(3.0)
    assert o.details["bolt_shear_resistance_kn"] == _five(16.24)
    assert o.details["bolt_tension_resistance_kn"] == _five(29.232)
    assert o.details["shear_utilization"] == _five(1.5 / 16.24 * 100.0)
    assert o.utilization == _five(1.5 / 16.24 * 100.0 + 3.0 / (1.4 * 29.232) * 100.0)
    assert o.utilization == pytest.approx(16.56668, abs=1e-5)
    assert o.passes


def test_angle_to_bracket_m12_and_bad_geometry() -> None:
    v, n = bolt_resistances(12)
    assert v == _five(0.5 * 700.0 * 84.3 / 1.25 / 1000.0)
    assert n == _five(0.9 * 84.3 * 700.0 / 1.25 / 1000.0)
    o = angle_to_bracket(2.3604, REF_MODEL, 90.0, 12)
    n_bolt = 2.3604 * (90.0 - 55.83 + 10.0) / 1000.0 / (38.5 / 1000.0)
    assert o.details["bolt_tension_kn"] == _five(n_bolt)
    assert not angle_to_bracket(2.3604, REF_MODEL, 90.0, 16).passes
    flat = AngleModel(eccentricity_mm=34.17, a_mm=229.91, b_mm=55.83, i_mm=0.0)
    assert not angle_to_bracket(2.3604, flat, 90.0, 10).passes


def _drop_case(drop: float, notch: float = 0.0):
    # 9.45 kN characteristic shear, 200 mm design cavity, 220 mm projection, 4 mm bracket
    return dropping_below_slab(
        9.45 * 1.35,
        drop_below_slab_mm=drop,
        notch_height_mm=notch,
        design_cavity_mm=200.0,
        eccentricity_mm=220.0 / 3.0,
        bearing_mm=102.5,
        bracket_thickness_mm=4,
        bracket_projection_mm=220.0,
        angle_deflection_mm=0.927232973921,
        secant_modulus=210000.0,
        characteristic_udl_kn_per_m=14.0,
        bracket_centres_mm=500.0,
        angle_thickness_mm=5,
    )


def test_dropping_below_slab_lateral_branch() -> None:
    o = _drop_case(25.0)
    M_drop = 9.45 * (200.0 + 220.0 / 3.0) / 1000.0
    ixx2 = 2.0 * 4.0 * 220.0**3 / 12.0
    lateral = M_drop * 1e6 * 25.0**2 / (2.0 * 200000.0 * ixx2)
    rotation = math.atan(lateral / 25.0)
    heel2 = (200.0 + 102.5) * math.sin(rotation)
    span = span_deflection(14.0, 500.0, 210000.0, 5)

    assert o.details["effective_drop_mm"] == 25.0
    assert o.details["lateral_deflection_mm"] == _five(lateral)
    assert lateral > 0.0
    assert o.details["bracket_rotation_rad"] == _five(rotation)
    assert o.details["heel_deflection_mm"] == _five(heel2)
    assert o.details["vertical_deflection_mm"] == _five(0.927232973921 + heel2)
    assert o.details["total_system_deflection_mm"] == _five(0.927232973921 + heel2 + span)
    assert o.passes is (o.details["total_system_deflection_mm"] <= 2.0)


def test_dropping_below_slab_notch_governs_effective_drop() -> None:
    assert _drop_case(25.0, notch=40.0).details["effective_drop_mm"] == 40.0
    assert _drop_case(25.0, notch=40.0).details["lateral_deflection_mm"] > _drop_case(25.0).details["lateral_deflection_mm"]
    flat = _drop_case(0.0)
    assert flat.details["lateral_deflection_mm"] == 0.0
    assert flat.details["heel_deflection_mm"] == 0.0


def test_evaluate_fast_applies_angle_extension() -> None:
    # Standard/Inverted at SL -100: 125 mm bracket capped at 75 + 40
    design = DesignInputs(support_level_mm=-100.0, max_bracket_extension_mm=40.0)
    ev = evaluate_fast(design, _params(), _table())
    ext = ev.geometry.angle_extension
    assert ext.applied
    assert ev.geometry.bracket_height_mm == pytest.approx(115.0)
    assert ext.extension_mm == pytest.approx(10.0)
    assert ev.geometry.effective_vertical_leg_mm == pytest.approx(70.0)
