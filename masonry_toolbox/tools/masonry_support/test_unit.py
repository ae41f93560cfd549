from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from .analysis.angle_extension import apply_angle_extension
from .analysis.classification import classify_bracket_type, valid_angle_orientations, valid_combinations
from .analysis.geometry import (
    bracket_height,
    drop_below_slab,
    fixing_position_from_ssl,
    fixing_position_to_ssl,
    max_fixing_position,
    notch_rise_reduction,
    optimal_fixing_position,
    rise_to_bolts,
    select_dim_d,
    validate_fixing_position,
)
from .calc_trace import CalcTrace, TraceMeta, compute_step
from .errors import ManufacturingLimitError
from .loads import calculate_loading, characteristic_udl_from_masonry
from .models import DesignInputs, DimDOff, DimDScan, MasonrySupportInputs, OptimizedFixingPosition, SteelSection
from .paths import compute_input_hash
from .sections import angle_model, angle_section, bracket_projection, system_weight
from .steel_fixings import edge_distance_ok, steel_fixing_options, steel_fixing_positions


def _trace() -> CalcTrace:
    meta = TraceMeta(
        tool_id="masonry_support_designer",
        tool_version="test",
        report_version="test",
        timestamp="2000-01-01T00:00:00",
        units_system="SI",
        input_hash="testhash",
    )
    return CalcTrace(meta=meta)


def test_input_hash_deterministic() -> None:
    a = {"b": 2.0, "a": 1.0, "search": {"workers": 1, "timeout_s": None}}
    b = {"search": {"timeout_s": None, "workers": 1}, "a": 1.0, "b": 2.0}
    assert compute_input_hash(a) == compute_input_hash(b)
    assert len(compute_input_hash(a)) == 12
    assert compute_input_hash({"a": 1.0}) != compute_input_hash({"a": 1.5})


def test_bracket_type_boundary() -> None:
    assert classify_bracket_type(-75.0) == "Standard"
    assert classify_bracket_type(-74.0) == "Inverted"
    assert classify_bracket_type(-300.0) == "Standard"
    assert classify_bracket_type(50.0) == "Inverted"


def test_valid_angle_orientations() -> None:
    assert valid_angle_orientations(0.0) == ["Standard", "Inverted"]
    assert valid_angle_orientations(-150.0) == ["Standard", "Inverted"]
    assert valid_angle_orientations(-25.0) == ["Standard"]
    assert valid_angle_orientations(-100.0) == ["Inverted"]
    # gap between bands
    assert valid_angle_orientations(-60.0) == []
    assert valid_combinations(-60.0) == []
    assert valid_combinations(-100.0) == [("Standard", "Inverted")]


def test_fixing_position_ssl_round_trip() -> None:
    for x in (40.0, 75.0, 112.5, 199.0):
        assert fixing_position_from_ssl(fixing_position_to_ssl(x)) == x
    assert fixing_position_to_ssl(75.0) == -75.0


def test_max_fixing_position() -> None:
    assert max_fixing_position(300.0, 125.0) == 175.0
    assert max_fixing_position(300.0, 125.0, performance_limit_mm=150.0) == 150.0
    # never shallower than the default position
    assert max_fixing_position(200.0, 150.0) == 75.0


def test_validate_fixing_position_messages() -> None:
    assert validate_fixing_position(75.0, 200.0, 125.0).is_valid
    bad = validate_fixing_position(0.0, 200.0, 125.0)
    assert not bad.is_valid and "positive" in bad.error
    deep = validate_fixing_position(250.0, 200.0, 125.0)
    assert "exceeds slab thickness" in deep.error
    tight = validate_fixing_position(100.0, 200.0, 125.0)
    assert "Insufficient bottom clearance" in tight.error


def test_bracket_height_and_rise() -> None:
    # |SL| - fp + 40 for a matching bracket/angle pair
    assert bracket_height(-200.0, 75.0, 60.0, "Standard", "Standard") == pytest.approx(165.0)
    # mixed orientation adds the vertical leg
    assert bracket_height(-100.0, 75.0, 60.0, "Standard", "Inverted") == pytest.approx(125.0)
    # inverted bracket too shallow for the bolt group takes the fixed floor
    assert bracket_height(-30.0, 75.0, 60.0, "Inverted", "Inverted") == pytest.approx(165.0)

    assert rise_to_bolts(125.0, -100.0, 200.0, 75.0, 125.0) == pytest.approx(70.0)
    # projecting below the slab caps the rise at the bottom edge distance
    assert rise_to_bolts(400.0, -350.0, 200.0, 75.0, 125.0) == pytest.approx(125.0)


def test_drop_and_notch() -> None:
    assert drop_below_slab(-250.0, 200.0) == pytest.approx(50.0)
    assert drop_below_slab(-100.0, 200.0) == 0.0
    assert notch_rise_reduction(0.0, -250.0, 200.0) == 0.0
    assert notch_rise_reduction(80.0, -250.0, 200.0) == pytest.approx(30.0)
    assert notch_rise_reduction(40.0, -250.0, 200.0) == 0.0


def test_optimal_fixing_position_takes_deepest_admissible() -> None:
    cfg = OptimizedFixingPosition(start_position_mm=75.0, increment_mm=5.0, min_rise_to_bolts_mm=95.0, min_bottom_clearance_mm=125.0)
    # SL -250 on a 300 slab: rise = min(235 - p, 125), searched up to 300 - 125
    p = optimal_fixing_position(cfg, -250.0, 60.0, "Standard", "Standard", 300.0)
    assert p == pytest.approx(140.0)
    h = bracket_height(-250.0, p, 60.0, "Standard", "Standard")
    assert rise_to_bolts(h, -250.0, 300.0, p, 125.0) >= 95.0

    # nothing qualifies: start position
    cfg2 = OptimizedFixingPosition(min_rise_to_bolts_mm=1000.0)
    assert optimal_fixing_position(cfg2, -250.0, 60.0, "Standard", "Standard", 250.0) == 75.0


def test_optimal_fixing_position_stops_at_channel_bottom_edge() -> None:
    cfg = OptimizedFixingPosition()
    # 175 mm bottom edge on a 300 slab: max fixing position 125, still inside the rise limit of 140
    p = optimal_fixing_position(cfg, -250.0, 60.0, "Standard", "Standard", 300.0, bottom_edge_mm=175.0)
    assert p == pytest.approx(125.0)
    assert validate_fixing_position(p, 300.0, 175.0).is_valid
    # 150 mm bottom edge on a 225 slab leaves no room below the default position
    assert optimal_fixing_position(cfg, -250.0, 60.0, "Standard", "Standard", 225.0, bottom_edge_mm=150.0) == 75.0


def test_optimal_fixing_position_respects_allowed_positions() -> None:
    cfg = OptimizedFixingPosition(min_rise_to_bolts_mm=0.0, min_bottom_clearance_mm=50.0)
    p = optimal_fixing_position(cfg, -250.0, 60.0, "Standard", "Standard", 250.0, allowed_positions=[75.0, 80.0, 85.0])
    assert p == 85.0


def test_select_dim_d() -> None:
    assert select_dim_d(DimDOff(), 500.0) is None
    assert select_dim_d(DimDScan(), 170.0) == pytest.approx(130.0)
    assert select_dim_d(DimDScan(), 169.0) is None
    # widths deeper than the slab below the fixing are never offered
    assert select_dim_d(DimDScan(), 300.0, max_dim_d_mm=125.0) is None
    assert select_dim_d(DimDScan(), 300.0, max_dim_d_mm=130.0) == pytest.approx(130.0)
    assert select_dim_d(DimDScan(start_mm=200.0, end_mm=210.0, step_mm=5.0, clearance_mm=40.0), 245.0) == pytest.approx(200.0)


def test_angle_extension_one_to_one() -> None:
    r = apply_angle_extension(250.0, 150.0, 75.0, 60.0)
    assert r.applied
    assert r.limited_bracket_height_mm == pytest.approx(225.0)
    assert r.reduction_mm == pytest.approx(25.0)
    assert r.extension_mm == pytest.approx(25.0)
    assert r.extended_vertical_leg_mm == pytest.approx(85.0)


def test_angle_extension_not_needed() -> None:
    r = apply_angle_extension(200.0, 150.0, 75.0, 60.0)
    assert not r.applied
    assert r.limited_bracket_height_mm == 200.0
    assert r.extension_mm == 0.0
    assert not apply_angle_extension(500.0, None, 75.0, 60.0).applied


def test_angle_extension_manufacturing_limit() -> None:
    with pytest.raises(ManufacturingLimitError) as exc:
        apply_angle_extension(500.0, 50.0, 75.0, 60.0)
    assert "exceeds manufacturing limits" in str(exc.value)
    assert exc.value.required_angle_height_mm > 400.0


def test_loading() -> None:
    L = calculate_loading(500.0, 5.0)
    assert L.characteristic_udl_kn_per_m == pytest.approx(5.0)
    assert L.design_udl_kn_per_m == pytest.approx(6.75)
    assert L.shear_force_kn == pytest.approx(3.375)

    derived = characteristic_udl_from_masonry(2000.0, 3.0, 102.5)
    assert derived == pytest.approx(2000.0 * 9.81e-12 * 3000.0 * 102.5 * 1000.0)
    assert calculate_loading(400.0, None).characteristic_udl_kn_per_m == pytest.approx(derived)


def test_angle_section_and_model() -> None:
    s = angle_section(100.0, 5, 500.0)
    assert s.d_mm == pytest.approx(13.0)  # (100 - 90 - 3) + 6
    assert s.bearing_mm == pytest.approx(72.0)
    assert s.section_modulus_mm3 == pytest.approx(500.0 * 25.0 / 6.0)
    assert s.ixx_mm4 == pytest.approx(500.0 * 125.0 / 12.0)
    m = angle_model(s, 5, 60.0, 102.5, 1.0 / 3.0)
    assert m.eccentricity_mm == pytest.approx(102.5 / 3.0)
    assert m.i_mm == pytest.approx(60.0 - 10.0 - 16.5)
    assert m.a_mm == pytest.approx(13.0 + 102.5 / 3.0 - 10.0 + math.pi * 7.5)
    assert bracket_projection(100.0) == 90.0
    assert bracket_projection(103.0) == 90.0


def test_system_weight() -> None:
    w = system_weight(125.0, 90.0, 3, 500.0, 5, 60.0)
    bracket_vol = (90.0 * 2.0 + 43.17) * 125.0 * 3.0
    angle_vol = (60.0 + 90.0 - 5.0) * 1000.0 * 5.0
    assert w.total_kg_per_m == pytest.approx((angle_vol + bracket_vol * 2.0) * 7.85e-6)
    with pytest.raises(ValueError):
        system_weight(125.0, 90.0, 5, 500.0, 5, 60.0)


def test_steel_fixings() -> None:
    assert edge_distance_ok(20.0, 300.0, "M12")  # 1.2 x 13 = 15.6
    assert not edge_distance_ok(15.0, 300.0, "M12")
    positions = steel_fixing_positions(100.0, "M12")
    assert positions[0] == 20.0 and positions[-1] == 80.0
    rhs = SteelSection(section_type="RHS", effective_height_mm=200.0)
    assert {m for m, _ in steel_fixing_options(rhs)} == {"BLIND_BOLT"}
    ibeam = SteelSection(section_type="ub", effective_height_mm=300.0, fixing_method="both")
    assert ibeam.section_type == "I-BEAM"
    assert len(steel_fixing_options(ibeam)) == 6


def test_input_model_validation() -> None:
    d = DesignInputs(channel_types=[" cpro38 ", ""])
    assert d.channel_types == ["CPRO38"]
    with pytest.raises(ValidationError):
        DesignInputs(slab_thickness_mm=100.0)
    with pytest.raises(ValidationError):
        DesignInputs(fixing_family="steel")
    with pytest.raises(ValidationError):
        DesignInputs(notch_height_mm=50.0)
    with pytest.raises(ValidationError):
        SteelSection(section_type="SHS", effective_height_mm=200.0, fixing_method="SET_SCREW")
    with pytest.raises(ValidationError):
        MasonrySupportInputs(search={"fixing_position": {"mode": "fixed", "position_mm": 250.0}})
    with pytest.raises(ValidationError):
        MasonrySupportInputs(search={"dim_d": {"mode": "scan", "start_mm": 300.0, "end_mm": 200.0}})


def test_search_config_discriminators() -> None:
    m = MasonrySupportInputs.model_validate(
        {"search": {"fixing_position": {"mode": "optimize", "increment_mm": 10.0}, "dim_d": {"mode": "off"}}}
    )
    assert isinstance(m.search.fixing_position, OptimizedFixingPosition)
    assert isinstance(m.search.dim_d, DimDOff)
    assert "search" not in m.design_inputs().model_dump()


def test_compute_step_records_substitution_and_checks() -> None:
    tr = _trace()
    out = compute_step(
        tr,
        id="T1",
        section="Test",
        title="Moment",
        output_symbol="M_{Ed}",
        output_description="Design moment",
        equation_latex="M_{Ed} = V_{Ed} L / 1000",
        variables=[
            {"symbol": "V_{Ed}", "description": "shear", "value": 3.0, "units": "kN", "source": "input"},
            {"symbol": "L", "description": "lever arm", "value": 50.0, "units": "mm", "source": "input"},
        ],
        compute_fn=lambda: 3.0 * 50.0 / 1000.0,
        units="kNm",
        references=[{"type": "derived", "ref": "test"}],
        checks_builder=lambda m: [{"label": "M", "demand": m, "capacity": 1.0, "ratio": m, "pass_fail": "PASS"}],
    )
    assert out == pytest.approx(0.15)
    step = tr.steps[0]
    assert "3\\,\\mathrm{kN}" in step.substitution_latex
    assert "50\\,\\mathrm{mm}" in step.substitution_latex
    assert step.checks[0].pass_fail == "PASS"

    with pytest.raises(ValueError):
        compute_step(
            tr,
            id="",
            section="x",
            title="x",
            output_symbol="x",
            output_description="x",
            equation_latex="x",
            variables=[],
            compute_fn=lambda: 0.0,
            units="-",
            references=[],
        )


def test_trace_new_flattens_nested_inputs() -> None:
    inputs = MasonrySupportInputs().model_dump()
    tr = CalcTrace.new(tool_id="t", tool_version="0", inputs=inputs)
    ids = {i.id: i for i in tr.inputs}
    assert "search.workers" in ids
    assert ids["slab_thickness_mm"].units == "mm"
    assert ids["characteristic_load_kn_per_m"].units == "kN/m"
    tr.add_assumptions(["one", "two"])
    assert [a.id for a in tr.assumptions] == ["A1", "A2"]
    assert tr.to_dict()["meta"]["input_hash"] == compute_input_hash(inputs)


def test_trace_tags_default_and_user_inputs() -> None:
    defaults = MasonrySupportInputs().model_dump()
    inputs = MasonrySupportInputs(slab_thickness_mm=250.0).model_dump()
    tr = CalcTrace.new(tool_id="t", tool_version="0", inputs=inputs, defaults=defaults)
    sources = {i.id: i.source for i in tr.inputs}
    assert sources["slab_thickness_mm"] == "user"
    assert sources["cavity_mm"] == "default"
    assert sources["search.dim_d.step_mm"] == "default"
    assert tr.steps == []
