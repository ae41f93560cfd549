from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .analysis.angle_extension import AngleExtensionResult, apply_angle_extension
from .analysis.classification import is_valid_combination
from .analysis.geometry import (
    bracket_height,
    drop_below_slab,
    notch_rise_reduction,
    rise_to_bolts,
    validate_fixing_position,
)
from .calc_trace import CalcTrace, compute_step
from .capacity_table import CapacityLookup, CapacityTable
from .checks.chain import CheckInputs, VerificationResults, verify_all
from .checks.outcome import VerificationOutcome
from .constants import (
    CONCRETE_GRADE_N_MM2,
    FALLBACK_BOTTOM_EDGE_MM,
    FALLBACK_TOP_EDGE_MM,
    GAMMA_M0,
    LOAD_FACTOR,
    STEEL_E_N_MM2,
    RAMBERG_OSGOOD_N,
    STEEL_YIELD_N_MM2,
)
from .loads import Loading, calculate_loading
from .models import DesignInputs
from .precision import round12
from .sections import SystemWeight, angle_model, angle_section, bracket_projection, design_cavity, system_weight
from .steel_fixings import edge_distance_ok, lookup_steel_capacity


@dataclass(frozen=True)
class CandidateParameters:
    """One point of the design space (the "genetic" half of a design)."""

    bracket_centres_mm: float
    bracket_thickness_mm: int
    angle_thickness_mm: int
    vertical_leg_mm: float
    horizontal_leg_mm: float
    bolt_diameter_mm: int
    bracket_type: str
    angle_orientation: str
    fixing_position_mm: float
    channel_type: Optional[str] = None
    dim_d_mm: Optional[float] = None
    steel_bolt_size: Optional[str] = None
    steel_fixing_method: Optional[str] = None

    @property
    def is_steel(self) -> bool:
        return self.steel_fixing_method is not None

    @property
    def fixing_label(self) -> str:
        if self.is_steel:
            return f"{self.steel_fixing_method} {self.steel_bolt_size}"
        return str(self.channel_type)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DerivedGeometry:
    """Dimensions and actions derived from a candidate and the design brief."""

    slab_thickness_mm: float
    support_level_mm: float
    bracket_height_mm: float
    bracket_projection_mm: float
    bracket_projection_at_fixing_mm: float
    rise_to_bolts_mm: float
    drop_below_slab_mm: float
    design_cavity_mm: float
    eccentricity_mm: float
    top_edge_mm: float
    bottom_edge_mm: float
    effective_vertical_leg_mm: float
    section_modulus_mm3: float
    angle_extension: AngleExtensionResult
    loading: Loading
    v_ed_kn: float
    m_ed_knm: float
    n_ed_kn: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["angle_extension"]["extension_mm"] = self.angle_extension.extension_mm
        return d


@dataclass(frozen=True)
class CandidateEvaluation:
    params: CandidateParameters
    geometry: DerivedGeometry
    verification: VerificationResults
    weight: SystemWeight
    admissible: bool = True
    admissibility_note: str = ""
    capacity_note: str = ""
    capacity_fallback: bool = False

    @property
    def all_checks_pass(self) -> bool:
        return self.admissible and self.verification.passes

    @property
    def weight_kg_per_m(self) -> float:
        return self.weight.total_kg_per_m

    def genetic(self) -> Dict[str, Any]:
        return self.params.to_dict()

    def calculated(self) -> Dict[str, Any]:
        g = self.geometry
        out = g.to_dict()
        out.update(
            {
                "all_checks_pass": self.all_checks_pass,
                "admissible": self.admissible,
                "admissibility_note": self.admissibility_note,
                "failed_checks": list(self.verification.failed_checks()),
                "governing_check": self.verification.governing().name,
                "verification": self.verification.to_dict(),
                "weights": asdict(self.weight),
                "total_weight_kg_per_m": self.weight_kg_per_m,
                "capacity_note": self.capacity_note,
                "capacity_fallback": self.capacity_fallback,
            }
        )
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {"genetic": self.genetic(), "calculated": self.calculated()}


# ------------------------------
# Fast evaluation (search loop)
# ------------------------------

def bearing_stress_n_mm2(params: CandidateParameters) -> float:
    """Bearing stress under the bracket base plate: concrete grade, or steel design strength."""
    return STEEL_YIELD_N_MM2 / GAMMA_M0 if params.is_steel else CONCRETE_GRADE_N_MM2


def _fixing_capacity(params: CandidateParameters, table: Optional[CapacityTable], slab: float):
    """(channel lookup, steel capacity, top edge, bottom edge, steel edge ok)."""
    if params.is_steel:
        steel = lookup_steel_capacity(params.steel_fixing_method, params.steel_bolt_size)
        edge_ok = edge_distance_ok(params.fixing_position_mm, slab, params.steel_bolt_size or "M12")
        return None, steel, FALLBACK_TOP_EDGE_MM, FALLBACK_BOTTOM_EDGE_MM, edge_ok

    if table is None or not params.channel_type:
        lookup = CapacityLookup(spec=None, note="No capacity table supplied.")
    else:
        lookup = table.lookup(params.channel_type, slab, params.bracket_centres_mm)
    if lookup.spec is not None:
        return lookup, None, lookup.spec.top_edge_mm, lookup.spec.bottom_edge_mm, True
    return lookup, None, FALLBACK_TOP_EDGE_MM, FALLBACK_BOTTOM_EDGE_MM, True


def fixing_bottom_edge(params: CandidateParameters, table: Optional[CapacityTable], slab: float) -> Optional[float]:
    """Bottom edge distance evaluate_fast will validate a channel candidate against. None for steel."""
    if params.is_steel:
        return None
    return _fixing_capacity(params, table, slab)[3]


def evaluate_fast(design: DesignInputs, params: CandidateParameters, table: Optional[CapacityTable]) -> CandidateEvaluation:
    """Evaluate one candidate through the full verification chain.

    Raises ManufacturingLimitError when capping the bracket height would need
    an angle taller than can be made; callers treat that as a rejected candidate.
    """
    slab = design.effective_slab_thickness_mm()
    SL = design.support_level_mm
    T = params.angle_thickness_mm

    loading = calculate_loading(
        params.bracket_centres_mm,
        design.characteristic_load_kn_per_m,
        density_kg_m3=design.masonry_density_kg_m3,
        height_m=design.masonry_height_m,
        thickness_mm=design.masonry_thickness_mm,
    )
    v_ed = loading.shear_force_kn

    lookup, steel, top_edge, bottom_edge, steel_edge_ok = _fixing_capacity(params, table, slab)

    H0 = bracket_height(SL, params.fixing_position_mm, params.vertical_leg_mm, params.bracket_type, params.angle_orientation)
    ext = apply_angle_extension(H0, design.max_bracket_extension_mm, params.fixing_position_mm, params.vertical_leg_mm)
    H = ext.limited_bracket_height_mm
    vleg = ext.extended_vertical_leg_mm

    rise = rise_to_bolts(H, SL, slab, params.fixing_position_mm, bottom_edge)
    rise = round12(rise - notch_rise_reduction(design.notch_height_mm, SL, slab))
    drop = drop_below_slab(SL, slab)

    section = angle_section(design.cavity_mm, T, params.bracket_centres_mm, params.horizontal_leg_mm)
    model = angle_model(section, T, vleg, design.masonry_thickness_mm, design.load_position)
    projection = bracket_projection(design.cavity_mm)
    c_design = design_cavity(design.cavity_mm)

    ci = CheckInputs(
        v_ed_kn=v_ed,
        characteristic_udl_kn_per_m=loading.characteristic_udl_kn_per_m,
        section=section,
        model=model,
        angle_thickness_mm=T,
        horizontal_leg_mm=params.horizontal_leg_mm,
        bolt_diameter_mm=params.bolt_diameter_mm,
        bracket_height_mm=H,
        bracket_thickness_mm=params.bracket_thickness_mm,
        bracket_projection_mm=projection,
        bracket_centres_mm=params.bracket_centres_mm,
        rise_to_bolts_mm=rise,
        drop_below_slab_mm=drop,
        notch_height_mm=design.notch_height_mm,
        cavity_mm=design.cavity_mm,
        design_cavity_mm=c_design,
        capacity=lookup,
        steel_capacity=steel,
        steel_edge_ok=steel_edge_ok,
        bearing_stress_n_mm2=bearing_stress_n_mm2(params),
    )
    verification = verify_all(ci)

    weight = system_weight(
        H,
        projection,
        params.bracket_thickness_mm,
        params.bracket_centres_mm,
        T,
        vleg,
        params.horizontal_leg_mm,
    )

    admissible = is_valid_combination(SL, params.bracket_type, params.angle_orientation)
    note = "" if admissible else f"{params.bracket_type}/{params.angle_orientation} not valid at support level {SL:g} mm"
    if admissible and not params.is_steel:
        fv = validate_fixing_position(params.fixing_position_mm, slab, bottom_edge)
        admissible, note = fv.is_valid, fv.error

    geometry = DerivedGeometry(
        slab_thickness_mm=slab,
        support_level_mm=SL,
        bracket_height_mm=H,
        bracket_projection_mm=projection,
        bracket_projection_at_fixing_mm=projection,
        rise_to_bolts_mm=rise,
        drop_below_slab_mm=drop,
        design_cavity_mm=c_design,
        eccentricity_mm=round12(model.eccentricity_mm),
        top_edge_mm=top_edge,
        bottom_edge_mm=bottom_edge,
        effective_vertical_leg_mm=vleg,
        section_modulus_mm3=round12(section.section_modulus_mm3),
        angle_extension=ext,
        loading=loading,
        v_ed_kn=v_ed,
        m_ed_knm=verification.get("moment").details["M_ed_knm"],
        n_ed_kn=verification.tensile.tensile_load_kn,
    )
    return CandidateEvaluation(
        params=params,
        geometry=geometry,
        verification=verification,
        weight=weight,
        admissible=admissible,
        admissibility_note=note,
        capacity_note=lookup.note if lookup is not None else "",
        capacity_fallback=bool(lookup is not None and lookup.fallback),
    )


# ------------------------------
# Traced evaluation (governing design only)
# ------------------------------

def _check_row(label: str, o: VerificationOutcome, demand: float, capacity: float) -> List[Dict[str, Any]]:
    ratio = o.utilization / 100.0 if math.isfinite(o.utilization) else float("inf")
    return [{"label": label, "demand": demand, "capacity": capacity, "ratio": ratio, "pass_fail": "PASS" if o.passes else "FAIL"}]


def _ref(step: str) -> List[Dict[str, str]]:
    return [{"type": "derived", "ref": f"evaluation.evaluate_fast:{step}"}]


def evaluate_with_trace(
    trace: CalcTrace,
    design: DesignInputs,
    params: CandidateParameters,
    table: Optional[CapacityTable],
) -> CandidateEvaluation:
    """Re-evaluate a candidate and record every step in the trace.

    The numbers come from evaluate_fast so the report and the search can
    never disagree.
    """
    ev = evaluate_fast(design, params, table)
    g = ev.geometry
    L = g.loading
    vr = ev.verification
    T = params.angle_thickness_mm
    Bcc = params.bracket_centres_mm

    # Loads
    compute_step(
        trace,
        id="L1",
        section="Loads",
        title="Characteristic line load",
        output_symbol="C_{udl}",
        output_description="Characteristic masonry line load",
        equation_latex=(
            r"C_{udl} = \rho\,g\,h\,t" if L.area_load_kn_per_mm2 is not None else r"C_{udl} = C_{udl,input}"
        ),
        variables=(
            [
                {"symbol": r"\rho", "description": "Masonry density", "value": design.masonry_density_kg_m3, "units": "kg/m3", "source": "input:masonry_density_kg_m3"},
                {"symbol": "h", "description": "Masonry height", "value": design.masonry_height_m, "units": "m", "source": "input:masonry_height_m"},
                {"symbol": "t", "description": "Facade thickness", "value": design.masonry_thickness_mm, "units": "mm", "source": "input:masonry_thickness_mm"},
            ]
            if L.area_load_kn_per_mm2 is not None
            else [
                {"symbol": "C_{udl,input}", "description": "Characteristic load", "value": L.characteristic_udl_kn_per_m, "units": "kN/m", "source": "input:characteristic_load_kn_per_m"},
            ]
        ),
        compute_fn=lambda: L.characteristic_udl_kn_per_m,
        units="kN/m",
        references=_ref("L1"),
    )
    compute_step(
        trace,
        id="L2",
        section="Loads",
        title="Design shear per bracket",
        output_symbol="V_{Ed}",
        output_description="ULS shear carried by one bracket",
        equation_latex=r"V_{Ed} = \gamma_F\,C_{udl}\,\frac{B_{cc}}{1000}",
        variables=[
            {"symbol": r"\gamma_F", "description": "Load factor", "value": LOAD_FACTOR, "units": "-", "source": "constant:LOAD_FACTOR"},
            {"symbol": "C_{udl}", "description": "Characteristic line load", "value": L.characteristic_udl_kn_per_m, "units": "kN/m", "source": "step:L1"},
            {"symbol": "B_{cc}", "description": "Bracket centres", "value": Bcc, "units": "mm", "source": "candidate:bracket_centres_mm"},
        ],
        compute_fn=lambda: L.shear_force_kn,
        units="kN",
        references=_ref("L2"),
    )

    # Geometry
    compute_step(
        trace,
        id="G1",
        section="Geometry",
        title="Bracket height",
        output_symbol="H",
        output_description="Bracket height (after any exclusion-zone cap)",
        equation_latex=r"H = |SL| - p_{fix} + Y\;(+A\ \text{if orientations differ})",
        variables=[
            {"symbol": "SL", "description": "Support level", "value": g.support_level_mm, "units": "mm", "source": "input:support_level_mm"},
            {"symbol": "p_{fix}", "description": "Fixing position", "value": params.fixing_position_mm, "units": "mm", "source": "candidate:fixing_position_mm"},
            {"symbol": "Y", "description": "Top of bracket to fixing", "value": 40.0, "units": "mm", "source": "constant:DISTANCE_FROM_TOP_TO_FIXING_MM"},
            {"symbol": "A", "description": "Vertical leg", "value": params.vertical_leg_mm, "units": "mm", "source": "candidate:vertical_leg_mm"},
        ],
        compute_fn=lambda: g.bracket_height_mm,
        units="mm",
        references=_ref("G1"),
        warnings=(
            [f"Bracket height capped from {g.angle_extension.original_bracket_height_mm:g} mm; angle leg extended by {g.angle_extension.extension_mm:g} mm."]
            if g.angle_extension.applied
            else []
        ),
    )
    compute_step(
        trace,
        id="G2",
        section="Geometry",
        title="Rise to bolts",
        output_symbol="x",
        output_description="Vertical distance available for the bolt group",
        equation_latex=r"x = H - (Y + 15)",
        variables=[
            {"symbol": "H", "description": "Bracket height", "value": g.bracket_height_mm, "units": "mm", "source": "step:G1"},
            {"symbol": "Y", "description": "Top of bracket to fixing", "value": 40.0, "units": "mm", "source": "constant:DISTANCE_FROM_TOP_TO_FIXING_MM"},
        ],
        compute_fn=lambda: g.rise_to_bolts_mm,
        units="mm",
        references=_ref("G2"),
    )
    compute_step(
        trace,
        id="G3",
        section="Geometry",
        title="Drop below slab",
        output_symbol="P",
        output_description="Bracket drop below slab soffit",
        equation_latex=r"P = \max(0, |SL| - t_{slab})",
        variables=[
            {"symbol": "SL", "description": "Support level", "value": g.support_level_mm, "units": "mm", "source": "input:support_level_mm"},
            {"symbol": "t_{slab}", "description": "Slab thickness", "value": g.slab_thickness_mm, "units": "mm", "source": "input:slab_thickness_mm"},
        ],
        compute_fn=lambda: g.drop_below_slab_mm,
        units="mm",
        references=_ref("G3"),
    )

    # Verification chain
    shear = vr.get("shear")
    compute_step(
        trace,
        id="C1",
        section="Angle checks",
        title="Shear resistance (ULS)",
        output_symbol="V_{Rd}",
        output_description="Angle shear resistance",
        equation_latex=r"V_{Rd} = \frac{B_{cc}\,T\,f_y/\sqrt{3}}{\gamma_{M0}\,1000}",
        variables=[
            {"symbol": "B_{cc}", "description": "Bracket centres", "value": Bcc, "units": "mm", "source": "candidate:bracket_centres_mm"},
            {"symbol": "T", "description": "Angle thickness", "value": T, "units": "mm", "source": "candidate:angle_thickness_mm"},
            {"symbol": "f_y", "description": "Yield strength", "value": STEEL_YIELD_N_MM2, "units": "N/mm2", "source": "constant:STEEL_YIELD_N_MM2"},
            {"symbol": r"\gamma_{M0}", "description": "Partial factor", "value": GAMMA_M0, "units": "-", "source": "constant:GAMMA_M0"},
        ],
        compute_fn=lambda: shear.details["V_rd_kn"],
        units="kN",
        references=_ref("C1"),
        checks_builder=lambda _x: _check_row("Angle shear", shear, g.v_ed_kn, shear.details["V_rd_kn"]),
    )

    moment = vr.get("moment")
    compute_step(
        trace,
        id="C2",
        section="Angle checks",
        title="Moment resistance (ULS)",
        output_symbol="M_{c,Rd}",
        output_description="Angle moment resistance",
        equation_latex=r"M_{c,Rd} = \frac{Z}{10^6}\,\frac{f_y}{\gamma_{M0}},\;\; M_{Ed} = V_{Ed}\,L_1/1000",
        variables=[
            {"symbol": "Z", "description": "Section modulus", "value": g.section_modulus_mm3, "units": "mm3", "source": "derived:angle_section"},
            {"symbol": "L_1", "description": "Lever arm", "value": moment.details["lever_arm_mm"], "units": "mm", "source": "derived:moment_lever_arm"},
            {"symbol": "V_{Ed}", "description": "Design shear", "value": g.v_ed_kn, "units": "kN", "source": "step:L2"},
        ],
        compute_fn=lambda: moment.details["Mc_rd_knm"],
        units="kNm",
        references=_ref("C2"),
        checks_builder=lambda _x: _check_row("Angle bending", moment, moment.details["M_ed_knm"], moment.details["Mc_rd_knm"]),
    )

    defl = vr.get("deflection")
    compute_step(
        trace,
        id="C3",
        section="Angle checks",
        title="Angle deflection (SLS)",
        output_symbol=r"\delta_{total}",
        output_description="Toe deflection plus heel rotation",
        equation_latex=r"E_s = \frac{E}{1 + 0.002\,(E/\sigma)\,(\sigma/f_y)^n},\;\; \delta_{total} = \delta_{tip} + B\sin(\theta)",
        variables=[
            {"symbol": "E", "description": "Elastic modulus", "value": STEEL_E_N_MM2, "units": "N/mm2", "source": "constant:STEEL_E_N_MM2"},
            {"symbol": r"\sigma", "description": "Service stress", "value": defl.details["sls_stress_n_mm2"], "units": "N/mm2", "source": "derived:deflection"},
            {"symbol": "n", "description": "Ramberg-Osgood exponent", "value": RAMBERG_OSGOOD_N, "units": "-", "source": "constant:RAMBERG_OSGOOD_N"},
            {"symbol": r"\delta_{tip}", "description": "Tip deflection", "value": defl.details["tip_deflection_mm"], "units": "mm", "source": "derived:deflection"},
        ],
        compute_fn=lambda: defl.details["total_deflection_mm"],
        units="mm",
        references=_ref("C3"),
        checks_builder=lambda _x: _check_row("Angle deflection", defl, defl.details["total_deflection_mm"], 1.5),
    )

    conn = vr.get("connection")
    compute_step(
        trace,
        id="C4",
        section="Connection",
        title="Angle to bracket connection",
        output_symbol="U_{c}",
        output_description="Bolt shear plus tension utilization",
        equation_latex=r"U_c = \frac{V_{Ed}}{F_{v,Rd}}100 + \frac{N_b}{1.4\,F_{t,Rd}}100",
        variables=[
            {"symbol": "V_{Ed}", "description": "Design shear", "value": g.v_ed_kn, "units": "kN", "source": "step:L2"},
            {"symbol": "F_{v,Rd}", "description": "Bolt shear resistance", "value": conn.details.get("bolt_shear_resistance_kn", float("nan")), "units": "kN", "source": "derived:bolt_resistances"},
            {"symbol": "N_b", "description": "Bolt tension", "value": conn.details.get("bolt_tension_kn", float("nan")), "units": "kN", "source": "derived:bolt_tension"},
            {"symbol": "F_{t,Rd}", "description": "Bolt tension resistance", "value": conn.details.get("bolt_tension_resistance_kn", float("nan")), "units": "kN", "source": "derived:bolt_resistances"},
        ],
        compute_fn=lambda: conn.utilization,
        units="%",
        references=_ref("C4"),
        checks_builder=lambda _x: _check_row(f"M{params.bolt_diameter_mm} bolt", conn, conn.utilization, 100.0),
    )

    fixing = vr.get("fixing")
    compute_step(
        trace,
        id="C5",
        section="Fixing",
        title="Fixing tension from plate bearing",
        output_symbol="N_{Ed}",
        output_description="Tensile load on the fixing",
        equation_latex=r"\frac{2/3}{f\,w}N^2 - x\,N + M = 0",
        variables=[
            {"symbol": "w", "description": "Base plate width", "value": 56.0, "units": "mm", "source": "constant:BASE_PLATE_WIDTH_MM"},
            {"symbol": "x", "description": "Rise to bolts", "value": g.rise_to_bolts_mm, "units": "mm", "source": "step:G2"},
            {"symbol": "f", "description": "Bearing stress", "value": bearing_stress_n_mm2(params), "units": "N/mm2", "source": "constant:bearing_stress"},
        ],
        compute_fn=lambda: g.n_ed_kn,
        units="kN",
        references=_ref("C5"),
        checks_builder=lambda _x: _check_row(f"Fixing ({params.fixing_label})", fixing, fixing.utilization, 100.0),
    )

    combined = vr.get("combined")
    compute_step(
        trace,
        id="C6",
        section="Fixing",
        title="Combined tension and shear",
        output_symbol="U_{NV}",
        output_description="Tension/shear interaction utilization",
        equation_latex=(
            r"U = \frac{V}{F_v} + \frac{N}{1.4\,F_t}"
            if params.is_steel
            else r"U = \max\left((N/N_{Rd})^{1.5} + (V/V_{Rd})^{1.5},\; (N/N_{Rd} + V/V_{Rd})/1.2\right)"
        ),
        variables=[
            {"symbol": "N", "description": "Tensile load", "value": g.n_ed_kn, "units": "kN", "source": "step:C5"},
            {"symbol": "V", "description": "Design shear", "value": g.v_ed_kn, "units": "kN", "source": "step:L2"},
        ],
        compute_fn=lambda: combined.utilization,
        units="%",
        references=_ref("C6"),
        checks_builder=lambda _x: _check_row("Combined N+V", combined, combined.utilization, 100.0),
    )

    dropping = vr.get("dropping_below_slab")
    compute_step(
        trace,
        id="C7",
        section="System",
        title="Total system deflection (drop below slab / notch)",
        output_symbol=r"\delta_{sys}",
        output_description="Vertical deflection including bracket sway and span sag",
        equation_latex=r"\delta_{sys} = \delta_{total} + (C' + b)\sin(\theta_2) + \frac{5\,C_{udl}\,B_{cc}^3}{384\,E_s\,I_{xx3}}",
        variables=[
            {"symbol": r"\delta_{total}", "description": "Angle deflection", "value": defl.details["total_deflection_mm"], "units": "mm", "source": "step:C3"},
            {"symbol": "P_{eff}", "description": "Effective drop", "value": dropping.details["effective_drop_mm"], "units": "mm", "source": "step:G3"},
            {"symbol": r"\delta_{span}", "description": "Span deflection", "value": dropping.details["span_deflection_mm"], "units": "mm", "source": "derived:span_deflection"},
        ],
        compute_fn=lambda: dropping.details["total_system_deflection_mm"],
        units="mm",
        references=_ref("C7"),
        checks_builder=lambda _x: _check_row("System deflection", dropping, dropping.details["total_system_deflection_mm"], 2.0),
    )

    packers = vr.get("packers")
    compute_step(
        trace,
        id="C8",
        section="Connection",
        title="Shear reduction due to packers",
        output_symbol=r"\beta_p",
        output_description="Packer reduction factor on bolt shear",
        equation_latex=r"\beta_p = \min\left(\frac{9d}{8d + 3t_p}, 1\right)",
        variables=[
            {"symbol": "d", "description": "Bolt diameter", "value": params.bolt_diameter_mm, "units": "mm", "source": "candidate:bolt_diameter_mm"},
            {"symbol": "t_p", "description": "Packer thickness", "value": 10.0, "units": "mm", "source": "constant:PACKER_THICKNESS_MM"},
        ],
        compute_fn=lambda: packers.details.get("beta_p", float("nan")),
        units="-",
        references=_ref("C8"),
        checks_builder=lambda _x: _check_row("Packed connection", packers, packers.utilization, 100.0),
    )

    bracket = vr.get("bracket_design")
    compute_step(
        trace,
        id="C9",
        section="Bracket",
        title="Bracket side plate bending",
        output_symbol="M_{Rd}",
        output_description="Bending resistance of the bracket plates",
        equation_latex=r"M_{Rd} = \frac{f_y\,1.2\,t\,d_c^2/6\cdot 2}{\gamma_{M0}\,10^6}",
        variables=[
            {"symbol": "d_c", "description": "Depth below notch", "value": bracket.details.get("d_c_mm", float("nan")), "units": "mm", "source": "derived:bracket_design"},
            {"symbol": "t", "description": "Bracket thickness", "value": params.bracket_thickness_mm, "units": "mm", "source": "candidate:bracket_thickness_mm"},
        ],
        compute_fn=lambda: bracket.details.get("M_rd_knm", float("nan")),
        units="kNm",
        references=_ref("C9"),
        checks_builder=lambda _x: _check_row(
            "Bracket bending", bracket, bracket.details.get("M_ed_knm", float("nan")), bracket.details.get("M_rd_knm", float("nan"))
        ),
    )

    # Weight
    compute_step(
        trace,
        id="W1",
        section="Weight",
        title="System weight per metre",
        output_symbol="w",
        output_description="Angle plus brackets per metre of run",
        equation_latex=r"w = 7.85\times10^{-6}\left(V_{angle} + V_{bracket}\,\frac{1000}{B_{cc}}\right)",
        variables=[
            {"symbol": "V_{angle}", "description": "Angle volume per metre", "value": ev.weight.angle_volume_mm3, "units": "mm3", "source": "derived:system_weight"},
            {"symbol": "V_{bracket}", "description": "Bracket volume", "value": ev.weight.bracket_volume_mm3, "units": "mm3", "source": "derived:system_weight"},
            {"symbol": "B_{cc}", "description": "Bracket centres", "value": Bcc, "units": "mm", "source": "candidate:bracket_centres_mm"},
        ],
        compute_fn=lambda: ev.weight_kg_per_m,
        units="kg/m",
        references=_ref("W1"),
    )

    return ev
