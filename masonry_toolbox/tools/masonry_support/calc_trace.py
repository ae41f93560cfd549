from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .constants import DEFAULT_UNITS_SYSTEM, REPORT_DECIMALS
from .paths import compute_input_hash


@dataclass(frozen=True)
class TraceMeta:
    tool_id: str
    tool_version: str
    report_version: str
    timestamp: str
    units_system: str
    input_hash: str
    code_basis: Optional[str] = None


@dataclass(frozen=True)
class TraceInput:
    id: str
    label: str
    value: Any
    units: str
    source: str  # user | default
    notes: str = ""


@dataclass(frozen=True)
class Assumption:
    id: str
    text: str


@dataclass(frozen=True)
class CalcVar:
    symbol: str
    description: str
    value: Any
    units: str
    source: str


@dataclass(frozen=True)
class CalcResult:
    value: float
    units: str


@dataclass(frozen=True)
class Rounding:
    rule: str
    decimals: int


@dataclass(frozen=True)
class Reference:
    type: str  # "code" | "table" | "note" | "derived"
    ref: str


@dataclass(frozen=True)
class CheckResult:
    label: str
    demand: float
    capacity: float
    ratio: float
    pass_fail: str


@dataclass
class CalcStep:
    id: str
    section: str
    title: str
    output_symbol: str
    output_description: str
    equation_latex: str
    substitution_latex: str
    variables: List[CalcVar]
    result_unrounded: CalcResult
    rounding: Rounding
    result_rounded: CalcResult
    references: List[Reference]
    checks: List[CheckResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class CalcTrace:
    """Reproducible record of the governing design's calculation.

    Every export (HTML/PDF/Excel/JSON/Mathcad handoff) is rendered from this
    object only.
    """

    meta: TraceMeta
    inputs: List[TraceInput] = field(default_factory=list)
    assumptions: List[Assumption] = field(default_factory=list)
    steps: List[CalcStep] = field(default_factory=list)
    tables: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        *,
        tool_id: str,
        tool_version: str,
        inputs: Dict[str, Any],
        units_system: str = DEFAULT_UNITS_SYSTEM,
        report_version: str = "1.0",
        input_hash: Optional[str] = None,
        code_basis: Optional[str] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> "CalcTrace":
        """Create a trace with a deterministic input hash.

        Nested input groups (search configuration, steel section) are flattened
        to dotted ids so each value gets its own row. Values equal to the
        matching entry in `defaults` are tagged "default", the rest "user".
        """
        if input_hash is None:
            input_hash = compute_input_hash(inputs)

        meta = TraceMeta(
            tool_id=str(tool_id),
            tool_version=str(tool_version),
            report_version=str(report_version),
            timestamp=datetime.now().isoformat(timespec="seconds"),
            units_system=str(units_system),
            input_hash=str(input_hash),
            code_basis=code_basis,
        )

        flat = _flatten(inputs)
        base = _flatten(defaults) if defaults else {}
        trace_inputs = [
            TraceInput(
                id=k,
                label=_default_label(k),
                value=flat[k],
                units=_infer_units(k),
                source="default" if k in base and base[k] == flat[k] else "user",
            )
            for k in sorted(flat)
        ]
        return cls(meta=meta, inputs=trace_inputs)

    def add_assumptions(self, texts: List[str]) -> None:
        start = len(self.assumptions) + 1
        self.assumptions.extend(Assumption(id=f"A{start + i}", text=t) for i, t in enumerate(texts))

    def to_dict(self) -> Dict[str, Any]:
        return json_safe(asdict(self))


def dump_trace_json(trace: CalcTrace, path: str) -> None:
    Path(path).write_text(json.dumps(trace.to_dict(), indent=2, sort_keys=True, default=str), encoding="utf-8")


def _flatten(d: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in d.items():
        key = f"{prefix}{k}"
        if isinstance(v, dict):
            out.update(_flatten(v, prefix=f"{key}."))
        elif isinstance(v, (list, tuple)):
            out[key] = ", ".join(str(x) for x in v)
        else:
            out[key] = v
    return out


def json_safe(v: Any) -> Any:
    # inf/nan are not valid JSON; failed checks report infinite utilization
    if isinstance(v, float) and not math.isfinite(v):
        return None
    if isinstance(v, dict):
        return {k: json_safe(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [json_safe(x) for x in v]
    return v


def _default_label(key: str) -> str:
    return key.split(".")[-1].replace("_", " ")


_UNIT_SUFFIXES = (
    ("_kn_per_m", "kN/m"),
    ("_kg_per_m", "kg/m"),
    ("_kg_m3", "kg/m3"),
    ("_n_mm2", "N/mm2"),
    ("_knm", "kNm"),
    ("_kn", "kN"),
    ("_mm", "mm"),
    ("_m", "m"),
    ("_pct", "%"),
    ("_s", "s"),
)


def _infer_units(key: str) -> str:
    for suffix, units in _UNIT_SUFFIXES:
        if key.endswith(suffix):
            return units
    return "-"


def _substitute(equation_latex: str, variables: List[CalcVar]) -> str:
    # longest symbols first so "V_{ek}" is not clobbered by "V"
    out = equation_latex
    for v in sorted(variables, key=lambda x: len(x.symbol), reverse=True):
        text = f"{v.value:.6g}" if isinstance(v.value, float) else str(v.value)
        if v.units and v.units != "-":
            text = f"{text}\\,\\mathrm{{{v.units}}}"
        out = out.replace(v.symbol, text)
    return out


def _require(step_id: str, kind: str, item: Dict[str, Any], keys: Tuple[str, ...]) -> None:
    missing = [k for k in keys if k not in item]
    if missing:
        raise ValueError(f"{kind} in step {step_id} is missing {missing}.")


def compute_step(
    trace: CalcTrace,
    *,
    id: str,
    section: str,
    title: str,
    output_symbol: str,
    output_description: str,
    equation_latex: str,
    variables: List[Dict[str, Any]],
    compute_fn: Callable[[], float],
    units: str,
    references: List[Dict[str, Any]],
    decimals: int = REPORT_DECIMALS,
    checks_builder: Optional[Callable[[float], List[Dict[str, Any]]]] = None,
    warnings: Optional[List[str]] = None,
) -> float:
    """Evaluate one calculation step and append the full record to the trace.

    Every variable needs symbol, description, value, units and source; every
    reference needs type and ref. The unrounded value is kept alongside the
    value rounded to `decimals`, and the rounded value is returned.
    """
    if not id or not section or not title:
        raise ValueError("compute_step requires non-empty id/section/title.")

    var_objs: List[CalcVar] = []
    for v in variables:
        _require(id, "Variable", v, ("symbol", "description", "value", "units", "source"))
        var_objs.append(CalcVar(str(v["symbol"]), str(v["description"]), v["value"], str(v["units"]), str(v["source"])))

    ref_objs: List[Reference] = []
    for r in references:
        _require(id, "Reference", r, ("type", "ref"))
        ref_objs.append(Reference(type=str(r["type"]), ref=str(r["ref"])))

    unrounded = float(compute_fn())
    rounded = round(unrounded, decimals) if math.isfinite(unrounded) else unrounded

    checks: List[CheckResult] = []
    for c in checks_builder(unrounded) if checks_builder else []:
        _require(id, "Check", c, ("label", "demand", "capacity", "ratio", "pass_fail"))
        checks.append(
            CheckResult(str(c["label"]), float(c["demand"]), float(c["capacity"]), float(c["ratio"]), str(c["pass_fail"]))
        )

    trace.steps.append(
        CalcStep(
            id=id,
            section=section,
            title=title,
            output_symbol=output_symbol,
            output_description=output_description,
            equation_latex=equation_latex,
            substitution_latex=_substitute(equation_latex, var_objs),
            variables=var_objs,
            result_unrounded=CalcResult(value=unrounded, units=units),
            rounding=Rounding(rule="decimals", decimals=decimals),
            result_rounded=CalcResult(value=rounded, units=units),
            references=ref_objs,
            checks=checks,
            warnings=list(warnings or []),
        )
    )
    return rounded
