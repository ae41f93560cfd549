from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .calc_trace import CalcTrace, dump_trace_json, json_safe
from .report_renderer import REPORT_TITLE, render_report_html


def _autosize(ws):
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            val = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(val))
        ws.column_dimensions[col_letter].width = min(80, max(10, max_len + 2))


def _cell(v: Any) -> Any:
    if isinstance(v, (dict, list, tuple)):
        return json.dumps(json_safe(v), ensure_ascii=False)
    return json_safe(v)


def export_html(trace: CalcTrace, out_dir: Path) -> Path:
    html = render_report_html(trace)
    p = out_dir / "report.html"
    p.write_text(html, encoding="utf-8")
    return p


def export_calculation_report(trace: CalcTrace, out_dir: Path) -> Path:
    html = render_report_html(trace)
    p = out_dir / "calculation_report.html"
    p.write_text(html, encoding="utf-8")
    return p


def export_pdf(trace: CalcTrace, out_dir: Path) -> Path:
    """
    Summary PDF: status, selected design and check utilizations. Full detail is in report.html.
    """
    p = out_dir / "report.pdf"
    c = canvas.Canvas(str(p), pagesize=A4)
    w, h = A4
    y = h - 60

    def line(text: str, font: str = "Helvetica", size: int = 9, step: int = 12, indent: int = 60) -> None:
        nonlocal y
        if y < 60:
            c.showPage()
            y = h - 60
        c.setFont(font, size)
        c.drawString(indent, y, text[:120])
        y -= step

    line(f"{REPORT_TITLE} - Calculation Package (Summary)", "Helvetica-Bold", 14, 24)
    line(f"Tool: {trace.meta.tool_id} v{trace.meta.tool_version}", size=10, step=14)
    line(f"Input hash: {trace.meta.input_hash}", size=10, step=14)
    line(f"Generated: {trace.meta.timestamp}", size=10, step=22)
    line("Note: Full step-by-step calcs are provided in report.html (offline).", step=18)

    line("Key outputs:", "Helvetica-Bold", 10, 14)
    for k, v in (trace.summary or {}).items():
        line(f"{k}: {v}", indent=72)

    candidate = trace.tables.get("candidate") or {}
    if candidate:
        y -= 6
        line("Selected design:", "Helvetica-Bold", 10, 14)
        for k, v in candidate.items():
            line(f"{k}: {v}", indent=72)

    checks = [(s.id, ck) for s in trace.steps for ck in s.checks]
    if checks:
        y -= 6
        line("Checks:", "Helvetica-Bold", 10, 14)
        for sid, ck in checks:
            ratio = "n/a" if ck.ratio is None else f"{ck.ratio:.3f}"
            line(f"{sid} {ck.label}: ratio {ratio} - {ck.pass_fail}", indent=72)

    layout = trace.tables.get("run_layout")
    if layout:
        y -= 6
        line(f"Run layout ({layout['run_length_mm']:g} mm run, {layout['gap_mm']:g} mm gaps):", "Helvetica-Bold", 10, 14)
        for n, piece in enumerate(layout["pieces"], start=1):
            kind = "standard" if piece["standard"] else "custom"
            line(f"{n}. {piece['length_mm']:g} mm {kind}, {piece['bracket_count']} brackets", indent=72)

    notices = list(trace.tables.get("alerts", [])) + list(trace.tables.get("warnings", []))
    if notices:
        y -= 6
        line("Alerts and warnings:", "Helvetica-Bold", 10, 14)
        for n in notices:
            line(f"- {n}", indent=72)

    c.showPage()
    c.save()
    return p


def _var_dict(v: Any) -> Dict[str, Any]:
    return {"symbol": v.symbol, "description": v.description, "value": v.value, "units": v.units, "source": v.source}


def _sheet(wb: Workbook, title: str, header: List[str], rows: Iterable[List[Any]], first: bool = False):
    ws = wb.active if first else wb.create_sheet(title)
    ws.title = title
    ws.append(header)
    for row in rows:
        ws.append([_cell(v) for v in row])
    ws.freeze_panes = "A2"
    _autosize(ws)
    return ws


ALTERNATIVE_COLUMNS = [
    "fixing",
    "bracket_centres_mm",
    "bracket_thickness_mm",
    "angle_thickness_mm",
    "vertical_leg_mm",
    "bolt_diameter_mm",
    "fixing_position_mm",
    "weight_kg_per_m",
    "weight_difference_pct",
    "differences",
]


def export_excel(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Path:
    wb = Workbook()
    _sheet(
        wb, "Inputs", ["id", "label", "value", "units", "source", "notes"],
        ([i.id, i.label, i.value, i.units, i.source, i.notes] for i in trace.inputs), first=True,
    )
    _sheet(wb, "Assumptions", ["id", "text"], ([a.id, a.text] for a in trace.assumptions))
    _sheet(
        wb, "Calcs",
        ["id", "section", "title", "reference", "equation", "substitution", "result_rounded", "units", "variables_json"],
        (
            [
                s.id, s.section, s.title, "; ".join(f"{r.type}:{r.ref}" for r in s.references),
                s.equation_latex, s.substitution_latex, s.result_rounded.value, s.result_rounded.units,
                [_var_dict(v) for v in s.variables],
            ]
            for s in trace.steps
        ),
    )
    _sheet(
        wb, "Checks", ["step", "check", "demand", "capacity", "ratio", "result"],
        ([s.id, ck.label, ck.demand, ck.capacity, ck.ratio, ck.pass_fail] for s in trace.steps for ck in s.checks),
    )
    _sheet(
        wb, "Alternatives", ["rank"] + ALTERNATIVE_COLUMNS,
        ([n] + [row.get(k) for k in ALTERNATIVE_COLUMNS] for n, row in enumerate(trace.tables.get("alternatives", []), start=1)),
    )
    layout = trace.tables.get("run_layout")
    if layout:
        _sheet(
            wb, "Run Layout", ["piece", "start_mm", "length_mm", "standard", "bracket_count", "bracket_positions_mm"],
            (
                [n, p["start_mm"], p["length_mm"], p["standard"], p["bracket_count"], p["bracket_positions_mm"]]
                for n, p in enumerate(layout.get("pieces", []), start=1)
            ),
        )
    notices = [("alert", a) for a in trace.tables.get("alerts", [])] + [("warning", w) for w in trace.tables.get("warnings", [])]
    _sheet(wb, "Notices", ["kind", "text"], ([k, t] for k, t in notices))
    _sheet(wb, "Results", ["key", "value"], ([k, v] for k, v in results.items()))

    p = out_dir / "results.xlsx"
    wb.save(p)
    return p


def export_json(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    p1 = out_dir / "calc_trace.json"
    dump_trace_json(trace, str(p1))

    p2 = out_dir / "results.json"
    p2.write_text(json.dumps(json_safe(results), indent=2, ensure_ascii=True), encoding="utf-8")
    return {"calc_trace": p1, "results": p2}


def export_mathcad_handoff(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    """Inputs and scalar results as CSV, plus every step with its checks as JSON."""
    p_csv = out_dir / "mathcad_inputs.csv"
    with p_csv.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["id", "label", "value", "units", "source", "notes"])
        for i in trace.inputs:
            w.writerow([i.id, i.label, i.value, i.units, i.source, i.notes])
        # scalar results only; nested tables live in results.json
        w.writerow([])
        w.writerow(["__RESULTS__", "", "", "", "", ""])
        for k, v in results.items():
            if not isinstance(v, (dict, list, tuple)):
                w.writerow([k, k, json_safe(v), "-", "tool", ""])

    steps = [
        {
            "id": s.id,
            "section": s.section,
            "title": s.title,
            "output_symbol": s.output_symbol,
            "equation_latex": s.equation_latex,
            "substitution_latex": s.substitution_latex,
            "variables": [_var_dict(v) for v in s.variables],
            "result_unrounded": {"value": s.result_unrounded.value, "units": s.result_unrounded.units},
            "result_rounded": {"value": s.result_rounded.value, "units": s.result_rounded.units},
            "checks": [{"label": ck.label, "ratio": ck.ratio, "result": ck.pass_fail} for ck in s.checks],
        }
        for s in trace.steps
    ]
    p_steps = out_dir / "mathcad_steps.json"
    p_steps.write_text(json.dumps(json_safe(steps), indent=2, ensure_ascii=True), encoding="utf-8")
    return {"mathcad_inputs": p_csv, "mathcad_steps": p_steps}


def export_all(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    outputs: Dict[str, Path] = {}
    outputs["html"] = export_html(trace, out_dir)
    outputs["calculation_report"] = export_calculation_report(trace, out_dir)
    outputs["pdf"] = export_pdf(trace, out_dir)
    outputs.update(export_json(trace, out_dir, results))
    outputs["excel"] = export_excel(trace, out_dir, results)
    outputs.update(export_mathcad_handoff(trace, out_dir, results))
    return outputs
