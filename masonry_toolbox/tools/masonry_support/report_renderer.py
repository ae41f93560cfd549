from __future__ import annotations

import html
import math
from typing import Any, Dict, List

from .calc_trace import CalcTrace

REPORT_TITLE = "Masonry Support Design"

_CSS = """
@page { size: A4; margin: 15mm; }
body { font-family: Arial, Helvetica, sans-serif; font-size: 10.5pt; color: #111; }
h1 { font-size: 16pt; margin: 0 0 6px 0; }
h2 { font-size: 12.5pt; margin: 16px 0 6px 0; border-bottom: 1px solid #ccc; padding-bottom: 2px; }
h3 { font-size: 11pt; margin: 12px 0 4px 0; }
.meta { font-size: 9pt; color: #333; }
.box { border: 1px solid #999; padding: 8px; margin: 6px 0; }
.warn { border: 1px solid #c90; background: #fff8e5; padding: 8px; margin: 6px 0; }
.eq { font-family: "Courier New", monospace; background: #f7f7f7; padding: 6px; white-space: pre-wrap; }
table { border-collapse: collapse; width: 100%; margin: 6px 0 10px 0; }
th, td { border: 1px solid #bbb; padding: 4px 6px; vertical-align: top; }
th { background: #f1f1f1; text-align: left; }
.pass { color: #0a6; font-weight: bold; }
.fail { color: #b00; font-weight: bold; }
.footer { position: fixed; bottom: 0; left: 0; right: 0; font-size: 8pt; color: #444; }
.footer .inner { border-top: 1px solid #ccc; padding-top: 4px; }
"""


def _h(s: Any) -> str:
    return html.escape(str(s))


def _num(v: Any) -> str:
    if isinstance(v, float):
        if not math.isfinite(v):
            return "n/a"
        return f"{v:.4g}" if abs(v) < 1e4 else f"{v:.0f}"
    return _h("-" if v is None else v)


def _kv_table(rows: Dict[str, Any]) -> str:
    parts = ["<table><tr><th>Item</th><th>Value</th></tr>"]
    for k, v in rows.items():
        parts.append(f"<tr><td>{_h(k)}</td><td>{_num(v)}</td></tr>")
    parts.append("</table>")
    return "".join(parts)


def _notices(title: str, items: List[str]) -> str:
    if not items:
        return ""
    lis = "".join(f"<li>{_h(i)}</li>" for i in items)
    return f"<div class='warn'><b>{_h(title)}</b><ul>{lis}</ul></div>"


def _alternatives(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return "<div class='box'>No alternative designs.</div>"
    parts = [
        "<table><tr><th>#</th><th>Fixing</th><th>Centres (mm)</th><th>Bracket t (mm)</th>"
        "<th>Angle t (mm)</th><th>Bolt</th><th>Weight (kg/m)</th><th>vs best (%)</th><th>Differences</th></tr>"
    ]
    for i, r in enumerate(rows, start=1):
        parts.append(
            f"<tr><td>{i}</td><td>{_h(r.get('fixing'))}</td><td>{_num(r.get('bracket_centres_mm'))}</td>"
            f"<td>{_num(r.get('bracket_thickness_mm'))}</td><td>{_num(r.get('angle_thickness_mm'))}</td>"
            f"<td>M{_h(r.get('bolt_diameter_mm'))}</td><td>{_num(r.get('weight_kg_per_m'))}</td>"
            f"<td>{_num(r.get('weight_difference_pct'))}</td><td>{_h(', '.join(r.get('differences', [])))}</td></tr>"
        )
    parts.append("</table>")
    return "".join(parts)


def _layout(layout: Dict[str, Any]) -> str:
    parts = [_kv_table(layout.get("summary", {}))]
    parts.append("<table><tr><th>Piece</th><th>Start (mm)</th><th>Length (mm)</th><th>Type</th><th>Brackets</th><th>Positions (mm)</th></tr>")
    for i, p in enumerate(layout.get("pieces", []), start=1):
        kind = "standard" if p.get("standard") else "custom"
        positions = ", ".join(f"{x:g}" for x in p.get("bracket_positions_mm", []))
        parts.append(
            f"<tr><td>{i}</td><td>{_num(p.get('start_mm'))}</td><td>{_num(p.get('length_mm'))}</td><td>{kind}</td>"
            f"<td>{_h(p.get('bracket_count'))}</td><td>{_h(positions)}</td></tr>"
        )
    parts.append("</table>")
    return "".join(parts)


def render_report_html(trace: CalcTrace) -> str:
    meta = trace.meta
    ts = meta.timestamp

    out: List[str] = []
    out.append("<!doctype html><html><head><meta charset='utf-8'>")
    out.append(f"<title>{REPORT_TITLE} - {_h(meta.input_hash)}</title>")
    out.append(f"<style>{_CSS}</style></head><body>")
    out.append(
        "<div class='footer'><div class='inner'>"
        f"Tool: {_h(meta.tool_id)} v{_h(meta.tool_version)} | Input hash: {_h(meta.input_hash)} | Generated: {_h(ts)}"
        "</div></div>"
    )

    out.append(f"<h1>{REPORT_TITLE} - Calculation Package</h1>")
    out.append(
        "<div class='meta'>"
        f"<div><b>Tool ID:</b> {_h(meta.tool_id)}</div>"
        f"<div><b>Tool Version:</b> {_h(meta.tool_version)}</div>"
        f"<div><b>Report Version:</b> {_h(meta.report_version)}</div>"
        f"<div><b>Timestamp:</b> {_h(ts)}</div>"
        f"<div><b>Units System:</b> {_h(meta.units_system)}</div>"
        f"<div><b>Input Hash:</b> {_h(meta.input_hash)}</div>"
        f"<div><b>Basis:</b> {_h(meta.code_basis or '-')}</div>"
        "</div>"
    )

    summary = trace.summary or {}
    out.append("<h2>Result</h2>")
    out.append(f"<div class='box'><b>Status:</b> {_h(summary.get('status', '-'))} - {_h(summary.get('message', ''))}</div>")
    out.append(_notices("Alerts", list(trace.tables.get("alerts", []))))
    out.append(_notices("Warnings", list(trace.tables.get("warnings", []))))
    if summary:
        out.append(_kv_table(summary))

    if trace.tables.get("candidate"):
        out.append("<h2>Selected Design</h2>")
        out.append(_kv_table(trace.tables["candidate"]))
    if trace.tables.get("geometry"):
        out.append("<h2>Derived Geometry</h2>")
        out.append(_kv_table(trace.tables["geometry"]))

    # Inputs
    out.append("<h2>Inputs</h2>")
    out.append("<table><tr><th>ID</th><th>Label</th><th>Value</th><th>Units</th><th>Source</th></tr>")
    for i in trace.inputs:
        out.append(
            f"<tr><td>{_h(i.id)}</td><td>{_h(i.label)}</td><td>{_h(i.value)}</td><td>{_h(i.units)}</td><td>{_h(i.source)}</td></tr>"
        )
    out.append("</table>")

    out.append("<h2>Assumptions &amp; Limitations</h2>")
    if trace.assumptions:
        out.append("<ul>")
        for a in trace.assumptions:
            out.append(f"<li><b>{_h(a.id)}</b>: {_h(a.text)}</li>")
        out.append("</ul>")
    else:
        out.append("<div class='box'>None.</div>")

    # Steps
    out.append("<h2>Calculations</h2>")
    if not trace.steps:
        out.append("<div class='box'>No design passed every check; no calculation steps to report.</div>")
    section = None
    for s in trace.steps:
        if s.section != section:
            section = s.section
            out.append(f"<h3>{_h(section)}</h3>")
        out.append("<div class='box'>")
        out.append(f"<div><b>{_h(s.id)} - {_h(s.title)}</b></div>")
        out.append(f"<div><b>Output:</b> {_h(s.output_symbol)} - {_h(s.output_description)}</div>")
        out.append("<div class='eq'><b>Equation</b>\n" + _h(s.equation_latex) + "</div>")
        out.append("<div class='eq'><b>Substitution</b>\n" + _h(s.substitution_latex) + "</div>")

        out.append("<table><tr><th>Symbol</th><th>Description</th><th>Value</th><th>Units</th><th>Source</th></tr>")
        for v in s.variables:
            out.append(
                f"<tr><td>{_h(v.symbol)}</td><td>{_h(v.description)}</td><td>{_num(v.value)}</td><td>{_h(v.units)}</td><td>{_h(v.source)}</td></tr>"
            )
        out.append("</table>")
        out.append(f"<div><b>Result:</b> {_num(s.result_rounded.value)} {_h(s.result_rounded.units)}</div>")

        if s.checks:
            out.append("<table><tr><th>Check</th><th>Demand</th><th>Capacity</th><th>Ratio</th><th>Status</th></tr>")
            for c in s.checks:
                cls = "pass" if c.pass_fail.upper() == "PASS" else "fail"
                out.append(
                    f"<tr><td>{_h(c.label)}</td><td>{_num(c.demand)}</td><td>{_num(c.capacity)}</td><td>{_num(c.ratio)}</td>"
                    f"<td class='{cls}'>{_h(c.pass_fail)}</td></tr>"
                )
            out.append("</table>")
        for w in s.warnings:
            out.append(f"<div class='warn'>{_h(w)}</div>")
        out.append("</div>")

    out.append("<h2>Alternatives</h2>")
    out.append(_alternatives(list(trace.tables.get("alternatives", []))))

    if trace.tables.get("run_layout"):
        out.append("<h2>Run Layout</h2>")
        out.append(_layout(trace.tables["run_layout"]))

    out.append("<h2>Mathcad Handoff</h2>")
    out.append(
        "<div class='box'>"
        "<div><b>mathcad_inputs.csv</b>: inputs and key results.</div>"
        "<div><b>mathcad_steps.json</b>: each step with equation, substitution, variables and results.</div>"
        "</div>"
    )

    out.append("</body></html>")
    return "".join(out)
