from __future__ import annotations

import traceback
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from masonry_toolbox.core.settings import load_settings
from masonry_toolbox.core.tool_base import ToolMeta

from .analysis.run_layout import RunLayout, fixed_length_layout, optimize_run_layout
from .calc_trace import CalcTrace
from .capacity_table import CapacityTable
from .errors import NoLayoutError, SearchCancelledError, SearchTimeoutError
from .exports import export_all
from .logging_utils import get_run_logger, remove_run_logger_sink
from .models import MasonrySupportInputs
from .paths import TOOL_ID, compute_input_hash, create_run_dir
from .progress import ProgressEvent
from .solver import OptimizationResult, optimize

ASSUMPTIONS = [
    "Masonry load acts on the angle horizontal leg at the stated fraction of facade thickness from the cavity face.",
    "Design line load is 1.35 x characteristic; serviceability checks use the characteristic load.",
    "Angle deflection uses a Ramberg-Osgood secant modulus (E = 200000 N/mm2, n = 8).",
    "Channel capacities come from the loaded capacity table; a missing slab row uses the nearest lower thickness.",
    "Candidates are discrete (bracket centres, thicknesses, legs, bolts, fixings); the lightest passing design governs.",
]


def _alternative_row(alt: Any) -> Dict[str, Any]:
    p = alt.evaluation.params
    return {
        "fixing": p.fixing_label,
        "bracket_centres_mm": p.bracket_centres_mm,
        "bracket_thickness_mm": p.bracket_thickness_mm,
        "angle_thickness_mm": p.angle_thickness_mm,
        "vertical_leg_mm": p.vertical_leg_mm,
        "bolt_diameter_mm": p.bolt_diameter_mm,
        "fixing_position_mm": p.fixing_position_mm,
        "weight_kg_per_m": alt.evaluation.weight_kg_per_m,
        "weight_difference_pct": alt.weight_difference_pct,
        "differences": alt.differences,
    }


def _geometry_table(result: OptimizationResult) -> Dict[str, Any]:
    g = result.best.geometry
    row = {k: v for k, v in g.to_dict().items() if not isinstance(v, dict)}
    row["angle_extension_mm"] = g.angle_extension.extension_mm
    row["characteristic_load_kn_per_m"] = g.loading.characteristic_udl_kn_per_m
    row["design_load_kn_per_m"] = g.loading.design_udl_kn_per_m
    return row


class MasonrySupportTool:
    """Masonry support bracket and angle designer.

    - run_batch() performs the deterministic design search and writes the calc package.
    - run_with_context() is the same run with host progress, status and cancellation hooks.
    """

    meta = ToolMeta(
        id=TOOL_ID,
        name="Masonry Support Designer",
        category="Facade Engineering",
        version="0.1.0",
        description="Brick-support bracket and angle optimiser with verification chain and calc package exports.",
    )

    InputModel = MasonrySupportInputs

    def default_inputs(self) -> dict:
        return self.InputModel().model_dump()

    def layout(self, run_length_mm: float, bracket_centres_mm: float, fixed_angle_length_mm: Optional[float] = None) -> RunLayout:
        if fixed_angle_length_mm:
            return fixed_length_layout(run_length_mm, bracket_centres_mm, fixed_angle_length_mm)
        return optimize_run_layout(run_length_mm, bracket_centres_mm)

    # ------------------------------
    # Batch calculation API (headless)
    # ------------------------------
    def run_batch(
        self,
        inputs: Dict[str, Any],
        *,
        progress_cb: Optional[Callable[[ProgressEvent], None]] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> Dict[str, Any]:
        """Run the full design search plus exports and return results.

        Invalid inputs raise pydantic's ValidationError before a run directory
        is created. Safe to execute in a background thread.
        """

        model = self.InputModel.model_validate(inputs)
        inputs_norm = model.model_dump()
        input_hash = compute_input_hash(inputs_norm)
        run_dir = create_run_dir(self.meta.id, input_hash)
        log, _log_sink = get_run_logger(run_dir, self.meta.id, input_hash)
        base = {"run_dir": str(run_dir), "input_hash": input_hash}

        try:
            log.info("Starting masonry support batch run")
            log.info(f"Inputs (validated): {inputs_norm}")

            settings = load_settings()
            table = CapacityTable.load_default(settings.get("capacity_table_path"))
            log.info(f"Capacity table: {table.source} ({len(table)} rows)")

            trace = CalcTrace.new(
                tool_id=self.meta.id,
                tool_version=self.meta.version,
                code_basis="BS EN 1993-1-1 / BS EN 1993-1-8 (masonry support workflow)",
                inputs=inputs_norm,
                input_hash=input_hash,
                defaults=self.default_inputs(),
            )
            trace.add_assumptions(ASSUMPTIONS)

            design = model.design_inputs()
            with logger.contextualize(tool_id=self.meta.id, run_dir=str(run_dir), input_hash=input_hash):
                result = optimize(
                    design,
                    table,
                    model.search,
                    progress_cb=progress_cb,
                    is_cancelled=is_cancelled,
                    timeout_s=settings.get("search_timeout_s"),
                    trace=trace,
                )

            warnings: List[str] = list(table.warnings) + list(result.warnings)
            layout: Optional[RunLayout] = None
            if result.feasible and design.run_length_mm:
                try:
                    layout = self.layout(
                        design.run_length_mm, result.best.params.bracket_centres_mm, design.fixed_angle_length_mm
                    )
                except NoLayoutError as e:
                    log.warning(f"Run layout: {e}")
                    warnings.append(str(e))

            summary: Dict[str, Any] = {
                "status": result.status,
                "message": result.message,
                "combinations_total": result.combinations_total,
                "combinations_checked": result.combinations_checked,
                "feasible_count": result.feasible_count,
                "rejected_candidates": result.rejected_candidates,
                "elapsed_s": round(result.elapsed_s, 3),
            }
            if result.feasible:
                best = result.best
                governing = best.verification.governing()
                summary.update(
                    {
                        "fixing": best.params.fixing_label,
                        "bracket_centres_mm": best.params.bracket_centres_mm,
                        "bracket_thickness_mm": best.params.bracket_thickness_mm,
                        "angle_thickness_mm": best.params.angle_thickness_mm,
                        "bracket_height_mm": best.geometry.bracket_height_mm,
                        "weight_kg_per_m": best.weight_kg_per_m,
                        "governing_check": governing.name,
                        "governing_utilization_pct": governing.utilization,
                    }
                )
                trace.tables["candidate"] = {"fixing": best.params.fixing_label, **best.params.to_dict()}
                trace.tables["geometry"] = _geometry_table(result)
            trace.tables["alternatives"] = [_alternative_row(a) for a in result.alternatives]
            trace.tables["warnings"] = warnings
            trace.tables["alerts"] = list(result.alerts)
            if layout is not None:
                trace.tables["run_layout"] = layout.to_dict()
                summary["angle_pieces"] = len(layout.pieces)
                summary["run_brackets"] = layout.total_brackets
            trace.summary = summary

            results: Dict[str, Any] = {
                "ok": True,
                **base,
                **result.to_dict(),
                "warnings": warnings,
                "feasible": result.feasible,
                "capacity_table": table.source,
                "run_layout": layout.to_dict() if layout is not None else None,
            }

            # Export calc package
            out_paths = export_all(trace, run_dir, results)
            results["outputs"] = {k: str(v) for k, v in out_paths.items()}

            log.info(f"Batch run complete: {result.status}")
            return results

        except SearchTimeoutError as e:
            log.error(f"Design search timed out: {e}")
            return {"ok": False, **base, "status": "timeout", "error": str(e)}

        except SearchCancelledError as e:
            log.warning(f"Design search cancelled: {e}")
            return {"ok": False, **base, "status": "cancelled", "error": str(e)}

        except Exception as e:
            log.exception("Batch run failed")
            return {
                "ok": False,
                **base,
                "status": "error",
                "error": str(e),
                "traceback": traceback.format_exc(),
            }

        finally:
            remove_run_logger_sink(_log_sink)

    # ------------------------------
    # Host entry points
    # ------------------------------
    def run_with_context(
        self,
        inputs: Dict[str, Any],
        progress_cb: Callable[[int], None],
        status_cb: Callable[[str], None],
        is_cancelled_cb: Callable[[], bool],
    ) -> Dict[str, Any]:
        """ToolRunner entry: forwards search progress as percent plus a status line."""

        def _forward(event: ProgressEvent) -> None:
            progress_cb(event.percent)
            if event.message:
                status_cb(event.message)
            else:
                status_cb(f"Checked {event.checked} of {event.total} combinations")

        status_cb("Searching designs")
        out = self.run_batch(inputs, progress_cb=_forward, is_cancelled=is_cancelled_cb)
        status_cb(str(out.get("status", "done")))
        return out

    def run(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return self.run_batch(inputs)


TOOL = MasonrySupportTool()
