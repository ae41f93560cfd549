from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from masonry_toolbox.cli import EXIT_FAILED, EXIT_OK, EXIT_USAGE, main
from masonry_toolbox.core.loader import ToolNotFoundError, discover_tools, get_tool
from masonry_toolbox.core.runner import ToolRunner
from masonry_toolbox.core.schema_utils import validate_inputs
from masonry_toolbox.core.settings import load_settings, save_settings

from .tool import TOOL


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("MASONRY_TOOLBOX_HOME", str(tmp_path))


def _assert_exists(p: Path) -> None:
    assert p.exists(), f"Missing: {p}"


def _check_outputs(run_dir: Path) -> None:
    _assert_exists(run_dir / "report.html")
    _assert_exists(run_dir / "calculation_report.html")
    _assert_exists(run_dir / "report.pdf")
    _assert_exists(run_dir / "calc_trace.json")
    _assert_exists(run_dir / "results.json")
    _assert_exists(run_dir / "results.xlsx")
    _assert_exists(run_dir / "mathcad_inputs.csv")
    _assert_exists(run_dir / "mathcad_steps.json")
    _assert_exists(run_dir / "run.log")


def test_smoke_case_1(tmp_path):
    inputs = TOOL.default_inputs()
    res = TOOL.run_batch(inputs)
    assert res["ok"] is True
    assert res["feasible"] is True
    run_dir = Path(res["run_dir"])
    assert tmp_path in run_dir.parents
    _check_outputs(run_dir)

    results = json.loads((run_dir / "results.json").read_text(encoding="utf-8"))
    assert results["best"]["calculated"]["total_weight_kg_per_m"] == pytest.approx(res["best"]["calculated"]["total_weight_kg_per_m"])
    trace = json.loads((run_dir / "calc_trace.json").read_text(encoding="utf-8"))
    assert trace["meta"]["input_hash"] == res["input_hash"]
    assert "Starting masonry support batch run" in (run_dir / "run.log").read_text(encoding="utf-8")


def test_smoke_case_2():
    inputs = TOOL.default_inputs()
    inputs.update(
        {
            "slab_thickness_mm": 250.0,
            "support_level_mm": -250.0,
            "characteristic_load_kn_per_m": 7.0,
            "run_length_mm": 4500.0,
            "fixed_angle_length_mm": 990.0,
        }
    )
    res = TOOL.run_batch(inputs)
    assert res["ok"] is True
    _check_outputs(Path(res["run_dir"]))
    if res["feasible"]:
        layout = res["run_layout"]
        assert layout["length_limited"] is True
        assert all(p["length_mm"] <= 990.0 for p in layout["pieces"])


def test_smoke_no_valid_design_still_exports():
    inputs = TOOL.default_inputs()
    inputs["support_level_mm"] = -60.0
    res = TOOL.run_batch(inputs)
    assert res["ok"] is True
    assert res["feasible"] is False
    assert res["status"] == "no_valid_design"
    _check_outputs(Path(res["run_dir"]))


def test_smoke_cancelled_run():
    res = TOOL.run_batch(TOOL.default_inputs(), is_cancelled=lambda: True)
    assert res["ok"] is False
    assert res["status"] == "cancelled"
    _assert_exists(Path(res["run_dir"]) / "run.log")


def test_invalid_inputs_raise_before_run_dir(tmp_path):
    inputs = TOOL.default_inputs()
    inputs["slab_thickness_mm"] = 10.0
    with pytest.raises(ValidationError):
        TOOL.run_batch(inputs)
    assert not (tmp_path / "MasonryToolbox" / TOOL.meta.id).exists()

    validated, err = validate_inputs(TOOL.InputModel, inputs)
    assert validated == {}
    assert err.startswith("slab_thickness_mm: ")


def test_tool_runner_reports_progress():
    percents = []
    statuses = []
    runner = ToolRunner(on_progress=percents.append, on_status=statuses.append)
    try:
        result = runner.start(TOOL, TOOL.default_inputs()).result(timeout=300)
    finally:
        runner.shutdown()
    assert result.ok
    assert percents and percents[-1] == 100
    assert statuses[0] == "Searching designs"
    assert statuses[-1] == "success"


def test_tool_runner_cancel_flag():
    runner = ToolRunner()
    runner.cancel()
    assert runner.is_cancelled()
    runner.shutdown()


def test_tool_is_discovered():
    tools = discover_tools()
    assert TOOL.meta.id in [t.meta.id for t in tools]
    assert get_tool(TOOL.meta.id) is TOOL
    with pytest.raises(ToolNotFoundError):
        get_tool("no_such_tool")


def test_settings_round_trip_and_unreadable_file(tmp_path):
    assert load_settings() == {}
    save_settings({"search_timeout_s": 30})
    assert load_settings() == {"search_timeout_s": 30}
    (tmp_path / "MasonryToolbox" / "settings.json").write_text("{not json", encoding="utf-8")
    assert load_settings() == {}


def test_cli_defaults_and_layout(capsys):
    assert main(["defaults"]) == EXIT_OK
    defaults = json.loads(capsys.readouterr().out)
    assert defaults["slab_thickness_mm"] == 200.0

    assert main(["layout", "--length", "1510", "--centres", "500"]) == EXIT_OK
    layout = json.loads(capsys.readouterr().out)
    assert [p["length_mm"] for p in layout["pieces"]] == [1490.0]

    assert main(["layout", "--length", "15", "--centres", "500"]) == EXIT_FAILED
    assert main(["--tool", "no_such_tool", "defaults"]) == EXIT_USAGE


def test_cli_run(tmp_path, capsys):
    good = tmp_path / "inputs.json"
    good.write_text(json.dumps(TOOL.default_inputs()), encoding="utf-8")
    assert main(["run", str(good)]) == EXIT_OK
    assert json.loads(capsys.readouterr().out)["ok"] is True

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"slab_thickness_mm": "thick"}), encoding="utf-8")
    assert main(["run", str(bad)]) == EXIT_USAGE
    assert main(["run", str(tmp_path / "missing.json")]) == EXIT_USAGE
    assert main([]) == EXIT_USAGE
