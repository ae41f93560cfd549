from __future__ import annotations

import pytest

from .analysis.run_layout import (
    MIN_BRACKET_EDGE_MM,
    PIECE_GAP_MM,
    custom_piece_brackets,
    fixed_length_layout,
    optimize_run_layout,
    standard_lengths,
    standard_piece_brackets,
)
from .errors import NoLayoutError


def _assert_edges_ok(layout) -> None:
    for piece in layout.pieces:
        assert piece.bracket_positions_mm
        assert piece.bracket_positions_mm[0] >= MIN_BRACKET_EDGE_MM
        assert piece.length_mm - piece.bracket_positions_mm[-1] >= MIN_BRACKET_EDGE_MM


def test_standard_lengths_table_and_formula() -> None:
    assert standard_lengths(500.0) == (1490.0, 990.0)
    assert standard_lengths(500.0, max_length_mm=1000.0) == (990.0,)
    # centres outside the table: k*C - 10 up to the piece limit
    assert standard_lengths(600.0) == (1190.0,)
    assert standard_lengths(325.0)[-1] == 640.0


def test_standard_piece_brackets_sit_half_a_centre_in() -> None:
    assert standard_piece_brackets(1490.0, 500.0) == (245.0, 745.0, 1245.0)
    assert standard_piece_brackets(990.0, 500.0) == (245.0, 745.0)


def test_custom_piece_bracket_rules() -> None:
    assert custom_piece_brackets(100.0, 500.0) == (50.0,)
    # single bracket too close to the ends
    assert custom_piece_brackets(60.0, 500.0) is None
    # single bracket edge beyond half the centres
    assert custom_piece_brackets(100.0, 80.0) is None
    assert custom_piece_brackets(600.0, 500.0) == (50.0, 550.0)
    # full centres do not fit; spacing drops onto the 50 mm slot pitch
    assert custom_piece_brackets(400.0, 500.0) == (50.0, 350.0)


def test_run_of_one_standard_piece() -> None:
    layout = optimize_run_layout(1510.0, 500.0)
    assert len(layout.pieces) == 1
    piece = layout.pieces[0]
    assert piece.length_mm == 1490.0 and piece.standard
    assert piece.start_mm == PIECE_GAP_MM
    assert piece.bracket_positions_mm == (245.0, 745.0, 1245.0)
    assert layout.score == (3, 1, 1)


def test_equal_custom_pieces_beat_mixed_lengths() -> None:
    layout = optimize_run_layout(3000.0, 500.0)
    assert [p.length_mm for p in layout.pieces] == [1485.0, 1485.0]
    assert not any(p.standard for p in layout.pieces)
    assert layout.total_brackets == 6
    assert layout.pieces[1].start_mm == pytest.approx(1505.0)
    _assert_edges_ok(layout)


def test_layout_fills_run_exactly() -> None:
    for run in (800.0, 2250.0, 4615.0, 7000.0):
        layout = optimize_run_layout(run, 400.0)
        used = sum(p.length_mm for p in layout.pieces) + PIECE_GAP_MM * (len(layout.pieces) + 1)
        assert used == pytest.approx(run)
        assert all(p.length_mm <= 1490.0 for p in layout.pieces)
        _assert_edges_ok(layout)


def test_material_summary() -> None:
    summary = optimize_run_layout(3000.0, 500.0).material_summary()
    assert summary == {
        "total_angle_length_mm": 2970.0,
        "piece_count": 2,
        "bracket_count": 6,
        "distinct_lengths": 1,
        "pieces_by_length_mm": {"1485": 2},
    }


def test_fixed_length_layout() -> None:
    layout = fixed_length_layout(3000.0, 500.0, 990.0)
    assert layout.length_limited
    assert [p.length_mm for p in layout.pieces] == [990.0, 990.0, 980.0]
    assert layout.pieces[0].standard and not layout.pieces[-1].standard
    assert layout.pieces[0].bracket_positions_mm == (245.0, 745.0)
    assert layout.pieces[-1].bracket_positions_mm == (240.0, 740.0)


def test_short_runs_have_no_layout() -> None:
    with pytest.raises(NoLayoutError):
        optimize_run_layout(15.0, 500.0)
    with pytest.raises(NoLayoutError):
        optimize_run_layout(60.0, 500.0)
    with pytest.raises(NoLayoutError):
        optimize_run_layout(1000.0, 0.0)
    with pytest.raises(NoLayoutError):
        fixed_length_layout(20.0, 500.0, 990.0)
