from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from circuit_model import Component, ComponentKind, Point, Wire  # noqa: E402
from circuit_report import analyze_layout, check_circuit  # noqa: E402
from layouts import parallel_sources, series_loop  # noqa: E402


def test_empty_layout_lists_every_missing_piece():
    report = check_circuit([], [])

    assert report.is_valid is False
    assert report.issues == [
        "No voltage source found",
        "No components placed",
        "No wire connections",
    ]
    assert len(report.suggestions) == 3


def test_source_without_load_is_flagged():
    components = [Component("b1", ComponentKind.DC_BATTERY, 9, Point(40, 0), 0)]
    wires = [Wire("w1", Point(0, 0), Point(80, 0))]

    report = check_circuit(components, wires)

    assert report.has_voltage_source is True
    assert report.issues == ["No load resistor or ammeter"]


def test_too_few_wires_may_leave_loop_open():
    components, wires = series_loop()

    report = check_circuit(components, wires[:1])

    assert report.has_closed_loop is False
    assert report.issues == ["Circuit may not form a closed loop"]


def test_series_loop_passes_and_is_solved():
    components, wires = series_loop()

    analysis = analyze_layout(components, wires)

    assert analysis.report.is_valid is True
    assert analysis.report.issues == []
    assert analysis.result is not None
    assert analysis.result.solvable is True
    assert analysis.as_dict()["report"]["componentCount"] == 2


def test_open_layout_reports_missing_loop():
    components = [
        Component("b1", ComponentKind.DC_BATTERY, 10, Point(40, 0), 0),
        Component("r1", ComponentKind.RESISTOR, 100, Point(40, 80), 0),
    ]
    wires = [
        Wire("w1", Point(0, 0), Point(0, 80)),
        Wire("w2", Point(80, 0), Point(200, 0)),
    ]

    analysis = analyze_layout(components, wires)

    assert analysis.result is None
    assert analysis.state.loops == ()
    assert analysis.report.has_closed_loop is False
    assert analysis.report.issues == ["No complete loops detected"]


def test_invalid_layout_is_resolved_but_not_solved():
    analysis = analyze_layout([], [])

    assert analysis.result is None
    assert analysis.state.nodes == ()
    assert analysis.as_dict()["result"] is None


def test_conflicting_sources_report_unsolvable():
    components, wires = parallel_sources()

    analysis = analyze_layout(components, wires)

    assert analysis.report.is_valid is False
    assert "Circuit is unsolvable" in analysis.report.issues
    assert analysis.result.solvable is False
