import argparse
import json
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import sympy as sp

from circuit_generator import generate_two_mesh_circuit
from circuit_model import (
    AnalysisResult,
    CircuitState,
    Component,
    UnitNormalizer,
    Wire,
)
from circuit_netlist import netlist_lines, to_lcapy_circuit
from circuit_plot import plot_layout, plot_state, save_figure
from circuit_report import analyze_layout
from mesh_solver import SolverSettings, kvl_residuals, loop_equations, solve


def load_layout(
    path: str, normalizer: Optional[UnitNormalizer] = None
) -> Tuple[List[Component], List[Wire]]:
    layout_path = Path(path)
    try:
        data = json.loads(layout_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"{layout_path} is not valid JSON: {exc}") from exc

    normalizer = normalizer or UnitNormalizer()
    components = [Component.from_dict(item, normalizer) for item in data.get("components", [])]
    wires = [Wire.from_dict(item) for item in data.get("wires", [])]
    return components, wires


def build_parser() -> argparse.ArgumentParser:
    description = (
        "Resolve a placed circuit layout into nodes and loops, then solve the\n"
        "mesh currents (KVL) with piecewise-linear diodes."
    )

    examples = textwrap.dedent(
        """
        Examples:
          circuit-mesh layout.json
          circuit-mesh layout.json --show-equations --plot out/layout.png
          circuit-mesh --generate --seed 7 --second-source

        Layout file:
          {"components": [{"id": "b1", "type": "DC_BATTERY", "value": "9 V",
                           "center": {"x": 40, "y": 0}, "orientation": 0}],
           "wires": [{"id": "w1", "startPoint": {"x": 0, "y": 0},
                      "endPoint": {"x": 0, "y": 80}}]}
        """
    )

    parser = argparse.ArgumentParser(
        description=description,
        epilog=examples,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "layout",
        nargs="?",
        help="JSON file with the placed components and wires.",
    )
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Solve a random two-mesh textbook circuit instead of a layout file.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for --generate.",
    )
    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument(
        "--second-source",
        dest="second_source",
        action="store_true",
        default=None,
        help="With --generate, always place a source on the right branch.",
    )
    source_group.add_argument(
        "--single-source",
        dest="second_source",
        action="store_false",
        help="With --generate, keep the left source only.",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=SolverSettings.max_iterations,
        help="Maximum solve passes while diode states settle.",
    )
    parser.add_argument(
        "--show-equations",
        action="store_true",
        help="Print the KVL equation of every loop and its residual.",
    )
    parser.add_argument(
        "--show-lcapy",
        action="store_true",
        help="Print the linearised netlist handed to lcapy.",
    )
    parser.add_argument(
        "--plot",
        metavar="FILE",
        help="Save a drawing of the circuit annotated with branch currents.",
    )
    return parser


def print_warnings(warnings: Sequence[str], label: str) -> None:
    if not warnings:
        return
    print(f"\nWarnings for {label}:")
    for warning in warnings:
        print(f" - {warning}")


def print_report(report: Dict[str, object]) -> None:
    status = "valid" if report["isValid"] else "invalid"
    print(f"\nCircuit check: {status}")
    for issue in report["issues"]:
        print(f" - {issue}")
    for suggestion in report["suggestions"]:
        print(f"   hint: {suggestion}")


def print_currents(state: CircuitState, result: AnalysisResult) -> None:
    if not result.solvable:
        print("\nThe loop equations have no unique solution.")
        return
    if not state.loops:
        print("\nNo closed loops; nothing to solve.")
        return

    print("\nLoop currents:")
    for loop in state.loops:
        members = ", ".join(
            f"{'+' if sign > 0 else '-'}{component_id}"
            for component_id, sign in zip(loop.component_ids, loop.direction)
        )
        print(f" {loop.id} = {result.loop_currents[loop.id]:.6g} A  [{members}]")

    print("\nBranch currents:")
    for branch in state.components:
        if branch.id not in result.branch_currents:
            continue
        current = result.branch_currents[branch.id]
        print(f" {branch.name or branch.id} ({branch.kind.value}) = {current:.6g} A")

    if result.diode_states:
        print("\nDiodes:")
        for diode_id, diode_state in result.diode_states.items():
            print(f" {diode_id}: {diode_state.value}")


def print_equations(state: CircuitState, result: AnalysisResult, settings: SolverSettings) -> None:
    equations = loop_equations(state, result.diode_states or None, settings)
    residuals = kvl_residuals(state, result, settings)
    print("\nKVL equations:")
    for loop, equation in zip(state.loops, equations):
        print(textwrap.indent(sp.pretty(equation), " - "))
        if loop.id in residuals:
            print(f"   residual: {residuals[loop.id]:.3g} V")


def run(args: argparse.Namespace) -> dict:
    if not args.layout and not args.generate:
        raise SystemExit("Give a layout file or use --generate.")
    if args.layout and args.generate:
        raise SystemExit("Do not combine a layout file with --generate.")

    try:
        settings = SolverSettings(max_iterations=args.max_iterations)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    summary: Dict[str, object] = {}
    components: List[Component] = []
    wires: List[Wire] = []
    if args.generate:
        state = generate_two_mesh_circuit(
            np.random.default_rng(args.seed), getattr(args, "second_source", None)
        )
        result = solve(state, settings)
    else:
        try:
            components, wires = load_layout(args.layout)
        except (OSError, ValueError, KeyError) as exc:
            raise SystemExit(f"Could not load {args.layout}: {exc}") from exc
        analysis = analyze_layout(components, wires, settings)
        state = analysis.state
        print_report(analysis.report.as_dict())
        summary["report"] = analysis.report.as_dict()
        result = analysis.result

    print_warnings(state.warnings, "topology")
    if result is not None:
        print_currents(state, result)
        print_warnings(result.warnings, "solver")
        if args.show_equations and result.solvable and state.loops:
            print_equations(state, result, settings)

    if args.show_lcapy:
        diode_states = result.diode_states if result is not None else None
        lines, _ = netlist_lines(state, diode_states, settings)
        print("\nlcapy netlist:")
        print(to_lcapy_circuit(state, diode_states, settings))
        summary["netlist"] = lines

    if args.plot:
        if args.generate:
            figure = plot_state(state, result)
        else:
            figure = plot_layout(components, wires, result)
        summary["plot"] = str(save_figure(figure, Path(args.plot)))

    summary["state"] = state.as_dict()
    summary["result"] = result.as_dict() if result is not None else None
    return summary


def main():
    parser = build_parser()
    args = parser.parse_args()
    payload = run(args)
    print("\nSummary (JSON):")
    print(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
