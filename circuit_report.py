from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from circuit_model import AnalysisResult, CircuitState, Component, ComponentKind, Wire
from circuit_topology import resolve
from mesh_solver import SolverSettings, solve


@dataclass
class CircuitReport:
    is_valid: bool
    has_voltage_source: bool
    has_closed_loop: bool
    component_count: int
    wire_count: int
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def add(self, issue: str, suggestion: Optional[str] = None) -> None:
        self.issues.append(issue)
        if suggestion:
            self.suggestions.append(suggestion)
        self.is_valid = False

    def as_dict(self) -> Dict[str, object]:
        return {
            "isValid": self.is_valid,
            "hasVoltageSource": self.has_voltage_source,
            "hasClosedLoop": self.has_closed_loop,
            "componentCount": self.component_count,
            "wireCount": self.wire_count,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
        }


@dataclass
class LayoutAnalysis:
    report: CircuitReport
    state: CircuitState
    result: Optional[AnalysisResult]

    def as_dict(self) -> Dict[str, object]:
        return {
            "report": self.report.as_dict(),
            "state": self.state.as_dict(),
            "result": self.result.as_dict() if self.result else None,
        }


def check_circuit(components: Sequence[Component], wires: Sequence[Wire]) -> CircuitReport:
    has_source = any(component.kind.is_source for component in components)
    has_load = any(component.kind.is_load for component in components)

    # Rough pre-check; analyze_layout confirms it against the resolved loops.
    has_closed_loop = has_source and len(wires) >= len(components)
    report = CircuitReport(
        is_valid=True,
        has_voltage_source=has_source,
        has_closed_loop=has_closed_loop,
        component_count=len(components),
        wire_count=len(wires),
    )
    if not has_source:
        report.add(
            "No voltage source found",
            "Add a DC Battery or AC Source to power the circuit",
        )
    if not components:
        report.add("No components placed", "Add resistors, batteries, or other components")
    if not wires:
        report.add("No wire connections", "Connect components using wires")
    if components and not has_closed_loop:
        report.add(
            "Circuit may not form a closed loop",
            "Ensure all components are connected in a complete path",
        )
    if has_source and not has_load:
        report.add("No load resistor or ammeter", "Add a resistor to prevent short circuit")
    return report


def analyze_layout(
    components: Sequence[Component],
    wires: Sequence[Wire],
    settings: Optional[SolverSettings] = None,
) -> LayoutAnalysis:
    """Check, resolve and solve a placed layout in one call."""
    report = check_circuit(components, wires)
    state = resolve(components, wires)
    if not report.is_valid:
        return LayoutAnalysis(report, state, None)

    if not state.loops:
        report.has_closed_loop = False
        report.add(
            "No complete loops detected",
            "Ensure wires explicitly connect to component endpoints",
        )
        return LayoutAnalysis(report, state, None)

    result = solve(state, settings)
    if not result.solvable:
        report.add("Circuit is unsolvable")
    return LayoutAnalysis(report, state, result)
