from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from circuit_model import AnalysisResult, CircuitState, Component, ComponentKind, Wire, terminal_points

KIND_COLORS = {
    ComponentKind.RESISTOR: "#f97316",
    ComponentKind.VOLTAGE_SOURCE: "#22c55e",
    ComponentKind.DC_BATTERY: "#22c55e",
    ComponentKind.DIODE: "#ef4444",
    ComponentKind.CAPACITOR: "#3b82f6",
    ComponentKind.AC_SOURCE: "#a855f7",
    ComponentKind.AMMETER: "#eab308",
    ComponentKind.WIRE: "#64748b",
}
WIRE_COLOR = "#64748b"


def _axes(ax: Optional[Axes]) -> Axes:
    if ax is not None:
        return ax
    _, ax = plt.subplots()
    return ax


def _label(name: str, component_id: str, result: Optional[AnalysisResult]) -> str:
    if result is None or component_id not in result.branch_currents:
        return name
    return f"{name}\n{result.branch_currents[component_id]:.4g} A"


def plot_layout(
    components: Sequence[Component],
    wires: Sequence[Wire],
    result: Optional[AnalysisResult] = None,
    ax: Optional[Axes] = None,
) -> Figure:
    """Draw placed components and wires in editor coordinates.

    Components without a center (pre-resolved node ids) have no position
    on the grid and are skipped. Terminal-1 of each component is marked.
    """
    ax = _axes(ax)
    for wire in wires:
        ax.plot([wire.start.x, wire.end.x], [wire.start.y, wire.end.y], color=WIRE_COLOR)

    first_terminals = []
    for component in components:
        if component.center is None:
            continue
        first, second = terminal_points(component.center, component.orientation)
        ax.plot(
            [first.x, second.x],
            [first.y, second.y],
            color=KIND_COLORS[component.kind],
            linewidth=3,
        )
        ax.text(
            component.center.x,
            component.center.y,
            _label(component.name, component.id, result),
            ha="center",
            va="bottom",
            fontsize=8,
        )
        first_terminals.append(first)

    if first_terminals:
        ax.scatter(
            [p.x for p in first_terminals],
            [p.y for p in first_terminals],
            marker="o",
            color="black",
            s=12,
            zorder=3,
        )
    ax.set_aspect("equal")
    ax.invert_yaxis()
    ax.grid(True)
    return ax.figure


def plot_state(
    state: CircuitState,
    result: Optional[AnalysisResult] = None,
    ax: Optional[Axes] = None,
) -> Figure:
    ax = _axes(ax)
    positions = {node.id: (node.x, node.y) for node in state.nodes}
    for branch in state.components:
        (x1, y1), (x2, y2) = positions[branch.node1_id], positions[branch.node2_id]
        ax.plot([x1, x2], [y1, y2], color=KIND_COLORS[branch.kind], linewidth=2)
        ax.text(
            (x1 + x2) / 2,
            (y1 + y2) / 2,
            _label(branch.name or branch.id, branch.id, result),
            ha="center",
            fontsize=8,
        )

    ax.scatter(
        [x for x, _ in positions.values()],
        [y for _, y in positions.values()],
        color="black",
        zorder=3,
    )
    for node in state.nodes:
        label = node.id
        if result is not None and node.id in result.node_voltages:
            label = f"{node.id} ({result.node_voltages[node.id]:.3g} V)"
        ax.annotate(label, (node.x, node.y), textcoords="offset points", xytext=(4, 4), fontsize=7)
    ax.invert_yaxis()
    ax.grid(True)
    return ax.figure


def save_figure(figure: Figure, output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    figure.tight_layout()
    figure.savefig(output_path)
    plt.close(figure)
    return output_path
