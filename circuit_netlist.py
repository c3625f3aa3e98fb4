from typing import Dict, List, Mapping, Optional, Tuple

from lcapy import Circuit

from circuit_model import CircuitState, ComponentKind, DiodeState
from mesh_solver import SolverSettings

_PREFIXES = {
    ComponentKind.RESISTOR: "R",
    ComponentKind.AMMETER: "R",
    ComponentKind.VOLTAGE_SOURCE: "V",
    ComponentKind.DC_BATTERY: "V",
    ComponentKind.AC_SOURCE: "W",
    ComponentKind.CAPACITOR: "W",
    ComponentKind.WIRE: "W",
    ComponentKind.DIODE: "R",
}


def _value_token(value: float) -> str:
    return f"{value:.12g}"


def netlist_lines(
    state: CircuitState,
    diode_states: Optional[Mapping[str, DiodeState]] = None,
    settings: Optional[SolverSettings] = None,
) -> Tuple[List[str], Dict[str, str]]:
    """Linearised netlist of a resolved circuit.

    Returns the netlist lines and a map from component id to the element
    name used for it. Conducting diodes become a resistor plus their
    forward drop through an internal node, blocking diodes a large resistor.
    Components the mesh model treats as plain conductors become wires.
    """
    settings = settings or SolverSettings()
    diode_states = diode_states or {}
    counters: Dict[str, int] = {}
    names: Dict[str, str] = {}
    lines: List[str] = []

    def next_name(prefix: str) -> str:
        counters[prefix] = counters.get(prefix, 0) + 1
        return f"{prefix}{counters[prefix]}"

    for branch in state.components:
        prefix = _PREFIXES[branch.kind]
        name = next_name(prefix)
        names[branch.id] = name
        node1, node2 = branch.node1_id, branch.node2_id

        if branch.kind is ComponentKind.RESISTOR:
            lines.append(f"{name} {node1} {node2} {_value_token(branch.value)}")
        elif branch.kind is ComponentKind.AMMETER:
            lines.append(f"{name} {node1} {node2} {_value_token(settings.ammeter_resistance)}")
        elif branch.kind in (ComponentKind.VOLTAGE_SOURCE, ComponentKind.DC_BATTERY):
            # terminal-2 is the positive side
            lines.append(f"{name} {node2} {node1} {_value_token(branch.value)}")
        elif branch.kind is ComponentKind.DIODE:
            if diode_states.get(branch.id) is DiodeState.BLOCKING:
                lines.append(
                    f"{name} {node1} {node2} {_value_token(settings.diode_blocking_resistance)}"
                )
            else:
                internal = f"k{name}"
                lines.append(
                    f"{name} {node1} {internal} {_value_token(settings.diode_forward_resistance)}"
                )
                drop = next_name("V")
                lines.append(
                    f"{drop} {internal} {node2} {_value_token(settings.diode_forward_voltage)}"
                )
        else:
            lines.append(f"{name} {node1} {node2}")
    return lines, names


def to_lcapy_circuit(
    state: CircuitState,
    diode_states: Optional[Mapping[str, DiodeState]] = None,
    settings: Optional[SolverSettings] = None,
) -> Circuit:
    lines, _ = netlist_lines(state, diode_states, settings)
    circuit = Circuit()
    for line in lines:
        circuit.add(line)
    return circuit
