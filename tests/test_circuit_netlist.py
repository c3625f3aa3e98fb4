from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from circuit_model import Component, ComponentKind, DiodeState  # noqa: E402
from circuit_netlist import netlist_lines, to_lcapy_circuit  # noqa: E402
from circuit_topology import resolve  # noqa: E402
from layouts import diode_loop, series_loop  # noqa: E402


def test_conducting_diode_becomes_resistor_and_drop():
    state = resolve(diode_loop(forward=True), [])

    lines, names = netlist_lines(state, {"D1": DiodeState.CONDUCTING})

    assert lines == [
        "V1 n2 n1 10",
        "R1 n2 kR1 0.1",
        "V2 kR1 n3 0.7",
        "R2 n3 n1 100",
    ]
    assert names == {"V1": "V1", "D1": "R1", "R1": "R2"}


def test_blocking_diode_becomes_large_resistor():
    state = resolve(diode_loop(forward=True), [])

    lines, _ = netlist_lines(state, {"D1": DiodeState.BLOCKING})

    assert "R1 n2 n3 1000000000" in lines
    assert len(lines) == 3


def test_conductor_only_kinds_become_wires():
    components = [
        Component("v1", ComponentKind.DC_BATTERY, 5, node1_id="a", node2_id="b"),
        Component("c1", ComponentKind.CAPACITOR, 1e-6, node1_id="b", node2_id="c"),
        Component("a1", ComponentKind.AMMETER, 0, node1_id="c", node2_id="d"),
        Component("r1", ComponentKind.RESISTOR, 47, node1_id="d", node2_id="a"),
    ]

    lines, _ = netlist_lines(resolve(components, []))

    assert lines == [
        "V1 n2 n1 5",
        "W1 n2 n3",
        "R1 n3 n4 0.001",
        "R2 n4 n1 47",
    ]


def test_lcapy_circuit_holds_every_element():
    state = resolve(*series_loop())

    circuit = to_lcapy_circuit(state)

    assert "V1" in circuit.elements
    assert "R1" in circuit.elements
