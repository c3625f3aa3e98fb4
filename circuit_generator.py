from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from circuit_model import Branch, CircuitNode, CircuitState, Component, ComponentKind, Loop


#   n1 -- c_top_l -- n2 -- c_top_r -- n3
#   |                |                 |
#   c_left           c_mid             c_right
#   |                |                 |
#   n4 -- c_bot_l -- n5 -- c_bot_r -- n6
TWO_MESH_NODES: Dict[str, Tuple[float, float]] = {
    "n1": (0, 0),
    "n2": (50, 0),
    "n3": (100, 0),
    "n4": (0, 50),
    "n5": (50, 50),
    "n6": (100, 50),
}

TWO_MESH_BRANCHES: List[Tuple[str, str, str]] = [
    ("c_left", "n4", "n1"),
    ("c_top_l", "n1", "n2"),
    ("c_mid", "n2", "n5"),
    ("c_bot_l", "n5", "n4"),
    ("c_top_r", "n2", "n3"),
    ("c_right", "n3", "n6"),
    ("c_bot_r", "n6", "n5"),
]

TWO_MESH_LOOPS = (
    Loop("l1", ("c_left", "c_top_l", "c_mid", "c_bot_l"), (1, 1, 1, 1)),
    Loop("l2", ("c_mid", "c_top_r", "c_right", "c_bot_r"), (-1, 1, 1, 1)),
)

LEFT_SOURCE = "c_left"
RIGHT_SOURCE = "c_right"


def random_resistance(rng: np.random.Generator) -> float:
    return float(rng.integers(1, 11) * 10)


def random_voltage(rng: np.random.Generator) -> float:
    return float(rng.integers(1, 11) * 5)


def _names(kinds: Mapping[str, ComponentKind]) -> Dict[str, str]:
    # Resistors keep their position number; sources are counted separately.
    names: Dict[str, str] = {}
    source_count = 0
    for index, (branch_id, _, _) in enumerate(TWO_MESH_BRANCHES, start=1):
        if kinds[branch_id] is ComponentKind.VOLTAGE_SOURCE:
            source_count += 1
            names[branch_id] = f"V{source_count}"
        else:
            names[branch_id] = f"R{index}"
    return names


def generate_two_mesh_circuit(
    rng: Optional[np.random.Generator] = None,
    second_source: Optional[bool] = None,
) -> CircuitState:
    """Random two-mesh textbook circuit sharing a middle branch.

    The left branch is always a voltage source; the right branch becomes a
    second source when ``second_source`` is set, or on a coin flip.
    """
    rng = rng if rng is not None else np.random.default_rng()
    if second_source is None:
        second_source = bool(rng.random() > 0.5)

    sources = {LEFT_SOURCE, RIGHT_SOURCE} if second_source else {LEFT_SOURCE}
    kinds = {
        branch_id: ComponentKind.VOLTAGE_SOURCE if branch_id in sources else ComponentKind.RESISTOR
        for branch_id, _, _ in TWO_MESH_BRANCHES
    }
    values = {
        branch_id: random_voltage(rng) if branch_id in sources else random_resistance(rng)
        for branch_id, _, _ in TWO_MESH_BRANCHES
    }
    names = _names(kinds)

    nodes = tuple(CircuitNode(node_id, x, y) for node_id, (x, y) in TWO_MESH_NODES.items())
    components = tuple(
        Branch(
            id=branch_id,
            kind=kinds[branch_id],
            value=values[branch_id],
            node1_id=node1,
            node2_id=node2,
            name=names[branch_id],
        )
        for branch_id, node1, node2 in TWO_MESH_BRANCHES
    )
    return CircuitState(nodes=nodes, components=components, loops=TWO_MESH_LOOPS)


def two_mesh_components(
    values: Mapping[str, float],
    kinds: Optional[Mapping[str, ComponentKind]] = None,
) -> List[Component]:
    """The two-mesh topology as pre-resolved components for ``resolve``."""
    kinds = kinds or {LEFT_SOURCE: ComponentKind.VOLTAGE_SOURCE}
    return [
        Component(
            id=branch_id,
            kind=kinds.get(branch_id, ComponentKind.RESISTOR),
            value=values[branch_id],
            node1_id=node1,
            node2_id=node2,
        )
        for branch_id, node1, node2 in TWO_MESH_BRANCHES
    ]


def state_as_components(state: CircuitState) -> List[Component]:
    return [
        Component(
            id=branch.id,
            kind=branch.kind,
            value=branch.value,
            node1_id=branch.node1_id,
            node2_id=branch.node2_id,
            name=branch.name,
        )
        for branch in state.components
    ]
