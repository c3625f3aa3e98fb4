from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from circuit_model import Component, ComponentKind, Loop, Point, Wire  # noqa: E402
from circuit_topology import DisjointSet, connected_components, resolve  # noqa: E402
from layouts import node_named, series_loop, walk_closes  # noqa: E402


def _named(component_id, node1, node2, kind=ComponentKind.RESISTOR, value=10.0):
    return Component(component_id, kind, value, node1_id=node1, node2_id=node2)


def test_empty_input_resolves_to_empty_state():
    state = resolve([], [])

    assert state.nodes == ()
    assert state.components == ()
    assert state.loops == ()


def test_disjoint_set_keeps_first_seen_order():
    clusters = DisjointSet()
    clusters.union("a", "b")
    clusters.add("c")
    clusters.union("d", "a")

    assert clusters.find("d") == clusters.find("b")
    assert clusters.groups() == [["a", "b", "d"], ["c"]]


def test_series_loop_resolves_two_nodes_and_one_loop():
    components, wires = series_loop()

    state = resolve(components, wires)

    assert [node.id for node in state.nodes] == ["n1", "n2"]
    assert state.node("n1").members == (Point(0, 0), Point(0, 80))
    assert (state.node("n2").x, state.node("n2").y) == (80, 40)
    assert [(b.id, b.node1_id, b.node2_id) for b in state.components] == [
        ("b1", "n1", "n2"),
        ("r1", "n1", "n2"),
    ]
    assert state.loops == (Loop("L1", ("r1", "b1"), (1, -1)),)
    assert state.loops_through("b1") == [(0, -1)]
    assert state.loops_through("w1") == []


def test_coincident_terminals_merge_without_wire():
    components = [
        Component("r1", ComponentKind.RESISTOR, 10, Point(40, 0), 0),
        Component("r2", ComponentKind.RESISTOR, 10, Point(120, 0), 0),
    ]

    state = resolve(components, [])

    assert state.component("r1").node2_id == state.component("r2").node1_id
    assert len(state.nodes) == 3
    assert state.loops == ()


def test_wire_endpoint_on_terminal_merges_nodes():
    components = [Component("r1", ComponentKind.RESISTOR, 10, Point(40, 0), 0)]
    wires = [Wire("w1", Point(80, 0), Point(80, 200))]

    state = resolve(components, wires)

    far_end = next(node for node in state.nodes if Point(80, 200) in node.members)
    assert state.component("r1").node2_id == far_end.id


def test_dead_short_is_dropped_with_warning():
    components, wires = series_loop()
    components.append(Component("r2", ComponentKind.RESISTOR, 10, Point(0, 40), 90))

    state = resolve(components, wires)

    assert [b.id for b in state.components] == ["b1", "r1"]
    assert len(state.loops) == 1
    assert len(state.warnings) == 1
    assert "r2" in state.warnings[0]


def test_loop_count_matches_cycle_space_dimension():
    components = [
        _named("b1", "a", "b", ComponentKind.DC_BATTERY),
        _named("r1", "a", "b"),
        _named("r2", "a", "b"),
        _named("r3", "a", "b"),
        _named("r4", "c", "d"),
        _named("r5", "d", "e"),
        _named("r6", "e", "c"),
        _named("r7", "c", "e"),
        _named("r8", "e", "f"),
        _named("r9", "g", "g"),
    ]

    state = resolve(components, [])

    edges = len(state.components)
    nodes = len(state.nodes)
    pieces = len(connected_components(state))
    assert (edges, nodes, pieces) == (9, 7, 3)
    assert len(state.loops) == edges - nodes + pieces == 5


def test_every_loop_is_a_closed_walk():
    components = [
        _named("b1", "a", "b", ComponentKind.DC_BATTERY),
        _named("r1", "b", "c"),
        _named("r2", "c", "a"),
        _named("r3", "b", "d"),
        _named("r4", "d", "c"),
        _named("r5", "d", "a"),
    ]

    state = resolve(components, [])

    assert len(state.loops) == 3
    known = {branch.id for branch in state.components}
    for loop in state.loops:
        assert loop.component_ids
        assert set(loop.component_ids) <= known
        assert len(loop.component_ids) == len(loop.direction)
        assert walk_closes(state, loop)


def test_back_edge_is_not_reused():
    components = [
        _named("r1", "a", "b"),
        _named("r2", "a", "b"),
    ]

    state = resolve(components, [])

    assert len(state.loops) == 1
    assert state.loops[0].component_ids[0] == "r2"


def test_disconnected_circuits_each_contribute_loops():
    left, left_wires = series_loop()
    right = [
        _named("r10", "x", "y"),
        _named("r11", "y", "x"),
    ]

    state = resolve(left + right, left_wires)

    assert len(state.loops) == 2
    assert node_named(state, "x") != node_named(state, "y")


def test_resolve_is_repeatable():
    components = [
        _named("b1", "a", "b", ComponentKind.DC_BATTERY),
        _named("r1", "b", "c"),
        _named("r2", "c", "a"),
        _named("r3", "b", "d"),
        _named("r4", "d", "c"),
    ]
    wires = [Wire("w1", Point(0, 0), Point(40, 0))]

    first = resolve(components, wires)
    second = resolve(components, wires)

    assert {frozenset(n.members) for n in first.nodes} == {frozenset(n.members) for n in second.nodes}
    assert [(loop.component_ids, loop.direction) for loop in first.loops] == [
        (loop.component_ids, loop.direction) for loop in second.loops
    ]
    assert first == second


def test_resolve_does_not_mutate_inputs():
    components, wires = series_loop()
    before = [component.as_dict() for component in components]

    resolve(components, wires)

    assert [component.as_dict() for component in components] == before
