from collections import defaultdict, deque
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from circuit_model import (
    Branch,
    CircuitNode,
    CircuitState,
    Component,
    Loop,
    Point,
    TerminalKey,
    Wire,
)


class DisjointSet:
    """Union-find over terminal keys, remembering first-seen order."""

    def __init__(self) -> None:
        self.parent: Dict[TerminalKey, TerminalKey] = {}

    def add(self, key: TerminalKey) -> None:
        if key not in self.parent:
            self.parent[key] = key

    def find(self, key: TerminalKey) -> TerminalKey:
        self.add(key)
        root = key
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[key] != root:
            self.parent[key], key = root, self.parent[key]
        return root

    def union(self, first: TerminalKey, second: TerminalKey) -> None:
        root_a = self.find(first)
        root_b = self.find(second)
        if root_a != root_b:
            self.parent[root_a] = root_b

    def groups(self) -> List[List[TerminalKey]]:
        grouped: Dict[TerminalKey, List[TerminalKey]] = {}
        for key in self.parent:
            grouped.setdefault(self.find(key), []).append(key)
        return list(grouped.values())


def _node_position(members: Sequence[TerminalKey]) -> Tuple[float, float]:
    points = [member for member in members if isinstance(member, Point)]
    if not points:
        return 0.0, 0.0
    return (
        sum(p.x for p in points) / len(points),
        sum(p.y for p in points) / len(points),
    )


def _cluster_nodes(
    components: Sequence[Component], wires: Sequence[Wire]
) -> Tuple[List[CircuitNode], Dict[TerminalKey, str]]:
    clusters = DisjointSet()
    for wire in wires:
        clusters.union(wire.start, wire.end)
    for component in components:
        first, second = component.terminals()
        clusters.add(first)
        clusters.add(second)

    nodes: List[CircuitNode] = []
    node_of: Dict[TerminalKey, str] = {}
    for index, members in enumerate(clusters.groups(), start=1):
        node_id = f"n{index}"
        x, y = _node_position(members)
        nodes.append(CircuitNode(node_id, x, y, tuple(members)))
        for member in members:
            node_of[member] = node_id
    return nodes, node_of


def _remap_components(
    components: Sequence[Component], node_of: Dict[TerminalKey, str]
) -> Tuple[List[Branch], List[str]]:
    branches: List[Branch] = []
    warnings: List[str] = []
    for component in components:
        first, second = component.terminals()
        node1, node2 = node_of[first], node_of[second]
        if node1 == node2:
            warnings.append(
                f"{component.name} ({component.kind.value}) has both terminals on node "
                f"{node1}; it is shorted out and left out of the loop analysis."
            )
            continue
        branches.append(
            Branch(
                id=component.id,
                kind=component.kind,
                value=component.value,
                node1_id=node1,
                node2_id=node2,
                name=component.name,
            )
        )
    return branches, warnings


def _build_adjacency(
    nodes: Iterable[CircuitNode], branches: Iterable[Branch]
) -> Dict[str, List[Tuple[str, Branch]]]:
    adjacency: Dict[str, List[Tuple[str, Branch]]] = {node.id: [] for node in nodes}
    for branch in branches:
        adjacency[branch.node1_id].append((branch.node2_id, branch))
        adjacency[branch.node2_id].append((branch.node1_id, branch))
    return adjacency


def _ancestors(node: str, parents: Dict[str, Tuple[str, Branch]]) -> List[str]:
    chain = [node]
    while node in parents:
        node = parents[node][0]
        chain.append(node)
    return chain


def _close_loop(
    loop_id: str,
    back_edge: Branch,
    curr: str,
    target: str,
    parents: Dict[str, Tuple[str, Branch]],
) -> Optional[Loop]:
    ancestors = set(_ancestors(curr, parents))
    lca = next((node for node in _ancestors(target, parents) if node in ancestors), None)
    if lca is None:
        return None

    high: List[Branch] = []
    node = curr
    while node != lca:
        node, branch = parents[node]
        high.append(branch)

    low: List[Branch] = []
    node = target
    while node != lca:
        node, branch = parents[node]
        low.append(branch)

    ids: List[str] = []
    direction: List[int] = []
    cursor = curr
    for branch in [back_edge, *low, *reversed(high)]:
        forward = branch.node1_id == cursor
        ids.append(branch.id)
        direction.append(1 if forward else -1)
        cursor = branch.node2_id if forward else branch.node1_id
    return Loop(loop_id, tuple(ids), tuple(direction))


def _find_loops(
    nodes: Sequence[CircuitNode], adjacency: Dict[str, List[Tuple[str, Branch]]]
) -> List[Loop]:
    loops: List[Loop] = []
    visited: Set[str] = set()
    parents: Dict[str, Tuple[str, Branch]] = {}
    in_tree: Set[str] = set()

    for root in nodes:
        if root.id in visited:
            continue
        visited.add(root.id)
        queue = deque([root.id])
        while queue:
            curr = queue.popleft()
            for target, branch in adjacency[curr]:
                if target not in visited:
                    visited.add(target)
                    parents[target] = (curr, branch)
                    in_tree.add(branch.id)
                    queue.append(target)
                    continue
                if curr in parents and parents[curr][1].id == branch.id:
                    continue
                if branch.id in in_tree:
                    continue
                loop = _close_loop(f"L{len(loops) + 1}", branch, curr, target, parents)
                if loop is not None:
                    loops.append(loop)
                    in_tree.add(branch.id)
    return loops


def resolve(components: Sequence[Component], wires: Sequence[Wire] = ()) -> CircuitState:
    """Merge coincident terminals into nodes and enumerate independent loops."""
    nodes, node_of = _cluster_nodes(components, wires)
    branches, warnings = _remap_components(components, node_of)
    adjacency = _build_adjacency(nodes, branches)
    loops = _find_loops(nodes, adjacency)
    return CircuitState(
        nodes=tuple(nodes),
        components=tuple(branches),
        loops=tuple(loops),
        warnings=tuple(warnings),
    )


def connected_components(state: CircuitState) -> List[Set[str]]:
    adjacency: Dict[str, Set[str]] = defaultdict(set)
    for branch in state.components:
        adjacency[branch.node1_id].add(branch.node2_id)
        adjacency[branch.node2_id].add(branch.node1_id)

    visited: Set[str] = set()
    pieces: List[Set[str]] = []
    for node in state.nodes:
        if node.id in visited:
            continue
        piece: Set[str] = set()
        stack = [node.id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            piece.add(current)
            stack.extend(adjacency[current] - visited)
        pieces.append(piece)
    return pieces
