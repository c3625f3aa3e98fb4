from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import sympy as sp

from circuit_model import (
    AnalysisResult,
    Branch,
    CircuitState,
    ComponentKind,
    DiodeState,
)


@dataclass(frozen=True)
class SolverSettings:
    """
    Numerical constants of the mesh solver.

    Attributes
    ----------
    max_iterations : int
        Upper bound on solve passes while diode states settle.
    pivot_epsilon : float
        Pivots smaller than this in magnitude mark the system singular.
    ammeter_resistance : float
        Series resistance of an ammeter in ohms.
    diode_forward_resistance : float
        Resistance of a conducting diode in ohms.
    diode_blocking_resistance : float
        Resistance of a blocking diode in ohms.
    diode_forward_voltage : float
        Barrier voltage of a conducting diode in volts.
    """
    max_iterations: int = 10
    pivot_epsilon: float = 1e-10
    ammeter_resistance: float = 1e-3
    diode_forward_resistance: float = 0.1
    diode_blocking_resistance: float = 1e9
    diode_forward_voltage: float = 0.7

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1.")
        if self.pivot_epsilon <= 0:
            raise ValueError("pivot_epsilon must be positive.")
        for name in (
            "ammeter_resistance",
            "diode_forward_resistance",
            "diode_blocking_resistance",
            "diode_forward_voltage",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative.")


class SingularSystemError(ValueError):
    pass


DiodeStates = Dict[str, DiodeState]

_IDEAL_CONDUCTORS = frozenset(
    {
        ComponentKind.VOLTAGE_SOURCE,
        ComponentKind.DC_BATTERY,
        ComponentKind.AC_SOURCE,
        ComponentKind.CAPACITOR,
        ComponentKind.WIRE,
    }
)
_NO_EMF = frozenset(
    {
        ComponentKind.RESISTOR,
        ComponentKind.AMMETER,
        ComponentKind.AC_SOURCE,
        ComponentKind.CAPACITOR,
        ComponentKind.WIRE,
    }
)


def _is_blocking(branch: Branch, diode_states: Mapping[str, DiodeState]) -> bool:
    return diode_states.get(branch.id, DiodeState.CONDUCTING) is DiodeState.BLOCKING


def branch_resistance(
    branch: Branch, diode_states: Mapping[str, DiodeState], settings: SolverSettings
) -> float:
    kind = branch.kind
    if kind is ComponentKind.RESISTOR:
        return branch.value
    if kind is ComponentKind.AMMETER:
        return settings.ammeter_resistance
    if kind is ComponentKind.DIODE:
        if _is_blocking(branch, diode_states):
            return settings.diode_blocking_resistance
        return settings.diode_forward_resistance
    if kind in _IDEAL_CONDUCTORS:
        return 0.0
    raise ValueError(f"No resistance model for {kind}.")


def branch_voltage(
    branch: Branch,
    direction: int,
    diode_states: Mapping[str, DiodeState],
    settings: SolverSettings,
) -> float:
    """EMF seen by a loop crossing ``branch`` with the given traversal sign.

    Sources rise from terminal-1 to terminal-2; a conducting diode drops
    its forward voltage in the same direction.
    """
    kind = branch.kind
    if kind in (ComponentKind.VOLTAGE_SOURCE, ComponentKind.DC_BATTERY):
        return direction * branch.value
    if kind is ComponentKind.DIODE:
        if _is_blocking(branch, diode_states):
            return 0.0
        return -direction * settings.diode_forward_voltage
    if kind in _NO_EMF:
        return 0.0
    raise ValueError(f"No voltage model for {kind}.")


def branch_drop(
    branch: Branch,
    current: float,
    diode_states: Mapping[str, DiodeState],
    settings: SolverSettings,
) -> float:
    """Potential drop from terminal-1 to terminal-2 for a branch current."""
    resistance = branch_resistance(branch, diode_states, settings)
    return resistance * current - branch_voltage(branch, 1, diode_states, settings)


def gaussian_solve(
    matrix: Sequence[Sequence[float]],
    vector: Sequence[float],
    epsilon: float = SolverSettings.pivot_epsilon,
) -> np.ndarray:
    """Solve ``matrix @ x = vector`` by elimination with partial pivoting."""
    a = np.array(matrix, dtype=float)
    b = np.array(vector, dtype=float)
    n = len(b)
    if a.shape != (n, n):
        raise ValueError(f"Expected a {n}x{n} matrix, got shape {a.shape}.")

    for col in range(n):
        pivot = col + int(np.argmax(np.abs(a[col:, col])))
        if abs(a[pivot, col]) < epsilon:
            raise SingularSystemError(
                f"pivot {a[pivot, col]:.3g} in column {col + 1} is below {epsilon:g}"
            )
        if pivot != col:
            a[[col, pivot]] = a[[pivot, col]]
            b[[col, pivot]] = b[[pivot, col]]
        factors = a[col + 1:, col] / a[col, col]
        a[col + 1:, col:] -= np.outer(factors, a[col, col:])
        b[col + 1:] -= factors * b[col]

    x = np.zeros(n)
    for row in range(n - 1, -1, -1):
        x[row] = (b[row] - a[row, row + 1:] @ x[row + 1:]) / a[row, row]
    return x


def _memberships(state: CircuitState) -> Dict[str, List[Tuple[int, int]]]:
    memberships: Dict[str, List[Tuple[int, int]]] = defaultdict(list)
    for index, loop in enumerate(state.loops):
        for component_id, direction in zip(loop.component_ids, loop.direction):
            memberships[component_id].append((index, direction))
    return memberships


def assemble_loop_system(
    state: CircuitState,
    diode_states: Mapping[str, DiodeState],
    settings: Optional[SolverSettings] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    settings = settings or SolverSettings()
    size = len(state.loops)
    matrix = np.zeros((size, size))
    voltages = np.zeros(size)
    branches = {branch.id: branch for branch in state.components}
    memberships = _memberships(state)

    for i, loop in enumerate(state.loops):
        for component_id, direction in zip(loop.component_ids, loop.direction):
            branch = branches[component_id]
            resistance = branch_resistance(branch, diode_states, settings)
            voltages[i] += branch_voltage(branch, direction, diode_states, settings)
            if resistance == 0.0:
                continue
            for j, other_direction in memberships[component_id]:
                matrix[i, j] += direction * other_direction * resistance
    return matrix, voltages


def _branch_current(
    memberships: Mapping[str, List[Tuple[int, int]]],
    component_id: str,
    loop_currents: Sequence[float],
) -> float:
    return float(
        sum(direction * loop_currents[index] for index, direction in memberships.get(component_id, []))
    )


def branch_currents(state: CircuitState, loop_currents: Sequence[float]) -> Dict[str, float]:
    memberships = _memberships(state)
    return {
        branch.id: _branch_current(memberships, branch.id, loop_currents)
        for branch in state.components
        if branch.id in memberships
    }


def initial_diode_states(state: CircuitState) -> DiodeStates:
    in_loops = {component_id for loop in state.loops for component_id in loop.component_ids}
    return {
        branch.id: DiodeState.CONDUCTING
        for branch in state.components
        if branch.kind is ComponentKind.DIODE and branch.id in in_loops
    }


def update_diode_states(
    state: CircuitState,
    loop_currents: Sequence[float],
    diode_states: Mapping[str, DiodeState],
) -> Tuple[DiodeStates, bool]:
    memberships = _memberships(state)
    updated = dict(diode_states)
    changed = False
    for diode_id, diode_state in diode_states.items():
        if diode_state is DiodeState.CONDUCTING:
            if _branch_current(memberships, diode_id, loop_currents) <= 0:
                updated[diode_id] = DiodeState.BLOCKING
                changed = True
        else:
            # Blocking diodes are always retried as conducting.
            updated[diode_id] = DiodeState.CONDUCTING
            changed = True
    return updated, changed


def _is_consistent(
    state: CircuitState,
    loop_currents: Sequence[float],
    diode_states: Mapping[str, DiodeState],
    settings: SolverSettings,
) -> bool:
    memberships = _memberships(state)
    for diode_id, diode_state in diode_states.items():
        current = _branch_current(memberships, diode_id, loop_currents)
        if diode_state is DiodeState.CONDUCTING and current <= 0:
            return False
        if (
            diode_state is DiodeState.BLOCKING
            and current * settings.diode_blocking_resistance >= settings.diode_forward_voltage
        ):
            return False
    return True


def node_voltages(
    state: CircuitState,
    currents: Mapping[str, float],
    diode_states: Mapping[str, DiodeState],
    settings: Optional[SolverSettings] = None,
) -> Dict[str, float]:
    """Node potentials, with the first node of each connected piece at 0 V."""
    settings = settings or SolverSettings()
    adjacency: Dict[str, List[Branch]] = defaultdict(list)
    for branch in state.components:
        adjacency[branch.node1_id].append(branch)
        adjacency[branch.node2_id].append(branch)

    voltages: Dict[str, float] = {}
    for node in state.nodes:
        if node.id in voltages:
            continue
        voltages[node.id] = 0.0
        queue = deque([node.id])
        while queue:
            curr = queue.popleft()
            for branch in adjacency[curr]:
                other = branch.other_node(curr)
                if other in voltages:
                    continue
                drop = branch_drop(branch, currents.get(branch.id, 0.0), diode_states, settings)
                if curr == branch.node1_id:
                    voltages[other] = voltages[curr] - drop
                else:
                    voltages[other] = voltages[curr] + drop
                queue.append(other)
    return voltages


def solve(state: CircuitState, settings: Optional[SolverSettings] = None) -> AnalysisResult:
    settings = settings or SolverSettings()
    if not state.loops:
        return AnalysisResult()

    diode_states = initial_diode_states(state)
    solved_states = diode_states
    currents = np.zeros(len(state.loops))
    converged = False
    iterations = 0
    while iterations < settings.max_iterations:
        matrix, voltages = assemble_loop_system(state, diode_states, settings)
        try:
            currents = gaussian_solve(matrix, voltages, settings.pivot_epsilon)
        except SingularSystemError as exc:
            return AnalysisResult.unsolvable(
                iterations + 1, [f"Loop equations have no unique solution: {exc}."]
            )
        solved_states = diode_states
        iterations += 1
        diode_states, changed = update_diode_states(state, currents, diode_states)
        if not changed:
            converged = True
            break

    warnings: List[str] = []
    if not converged:
        converged = _is_consistent(state, currents, solved_states, settings)
    if not converged:
        warnings.append(
            f"Diode states did not settle after {iterations} passes; "
            "currents are from the last pass."
        )

    by_branch = branch_currents(state, currents)
    return AnalysisResult(
        loop_currents={loop.id: float(current) for loop, current in zip(state.loops, currents)},
        branch_currents=by_branch,
        node_voltages=node_voltages(state, by_branch, solved_states, settings),
        diode_states=dict(solved_states),
        solvable=True,
        converged=converged,
        iterations=iterations,
        warnings=warnings,
    )


def loop_symbols(state: CircuitState) -> List[sp.Symbol]:
    return [sp.symbols(f"I_{loop.id}") for loop in state.loops]


def loop_equations(
    state: CircuitState,
    diode_states: Optional[Mapping[str, DiodeState]] = None,
    settings: Optional[SolverSettings] = None,
) -> List[sp.Eq]:
    """KVL equation of every loop with exact coefficients."""
    settings = settings or SolverSettings()
    if diode_states is None:
        diode_states = initial_diode_states(state)
    currents = loop_symbols(state)
    memberships = _memberships(state)
    branches = {branch.id: branch for branch in state.components}

    equations: List[sp.Eq] = []
    for loop in state.loops:
        lhs = sp.Integer(0)
        rhs = sp.Integer(0)
        for component_id, direction in zip(loop.component_ids, loop.direction):
            branch = branches[component_id]
            resistance = sp.nsimplify(branch_resistance(branch, diode_states, settings))
            rhs += sp.nsimplify(branch_voltage(branch, direction, diode_states, settings))
            shared = sum(
                (other * currents[index] for index, other in memberships[component_id]),
                sp.Integer(0),
            )
            lhs += direction * resistance * shared
        equations.append(sp.Eq(sp.expand(lhs), rhs, evaluate=False))
    return equations


def kvl_residuals(
    state: CircuitState, result: AnalysisResult, settings: Optional[SolverSettings] = None
) -> Dict[str, float]:
    """Left minus right side of each loop equation at the solved currents."""
    if not result.solvable:
        return {}
    substitutions = {
        symbol: result.loop_currents[loop.id]
        for symbol, loop in zip(loop_symbols(state), state.loops)
    }
    equations = loop_equations(state, result.diode_states, settings)
    return {
        loop.id: float((eq.lhs - eq.rhs).subs(substitutions))
        for loop, eq in zip(state.loops, equations)
    }
