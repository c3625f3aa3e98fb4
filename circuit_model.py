import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, List, Mapping, NamedTuple, Optional, Tuple, Union

from pint import UnitRegistry


GRID_SIZE = 40
ORIENTATIONS = (0, 90, 180, 270)


class ComponentKind(Enum):
    RESISTOR = "RESISTOR"
    VOLTAGE_SOURCE = "VOLTAGE_SOURCE"
    DC_BATTERY = "DC_BATTERY"
    AC_SOURCE = "AC_SOURCE"
    DIODE = "DIODE"
    CAPACITOR = "CAPACITOR"
    AMMETER = "AMMETER"
    WIRE = "WIRE"

    @classmethod
    def parse(cls, value: Union[str, "ComponentKind"]) -> "ComponentKind":
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace(" ", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(
                f"Unknown component type '{value}'. Use one of: {[k.name for k in cls]}"
            ) from None

    @property
    def is_source(self) -> bool:
        return self in SOURCE_KINDS

    @property
    def is_load(self) -> bool:
        return self in (ComponentKind.RESISTOR, ComponentKind.AMMETER)


SOURCE_KINDS = frozenset(
    {ComponentKind.VOLTAGE_SOURCE, ComponentKind.DC_BATTERY, ComponentKind.AC_SOURCE}
)

DEFAULT_UNITS: Dict[ComponentKind, str] = {
    ComponentKind.RESISTOR: "ohm",
    ComponentKind.VOLTAGE_SOURCE: "volt",
    ComponentKind.DC_BATTERY: "volt",
    ComponentKind.AC_SOURCE: "volt",
    ComponentKind.DIODE: "volt",
    ComponentKind.CAPACITOR: "farad",
    ComponentKind.AMMETER: "ampere",
}

_UNIT_SYMBOLS = {"ohm": "ohm", "volt": "V", "farad": "F", "ampere": "A"}
_SI_PREFIXES = {"p", "n", "u", "µ", "m", "k", "M", "G"}
_PREFIXED_NUMBER = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*([a-zA-Zµ]?)$")


class Point(NamedTuple):
    x: float
    y: float

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "Point":
        return cls(data["x"], data["y"])

    def as_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


TerminalKey = Hashable


def terminal_points(
    center: Point, orientation: int = 0, spacing: float = GRID_SIZE
) -> Tuple[Point, Point]:
    """Return (terminal-1, terminal-2) for a component placed at ``center``.

    Horizontal placements (0/180) put the terminals left and right of the
    center, vertical ones (90/270) above and below. 180 and 270 swap the
    pair, which reverses the component's polarity.
    """
    if orientation not in ORIENTATIONS:
        raise ValueError(f"Orientation {orientation!r} is not one of {ORIENTATIONS}.")
    cx, cy = center
    if orientation in (0, 180):
        first, second = Point(cx - spacing, cy), Point(cx + spacing, cy)
    else:
        first, second = Point(cx, cy - spacing), Point(cx, cy + spacing)
    if orientation in (180, 270):
        first, second = second, first
    return first, second


class UnitNormalizer:
    def __init__(self, unit_registry: Optional[UnitRegistry] = None) -> None:
        self.unit_registry = unit_registry or UnitRegistry()

    def _expand_prefix(self, text: str, kind: ComponentKind) -> str:
        match = _PREFIXED_NUMBER.match(text)
        default_unit = DEFAULT_UNITS.get(kind)
        if not match or not default_unit:
            return text
        number, prefix = match.groups()
        if not prefix:
            return number
        if prefix in _SI_PREFIXES:
            return f"{number} {prefix}{_UNIT_SYMBOLS[default_unit]}"
        return text

    def magnitude_in_base_units(
        self, value: Union[str, float, int], kind: ComponentKind
    ) -> float:
        if isinstance(value, (int, float)):
            return float(value)
        text = str(value).strip()
        if not text:
            raise ValueError("Component value cannot be empty.")

        expanded = self._expand_prefix(text, kind)
        try:
            quantity = self.unit_registry.Quantity(expanded)
        except Exception as exc:  # noqa: BLE001 - pint raises several parse errors
            raise ValueError(f"Value '{text}' not recognised: {exc}") from exc

        default_unit = DEFAULT_UNITS.get(kind)
        if quantity.dimensionless:
            return float(quantity.to_base_units().magnitude)
        if not default_unit:
            raise ValueError(f"{kind.name} values are unitless, got '{text}'.")
        try:
            return float(quantity.to(default_unit).magnitude)
        except Exception as exc:  # noqa: BLE001 - dimensionality mismatch
            raise ValueError(
                f"Value '{text}' cannot be expressed in {default_unit}: {exc}"
            ) from exc


_DEFAULT_NORMALIZER: Optional[UnitNormalizer] = None


def default_normalizer() -> UnitNormalizer:
    global _DEFAULT_NORMALIZER
    if _DEFAULT_NORMALIZER is None:
        _DEFAULT_NORMALIZER = UnitNormalizer()
    return _DEFAULT_NORMALIZER


@dataclass
class Component:
    id: str
    kind: ComponentKind
    value: float = 0.0
    center: Optional[Point] = None
    orientation: int = 0
    node1_id: Optional[str] = None
    node2_id: Optional[str] = None
    name: str = ""

    def __post_init__(self) -> None:
        self.id = str(self.id).strip()
        if not self.id:
            raise ValueError("Component id cannot be empty.")
        self.kind = ComponentKind.parse(self.kind)
        if not isinstance(self.value, (int, float)):
            self.value = default_normalizer().magnitude_in_base_units(self.value, self.kind)
        self.value = float(self.value)
        if self.center is not None:
            self.center = Point(*self.center)
            if self.orientation not in ORIENTATIONS:
                raise ValueError(
                    f"{self.id}: orientation {self.orientation!r} is not one of {ORIENTATIONS}."
                )
        elif not (self.node1_id and self.node2_id):
            raise ValueError(
                f"{self.id}: a component needs either a center or both node ids."
            )
        if not self.name:
            self.name = self.id

    def terminals(self) -> Tuple[TerminalKey, TerminalKey]:
        if self.center is not None:
            return terminal_points(self.center, self.orientation)
        return ("node", self.node1_id), ("node", self.node2_id)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, object], normalizer: Optional[UnitNormalizer] = None
    ) -> "Component":
        kind = ComponentKind.parse(data.get("kind") or data.get("type") or "")
        raw_value = data.get("value", 0.0)
        value = (normalizer or default_normalizer()).magnitude_in_base_units(raw_value, kind)
        center = data.get("center")
        return cls(
            id=str(data.get("id", "")),
            kind=kind,
            value=value,
            center=Point.from_dict(center) if center else None,
            orientation=int(data.get("orientation") or 0),
            node1_id=data.get("node1Id"),
            node2_id=data.get("node2Id"),
            name=str(data.get("name") or ""),
        )

    def as_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "id": self.id,
            "type": self.kind.value,
            "value": self.value,
            "name": self.name,
        }
        if self.center is not None:
            data["center"] = self.center.as_dict()
            data["orientation"] = self.orientation
        else:
            data["node1Id"] = self.node1_id
            data["node2Id"] = self.node2_id
        return data


@dataclass
class Wire:
    id: str
    start: Point
    end: Point

    def __post_init__(self) -> None:
        self.start = Point(*self.start)
        self.end = Point(*self.end)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Wire":
        start = data.get("startPoint") or data.get("startNode")
        end = data.get("endPoint") or data.get("endNode")
        if not start or not end:
            raise ValueError(f"Wire {data.get('id', '?')} needs startPoint and endPoint.")
        return cls(id=str(data.get("id", "")), start=Point.from_dict(start), end=Point.from_dict(end))

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "startPoint": self.start.as_dict(),
            "endPoint": self.end.as_dict(),
        }


@dataclass(frozen=True)
class CircuitNode:
    id: str
    x: float
    y: float
    members: Tuple[TerminalKey, ...] = ()

    def as_dict(self) -> Dict[str, object]:
        return {"id": self.id, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class Branch:
    id: str
    kind: ComponentKind
    value: float
    node1_id: str
    node2_id: str
    name: str = ""

    def other_node(self, node_id: str) -> str:
        return self.node2_id if node_id == self.node1_id else self.node1_id

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "value": self.value,
            "node1Id": self.node1_id,
            "node2Id": self.node2_id,
            "name": self.name or self.id,
        }


@dataclass(frozen=True)
class Loop:
    id: str
    component_ids: Tuple[str, ...]
    direction: Tuple[int, ...]

    def direction_of(self, component_id: str) -> int:
        """Traversal sign of ``component_id`` in this loop, 0 when absent."""
        try:
            return self.direction[self.component_ids.index(component_id)]
        except ValueError:
            return 0

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "componentIds": list(self.component_ids),
            "direction": list(self.direction),
        }


@dataclass(frozen=True)
class CircuitState:
    nodes: Tuple[CircuitNode, ...] = ()
    components: Tuple[Branch, ...] = ()
    loops: Tuple[Loop, ...] = ()
    warnings: Tuple[str, ...] = ()

    def node(self, node_id: str) -> CircuitNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def component(self, component_id: str) -> Branch:
        for branch in self.components:
            if branch.id == component_id:
                return branch
        raise KeyError(component_id)

    def loops_through(self, component_id: str) -> List[Tuple[int, int]]:
        """(loop index, direction) for every loop that contains the component."""
        return [
            (index, loop.direction_of(component_id))
            for index, loop in enumerate(self.loops)
            if component_id in loop.component_ids
        ]

    def as_dict(self) -> Dict[str, object]:
        return {
            "nodes": [node.as_dict() for node in self.nodes],
            "components": [branch.as_dict() for branch in self.components],
            "loops": [loop.as_dict() for loop in self.loops],
            "warnings": list(self.warnings),
        }


class DiodeState(Enum):
    CONDUCTING = "CONDUCTING"
    BLOCKING = "BLOCKING"


@dataclass
class AnalysisResult:
    loop_currents: Dict[str, float] = field(default_factory=dict)
    branch_currents: Dict[str, float] = field(default_factory=dict)
    node_voltages: Dict[str, float] = field(default_factory=dict)
    diode_states: Dict[str, DiodeState] = field(default_factory=dict)
    solvable: bool = True
    converged: bool = True
    iterations: int = 0
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def unsolvable(cls, iterations: int = 0, warnings: Optional[List[str]] = None) -> "AnalysisResult":
        return cls(solvable=False, converged=False, iterations=iterations, warnings=list(warnings or []))

    def as_dict(self) -> Dict[str, object]:
        return {
            "loopCurrents": dict(self.loop_currents),
            "branchCurrents": dict(self.branch_currents),
            "nodeVoltages": dict(self.node_voltages),
            "diodeStates": {key: state.value for key, state in self.diode_states.items()},
            "solvable": self.solvable,
            "converged": self.converged,
            "iterations": self.iterations,
            "warnings": list(self.warnings),
        }
