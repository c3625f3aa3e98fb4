from pathlib import Path
import sys

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

sys.path.append(str(Path(__file__).resolve().parents[1]))

from circuit_generator import generate_two_mesh_circuit  # noqa: E402
from circuit_model import Component, ComponentKind  # noqa: E402
from circuit_plot import plot_layout, plot_state, save_figure  # noqa: E402
from circuit_topology import resolve  # noqa: E402
from layouts import series_loop  # noqa: E402
from mesh_solver import solve  # noqa: E402


def test_plot_layout_draws_wires_and_components():
    components, wires = series_loop()
    result = solve(resolve(components, wires))

    figure = plot_layout(components, wires, result)
    ax = figure.axes[0]

    assert len(ax.lines) == 4
    labels = [text.get_text() for text in ax.texts]
    assert labels == ["b1\n0.1 A", "r1\n-0.1 A"]
    assert ax.yaxis_inverted()
    plt.close(figure)


def test_plot_layout_skips_components_without_position():
    components, wires = series_loop()
    components.append(Component("x1", ComponentKind.RESISTOR, 10, node1_id="a", node2_id="b"))

    figure = plot_layout(components, wires)

    assert len(figure.axes[0].texts) == 2
    plt.close(figure)


def test_plot_state_and_save(tmp_path):
    state = generate_two_mesh_circuit(np.random.default_rng(2))
    result = solve(state)

    figure = plot_state(state, result)
    assert len(figure.axes[0].lines) == len(state.components)

    output = save_figure(figure, tmp_path / "plots" / "two_mesh.png")
    assert output.exists()
    assert output.stat().st_size > 0
