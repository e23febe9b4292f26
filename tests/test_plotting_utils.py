import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from plotting_utils import plot_nodal_solution, plot_residual_history
from square_mesh import SquareMesh


def test_plot_nodal_solution(tmp_path):
    mesh = SquareMesh([0.0, 1.0, 0.0, 1.0, 0.5]).mesh_data
    u = mesh.node[:, 0] + mesh.node[:, 1]

    fig = plot_nodal_solution(mesh.node, mesh.elem, u,
                              save_filename=str(tmp_path / "solution"), show=False)

    assert len(fig.axes) >= 2
    assert (tmp_path / "solution.png").exists()
    plt.close(fig)


def test_plot_residual_history():
    fig = plot_residual_history([1.0, 1e-2, 1e-5], tolerance=1e-6, show=False)
    assert fig.axes[0].get_yscale() == "log"
    plt.close(fig)
