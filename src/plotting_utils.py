"""
Plotting utilities for visualizing nodal solutions and solver convergence
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.tri as tri
from typing import Optional, List


def plot_nodal_solution(node: np.ndarray, elem: np.ndarray, u: np.ndarray,
                        title: str = "Nonlinear FEM Solution",
                        save_filename: Optional[str] = None,
                        show: bool = True):
    """
    Plot a P1 nodal solution on its triangulation, next to the mesh

    Args:
        node: Node coordinates (N x 2)
        elem: Element connectivity (T x 3)
        u: Nodal solution
        title: Plot title
        save_filename: Optional filename to save the plot
        show: Display the figure

    Returns:
        The matplotlib figure
    """
    triangulation = tri.Triangulation(node[:, 0], node[:, 1], elem)

    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    im = axes[0].tricontourf(triangulation, u, levels=50, cmap='viridis')
    axes[0].set_title(title, fontsize=14, fontweight='bold')
    axes[0].set_xlabel('x')
    axes[0].set_ylabel('y')
    axes[0].set_aspect('equal')
    plt.colorbar(im, ax=axes[0])

    axes[1].triplot(triangulation, 'k-', linewidth=0.5)
    axes[1].plot(node[:, 0], node[:, 1], 'o', markersize=2)
    axes[1].set_title(f'Mesh ({elem.shape[0]} triangles)')
    axes[1].set_xlabel('x')
    axes[1].set_ylabel('y')
    axes[1].set_aspect('equal')

    plt.tight_layout()

    # Save before show, show may clear the figure
    if save_filename:
        fig.savefig(f"{save_filename}.png", dpi=300, bbox_inches='tight')
    if show:
        plt.show()

    return fig


def plot_residual_history(residual_history: List[float], tolerance: Optional[float] = None,
                          title: str = "Residual History",
                          save_filename: Optional[str] = None,
                          show: bool = True):
    """
    Plot the free-node residual norm against the outer iteration
    """
    fig, ax = plt.subplots(figsize=(6, 4))

    iterations = np.arange(len(residual_history))
    ax.semilogy(iterations, residual_history, 'o-', label='Residual norm',
                linewidth=2, markersize=6)
    if tolerance is not None and tolerance > 0:
        ax.axhline(tolerance, color='red', linestyle='--', alpha=0.7, label='Tolerance')

    ax.set_xlabel('Outer iteration')
    ax.set_ylabel('||r||')
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_filename:
        fig.savefig(f"{save_filename}.png", dpi=300, bbox_inches='tight')
    if show:
        plt.show()

    return fig
