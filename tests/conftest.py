import numpy as np
import pytest


@pytest.fixture
def tridiagonal_problem():
    """
    Diagonally dominant 1D problem: 8 nodes, nodes 0 and 7 fixed
    """
    n = 8
    A = 4.0 * np.eye(n) - np.eye(n, k=1) - np.eye(n, k=-1)
    Mv = 0.5 * np.ones(n)
    b = np.linspace(1.0, 8.0, n)
    free_node = np.arange(1, n - 1)
    bd_node = np.array([0, n - 1])

    u = np.zeros(n)
    u[bd_node] = [1.0, 2.0]
    return u, b, A, Mv, free_node, bd_node


@pytest.fixture
def interior_boundary_problem():
    """
    6-node problem with fixed nodes 2 and 4, free nodes at both ends
    """
    n = 6
    A = 4.0 * np.eye(n) - np.eye(n, k=1) - np.eye(n, k=-1)
    Mv = 0.5 * np.ones(n)
    b = np.ones(n)
    free_node = np.array([0, 1, 3, 5])
    bd_node = np.array([2, 4])

    u = np.zeros(n)
    u[bd_node] = [1.0, 1.5]
    return u, b, A, Mv, free_node, bd_node
