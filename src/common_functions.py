"""
Common functions shared by the load assembly, the relaxation sweeps
and the global Newton solver
"""

import numpy as np
from typing import Tuple

from solver_errors import InvalidMeshPartitionError


def accum_array(subs: np.ndarray, values: np.ndarray, n: int) -> np.ndarray:
    """
    Sum values into a dense array by index (MATLAB accumarray)

    Entry i of the result is the sum of all values whose subscript is i,
    or 0.0 when no subscript equals i.

    Args:
        subs: Integer subscripts in [0, n)
        values: Values to accumulate, same length as subs
        n: Length of the result

    Returns:
        Accumulated array of length n
    """
    subs = np.asarray(subs).ravel()
    if not np.issubdtype(subs.dtype, np.integer):
        if subs.size and not np.all(np.mod(subs, 1) == 0):
            raise ValueError(f"Subscripts must be integers, got {subs.dtype} values")
    subs = subs.astype(np.int64)
    values = np.asarray(values, dtype=np.float64).ravel()

    if subs.shape != values.shape:
        raise ValueError(f"subs and values must have the same length, "
                         f"got {subs.size} and {values.size}")
    if subs.size == 0:
        return np.zeros(n)
    if subs.min() < 0 or subs.max() >= n:
        raise ValueError(f"Subscripts must lie in [0, {n}), "
                         f"got range [{subs.min()}, {subs.max()}]")

    return np.bincount(subs, weights=values, minlength=n).astype(np.float64)


def check_node_partition(free_node: np.ndarray, bd_node: np.ndarray, n_nodes: int) -> None:
    """
    Check that free and boundary nodes partition range(n_nodes) exactly

    Raises:
        InvalidMeshPartitionError: On overlap, gaps, duplicates or out-of-range indices
    """
    free_node = np.asarray(free_node, dtype=np.int64).ravel()
    bd_node = np.asarray(bd_node, dtype=np.int64).ravel()
    all_nodes = np.concatenate([free_node, bd_node])

    if all_nodes.size and (all_nodes.min() < 0 or all_nodes.max() >= n_nodes):
        raise InvalidMeshPartitionError(
            f"Node indices must lie in [0, {n_nodes})"
        )

    overlap = np.intersect1d(free_node, bd_node)
    if overlap.size:
        raise InvalidMeshPartitionError(
            f"{overlap.size} nodes are both free and boundary, e.g. {overlap[:5].tolist()}"
        )

    if np.unique(all_nodes).size != all_nodes.size:
        raise InvalidMeshPartitionError("Free or boundary node set contains duplicates")

    if all_nodes.size != n_nodes:
        missing = np.setdiff1d(np.arange(n_nodes), all_nodes)
        raise InvalidMeshPartitionError(
            f"{missing.size} nodes are neither free nor boundary, e.g. {missing[:5].tolist()}"
        )


def compute_residual(u: np.ndarray, b: np.ndarray, A, Mv: np.ndarray, fun) -> np.ndarray:
    """
    Residual of the discrete nonlinear system A u + M f(u) - b
    """
    return A @ u + Mv * fun.eval_f(u) - b


def free_residual_norm(u: np.ndarray, b: np.ndarray, A, Mv: np.ndarray,
                       fun, free_node: np.ndarray) -> float:
    """
    Euclidean norm of the residual restricted to the free nodes
    """
    r = compute_residual(u, b, A, Mv, fun)
    return float(np.linalg.norm(r[free_node]))


def triangle_areas(node: np.ndarray, elem: np.ndarray) -> np.ndarray:
    """
    Areas of the triangles given by node coordinates and connectivity
    """
    p0, p1, p2 = node[elem[:, 0]], node[elem[:, 1]], node[elem[:, 2]]
    cross = ((p1[:, 0] - p0[:, 0]) * (p2[:, 1] - p0[:, 1])
             - (p1[:, 1] - p0[:, 1]) * (p2[:, 0] - p0[:, 0]))
    return 0.5 * np.abs(cross)


def save_solution(u: np.ndarray, node: np.ndarray, elem: np.ndarray,
                  filename: str = "solution") -> Tuple[str, str]:
    """
    Save the nodal solution and mesh connectivity to files

    Args:
        u: Nodal solution
        node: Node coordinates (N x 2)
        elem: Element connectivity (T x 3)
        filename: Base filename for output files

    Returns:
        Paths of the solution and connectivity CSV files
    """
    np.savez(f"{filename}.npz", u=u, node=node, elem=elem)

    data = np.column_stack([node[:, 0], node[:, 1], u])
    np.savetxt(f"{filename}.csv", data, delimiter=',',
               header='x,y,u', comments='')
    np.savetxt(f"{filename}_mesh.csv", elem, delimiter=',', fmt='%d',
               header='node1,node2,node3', comments='')

    print(f"Solution saved to {filename}.npz and {filename}.csv")
    return f"{filename}.csv", f"{filename}_mesh.csv"
