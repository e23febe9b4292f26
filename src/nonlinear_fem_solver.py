"""
Finite element solver for the 2D nonlinear Poisson equation

    -∇²u + f(u) = s(x, y) in Ω,  u = g(x, y) on ∂Ω

The discrete system A u + M f(u) = b is solved either by nonlinear
Gauss-Seidel relaxation (alternating forward and backward sweeps, each
node solved by a scalar Newton search) or by a global Newton method.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

import numpy as np
from scipy.sparse import csr_matrix, diags, issparse
from scipy.sparse.linalg import spsolve

from common_functions import (
    accum_array, check_node_partition, compute_residual, free_residual_norm
)
from nonlinear_functions import NonlinearFunction, ScalarNodeProblem, get_function
from solver_errors import DivergentDerivativeError, MaxIterationsExceededError
from square_mesh import MeshData, SquareMesh

logger = logging.getLogger(__name__)

# Smallest derivative magnitude accepted by a Newton step
DERIVATIVE_EPS = 1e-14

IterationCallback = Callable[[int, np.ndarray, float], None]


class ConvergenceStatus(str, Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS_EXCEEDED = "max_iterations_exceeded"


@dataclass
class NewtonResult:
    x: float
    residual: float
    iterations: int
    converged: bool


@dataclass
class SolverResult:
    """
    Outcome of a nonlinear solve

    Attributes:
        u: Nodal solution vector
        status: Whether the tolerance was met or the iteration budget ran out
        iterations: Number of outer iterations performed
        residual_norm: Final free-node residual norm
        tolerance: Residual threshold (tolerance scaled by the initial residual)
        method: Strategy that produced the result
        residual_history: Residual norm before the first and after every iteration
        inner_failures: Scalar Newton searches that hit their iteration limit,
            one count per outer iteration (relaxation only)
    """
    u: np.ndarray
    status: ConvergenceStatus
    iterations: int
    residual_norm: float
    tolerance: float
    method: str
    residual_history: List[float] = field(default_factory=list)
    inner_failures: List[int] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status is ConvergenceStatus.CONVERGED

    def raise_for_status(self) -> "SolverResult":
        if not self.converged:
            raise MaxIterationsExceededError(self.residual_norm, self.iterations, self.method)
        return self


def get_default_solver_config() -> Dict:
    """
    Get default configuration for the nonlinear solver

    Returns:
        Default configuration dictionary
    """
    return {
        'geometry': {
            'x_min': 0.0, 'x_max': 1.0,
            'y_min': 0.0, 'y_max': 1.0,
            'h': 0.25,          # Initial mesh size
            'n_refine': 1       # Uniform refinements applied to the initial mesh
        },
        'functions': {
            'source': 'zeros',
            'boundary': 'boltz',
            'nonlinear': 'scnl'
        },
        'solver': {
            'method': 'gauss_seidel',   # or 'newton'
            'tolerance': 1e-6,          # Relative to the initial residual norm
            'max_iterations': 10,
            'newton_1d': {
                'tolerance': 1e-6,
                'max_iterations': 10
            }
        },
        'output': {
            'plot': True,
            'save_filename': None
        }
    }


def as_csr(A) -> csr_matrix:
    """CSR view of A with summed duplicates; the caller's matrix is never modified"""
    A = A.tocsr() if issparse(A) else csr_matrix(np.asarray(A, dtype=np.float64))
    if not A.has_canonical_format:
        A = A.copy()
        A.sum_duplicates()
    return A


def calc_rhs(node: np.ndarray, elem: np.ndarray, area: np.ndarray,
             source: NonlinearFunction) -> np.ndarray:
    """
    Assemble the load vector b from edge-midpoint quadrature

    Each vertex of an element receives area/6 times the sum of the source
    at the midpoints of the two edges adjacent to it.

    Args:
        node: Node coordinates (N x 2)
        elem: Element connectivity (T x 3)
        area: Element areas (T,)
        source: Source term s(x, y)

    Returns:
        Load vector of length N
    """
    node = np.asarray(node, dtype=np.float64)
    elem = np.asarray(elem, dtype=np.int64)
    area = np.asarray(area, dtype=np.float64)

    # Midpoint of the edge opposite vertex 0, 1 and 2
    mid1 = (node[elem[:, 1]] + node[elem[:, 2]]) / 2.0
    mid2 = (node[elem[:, 2]] + node[elem[:, 0]]) / 2.0
    mid3 = (node[elem[:, 0]] + node[elem[:, 1]]) / 2.0

    s1 = source.eval_f(mid1)
    s2 = source.eval_f(mid2)
    s3 = source.eval_f(mid3)

    bt1 = area * (s2 + s3) / 6.0
    bt2 = area * (s3 + s1) / 6.0
    bt3 = area * (s1 + s2) / 6.0

    bts = np.concatenate([bt1, bt2, bt3])
    # Column-major flattening matches the vertex-column order of bts
    subs = elem.flatten(order='F')

    return accum_array(subs, bts, node.shape[0])


def newton_1d(fun, x0: float, tol: float = 1e-6, max_iterations: int = 10) -> NewtonResult:
    """
    Scalar Newton iteration x <- x - f(x) / f'(x)

    Args:
        fun: Object with eval_f and eval_df
        x0: Initial guess
        tol: Absolute tolerance on |f(x)|
        max_iterations: Iteration budget

    Returns:
        NewtonResult with the last iterate, whether or not it converged

    Raises:
        DivergentDerivativeError: If f'(x) is zero, near zero or not finite
    """
    x = float(x0)
    fp = float(fun.eval_f(x))
    n = 0

    if not np.isfinite(fp):
        raise DivergentDerivativeError(f"Non-finite function value {fp} at x = {x}")

    while abs(fp) > tol and n < max_iterations:
        df = float(fun.eval_df(x))
        if not np.isfinite(df) or abs(df) <= DERIVATIVE_EPS:
            raise DivergentDerivativeError(
                f"Derivative {df} at x = {x} after {n} Newton iterations"
            )

        x = x - fp / df
        fp = float(fun.eval_f(x))
        n += 1

        if not (np.isfinite(x) and np.isfinite(fp)):
            raise DivergentDerivativeError(f"Newton iterate diverged to x = {x}")

    return NewtonResult(x=x, residual=abs(fp), iterations=n, converged=abs(fp) <= tol)


def gauss_seidel_sweep(u: np.ndarray, b: np.ndarray, A, Mv: np.ndarray,
                       free_node: np.ndarray, fun: NonlinearFunction,
                       reverse: bool = False, tol: float = 1e-6,
                       max_iterations: int = 10) -> int:
    """
    One nonlinear Gauss-Seidel sweep over the free nodes, updating u in place

    For each free node i the scalar equation

        A[i, i] x + M[i] f(x) + Σ_{j≠i} A[i, j] u[j] - b[i] = 0

    is solved by Newton's method starting from u[i], and the result is
    written back before the next node is visited.

    Args:
        u: Solution vector, modified in place
        b: Load vector
        A: Stiffness matrix (CSR)
        Mv: Diagonal of the mass matrix
        free_node: Indices of the free nodes
        fun: Nonlinear term f
        reverse: Visit nodes in decreasing index order
        tol: Tolerance of the scalar Newton searches
        max_iterations: Iteration budget of the scalar Newton searches

    Returns:
        Number of nodes whose Newton search did not converge
    """
    A = as_csr(A)
    diag = A.diagonal()

    order = np.sort(np.asarray(free_node, dtype=np.int64))
    if reverse:
        order = order[::-1]

    n_failed = 0
    for i in order:
        start, end = A.indptr[i], A.indptr[i + 1]
        cols = A.indices[start:end]
        vals = A.data[start:end]
        off = cols != i
        offdiag = float(vals[off] @ u[cols[off]])

        problem = ScalarNodeProblem(fun, offdiag - b[i], diag[i], Mv[i])
        result = newton_1d(problem, u[i], tol, max_iterations)
        u[i] = result.x

        if not result.converged:
            n_failed += 1

    if n_failed:
        direction = "backward" if reverse else "forward"
        logger.debug(f"{direction} sweep: {n_failed} scalar Newton searches hit "
                     f"the iteration limit")
    return n_failed


def relaxation_solve(u: np.ndarray, b: np.ndarray, A, Mv: np.ndarray,
                     free_node: np.ndarray, fun: NonlinearFunction,
                     tol: float = 1e-6, max_iterations: int = 10,
                     newton_tol: float = 1e-6, newton_max_iterations: int = 10,
                     callback: Optional[IterationCallback] = None) -> SolverResult:
    """
    Alternate forward and backward Gauss-Seidel sweeps until the free-node
    residual drops below tol times its initial value

    u is updated in place and returned in the result. The scalar Newton
    tolerance is capped at threshold / sqrt(n_free), since a node whose local
    residual is within it is not updated.
    """
    A = as_csr(A)
    free_node = np.asarray(free_node, dtype=np.int64)

    err = free_residual_norm(u, b, A, Mv, fun, free_node)
    threshold = tol * err
    history = [err]
    inner_failures = []
    logger.info(f"Initial residual norm: {err:.6e}")

    if free_node.size:
        newton_tol = min(newton_tol, threshold / np.sqrt(free_node.size))

    k = 0
    while k < max_iterations and err > threshold:
        n_failed = gauss_seidel_sweep(u, b, A, Mv, free_node, fun, reverse=False,
                                      tol=newton_tol, max_iterations=newton_max_iterations)
        n_failed += gauss_seidel_sweep(u, b, A, Mv, free_node, fun, reverse=True,
                                       tol=newton_tol, max_iterations=newton_max_iterations)

        err = free_residual_norm(u, b, A, Mv, fun, free_node)
        k += 1
        history.append(err)
        inner_failures.append(n_failed)
        logger.info(f"Iteration {k}: residual norm {err:.6e}")
        if n_failed:
            logger.warning(f"Iteration {k}: {n_failed} scalar Newton searches "
                           f"did not reach tolerance {newton_tol:.3e}")

        if callback is not None:
            callback(k, u, err)

    result = _make_result(u, err, threshold, k, "gauss_seidel", history)
    result.inner_failures = inner_failures
    return result


def newton_solve(u: np.ndarray, b: np.ndarray, A, Mv: np.ndarray,
                 free_node: np.ndarray, fun: NonlinearFunction,
                 tol: float = 1e-6, max_iterations: int = 10,
                 callback: Optional[IterationCallback] = None) -> SolverResult:
    """
    Global Newton method on the free nodes

    Each step solves J[free, free] e = r[free] with J = A + diag(M f'(u))
    and updates u[free] -= e. u is updated in place.

    Raises:
        DivergentDerivativeError: If the Jacobian solve yields non-finite values
    """
    A = as_csr(A)
    free_node = np.asarray(free_node, dtype=np.int64)

    r = compute_residual(u, b, A, Mv, fun)[free_node]
    err = float(np.linalg.norm(r))
    threshold = tol * err
    history = [err]
    logger.info(f"Initial residual norm: {err:.6e}")

    k = 0
    while k < max_iterations and err > threshold:
        J = (A + diags(Mv * fun.eval_df(u))).tocsr()
        J_free = J[free_node, :][:, free_node].tocsc()

        e = np.atleast_1d(spsolve(J_free, r))
        if not np.all(np.isfinite(e)):
            raise DivergentDerivativeError(f"Singular Jacobian at Newton iteration {k + 1}")

        u[free_node] -= e

        r = compute_residual(u, b, A, Mv, fun)[free_node]
        err = float(np.linalg.norm(r))
        k += 1
        history.append(err)
        logger.info(f"Newton iteration {k}: residual norm {err:.6e}")

        if callback is not None:
            callback(k, u, err)

    return _make_result(u, err, threshold, k, "newton", history)


def _make_result(u, err, threshold, iterations, method, history) -> SolverResult:
    if err <= threshold:
        status = ConvergenceStatus.CONVERGED
        logger.info(f"{method} converged in {iterations} iterations")
    else:
        status = ConvergenceStatus.MAX_ITERATIONS_EXCEEDED
        logger.warning(f"{method} stopped after {iterations} iterations, "
                       f"residual norm {err:.6e} > {threshold:.6e}")

    return SolverResult(u=u, status=status, iterations=iterations,
                        residual_norm=err, tolerance=threshold,
                        method=method, residual_history=history)


class PoissonNLFEMSolver:
    """
    Finite element solver for the 2D nonlinear Poisson equation

    Args:
        mesh: Mesh fields (node, elem, area, stiffness, mass, free_node, bd_node)
        source: Source term s, plugin or registered name
        boundary: Dirichlet data g, plugin or registered name
        nonlinear: Nonlinear term f, plugin or registered name
        config: Solver section of the configuration

    Raises:
        InvalidMeshPartitionError: If free and boundary nodes do not partition the nodes
        UnknownFunctionNameError: If a function name is not registered
    """

    METHODS = ('gauss_seidel', 'newton')

    def __init__(self, mesh: MeshData,
                 source: Union[str, NonlinearFunction] = 'zeros',
                 boundary: Union[str, NonlinearFunction] = 'boltz',
                 nonlinear: Union[str, NonlinearFunction] = 'scnl',
                 config: Optional[Dict] = None):
        self.mesh = mesh
        self.source = get_function(source) if isinstance(source, str) else source
        self.bdfun = get_function(boundary) if isinstance(boundary, str) else boundary
        self.pdenl = get_function(nonlinear) if isinstance(nonlinear, str) else nonlinear
        self.config = config if config is not None else get_default_solver_config()['solver']

        self.n_nodes = np.asarray(mesh.node).shape[0]
        self.free_node = np.asarray(mesh.free_node, dtype=np.int64)
        self.bd_node = np.asarray(mesh.bd_node, dtype=np.int64)
        check_node_partition(self.free_node, self.bd_node, self.n_nodes)

        self.A = as_csr(mesh.stiffness)
        M = mesh.mass
        self.Mv = np.asarray(M.diagonal() if issparse(M) else np.diag(M), dtype=np.float64)

        self.b: Optional[np.ndarray] = None
        self.result: Optional[SolverResult] = None

    @classmethod
    def from_config(cls, config: Optional[Dict] = None) -> "PoissonNLFEMSolver":
        """
        Build the square mesh and the function plugins from a configuration
        dictionary (see get_default_solver_config)
        """
        config = config if config is not None else get_default_solver_config()
        geometry = config['geometry']
        functions = config['functions']

        meshprops = [geometry['x_min'], geometry['x_max'],
                     geometry['y_min'], geometry['y_max'], geometry['h']]
        square = SquareMesh(meshprops)
        square.uniform_refine(geometry.get('n_refine', 0))

        return cls(square.mesh_data,
                   source=functions['source'],
                   boundary=functions['boundary'],
                   nonlinear=functions['nonlinear'],
                   config=config['solver'])

    def calc_rhs(self) -> np.ndarray:
        """Load vector for the configured source term"""
        return calc_rhs(self.mesh.node, self.mesh.elem, self.mesh.area, self.source)

    def initial_guess(self) -> np.ndarray:
        """Zero on free nodes, boundary data on boundary nodes"""
        u = np.zeros(self.n_nodes)
        node = np.asarray(self.mesh.node, dtype=np.float64)
        u[self.bd_node] = self.bdfun.eval_f(node[self.bd_node])
        return u

    def solve(self, method: Optional[str] = None,
              callback: Optional[IterationCallback] = None) -> SolverResult:
        """
        Assemble the load vector and solve the nonlinear system

        Args:
            method: 'gauss_seidel' (default) or 'newton'
            callback: Called as callback(iteration, u, residual_norm) after
                every outer iteration

        Returns:
            SolverResult with the nodal solution and convergence outcome
        """
        method = method or self.config.get('method', 'gauss_seidel')
        if method not in self.METHODS:
            raise ValueError(f"method must be one of {self.METHODS}, got '{method}'")

        tol = self.config.get('tolerance', 1e-6)
        max_iterations = self.config.get('max_iterations', 10)

        self.b = self.calc_rhs()
        u = self.initial_guess()

        logger.info(f"Solving with {method}: {self.free_node.size} free nodes, "
                    f"source={self.source.name}, boundary={self.bdfun.name}, "
                    f"nonlinear={self.pdenl.name}")

        if method == 'newton':
            self.result = newton_solve(u, self.b, self.A, self.Mv, self.free_node,
                                       self.pdenl, tol=tol,
                                       max_iterations=max_iterations,
                                       callback=callback)
        else:
            newton_1d_config = self.config.get('newton_1d', {})
            self.result = relaxation_solve(
                u, self.b, self.A, self.Mv, self.free_node, self.pdenl,
                tol=tol, max_iterations=max_iterations,
                newton_tol=newton_1d_config.get('tolerance', 1e-6),
                newton_max_iterations=newton_1d_config.get('max_iterations', 10),
                callback=callback)

        return self.result
