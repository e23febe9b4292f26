"""
Error types raised by the nonlinear FEM solver
"""


class NonlinearSolverError(Exception):
    """Base class for solver failures"""


class UnknownFunctionNameError(NonlinearSolverError, ValueError):
    """Raised when a function plugin name is not registered"""

    def __init__(self, name: str, known=()):
        self.name = name
        self.known = tuple(known)
        super().__init__(
            f"Unknown function name: '{name}'. "
            f"Expected one of: {', '.join(self.known)}"
        )


class InvalidMeshPartitionError(NonlinearSolverError, ValueError):
    """Raised when free and boundary nodes do not partition the node set"""


class DivergentDerivativeError(NonlinearSolverError, ArithmeticError):
    """Raised when a Newton step hits a zero, near-zero or non-finite derivative"""


class MaxIterationsExceededError(NonlinearSolverError, RuntimeError):
    """
    Raised when an iteration budget runs out before the tolerance is met

    Args:
        residual: Residual norm after the last iteration
        iterations: Number of iterations performed
    """

    def __init__(self, residual: float, iterations: int, method: str = "solver"):
        self.residual = residual
        self.iterations = iterations
        self.method = method
        super().__init__(
            f"{method} did not converge after {iterations} iterations "
            f"(residual norm {residual:.6e})"
        )
