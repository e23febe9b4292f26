"""
Function plugins for the nonlinear Poisson problem

    -∇²u + f(u) = s(x, y) in Ω,  u = g(x, y) on ∂Ω

Every plugin exposes eval_f and eval_df and returns one value per row of
its input: a scalar for a scalar, one value per entry for a vector of
nodal values, and one value per point for an (n, 2) array of coordinates.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Dict, Type

from solver_errors import UnknownFunctionNameError


OMEGA = np.pi


def _row_shape(x) -> tuple:
    return np.shape(x)[:1]


class NonlinearFunction(ABC):
    """Base class for all function plugins"""

    name: str = ""

    @abstractmethod
    def eval_f(self, x):
        """Function value"""

    @abstractmethod
    def eval_df(self, x):
        """Derivative (gradient for point functions)"""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class PointFunction(NonlinearFunction):
    """
    Function of the coordinates, evaluated on an (n, 2) array of points
    """

    @abstractmethod
    def value(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def gradient(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        pass

    def eval_f(self, points):
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return self.value(points[:, 0], points[:, 1])

    def eval_df(self, points):
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return self.gradient(points[:, 0], points[:, 1])


class Zeros(NonlinearFunction):
    """f = 0, used as a zero source or to make the problem linear"""

    name = "zeros"

    def eval_f(self, x):
        return np.zeros(_row_shape(x))

    def eval_df(self, x):
        return np.zeros(np.shape(x))


class Ones(NonlinearFunction):
    """f = 1, unit source"""

    name = "ones"

    def eval_f(self, x):
        return np.ones(_row_shape(x))

    def eval_df(self, x):
        return np.zeros(np.shape(x))


class SourceCoupled(PointFunction):
    """
    Smooth space-charge source s(x, y) = 2 ω² sin(ωx) sin(ωy)
    """

    name = "sc"

    def value(self, x, y):
        return 2.0 * OMEGA**2 * np.sin(OMEGA * x) * np.sin(OMEGA * y)

    def gradient(self, x, y):
        return 2.0 * OMEGA**3 * np.column_stack([
            np.cos(OMEGA * x) * np.sin(OMEGA * y),
            np.sin(OMEGA * x) * np.cos(OMEGA * y),
        ])


class NonlinearReaction(NonlinearFunction):
    """
    Space-charge reaction term f(u) = sinh(u) (Poisson-Boltzmann)
    """

    name = "scnl"

    def eval_f(self, x):
        return np.sinh(x)

    def eval_df(self, x):
        return np.cosh(x)


class BoundaryTerm(PointFunction):
    """Linear Dirichlet data g(x, y) = x + y"""

    name = "scbd"

    def value(self, x, y):
        return x + y

    def gradient(self, x, y):
        return np.column_stack([np.ones_like(x), np.ones_like(y)])


class Boltzmann(PointFunction):
    """Boltzmann-type potential g(x, y) = exp(-(x² + y²))"""

    name = "boltz"

    def value(self, x, y):
        return np.exp(-(x**2 + y**2))

    def gradient(self, x, y):
        g = self.value(x, y)
        return np.column_stack([-2.0 * x * g, -2.0 * y * g])


FUNCTION_REGISTRY: Dict[str, Type[NonlinearFunction]] = {
    cls.name: cls
    for cls in (Zeros, Ones, SourceCoupled, NonlinearReaction, BoundaryTerm, Boltzmann)
}


def get_function(name: str) -> NonlinearFunction:
    """
    Look up a function plugin by name

    Raises:
        UnknownFunctionNameError: If no plugin is registered under name
    """
    try:
        return FUNCTION_REGISTRY[name]()
    except KeyError:
        raise UnknownFunctionNameError(name, sorted(FUNCTION_REGISTRY)) from None


class ScalarNodeProblem:
    """
    Scalar equation for one free node during a relaxation sweep

        g(x) = a_ii x + m_i f(x) + c,   c = Σ_{j≠i} a_ij u_j - b_i

    Args:
        fun: Nonlinear term f
        offdiag_minus_load: Constant term c
        a_ii: Diagonal stiffness entry
        m_i: Diagonal mass entry
    """

    def __init__(self, fun: NonlinearFunction, offdiag_minus_load: float,
                 a_ii: float, m_i: float):
        self.fun = fun
        self.c = float(offdiag_minus_load)
        self.a_ii = float(a_ii)
        self.m_i = float(m_i)

    def eval_f(self, x: float) -> float:
        return self.a_ii * x + self.m_i * float(self.fun.eval_f(x)) + self.c

    def eval_df(self, x: float) -> float:
        return self.a_ii + self.m_i * float(self.fun.eval_df(x))
