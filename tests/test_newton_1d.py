import numpy as np
import pytest

from nonlinear_fem_solver import newton_1d
from solver_errors import DivergentDerivativeError


class Quadratic:
    """f(x) = x² - c"""

    def __init__(self, c):
        self.c = c

    def eval_f(self, x):
        return x * x - self.c

    def eval_df(self, x):
        return 2.0 * x


def test_newton_1d_square_root_of_two():
    result = newton_1d(Quadratic(2.0), 1.0, tol=1e-9, max_iterations=50)

    assert result.converged
    assert result.x == pytest.approx(np.sqrt(2.0), abs=1e-9)
    assert result.iterations < 10
    assert result.residual <= 1e-9


def test_newton_1d_returns_last_iterate_when_budget_runs_out():
    result = newton_1d(Quadratic(2.0), 1.0, tol=1e-12, max_iterations=1)

    assert not result.converged
    assert result.iterations == 1
    assert result.x == pytest.approx(1.5)


def test_newton_1d_no_iterations_when_already_converged():
    result = newton_1d(Quadratic(4.0), 2.0)

    assert result.converged
    assert result.iterations == 0
    assert result.x == 2.0


def test_newton_1d_zero_derivative():
    with pytest.raises(DivergentDerivativeError):
        newton_1d(Quadratic(-1.0), 0.0)
