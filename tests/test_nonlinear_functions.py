import numpy as np
import pytest

from nonlinear_functions import (
    FUNCTION_REGISTRY, Boltzmann, BoundaryTerm, NonlinearReaction, Ones,
    ScalarNodeProblem, SourceCoupled, Zeros, get_function
)
from solver_errors import UnknownFunctionNameError


def test_registry_names():
    assert set(FUNCTION_REGISTRY) == {"zeros", "ones", "sc", "scnl", "scbd", "boltz"}
    assert isinstance(get_function("scnl"), NonlinearReaction)
    assert isinstance(get_function("boltz"), Boltzmann)


def test_unknown_function_name():
    with pytest.raises(UnknownFunctionNameError) as excinfo:
        get_function("not-a-function")
    assert excinfo.value.name == "not-a-function"
    assert "zeros" in str(excinfo.value)


def test_constant_functions_return_one_value_per_row():
    points = np.zeros((5, 2))
    values = np.zeros(7)

    assert Zeros().eval_f(points).shape == (5,)
    assert Zeros().eval_f(values).shape == (7,)
    assert Ones().eval_f(points).tolist() == [1.0] * 5
    assert float(Zeros().eval_f(0.3)) == 0.0
    assert float(Ones().eval_df(0.3)) == 0.0


def test_point_functions():
    points = np.array([[0.0, 0.0], [0.5, 0.5], [1.0, 2.0]])

    np.testing.assert_allclose(BoundaryTerm().eval_f(points), [0.0, 1.0, 3.0])
    np.testing.assert_allclose(Boltzmann().eval_f(points), np.exp([0.0, -0.5, -5.0]))
    np.testing.assert_allclose(SourceCoupled().eval_f(points[1]), [2.0 * np.pi**2])
    assert SourceCoupled().eval_df(points).shape == points.shape


def test_boltzmann_gradient_matches_finite_difference():
    fun = Boltzmann()
    p = np.array([[0.3, -0.7]])
    eps = 1e-6
    fd = [
        (fun.eval_f(p + [[eps, 0.0]]) - fun.eval_f(p - [[eps, 0.0]]))[0] / (2 * eps),
        (fun.eval_f(p + [[0.0, eps]]) - fun.eval_f(p - [[0.0, eps]]))[0] / (2 * eps),
    ]
    np.testing.assert_allclose(fun.eval_df(p)[0], fd, rtol=1e-6)


def test_nonlinear_reaction_is_elementwise():
    u = np.array([-1.0, 0.0, 2.0])
    np.testing.assert_allclose(NonlinearReaction().eval_f(u), np.sinh(u))
    np.testing.assert_allclose(NonlinearReaction().eval_df(u), np.cosh(u))


def test_scalar_node_problem():
    problem = ScalarNodeProblem(NonlinearReaction(), offdiag_minus_load=-3.0, a_ii=4.0, m_i=0.5)

    assert problem.eval_f(1.0) == pytest.approx(4.0 + 0.5 * np.sinh(1.0) - 3.0)
    assert problem.eval_df(1.0) == pytest.approx(4.0 + 0.5 * np.cosh(1.0))
