import numpy as np
import pytest

from nonlinear_fem_solver import calc_rhs
from nonlinear_functions import BoundaryTerm, Ones, SourceCoupled, Zeros
from square_mesh import SquareMesh


def test_single_triangle_unit_source():
    node = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
    elem = np.array([[0, 1, 2]])
    area = np.array([0.5])

    b = calc_rhs(node, elem, area, Ones())

    np.testing.assert_allclose(b, [1.0 / 6.0] * 3)


def test_single_triangle_uses_adjacent_edge_midpoints():
    # Source x + y: 1.0 at the midpoint opposite vertex 0, 0.5 at the other two
    node = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
    elem = np.array([[0, 1, 2]])
    area = np.array([0.5])

    b = calc_rhs(node, elem, area, BoundaryTerm())

    np.testing.assert_allclose(b, [1.0 / 12.0, 0.125, 0.125])


def test_unit_source_sums_to_domain_area():
    mesh = SquareMesh([0.0, 2.0, 0.0, 1.0, 0.5]).uniform_refine().mesh_data

    b = calc_rhs(mesh.node, mesh.elem, mesh.area, Ones())

    assert b.sum() == pytest.approx(2.0)
    assert np.all(b > 0)


def test_zero_source():
    mesh = SquareMesh([0.0, 1.0, 0.0, 1.0, 0.5]).mesh_data
    b = calc_rhs(mesh.node, mesh.elem, mesh.area, Zeros())
    np.testing.assert_array_equal(b, np.zeros(mesh.n_nodes))


def test_load_vector_is_deterministic():
    mesh = SquareMesh([0.0, 1.0, 0.0, 1.0, 0.25]).uniform_refine().mesh_data
    node, elem, area = mesh.node.copy(), mesh.elem.copy(), mesh.area.copy()

    b1 = calc_rhs(mesh.node, mesh.elem, mesh.area, SourceCoupled())
    b2 = calc_rhs(mesh.node, mesh.elem, mesh.area, SourceCoupled())

    np.testing.assert_array_equal(b1, b2)
    np.testing.assert_array_equal(node, mesh.node)
    np.testing.assert_array_equal(elem, mesh.elem)
    np.testing.assert_array_equal(area, mesh.area)
