import numpy as np
import pytest

from common_functions import check_node_partition
from square_mesh import SquareMesh


def test_coarse_mesh():
    mesh = SquareMesh([0.0, 1.0, 0.0, 1.0, 0.5]).mesh_data

    assert mesh.n_nodes == 9
    assert mesh.elem.shape == (8, 3)
    assert mesh.free_node.size == 1
    assert mesh.bd_node.size == 8
    np.testing.assert_allclose(mesh.node[mesh.free_node[0]], [0.5, 0.5])


def test_refined_mesh_fields():
    square = SquareMesh([0.0, 2.0, -1.0, 1.0, 0.5])
    square.uniform_refine(2)
    mesh = square.mesh_data

    assert square.n_refine == 2
    check_node_partition(mesh.free_node, mesh.bd_node, mesh.n_nodes)
    assert mesh.area.sum() == pytest.approx(4.0)
    np.testing.assert_allclose(mesh.stiffness @ np.ones(mesh.n_nodes), 0.0, atol=1e-12)
    assert mesh.mass.diagonal().sum() == pytest.approx(4.0)
    assert np.all(mesh.stiffness.diagonal() > 0)


def test_refine_invalidates_cached_fields():
    square = SquareMesh([0.0, 1.0, 0.0, 1.0, 0.5])
    coarse = square.mesh_data
    fine = square.uniform_refine().mesh_data

    assert fine.n_nodes == 25
    assert coarse.n_nodes == 9


@pytest.mark.parametrize("meshprops", [
    [0.0, 1.0, 0.0, 1.0],
    [1.0, 0.0, 0.0, 1.0],
    [0.0, 1.0, 0.0, 1.0, 0.0],
])
def test_invalid_meshprops(meshprops):
    with pytest.raises(ValueError):
        SquareMesh(meshprops)
