"""
Triangulated square domain with P1 stiffness and lumped mass matrices
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy.sparse import csr_matrix, diags
from skfem import BilinearForm, CellBasis, ElementTriP1, MeshTri, asm
from skfem.helpers import dot, grad

from common_functions import triangle_areas

logger = logging.getLogger(__name__)


@BilinearForm
def laplacian(u, v, _):
    """
    Bilinear form for the Laplacian: ∫∇u·∇v dx
    """
    return dot(grad(u), grad(v))


@BilinearForm
def mass(u, v, _):
    """
    Bilinear form for the mass matrix: ∫u·v dx
    """
    return u * v


@dataclass
class MeshData:
    """
    Mesh fields consumed by the solver

    Attributes:
        node: Node coordinates, shape (N, 2)
        elem: Element connectivity, shape (T, 3)
        area: Element areas, shape (T,)
        stiffness: Global stiffness matrix (N x N)
        mass: Global mass matrix (N x N), only the diagonal is used
        free_node: Indices of nodes solved for
        bd_node: Indices of Dirichlet boundary nodes
    """
    node: np.ndarray
    elem: np.ndarray
    area: np.ndarray
    stiffness: csr_matrix
    mass: csr_matrix
    free_node: np.ndarray
    bd_node: np.ndarray

    @property
    def n_nodes(self) -> int:
        return self.node.shape[0]


class SquareMesh:
    """
    Structured triangular mesh of a rectangle [x_min, x_max] x [y_min, y_max]

    Args:
        meshprops: [x_min, x_max, y_min, y_max, h] with h the initial mesh size
    """

    def __init__(self, meshprops: Sequence[float]):
        if len(meshprops) != 5:
            raise ValueError("meshprops must be [x_min, x_max, y_min, y_max, h], "
                             f"got {len(meshprops)} values")

        x_min, x_max, y_min, y_max, h = (float(v) for v in meshprops)
        if x_max <= x_min or y_max <= y_min:
            raise ValueError(f"Empty domain [{x_min}, {x_max}] x [{y_min}, {y_max}]")
        if h <= 0:
            raise ValueError(f"Mesh size h must be positive, got {h}")

        self.meshprops = (x_min, x_max, y_min, y_max, h)

        nx = max(int(round((x_max - x_min) / h)), 1) + 1
        ny = max(int(round((y_max - y_min) / h)), 1) + 1
        self.m = MeshTri.init_tensor(np.linspace(x_min, x_max, nx),
                                     np.linspace(y_min, y_max, ny))
        self.n_refine = 0
        self._mesh_data = None

        logger.debug(f"Created mesh with {self.m.p.shape[1]} vertices, "
                     f"{self.m.t.shape[1]} triangles")

    def uniform_refine(self, n: int = 1) -> "SquareMesh":
        """
        Split every triangle into four, n times
        """
        for _ in range(n):
            self.m = self.m.refined()
            self.n_refine += 1
        self._mesh_data = None

        logger.debug(f"Refined mesh to {self.m.p.shape[1]} vertices, "
                     f"{self.m.t.shape[1]} triangles")
        return self

    @property
    def mesh_data(self) -> MeshData:
        """Mesh fields for the current refinement level"""
        if self._mesh_data is None:
            self._mesh_data = self._assemble()
        return self._mesh_data

    def _assemble(self) -> MeshData:
        node = np.ascontiguousarray(self.m.p.T, dtype=np.float64)
        elem = np.ascontiguousarray(self.m.t.T, dtype=np.int64)

        basis = CellBasis(self.m, ElementTriP1())
        A = asm(laplacian, basis).tocsr()
        M = asm(mass, basis)

        # Row-sum lumping
        M_lumped = diags(np.asarray(M.sum(axis=1)).ravel(), format='csr')

        bd_node = np.sort(np.asarray(self.m.boundary_nodes(), dtype=np.int64))
        free_node = np.setdiff1d(np.arange(node.shape[0]), bd_node)

        logger.info(f"Mesh info: {node.shape[0]} vertices, {elem.shape[0]} triangles, "
                    f"{free_node.size} free nodes")

        return MeshData(
            node=node,
            elem=elem,
            area=triangle_areas(node, elem),
            stiffness=A,
            mass=M_lumped,
            free_node=free_node,
            bd_node=bd_node,
        )
