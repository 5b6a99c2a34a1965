"""
Pytest configuration and fixtures for rigbake tests.
"""

import numpy as np
import pytest
import torch

from rigbake.geometry import compose_matrix
from rigbake.scene import (
    LayerElement,
    Material,
    MaterialLibrary,
    MappingMode,
    MeshGeometry,
    SceneGraph,
    SceneNode,
    SkinCluster,
    SkinDeformer,
)


@pytest.fixture
def cpu_device():
    """Force CPU device for consistent testing."""
    return torch.device('cpu')


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def two_triangle_streams():
    """
    Two triangles sharing the edge (1, 2) as six polygon-vertices.

    The shared corners are bit-identical across both triangles.
    """
    positions = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
    ])
    normals = np.tile([0.0, 0.0, 1.0], (6, 1))
    uvs = positions[:, :2].copy()
    return positions, normals, uvs


@pytest.fixture
def chain_bind_globals():
    """Bind-time global matrices of a root -> A -> B chain."""
    root = compose_matrix([0.0, 0.0, 0.0])
    a = compose_matrix([0.0, 1.0, 0.0], [np.cos(np.pi / 8), 0.0, 0.0, np.sin(np.pi / 8)])
    b = compose_matrix([0.0, 2.0, 0.5])
    return {'root': root, 'A': a, 'B': b}


def _quad_geometry(material_names=('skin',), skin=None, normals=True, uvs=True):
    control_points = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [1.0, 1.0, 0.0],
    ])
    polygon_vertices = np.array([0, 1, 2, 1, 3, 2])
    normal_layer = None
    if normals:
        normal_layer = LayerElement(
            direct=np.array([[0.0, 0.0, 1.0]]),
            mapping=MappingMode.BY_CONTROL_POINT,
            reference='index_to_direct',
            index=np.zeros(4, dtype=np.int64),
            name='normals',
        )
    uv_sets = ()
    if uvs:
        uv_sets = (LayerElement(
            direct=control_points[:, :2].copy(),
            mapping=MappingMode.BY_CONTROL_POINT,
            name='map1',
        ),)
    return MeshGeometry(
        control_points=control_points,
        polygon_vertices=polygon_vertices,
        normals=normal_layer,
        uv_sets=uv_sets,
        material_names=list(material_names),
        skin=skin,
    )


@pytest.fixture
def quad_geometry():
    """Factory for a unit quad (4 control points, 6 polygon-vertices)."""
    return _quad_geometry


@pytest.fixture
def chain_skin(chain_bind_globals):
    """Skin deformer binding the quad's lower edge to A and upper edge to B."""
    mesh_bind = np.eye(4)
    return SkinDeformer(clusters=[
        SkinCluster('A', np.array([0, 1, 2, 3]), np.array([1.0, 1.0, 0.5, 0.5]),
                    mesh_bind, chain_bind_globals['A']),
        SkinCluster('B', np.array([2, 3]), np.array([0.5, 0.5]),
                    mesh_bind, chain_bind_globals['B']),
    ])


@pytest.fixture
def chain_scene(quad_geometry, chain_skin):
    """
    Scene: root -> A -> B joints plus a skinned quad and a static glass quad.

        RootNode
        ├── root (skeleton)
        │   └── A (skeleton)
        │       └── B (skeleton)
        ├── body (mesh, material 'skin', skinned)
        └── window (mesh, material 'glass')
    """
    scene_root = SceneNode('RootNode')
    root = scene_root.add_child(SceneNode('root', 'skeleton'))
    a = root.add_child(SceneNode('A', 'skeleton'))
    a.add_child(SceneNode('B', 'skeleton'))
    scene_root.add_child(SceneNode('body', 'mesh', quad_geometry(skin=chain_skin)))
    scene_root.add_child(SceneNode('window', 'mesh', quad_geometry(material_names=('glass',))))
    return SceneGraph(scene_root)


@pytest.fixture
def material_library():
    """Opaque 'skin' and transparent 'glass' materials."""
    return MaterialLibrary([
        Material('skin', diffuse_texture_name='skin.png'),
        Material('glass', opacity_enabled=True, double_sided=True),
    ])


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "gpu: marks tests that require GPU"
    )


def pytest_collection_modifyitems(config, items):
    """Skip GPU tests if no GPU available."""
    if not torch.cuda.is_available():
        skip_gpu = pytest.mark.skip(reason="No GPU available")
        for item in items:
            if "gpu" in item.keywords:
                item.add_marker(skip_gpu)
