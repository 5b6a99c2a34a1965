"""
Scene graph interface consumed by the import pipeline.

A host importer (FBX SDK, Assimp, glTF reader, ...) fills these containers
with already-parsed data:

- SceneNode: tree of named nodes tagged with an attribute
  ('skeleton', 'mesh', 'null', ...)
- MeshGeometry: control points, the polygon-vertex -> control-point map,
  normal/UV layer elements, material names and an optional skin deformer
- SkinDeformer / SkinCluster: per-joint control-point weights and the
  bind-time transforms captured when the weights were authored

Polygons are expected to be triangulated upstream: every three consecutive
polygon-vertices form one triangle.
"""

from typing import Iterator, List, NamedTuple, Optional, Sequence

import numpy as np

from ..core.constants import ATTRIBUTE_MESH, ATTRIBUTE_SKELETON
from ..core.errors import MalformedHierarchy, MalformedMesh
from ..core.types import Matrix4


# =============================================================================
# Layer Elements
# =============================================================================

class MappingMode:
    """How a layer element maps onto the mesh."""

    BY_CONTROL_POINT = 'by_control_point'
    BY_POLYGON_VERTEX = 'by_polygon_vertex'

    ALL = (BY_CONTROL_POINT, BY_POLYGON_VERTEX)


class ReferenceMode:
    """How a layer element addresses its direct array."""

    DIRECT = 'direct'
    INDEX_TO_DIRECT = 'index_to_direct'

    ALL = (DIRECT, INDEX_TO_DIRECT)


class LayerElement(NamedTuple):
    """Per-vertex attribute layer (normals, one UV set, ...)."""
    direct: np.ndarray                   # (K, D) attribute values
    mapping: str = MappingMode.BY_POLYGON_VERTEX
    reference: str = ReferenceMode.DIRECT
    index: Optional[np.ndarray] = None   # (M,) indices into direct
    name: str = ''

    def expand(self, polygon_vertices: np.ndarray) -> np.ndarray:
        """
        Expand the layer to one value per polygon-vertex.

        Args:
            polygon_vertices: (N,) control-point index of every polygon-vertex

        Returns:
            (N, D) float64 array

        Raises:
            MalformedMesh: On unknown modes or out-of-range indices
        """
        if self.mapping not in MappingMode.ALL:
            raise MalformedMesh(f"Unknown mapping mode '{self.mapping}' in layer '{self.name}'")
        if self.reference not in ReferenceMode.ALL:
            raise MalformedMesh(f"Unknown reference mode '{self.reference}' in layer '{self.name}'")

        direct = np.asarray(self.direct, dtype=np.float64)
        if direct.ndim != 2:
            raise MalformedMesh(f"Layer '{self.name}' direct array should be 2D, got {direct.shape}")

        polygon_vertices = np.asarray(polygon_vertices, dtype=np.int64)

        if self.mapping == MappingMode.BY_CONTROL_POINT:
            keys = polygon_vertices
        else:
            keys = np.arange(polygon_vertices.shape[0], dtype=np.int64)

        if self.reference == ReferenceMode.INDEX_TO_DIRECT:
            if self.index is None:
                raise MalformedMesh(f"Layer '{self.name}' uses index_to_direct without an index array")
            index = np.asarray(self.index, dtype=np.int64)
            _check_range(keys, index.shape[0], f"layer '{self.name}' index array")
            keys = index[keys]

        _check_range(keys, direct.shape[0], f"layer '{self.name}' direct array")
        return direct[keys]


def _check_range(keys: np.ndarray, size: int, what: str) -> None:
    if keys.size and (keys.min() < 0 or keys.max() >= size):
        raise MalformedMesh(
            f"Index out of range for {what}: [{keys.min()}, {keys.max()}] vs size {size}"
        )


# =============================================================================
# Skin Deformer
# =============================================================================

class SkinCluster(NamedTuple):
    """Influence of one joint over a mesh's control points."""
    joint_name: str
    control_point_indices: np.ndarray    # (K,) int
    weights: np.ndarray                  # (K,) float
    transform_matrix: Matrix4            # mesh world transform at bind time
    transform_link_matrix: Matrix4       # joint world transform at bind time


class SkinDeformer(NamedTuple):
    """Skin deformer of a mesh: one cluster per influencing joint."""
    clusters: List[SkinCluster]


# =============================================================================
# Mesh Geometry
# =============================================================================

class MeshGeometry(NamedTuple):
    """Already-parsed geometry of a mesh node."""
    control_points: np.ndarray               # (C, 3)
    polygon_vertices: np.ndarray             # (N,) control-point indices
    normals: Optional[LayerElement] = None
    uv_sets: Sequence[LayerElement] = ()
    material_names: Sequence[str] = ()
    skin: Optional[SkinDeformer] = None
    geometric_transform: Optional[Matrix4] = None

    @property
    def control_point_count(self) -> int:
        return int(np.asarray(self.control_points).shape[0])

    @property
    def polygon_vertex_count(self) -> int:
        return int(np.asarray(self.polygon_vertices).shape[0])

    def positions_by_polygon_vertex(self) -> np.ndarray:
        """Control-point positions expanded to one row per polygon-vertex (N, 3)."""
        points = np.asarray(self.control_points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise MalformedMesh(f"Control points should have shape (C, 3), got {points.shape}")
        polygon_vertices = np.asarray(self.polygon_vertices, dtype=np.int64)
        _check_range(polygon_vertices, points.shape[0], "control points")
        return points[polygon_vertices]

    def normals_by_polygon_vertex(self) -> Optional[np.ndarray]:
        """Normals per polygon-vertex (N, 3), or None when the mesh has none."""
        if self.normals is None:
            return None
        return self.normals.expand(self.polygon_vertices)

    def uvs_by_polygon_vertex(self, uv_set: int = 0) -> Optional[np.ndarray]:
        """UVs of one UV set per polygon-vertex (N, 2), or None when absent."""
        if uv_set >= len(self.uv_sets):
            return None
        return self.uv_sets[uv_set].expand(self.polygon_vertices)


# =============================================================================
# Nodes
# =============================================================================

class SceneNode:
    """
    Single node of an imported scene.

    The attribute tags what the node carries ('skeleton' for joints, 'mesh'
    for geometry, 'null' for plain transforms). Only the scene root may have
    no attribute.
    """

    def __init__(
        self,
        name: str,
        attribute: Optional[str] = None,
        mesh: Optional[MeshGeometry] = None,
        children: Optional[List['SceneNode']] = None
    ):
        """
        Args:
            name: Node name
            attribute: Node attribute tag (None only for the scene root)
            mesh: Geometry for mesh nodes
            children: Child nodes
        """
        self.name = name
        self.attribute = attribute
        self.mesh = mesh
        self.children: List['SceneNode'] = list(children) if children else []

    def add_child(self, child: 'SceneNode') -> 'SceneNode':
        self.children.append(child)
        return child

    @property
    def is_joint(self) -> bool:
        return self.attribute == ATTRIBUTE_SKELETON

    @property
    def is_mesh(self) -> bool:
        return self.attribute == ATTRIBUTE_MESH and self.mesh is not None

    def __repr__(self) -> str:
        return f"SceneNode({self.name!r}, attribute={self.attribute!r}, children={len(self.children)})"


class SceneGraph:
    """Imported scene: a root node and everything below it."""

    def __init__(self, root: SceneNode):
        self.root = root

    def walk(self) -> Iterator[SceneNode]:
        """
        Pre-order traversal below the root (the root itself is not yielded).

        Raises:
            MalformedHierarchy: If a node is reachable more than once
        """
        visited = {id(self.root)}
        stack = list(reversed(self.root.children))
        while stack:
            node = stack.pop()
            if id(node) in visited:
                raise MalformedHierarchy(f"Node '{node.name}' is reachable more than once")
            visited.add(id(node))
            yield node
            stack.extend(reversed(node.children))

    def mesh_nodes(self) -> List[SceneNode]:
        """All mesh nodes in pre-order."""
        return [node for node in self.walk() if node.is_mesh]

    def has_joints(self) -> bool:
        return any(node.is_joint for node in self.walk())

    def find(self, name: str) -> Optional[SceneNode]:
        """First node with the given name, in pre-order."""
        for node in self.walk():
            if node.name == name:
                return node
        return None
