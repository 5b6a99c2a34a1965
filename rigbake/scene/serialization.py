"""
Plain-dict / JSON interchange for scene graphs and material libraries.

Host importers that run in another process (a DCC exporter script, an
Assimp or FBX SDK bridge) can dump the already-parsed scene as JSON:

    {
        "root": {
            "name": "RootNode",
            "children": [
                {"name": "hips", "attribute": "skeleton", "children": [...]},
                {"name": "body", "attribute": "mesh", "mesh": {
                    "control_points": [[x, y, z], ...],
                    "polygon_vertices": [0, 1, 2, ...],
                    "normals": {"direct": [...], "mapping": "by_polygon_vertex",
                                "reference": "direct"},
                    "uv_sets": [{"name": "map1", "direct": [...], ...}],
                    "material_names": ["skin"],
                    "geometric_transform": {"translation": [...], "rotation": [...],
                                            "scaling": [...]},
                    "skin": {"clusters": [
                        {"joint": "hips", "indices": [...], "weights": [...],
                         "transform": [[...]], "transform_link": [[...]]}
                    ]}
                }}
            ]
        },
        "materials": [
            {"name": "skin", "opacity_enabled": false, "double_sided": false,
             "diffuse_texture": "textures/skin.tga"}
        ]
    }

Matrices are row-major nested lists in the column-vector convention.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from ..core.errors import MalformedHierarchy
from ..core.types import as_matrix4
from ..geometry.transforms import geometric_transform
from .graph import (
    LayerElement,
    MappingMode,
    MeshGeometry,
    ReferenceMode,
    SceneGraph,
    SceneNode,
    SkinCluster,
    SkinDeformer,
)
from .materials import MaterialLibrary


def _layer_from_dict(data: Mapping[str, Any]) -> LayerElement:
    index = data.get('index')
    return LayerElement(
        direct=np.asarray(data['direct'], dtype=np.float64),
        mapping=data.get('mapping', MappingMode.BY_POLYGON_VERTEX),
        reference=data.get('reference', ReferenceMode.DIRECT),
        index=None if index is None else np.asarray(index, dtype=np.int64),
        name=data.get('name', ''),
    )


def _cluster_from_dict(data: Mapping[str, Any]) -> SkinCluster:
    identity = np.eye(4)
    return SkinCluster(
        joint_name=data['joint'],
        control_point_indices=np.asarray(data.get('indices', []), dtype=np.int64),
        weights=np.asarray(data.get('weights', []), dtype=np.float64),
        transform_matrix=as_matrix4(data.get('transform', identity), 'transform'),
        transform_link_matrix=as_matrix4(data.get('transform_link', identity), 'transform_link'),
    )


def _geometric_from_dict(data) -> Optional[np.ndarray]:
    # Either a 4x4 matrix or {"translation", "rotation" (XYZ degrees), "scaling"}
    if data is None:
        return None
    if isinstance(data, Mapping):
        return geometric_transform(
            data.get('translation'), data.get('rotation'), data.get('scaling')
        )
    return as_matrix4(data, 'geometric_transform')


def mesh_from_dict(data: Mapping[str, Any]) -> MeshGeometry:
    """Build MeshGeometry from its dict form."""
    normals = data.get('normals')
    skin = data.get('skin')
    geometric = data.get('geometric_transform')

    return MeshGeometry(
        control_points=np.asarray(data['control_points'], dtype=np.float64).reshape(-1, 3),
        polygon_vertices=np.asarray(data['polygon_vertices'], dtype=np.int64),
        normals=None if normals is None else _layer_from_dict(normals),
        uv_sets=[_layer_from_dict(uv) for uv in data.get('uv_sets', [])],
        material_names=list(data.get('material_names', [])),
        skin=None if skin is None else SkinDeformer(
            clusters=[_cluster_from_dict(c) for c in skin.get('clusters', [])]
        ),
        geometric_transform=_geometric_from_dict(geometric),
    )


def node_from_dict(data: Mapping[str, Any], _depth: int = 0) -> SceneNode:
    """Build a SceneNode tree from its dict form."""
    if 'name' not in data:
        raise MalformedHierarchy(f"Scene node at depth {_depth} has no name")

    mesh = data.get('mesh')
    node = SceneNode(
        name=data['name'],
        attribute=data.get('attribute'),
        mesh=None if mesh is None else mesh_from_dict(mesh),
    )
    for child in data.get('children', []):
        node.add_child(node_from_dict(child, _depth + 1))
    return node


def scene_from_dict(
    data: Mapping[str, Any],
    extension_map: Optional[Mapping[str, str]] = None
) -> Tuple[SceneGraph, MaterialLibrary]:
    """
    Build a scene graph and its material library from a dict.

    Args:
        data: Dict with 'root' and optional 'materials'
        extension_map: Texture extension rewrite map

    Returns:
        (SceneGraph, MaterialLibrary)
    """
    scene = SceneGraph(node_from_dict(data['root']))
    materials = MaterialLibrary.from_dicts(data.get('materials', []), extension_map)
    return scene, materials


def load_scene(
    filepath: Union[str, Path],
    extension_map: Optional[Mapping[str, str]] = None
) -> Tuple[SceneGraph, MaterialLibrary]:
    """
    Load a scene graph and material library from a JSON file.

    Args:
        filepath: Path to the JSON scene dump
        extension_map: Texture extension rewrite map

    Returns:
        (SceneGraph, MaterialLibrary)
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Scene file not found: {filepath}")

    with open(filepath, 'r') as f:
        data: Dict[str, Any] = json.load(f)
    return scene_from_dict(data, extension_map)
