"""
Scene graph interface for rigbake.

Includes the node tree and mesh containers a host importer fills in,
minimal material descriptors, and JSON interchange.
"""

from .graph import (
    MappingMode,
    ReferenceMode,
    LayerElement,
    SkinCluster,
    SkinDeformer,
    MeshGeometry,
    SceneNode,
    SceneGraph,
)
from .materials import (
    Material,
    MaterialLookup,
    MaterialLibrary,
    normalize_texture_name,
)
from .serialization import (
    mesh_from_dict,
    node_from_dict,
    scene_from_dict,
    load_scene,
)

__all__ = [
    # Graph
    "MappingMode",
    "ReferenceMode",
    "LayerElement",
    "SkinCluster",
    "SkinDeformer",
    "MeshGeometry",
    "SceneNode",
    "SceneGraph",
    # Materials
    "Material",
    "MaterialLookup",
    "MaterialLibrary",
    "normalize_texture_name",
    # Serialization
    "mesh_from_dict",
    "node_from_dict",
    "scene_from_dict",
    "load_scene",
]
