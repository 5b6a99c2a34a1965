"""
rigbake: skinned asset import pipeline

Converts an already-parsed scene graph (nodes, control points, polygon-vertex
streams, skin clusters) into runtime-ready data for a skinning renderer.

Key Features:
- Flat joint hierarchy with local/global pose propagation
- Inverse bind poses captured from skin clusters
- Capped, normalized four-influence weight tables
- Exact, order-preserving vertex deduplication into indexed meshes
- Opaque/transparent partitioning through an injected material lookup
- Linear blend skinning (torch) and trimesh export for previews

API Design:
- Matrices are 4x4 float64 in the column-vector convention
- Per-mesh failures are reported as ImportIssue, never swallowed
- Hierarchy failures raise MalformedHierarchy and abort the import

Example:
    >>> import rigbake
    >>> scene, materials = rigbake.scene.load_scene('character.json')
    >>> result = rigbake.pipeline.SceneAssembler().import_scene(scene, materials)
    >>> palette = result.skeleton.skinning_palette(result.opaque_meshes[0].joint_names)
"""

__version__ = "0.1.0"
__author__ = "rigbake Contributors"

from . import core
from . import geometry
from . import scene
from . import skeleton
from . import pipeline
from . import utils

__all__ = [
    "core",
    "geometry",
    "scene",
    "skeleton",
    "pipeline",
    "utils",
]
