"""
Import pipeline for rigbake.

Includes skin weight resolution, vertex deduplication and the scene
assembler that drives them.
"""

from .skin_weights import (
    SkinWeights,
    SkinWeightResolver,
    cap_influences,
    cluster_inverse_bind_pose,
    resolve_skin_weights,
)
from .mesh_optimizer import (
    VERTEX_DTYPE,
    Vertex,
    Mesh,
    pack_vertices,
    deduplicate,
    optimize_mesh,
)
from .assembler import (
    ImportResult,
    SceneAssembler,
    import_scene,
)

__all__ = [
    # Skin weights
    "SkinWeights",
    "SkinWeightResolver",
    "cap_influences",
    "cluster_inverse_bind_pose",
    "resolve_skin_weights",
    # Mesh optimization
    "VERTEX_DTYPE",
    "Vertex",
    "Mesh",
    "pack_vertices",
    "deduplicate",
    "optimize_mesh",
    # Assembly
    "ImportResult",
    "SceneAssembler",
    "import_scene",
]
