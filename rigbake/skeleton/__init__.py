"""
Skeleton module for rigbake.

Includes the flat joint hierarchy with pose propagation and linear blend
skinning of imported meshes.
"""

from .skeleton import (
    Joint,
    Skeleton,
    build_hierarchy,
)
from .skinning import (
    LinearBlendSkinning,
    mesh_to_tensors,
    skin_mesh,
)

__all__ = [
    # Hierarchy
    "Joint",
    "Skeleton",
    "build_hierarchy",
    # Skinning
    "LinearBlendSkinning",
    "mesh_to_tensors",
    "skin_mesh",
]
