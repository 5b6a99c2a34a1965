"""
Export of imported meshes through trimesh.

Optionally bakes a skinned pose into the positions before writing, which
makes bind-pose problems easy to spot in any mesh viewer.
"""

from typing import Optional, Union
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


def export_mesh(
    mesh,
    path: Union[str, Path],
    skeleton=None,
    file_type: Optional[str] = None
) -> Path:
    """
    Save an imported mesh to file.

    Args:
        mesh: Imported Mesh
        path: Output path (.obj, .ply, .glb, ...)
        skeleton: If given and the mesh is skinned, export the mesh deformed
            by the skeleton's current global poses
        file_type: Optional explicit file type

    Returns:
        Output path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    tm = mesh.to_trimesh()
    if skeleton is not None and mesh.is_skinned:
        from ..skeleton.skinning import skin_mesh
        tm.vertices = skin_mesh(mesh, skeleton)

    tm.export(str(path), file_type=file_type)
    logger.info(f"Exported mesh '{mesh.node_name}' to {path}")
    return path
