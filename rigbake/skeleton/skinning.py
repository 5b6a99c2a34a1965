"""
Linear blend skinning of imported meshes.

Deforms a mesh's deduplicated vertices with a skinning palette
(palette[slot] = global_pose @ inverse_bind_pose for the joint in that slot
of the mesh's joint list). Used to preview poses and to check that bind
poses recovered at import reproduce the rest mesh.
"""

from typing import Optional, Tuple, Union
import logging

import numpy as np
import torch
import torch.nn as nn

logger = logging.getLogger(__name__)


def mesh_to_tensors(
    mesh,
    device: Union[str, torch.device] = 'cpu',
    dtype: torch.dtype = torch.float64
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Convert an imported mesh's skinning streams to tensors.

    Args:
        mesh: Imported Mesh
        device: Target device
        dtype: Floating point dtype for positions and weights

    Returns:
        Tuple of:
        - rest_vertices: (V, 3)
        - joint_weights: (V, 4)
        - joint_indices: (V, 4) long
    """
    rest_vertices = torch.as_tensor(np.ascontiguousarray(mesh.positions), dtype=dtype, device=device)
    joint_weights = torch.as_tensor(np.ascontiguousarray(mesh.joint_weights), dtype=dtype, device=device)
    joint_indices = torch.as_tensor(
        np.ascontiguousarray(mesh.joint_indices), dtype=torch.long, device=device
    )
    return rest_vertices, joint_weights, joint_indices


class LinearBlendSkinning(nn.Module):
    """
    Linear Blend Skinning (LBS) for imported meshes.

    Each vertex is the weighted sum of its rest position transformed by the
    palette matrices of its four joint slots. Vertices whose weights sum to
    zero (unskinned) keep their rest position.
    """

    def __init__(
        self,
        rest_vertices: torch.Tensor,
        joint_weights: torch.Tensor,
        joint_indices: torch.Tensor
    ):
        """
        Args:
            rest_vertices: Rest pose vertices (V, 3)
            joint_weights: Skinning weights (V, max_influences)
            joint_indices: Joint slots per vertex (V, max_influences)
        """
        super().__init__()

        if rest_vertices.shape[0] != joint_weights.shape[0] or joint_weights.shape != joint_indices.shape:
            raise ValueError(
                f"Mismatched skinning streams: vertices {tuple(rest_vertices.shape)}, "
                f"weights {tuple(joint_weights.shape)}, indices {tuple(joint_indices.shape)}"
            )

        self.register_buffer('rest_vertices', rest_vertices)
        self.register_buffer('joint_weights', joint_weights)
        self.register_buffer('joint_indices', joint_indices.long())

    @classmethod
    def from_mesh(
        cls,
        mesh,
        device: Union[str, torch.device] = 'cpu',
        dtype: torch.dtype = torch.float64
    ) -> 'LinearBlendSkinning':
        """Build the module from an imported Mesh."""
        return cls(*mesh_to_tensors(mesh, device, dtype))

    def forward(self, palette: torch.Tensor) -> torch.Tensor:
        """
        Deform vertices with a skinning palette.

        Args:
            palette: Skinning matrices (J, 4, 4), one per joint slot

        Returns:
            Deformed vertices (V, 3)
        """
        palette = palette.to(device=self.rest_vertices.device, dtype=self.rest_vertices.dtype)

        V = self.rest_vertices.shape[0]
        max_influences = self.joint_weights.shape[1]

        if V and palette.shape[0] == 0:
            return self.rest_vertices.clone()

        # Homogeneous coordinates
        rest_homo = torch.cat([
            self.rest_vertices,
            torch.ones(V, 1, device=self.rest_vertices.device, dtype=self.rest_vertices.dtype)
        ], dim=-1)

        deformed = torch.zeros_like(self.rest_vertices)

        for slot in range(max_influences):
            joint_idx = self.joint_indices[:, slot]
            weight = self.joint_weights[:, slot:slot+1]

            M = palette[joint_idx]  # (V, 4, 4)
            transformed = torch.einsum('vij,vj->vi', M, rest_homo)[:, :3]

            deformed = deformed + weight * transformed

        # Unskinned vertices stay rigid
        rigid = (1.0 - self.joint_weights.sum(dim=-1, keepdim=True)).clamp(min=0.0)
        return deformed + rigid * self.rest_vertices


def skin_mesh(
    mesh,
    skeleton,
    device: Union[str, torch.device] = 'cpu',
    palette: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Deform a mesh by the skeleton's current global poses.

    Args:
        mesh: Imported Mesh
        skeleton: Skeleton holding global and inverse bind poses
        device: Torch device for the deformation
        palette: Precomputed (J, 4, 4) palette (defaults to
            skeleton.skinning_palette(mesh.joint_names))

    Returns:
        Deformed vertex positions (V, 3) float64
    """
    if not mesh.is_skinned:
        return np.array(mesh.positions, dtype=np.float64)

    if palette is None:
        palette = skeleton.skinning_palette(mesh.joint_names)

    lbs = LinearBlendSkinning.from_mesh(mesh, device=device)
    with torch.no_grad():
        deformed = lbs(torch.as_tensor(palette, dtype=torch.float64))

    logger.debug(f"Skinned mesh '{mesh.node_name}': {deformed.shape[0]} vertices, {len(mesh.joint_names)} joints")
    return deformed.cpu().numpy()
