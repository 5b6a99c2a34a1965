"""
Skin weight resolution.

Turns a mesh's skin clusters into a capped, normalized influence table with
one row of four (joint slot, weight) pairs per polygon-vertex, and records
each cluster's inverse bind pose into the skeleton once the whole skin has
passed validation.

Per control point:
    1. collect (slot, weight) from every cluster that references it
    2. stable sort by weight, descending
    3. keep the first max_influences, pad to four with (0, 0.0)
    4. divide the kept weights by their sum (all-zero sums reset to padding)
"""

from typing import List, NamedTuple, Optional, Sequence, Tuple
import logging

import numpy as np

from ..core.constants import MAX_INFLUENCES, PAD_JOINT_SLOT, PAD_WEIGHT
from ..core.errors import MalformedMesh
from ..core.types import Influence, Matrix4
from ..geometry.transforms import affine_inverse

logger = logging.getLogger(__name__)


class SkinWeights(NamedTuple):
    """Resolved influence table of one mesh."""
    joint_names: List[str]                  # joint slot -> joint name
    joint_indices: np.ndarray               # (N, 4) int32 joint slots
    weights: np.ndarray                     # (N, 4) float64
    degenerate_control_points: List[int]    # control points with zero kept weight
    unknown_joints: List[str]               # cluster joints missing from the skeleton
    inverse_bind_poses: List[Tuple[str, Matrix4]]  # (joint name, inverse bind) per known cluster joint

    def apply_bind_poses(self, skeleton) -> None:
        """Write the collected inverse bind poses into a skeleton."""
        for joint_name, inverse_bind in self.inverse_bind_poses:
            skeleton.get_joint(joint_name).inverse_bind_pose = inverse_bind


def cluster_inverse_bind_pose(cluster, geometric_transform: Optional[Matrix4] = None) -> Matrix4:
    """
    Inverse bind pose captured by a skin cluster.

    inverse(transform_link_matrix @ transform_matrix @ geometric_transform)

    Args:
        cluster: SkinCluster
        geometric_transform: Geometric (pivot) transform of the mesh node

    Returns:
        (4, 4) inverse bind matrix

    Raises:
        MalformedMesh: If the bind matrix is singular
    """
    reference = np.asarray(cluster.transform_matrix, dtype=np.float64)
    if geometric_transform is not None:
        reference = reference @ np.asarray(geometric_transform, dtype=np.float64)

    bind_pose = np.asarray(cluster.transform_link_matrix, dtype=np.float64) @ reference
    try:
        return affine_inverse(bind_pose)
    except np.linalg.LinAlgError as e:
        raise MalformedMesh(f"Cluster '{cluster.joint_name}' has a singular bind pose") from e


def cap_influences(
    contributions: Sequence[Influence],
    max_influences: int = MAX_INFLUENCES
) -> Tuple[List[Influence], bool]:
    """
    Sort, truncate, pad and normalize the influences of one control point.

    Args:
        contributions: (joint slot, weight) pairs in cluster encounter order
        max_influences: Number of influences kept (1..4)

    Returns:
        Tuple of:
        - Four (joint slot, weight) pairs, weights non-increasing
        - True if the kept weights summed to zero

    Example:
        >>> pairs, _ = cap_influences([(0, 0.1), (1, 0.3), (2, 0.05), (3, 0.4), (4, 0.15)])
        >>> [slot for slot, _ in pairs]
        [3, 1, 4, 0]
    """
    # reverse=True keeps ties in encounter order
    kept = sorted(contributions, key=lambda pair: pair[1], reverse=True)[:max_influences]
    total = float(sum(weight for _, weight in kept))

    padding = [(PAD_JOINT_SLOT, PAD_WEIGHT)] * (MAX_INFLUENCES - len(kept))
    if not kept:
        return padding, False
    if total == 0.0:
        return [(PAD_JOINT_SLOT, PAD_WEIGHT)] * MAX_INFLUENCES, True

    normalized = [(int(slot), float(weight) / total) for slot, weight in kept]
    return normalized + padding, False


class SkinWeightResolver:
    """
    Resolves skin clusters into per-polygon-vertex influence tables.

    Stateless apart from its settings; one resolver can serve every mesh of
    every import.
    """

    def __init__(self, max_influences: int = MAX_INFLUENCES):
        """
        Args:
            max_influences: Influences kept per vertex (1..4)
        """
        if not 1 <= max_influences <= MAX_INFLUENCES:
            raise ValueError(
                f"max_influences must be in [1, {MAX_INFLUENCES}], got {max_influences}"
            )
        self.max_influences = max_influences

    def resolve(
        self,
        geometry,
        skeleton=None,
        node_name: str = '',
        write_bind_poses: bool = True
    ) -> SkinWeights:
        """
        Resolve the skin deformer of a mesh.

        Args:
            geometry: MeshGeometry with a skin deformer
            skeleton: Skeleton receiving the inverse bind poses (optional)
            node_name: Mesh node name for log messages
            write_bind_poses: Write the inverse bind poses into the skeleton
                after validation. When False the caller applies them later
                with SkinWeights.apply_bind_poses.

        Returns:
            SkinWeights with one row per polygon-vertex

        Raises:
            MalformedMesh: On inconsistent cluster arrays or out-of-range
                control-point indices
        """
        if geometry.skin is None:
            raise MalformedMesh(f"Mesh '{node_name}' has no skin deformer")

        num_cp = geometry.control_point_count
        cp_influences: List[List[Influence]] = [[] for _ in range(num_cp)]

        joint_names: List[str] = []
        unknown_joints: List[str] = []
        inverse_bind_poses: List[Tuple[str, Matrix4]] = []

        for slot, cluster in enumerate(geometry.skin.clusters):
            joint_names.append(cluster.joint_name)

            indices = np.asarray(cluster.control_point_indices, dtype=np.int64).reshape(-1)
            weights = np.asarray(cluster.weights, dtype=np.float64).reshape(-1)
            if indices.shape != weights.shape:
                raise MalformedMesh(
                    f"Cluster '{cluster.joint_name}' has {indices.shape[0]} indices "
                    f"but {weights.shape[0]} weights"
                )
            if indices.size and (indices.min() < 0 or indices.max() >= num_cp):
                raise MalformedMesh(
                    f"Cluster '{cluster.joint_name}' references control points "
                    f"[{indices.min()}, {indices.max()}] of a mesh with {num_cp}"
                )

            for cp_index, weight in zip(indices.tolist(), weights.tolist()):
                cp_influences[cp_index].append((slot, weight))

            inverse_bind = cluster_inverse_bind_pose(cluster, geometry.geometric_transform)
            joint = None if skeleton is None else skeleton.get_joint(cluster.joint_name)
            if joint is None:
                unknown_joints.append(cluster.joint_name)
            else:
                inverse_bind_poses.append((cluster.joint_name, inverse_bind))

            logger.debug(
                f"Cluster '{cluster.joint_name}' [slot={slot}]: {indices.shape[0]} control points"
            )

        cp_joints = np.zeros((num_cp, MAX_INFLUENCES), dtype=np.int32)
        cp_weights = np.zeros((num_cp, MAX_INFLUENCES), dtype=np.float64)
        degenerate: List[int] = []

        for cp_index, contributions in enumerate(cp_influences):
            pairs, is_degenerate = cap_influences(contributions, self.max_influences)
            if is_degenerate:
                degenerate.append(cp_index)
            cp_joints[cp_index] = [slot for slot, _ in pairs]
            cp_weights[cp_index] = [weight for _, weight in pairs]

        polygon_vertices = np.asarray(geometry.polygon_vertices, dtype=np.int64)
        if polygon_vertices.size and (polygon_vertices.min() < 0 or polygon_vertices.max() >= num_cp):
            raise MalformedMesh(f"Mesh '{node_name}' polygon-vertex index out of range")

        skin = SkinWeights(
            joint_names=joint_names,
            joint_indices=cp_joints[polygon_vertices],
            weights=cp_weights[polygon_vertices],
            degenerate_control_points=degenerate,
            unknown_joints=unknown_joints,
            inverse_bind_poses=inverse_bind_poses,
        )

        # Nothing reaches the skeleton unless the whole skin is valid
        if skeleton is not None and write_bind_poses:
            skin.apply_bind_poses(skeleton)
        return skin


def resolve_skin_weights(
    geometry,
    skeleton=None,
    max_influences: int = MAX_INFLUENCES,
    node_name: str = ''
) -> SkinWeights:
    """
    Convenience wrapper around SkinWeightResolver.

    Example:
        >>> weights = resolve_skin_weights(mesh_node.mesh, skeleton)
        >>> weights.weights.sum(axis=1)  # 1.0 for every skinned vertex
    """
    return SkinWeightResolver(max_influences).resolve(geometry, skeleton, node_name)
