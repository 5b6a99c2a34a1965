"""
Joint hierarchy with bind poses.

Provides:
- Joint: parent index, name and the three pose matrices
- Skeleton: flat, topologically sorted joint array with local <-> global
  pose propagation and rest-pose reconstruction from inverse bind poses
- build_hierarchy: joint extraction from an imported scene graph
"""

from typing import Dict, Iterator, List, Optional, Sequence, Union
import logging

import numpy as np

from ..core.constants import NO_PARENT
from ..core.errors import MalformedHierarchy
from ..core.types import Matrix4, MatrixLike, as_matrix4
from ..geometry.transforms import affine_inverse

logger = logging.getLogger(__name__)


class Joint:
    """
    Single joint of a skeleton.

    Poses are 4x4 matrices: local is relative to the parent joint, global is
    in model space, inverse bind pose maps model space into the joint's
    space at bind time.
    """

    def __init__(
        self,
        name: str,
        parent_index: int = NO_PARENT,
        inverse_bind_pose: Optional[MatrixLike] = None,
        local_pose: Optional[MatrixLike] = None,
        global_pose: Optional[MatrixLike] = None
    ):
        """
        Args:
            name: Joint name (unique within a skeleton)
            parent_index: Index of the parent joint (-1 for the root)
            inverse_bind_pose: Inverse bind matrix, defaults to identity
            local_pose: Parent-relative pose, defaults to identity
            global_pose: Model-space pose, defaults to identity
        """
        self.name = name
        self.parent_index = int(parent_index)

        identity = np.eye(4)
        self.inverse_bind_pose = as_matrix4(
            identity if inverse_bind_pose is None else inverse_bind_pose, 'inverse_bind_pose'
        )
        self.local_pose = as_matrix4(identity if local_pose is None else local_pose, 'local_pose')
        self.global_pose = as_matrix4(identity if global_pose is None else global_pose, 'global_pose')

    @property
    def is_root(self) -> bool:
        return self.parent_index == NO_PARENT

    def copy(self) -> 'Joint':
        return Joint(
            self.name,
            self.parent_index,
            self.inverse_bind_pose,
            self.local_pose,
            self.global_pose,
        )

    def __repr__(self) -> str:
        return f"Joint({self.name!r}, parent_index={self.parent_index})"


class Skeleton:
    """
    Flat joint hierarchy.

    Joints are stored in insertion order with parent indices. Insertion
    enforces that joint 0 is the only root and every other joint's parent
    comes before it, so index order is always a valid topological order.
    """

    def __init__(self, joints: Optional[Sequence[Joint]] = None):
        """
        Args:
            joints: Initial joints, appended in order with add_joint
        """
        self.joints: List[Joint] = []
        self._index: Dict[str, int] = {}

        for joint in joints or ():
            self.add_joint(joint)

    # -------------------------------------------------------------------------
    # Construction and lookup
    # -------------------------------------------------------------------------

    def add_joint(self, joint: Joint) -> int:
        """
        Append a joint.

        Args:
            joint: Joint whose parent is already in the skeleton

        Returns:
            Index of the new joint

        Raises:
            MalformedHierarchy: If the parent index or name breaks the invariants
        """
        index = len(self.joints)

        if joint.name in self._index:
            raise MalformedHierarchy(f"Duplicate joint name '{joint.name}'")

        if index == 0:
            if joint.parent_index != NO_PARENT:
                raise MalformedHierarchy(
                    f"First joint '{joint.name}' must be the root, got parent {joint.parent_index}"
                )
        elif joint.parent_index == NO_PARENT:
            raise MalformedHierarchy(
                f"Joint '{joint.name}' would be a second root "
                f"(root is '{self.joints[0].name}')"
            )
        elif not 0 <= joint.parent_index < index:
            raise MalformedHierarchy(
                f"Joint '{joint.name}' at index {index} has parent index {joint.parent_index}"
            )

        self.joints.append(joint)
        self._index[joint.name] = index
        return index

    def get_joint(self, key: Union[int, str]) -> Optional[Joint]:
        """
        Look up a joint by name or index.

        Args:
            key: Joint name or index

        Returns:
            The joint; None for an unknown name

        Raises:
            IndexError: For an index outside [0, len(skeleton))
        """
        if isinstance(key, str):
            index = self._index.get(key)
            return None if index is None else self.joints[index]

        if not 0 <= key < len(self.joints):
            raise IndexError(f"Joint index {key} out of range for {len(self.joints)} joints")
        return self.joints[key]

    def get_joint_index(self, name: str) -> int:
        """Index of a joint by name, or -1 when the name is unknown."""
        return self._index.get(name, -1)

    @property
    def joint_names(self) -> List[str]:
        return [joint.name for joint in self.joints]

    @property
    def parent_indices(self) -> np.ndarray:
        return np.array([joint.parent_index for joint in self.joints], dtype=np.int64)

    def __len__(self) -> int:
        return len(self.joints)

    def __iter__(self) -> Iterator[Joint]:
        return iter(self.joints)

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def copy(self) -> 'Skeleton':
        return Skeleton([joint.copy() for joint in self.joints])

    # -------------------------------------------------------------------------
    # Pose propagation
    # -------------------------------------------------------------------------

    def local_to_global(self) -> None:
        """
        Propagate local poses to global poses.

        G[0] = L[0]
        G[i] = G[parent(i)] @ L[i]
        """
        if not self.joints:
            return

        root = self.joints[0]
        root.global_pose = root.local_pose.copy()
        for joint in self.joints[1:]:
            parent = self.joints[joint.parent_index]
            joint.global_pose = parent.global_pose @ joint.local_pose

    def global_to_local(self) -> None:
        """
        Recover local poses from global poses.

        L[0] = G[0]
        L[i] = affine_inverse(G[parent(i)]) @ G[i]
        """
        if not self.joints:
            return

        root = self.joints[0]
        root.local_pose = root.global_pose.copy()
        for joint in self.joints[1:]:
            parent = self.joints[joint.parent_index]
            joint.local_pose = affine_inverse(parent.global_pose) @ joint.global_pose

    def rebuild_from_inverse_bind_poses(self) -> None:
        """
        Seed the rest pose from the inverse bind poses.

        Sets every global pose to the inverse of its inverse bind pose and
        derives the local poses from them.

        Raises:
            MalformedHierarchy: If an inverse bind pose is singular
        """
        for joint in self.joints:
            try:
                joint.global_pose = affine_inverse(joint.inverse_bind_pose)
            except np.linalg.LinAlgError as e:
                raise MalformedHierarchy(
                    f"Joint '{joint.name}' has a singular inverse bind pose"
                ) from e
        self.global_to_local()

    def get_global_matrix(self, name: str) -> Matrix4:
        """
        Model-space matrix of a joint composed from local poses.

        Walks the parent chain instead of reading the cached global pose, so
        it reflects local edits made since the last local_to_global().
        Returns identity for an unknown name.
        """
        joint = self.get_joint(name)
        if joint is None:
            return np.eye(4)

        result = joint.local_pose.copy()
        parent_index = joint.parent_index
        while parent_index != NO_PARENT:
            parent = self.joints[parent_index]
            result = parent.local_pose @ result
            parent_index = parent.parent_index
        return result

    # -------------------------------------------------------------------------
    # Bulk access
    # -------------------------------------------------------------------------

    def local_poses(self) -> np.ndarray:
        """Local poses stacked as (J, 4, 4)."""
        return np.stack([joint.local_pose for joint in self.joints]) if self.joints else np.zeros((0, 4, 4))

    def global_poses(self) -> np.ndarray:
        """Global poses stacked as (J, 4, 4)."""
        return np.stack([joint.global_pose for joint in self.joints]) if self.joints else np.zeros((0, 4, 4))

    def set_local_poses(self, poses: np.ndarray) -> None:
        """Assign local poses from a (J, 4, 4) array."""
        poses = np.asarray(poses, dtype=np.float64)
        if poses.shape != (len(self.joints), 4, 4):
            raise ValueError(
                f"poses should have shape ({len(self.joints)}, 4, 4), got {poses.shape}"
            )
        for joint, pose in zip(self.joints, poses):
            joint.local_pose = pose.copy()

    def skinning_palette(self, joint_names: Sequence[str]) -> np.ndarray:
        """
        Skinning matrices for a mesh's joint slots.

        palette[slot] = G[joint] @ inverse_bind[joint] for the joint named by
        joint_names[slot]; names missing from the skeleton get identity.

        Args:
            joint_names: Mesh joint list (index = joint slot)

        Returns:
            (len(joint_names), 4, 4) palette
        """
        palette = np.tile(np.eye(4), (len(joint_names), 1, 1))
        for slot, name in enumerate(joint_names):
            joint = self.get_joint(name)
            if joint is None:
                logger.debug(f"Palette slot {slot}: joint '{name}' not in skeleton, using identity")
                continue
            palette[slot] = joint.global_pose @ joint.inverse_bind_pose
        return palette


def build_hierarchy(scene) -> Skeleton:
    """
    Extract the joint hierarchy from a scene graph.

    Pre-order walk below the scene root. Every node tagged 'skeleton' becomes
    a joint whose parent is the nearest ancestor joint (or -1).

    Args:
        scene: SceneGraph

    Returns:
        Skeleton with joints in walk order

    Raises:
        MalformedHierarchy: On nodes without an attribute, nodes reachable
            twice, multiple root joints, duplicate joint names or a scene
            without joints
    """
    skeleton = Skeleton()
    visited = {id(scene.root)}

    def _process_node(node, parent_index: int):
        if id(node) in visited:
            raise MalformedHierarchy(f"Node '{node.name}' is reachable more than once")
        visited.add(id(node))

        if node.attribute is None:
            raise MalformedHierarchy(f"Node '{node.name}' has no attribute")

        if node.is_joint:
            index = skeleton.add_joint(Joint(node.name, parent_index))
            logger.debug(f"Joint '{node.name}' [index={index}] [parent={parent_index}]")
            parent_for_children = index
        else:
            parent_for_children = parent_index

        for child in node.children:
            _process_node(child, parent_for_children)

    for child in scene.root.children:
        _process_node(child, NO_PARENT)

    if not skeleton.joints:
        raise MalformedHierarchy("Scene has no skeleton joints")

    logger.info(f"Built skeleton: {len(skeleton)} joints, root '{skeleton.joints[0].name}'")
    return skeleton
