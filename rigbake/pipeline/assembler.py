"""
Scene assembly: the import entry point.

Builds the skeleton, converts every mesh node into an indexed Mesh and
partitions the meshes into opaque and transparent draw lists. Materials are
resolved through an injected MaterialLookup.

Per-mesh failures (missing material, inconsistent streams) drop the mesh and
are reported as issues; hierarchy failures abort the whole import.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging

import numpy as np

from ..core.constants import (
    ATTRIBUTE_MESH,
    DROPPING_ISSUES,
    ISSUE_DEGENERATE_WEIGHTS,
    ISSUE_MALFORMED_MESH,
    ISSUE_MISSING_NORMALS,
    ISSUE_MULTIPLE_MATERIALS,
    ISSUE_UNKNOWN_JOINT,
    ISSUE_UNRESOLVED_MATERIAL,
)
from ..core.errors import ImportIssue, MalformedMesh, UnresolvedMaterial
from ..scene.materials import Material, MaterialLookup
from ..scene.serialization import load_scene
from ..skeleton.skeleton import Skeleton, build_hierarchy
from ..utils.config import ImportConfig
from .mesh_optimizer import Mesh, optimize_mesh
from .skin_weights import SkinWeightResolver, SkinWeights

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """
    Output of one scene import.

    Attributes:
        opaque_meshes: Meshes whose material has opacity disabled
        transparent_meshes: Meshes whose material has opacity enabled
        skeleton: Joint hierarchy, None for scenes without joints
        materials: Resolved materials by name
        issues: Problems reported during the import, in encounter order
    """
    opaque_meshes: List[Mesh] = field(default_factory=list)
    transparent_meshes: List[Mesh] = field(default_factory=list)
    skeleton: Optional[Skeleton] = None
    materials: Dict[str, Material] = field(default_factory=dict)
    issues: List[ImportIssue] = field(default_factory=list)

    @property
    def meshes(self) -> List[Mesh]:
        """Opaque meshes followed by transparent meshes."""
        return self.opaque_meshes + self.transparent_meshes

    @property
    def has_warnings(self) -> bool:
        return any(issue.kind != ISSUE_DEGENERATE_WEIGHTS for issue in self.issues)

    @property
    def dropped_nodes(self) -> List[str]:
        """Mesh nodes that were left out of both draw lists."""
        return [issue.node_name for issue in self.issues if issue.kind in DROPPING_ISSUES]

    def issues_of(self, kind: str) -> List[ImportIssue]:
        return [issue for issue in self.issues if issue.kind == kind]


class SceneAssembler:
    """
    Converts an imported scene graph into runtime meshes and a skeleton.

    Holds no state between imports; one assembler can be reused for any
    number of scenes.

    Example:
        >>> scene, materials = load_scene('character.json')
        >>> result = SceneAssembler().import_scene(scene, materials)
        >>> for mesh in result.opaque_meshes:
        ...     palette = result.skeleton.skinning_palette(mesh.joint_names)
    """

    def __init__(self, config: Optional[ImportConfig] = None):
        """
        Args:
            config: Import configuration (defaults to ImportConfig())
        """
        self.config = (config or ImportConfig()).validate()
        self.resolver = SkinWeightResolver(self.config.max_influences)

    def import_scene(self, scene, materials: MaterialLookup) -> ImportResult:
        """
        Import a whole scene.

        Args:
            scene: SceneGraph
            materials: Callable mapping a material name to a Material (or None)

        Returns:
            ImportResult with partitioned meshes, skeleton and issues

        Raises:
            MalformedHierarchy: If the joint hierarchy is inconsistent
        """
        result = ImportResult()

        if scene.has_joints():
            result.skeleton = build_hierarchy(scene)

        for node in scene.walk():
            if node.attribute != ATTRIBUTE_MESH:
                continue

            try:
                mesh, material, skin = self._import_mesh(node, result, materials)
            except UnresolvedMaterial as e:
                self._report(result, ISSUE_UNRESOLVED_MATERIAL, node.name, str(e))
                continue
            except MalformedMesh as e:
                self._report(result, ISSUE_MALFORMED_MESH, node.name, str(e))
                continue

            if skin is not None and result.skeleton is not None:
                skin.apply_bind_poses(result.skeleton)

            result.materials[mesh.material_name] = material
            if material.is_transparent:
                result.transparent_meshes.append(mesh)
            else:
                result.opaque_meshes.append(mesh)

        if result.skeleton is not None and self.config.rebuild_rest_pose:
            result.skeleton.rebuild_from_inverse_bind_poses()

        logger.info(
            f"Imported scene: {len(result.opaque_meshes)} opaque, "
            f"{len(result.transparent_meshes)} transparent, "
            f"{len(result.skeleton) if result.skeleton is not None else 0} joints, "
            f"{len(result.issues)} issues"
        )
        return result

    def import_file(self, filepath: Union[str, Path]) -> ImportResult:
        """
        Load a JSON scene dump and import it.

        Material texture names are normalized with
        config.texture_extension_map.

        Args:
            filepath: Path to the JSON scene

        Returns:
            ImportResult
        """
        scene, materials = load_scene(filepath, self.config.texture_extension_map)
        logger.info(f"Loaded scene from {filepath}")
        return self.import_scene(scene, materials)

    def _import_mesh(
        self,
        node,
        result: ImportResult,
        materials: MaterialLookup
    ) -> Tuple[Mesh, Material, Optional[SkinWeights]]:
        """
        Convert a single mesh node. Raises per-mesh errors.

        Inverse bind poses are returned with the skin weights, not written, so
        a mesh dropped later leaves the skeleton untouched.
        """
        geometry = node.mesh
        if geometry is None:
            raise MalformedMesh(f"Mesh node '{node.name}' carries no geometry")

        positions = geometry.positions_by_polygon_vertex()

        normals = geometry.normals_by_polygon_vertex()
        if normals is None:
            self._report(result, ISSUE_MISSING_NORMALS, node.name, "No normals, using zero normals")
            normals = np.zeros_like(positions)

        uvs = geometry.uvs_by_polygon_vertex(self.config.uv_set)

        joints = weights = None
        joint_names = None
        skin = None
        if geometry.skin is not None:
            skin = self.resolver.resolve(
                geometry, result.skeleton, node.name, write_bind_poses=False
            )
            joints, weights, joint_names = skin.joint_indices, skin.weights, skin.joint_names

            for joint_name in skin.unknown_joints:
                self._report(
                    result, ISSUE_UNKNOWN_JOINT, node.name,
                    f"Cluster joint '{joint_name}' is not in the skeleton"
                )
            if skin.degenerate_control_points:
                self._report(
                    result, ISSUE_DEGENERATE_WEIGHTS, node.name,
                    f"{len(skin.degenerate_control_points)} control points have zero total "
                    f"weight, treated as unskinned"
                )

        material_names = list(geometry.material_names)
        material_name = material_names[0] if material_names else None
        if len(material_names) > 1:
            self._report(
                result, ISSUE_MULTIPLE_MATERIALS, node.name,
                f"{len(material_names)} materials, using '{material_name}'"
            )

        mesh = optimize_mesh(
            positions,
            normals,
            uvs,
            joints,
            weights,
            strategy=self.config.dedup_strategy,
            node_name=node.name,
            material_name=material_name,
            joint_names=joint_names,
        )

        material = None if material_name is None else materials(material_name)
        if material is None:
            raise UnresolvedMaterial(node.name, material_name)
        return mesh, material, skin

    @staticmethod
    def _report(result: ImportResult, kind: str, node_name: Optional[str], message: str) -> None:
        issue = ImportIssue(kind, node_name, message)
        result.issues.append(issue)
        if kind == ISSUE_DEGENERATE_WEIGHTS:
            logger.info(str(issue))
        else:
            logger.warning(str(issue))


def import_scene(
    scene,
    materials: MaterialLookup,
    config: Optional[ImportConfig] = None
) -> ImportResult:
    """
    Import a scene with a one-off assembler.

    Args:
        scene: SceneGraph
        materials: MaterialLookup
        config: Import configuration

    Returns:
        ImportResult
    """
    return SceneAssembler(config).import_scene(scene, materials)
