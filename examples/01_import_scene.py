"""
Example 01: Importing a Skinned Scene

Demonstrates the complete import pipeline on a small two-joint arm:
1. Building a scene graph from its JSON interchange form
2. Importing it into deduplicated meshes and a skeleton
3. Inspecting reported issues, weights and GPU buffers
4. Posing the skeleton and skinning the mesh with LBS
5. Exporting the rest and posed meshes through trimesh

Usage:
    python examples/01_import_scene.py [scene.json]

Without an argument the built-in arm scene is used.

Output files:
- output/01_rest.ply - Imported mesh at the bind pose
- output/01_posed.ply - Mesh with the elbow bent 90 degrees
"""

import logging
import sys
from pathlib import Path

import numpy as np

from rigbake.geometry import compose_matrix
from rigbake.pipeline import SceneAssembler
from rigbake.scene import scene_from_dict
from rigbake.skeleton import skin_mesh
from rigbake.utils import ImportConfig, export_mesh


# =============================================================================
# 1. Configuration
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent
OUTPUT_DIR = PROJECT_ROOT / "output"


def arm_scene_dict():
    """A 2 x 1 x 1 box along +x, skinned to a shoulder and an elbow at x = 1."""
    xs = [0.0, 1.0, 2.0]
    control_points = [[x, y, z] for x in xs for y in (0.0, 1.0) for z in (0.0, 1.0)]

    # Two side faces (y = 0 and y = 1) per segment, triangulated
    polygon_vertices = []
    for segment in range(2):
        a = segment * 4
        b = a + 4
        for offset in (0, 2):
            polygon_vertices += [a + offset, b + offset, b + offset + 1,
                                 a + offset, b + offset + 1, a + offset + 1]

    shoulder_weights = [1.0] * 4 + [0.5] * 4 + [0.0] * 4
    elbow_weights = [0.0] * 4 + [0.5] * 4 + [1.0] * 4
    elbow_bind = compose_matrix([1.0, 0.0, 0.0])

    return {
        "root": {
            "name": "RootNode",
            "children": [
                {"name": "shoulder", "attribute": "skeleton", "children": [
                    {"name": "elbow", "attribute": "skeleton"},
                ]},
                {"name": "arm", "attribute": "mesh", "mesh": {
                    "control_points": control_points,
                    "polygon_vertices": polygon_vertices,
                    "normals": {"direct": [[0.0, -1.0, 0.0], [0.0, 1.0, 0.0]],
                                "mapping": "by_control_point",
                                "reference": "index_to_direct",
                                "index": [0, 0, 1, 1] * 3},
                    "uv_sets": [{"name": "map1",
                                 "direct": [[x / 2.0, z] for x in xs for _ in (0, 1) for z in (0.0, 1.0)],
                                 "mapping": "by_control_point"}],
                    "material_names": ["skin"],
                    "skin": {"clusters": [
                        {"joint": "shoulder", "indices": list(range(12)),
                         "weights": shoulder_weights},
                        {"joint": "elbow", "indices": list(range(12)),
                         "weights": elbow_weights,
                         "transform_link": elbow_bind.tolist()},
                    ]},
                }},
            ],
        },
        "materials": [
            {"name": "skin", "diffuse_texture": "textures\\arm_diffuse.tga"},
        ],
    }


# =============================================================================
# 2. Import
# =============================================================================

def import_arm(scene_path=None):
    """Import the scene and print a summary."""
    print("=" * 60)
    print("Phase 1: Importing Scene")
    print("=" * 60)

    config = ImportConfig()
    assembler = SceneAssembler(config)
    if scene_path is not None:
        result = assembler.import_file(scene_path)
    else:
        scene, materials = scene_from_dict(arm_scene_dict(), config.texture_extension_map)
        result = assembler.import_scene(scene, materials)

    print(f"\nSkeleton:")
    if result.skeleton is None:
        print("  (none)")
    else:
        for i, joint in enumerate(result.skeleton):
            print(f"  {i}: {joint.name} [parent={joint.parent_index}]")

    print(f"\nMeshes:")
    for mesh in result.meshes:
        material = result.materials[mesh.material_name]
        print(f"  {mesh.node_name}: {mesh.num_vertices} vertices, {mesh.num_indices} indices, "
              f"texture={material.diffuse_texture_name}")

    if result.issues:
        print(f"\nIssues:")
        for issue in result.issues:
            print(f"  {issue}")

    return result


# =============================================================================
# 3. Posing and Export
# =============================================================================

def pose_and_export(result, output_dir):
    """Bend the elbow and export rest and posed meshes."""
    print("\n" + "=" * 60)
    print("Phase 2: Posing and Export")
    print("=" * 60)

    if result.skeleton is None or not result.meshes:
        print("  Nothing to pose")
        return

    mesh = result.meshes[0]
    skeleton = result.skeleton.copy()

    elbow = skeleton.get_joint('elbow')
    if elbow is not None:
        half = np.pi / 4
        elbow.local_pose = elbow.local_pose @ compose_matrix(
            quaternion=[np.cos(half), 0.0, 0.0, np.sin(half)]
        )
    skeleton.local_to_global()

    rest = skin_mesh(mesh, result.skeleton)
    posed = skin_mesh(mesh, skeleton)
    print(f"\n  Rest pose max error: {np.abs(rest - mesh.positions).max():.2e}")
    print(f"  Posed tip: {posed[np.argmax(mesh.positions[:, 0])]}")

    gpu = mesh.to_gpu_arrays()
    print(f"\n  GPU buffers: " + ", ".join(f"{k}{v.shape}:{v.dtype}" for k, v in gpu.items()))

    export_mesh(mesh, output_dir / "01_rest.ply")
    export_mesh(mesh, output_dir / "01_posed.ply", skeleton=skeleton)


# =============================================================================
# 4. Main Pipeline
# =============================================================================

def main():
    """Run the import example."""
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    scene_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        result = import_arm(scene_path)
    except FileNotFoundError as e:
        print(f"\nError: {e}")
        return

    pose_and_export(result, OUTPUT_DIR)

    print("\n" + "=" * 60)
    print("Pipeline Complete!")
    print("=" * 60)
    print(f"\nOutput files saved to: {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
