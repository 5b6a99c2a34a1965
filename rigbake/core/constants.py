"""
Centralized constants for rigbake.

This module defines the default values and numeric constants shared by the
skeleton, skin weight and mesh optimization stages.

Usage:
    from rigbake.core.constants import MAX_INFLUENCES, NO_PARENT

    def resolve(max_influences: int = MAX_INFLUENCES):
        ...
"""

# =============================================================================
# Skinning
# =============================================================================

# Number of (joint slot, weight) pairs stored per vertex
MAX_INFLUENCES: int = 4

# Tolerance on the sum of normalized weights
WEIGHT_SUM_TOLERANCE: float = 1e-5

# Joint slot and weight used to pad missing influences
PAD_JOINT_SLOT: int = 0
PAD_WEIGHT: float = 0.0


# =============================================================================
# Skeleton
# =============================================================================

# Parent index of the root joint
NO_PARENT: int = -1

# Per-element tolerance for pose round trips
POSE_TOLERANCE: float = 1e-5

# Node attribute tags
ATTRIBUTE_SKELETON: str = "skeleton"
ATTRIBUTE_MESH: str = "mesh"
ATTRIBUTE_NULL: str = "null"


# =============================================================================
# Mesh
# =============================================================================

# Vertex deduplication strategies
DEDUP_HASH: str = "hash"
DEDUP_LINEAR: str = "linear"
DEDUP_STRATEGIES = (DEDUP_HASH, DEDUP_LINEAR)

# Texture extensions rewritten at import (source -> runtime)
DEFAULT_TEXTURE_EXTENSION_MAP = {".tga": ".png"}


# =============================================================================
# Issue kinds
# =============================================================================

# These constants keep issue naming consistent across the pipeline

ISSUE_UNRESOLVED_MATERIAL: str = "unresolved_material"
ISSUE_MALFORMED_MESH: str = "malformed_mesh"
ISSUE_DEGENERATE_WEIGHTS: str = "degenerate_cluster_weights"
ISSUE_UNKNOWN_JOINT: str = "unknown_joint"
ISSUE_MISSING_NORMALS: str = "missing_normals"
ISSUE_MULTIPLE_MATERIALS: str = "multiple_materials"

# Issue kinds that drop the mesh from the result
DROPPING_ISSUES = (ISSUE_UNRESOLVED_MATERIAL, ISSUE_MALFORMED_MESH)
