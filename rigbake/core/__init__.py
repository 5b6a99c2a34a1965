"""
Core module for rigbake.

Contains:
- Constants: Centralized default values and issue kinds
- Types: Type aliases and array conventions
- Errors: Exception hierarchy and reported import issues
"""

from .constants import (
    # Skinning
    MAX_INFLUENCES,
    WEIGHT_SUM_TOLERANCE,
    # Skeleton
    NO_PARENT,
    POSE_TOLERANCE,
    ATTRIBUTE_SKELETON,
    ATTRIBUTE_MESH,
    ATTRIBUTE_NULL,
    # Mesh
    DEDUP_HASH,
    DEDUP_LINEAR,
    DEDUP_STRATEGIES,
    # Issue kinds
    ISSUE_UNRESOLVED_MATERIAL,
    ISSUE_MALFORMED_MESH,
    ISSUE_DEGENERATE_WEIGHTS,
    ISSUE_UNKNOWN_JOINT,
    ISSUE_MISSING_NORMALS,
    ISSUE_MULTIPLE_MATERIALS,
)

from .types import (
    Matrix4,
    MatrixLike,
    Influence,
    Stream,
    as_matrix4,
    validate_stream,
)

from .errors import (
    RigbakeError,
    MalformedHierarchy,
    UnresolvedMaterial,
    MalformedMesh,
    ImportIssue,
)

__all__ = [
    # Constants
    "MAX_INFLUENCES",
    "WEIGHT_SUM_TOLERANCE",
    "NO_PARENT",
    "POSE_TOLERANCE",
    "ATTRIBUTE_SKELETON",
    "ATTRIBUTE_MESH",
    "ATTRIBUTE_NULL",
    "DEDUP_HASH",
    "DEDUP_LINEAR",
    "DEDUP_STRATEGIES",
    "ISSUE_UNRESOLVED_MATERIAL",
    "ISSUE_MALFORMED_MESH",
    "ISSUE_DEGENERATE_WEIGHTS",
    "ISSUE_UNKNOWN_JOINT",
    "ISSUE_MISSING_NORMALS",
    "ISSUE_MULTIPLE_MATERIALS",
    # Types
    "Matrix4",
    "MatrixLike",
    "Influence",
    "Stream",
    "as_matrix4",
    "validate_stream",
    # Errors
    "RigbakeError",
    "MalformedHierarchy",
    "UnresolvedMaterial",
    "MalformedMesh",
    "ImportIssue",
]
