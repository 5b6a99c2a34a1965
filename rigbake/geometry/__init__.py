"""
Geometry helpers for rigbake.

Affine inverse, TRS composition and decomposition, and FBX-style
geometric transforms.
"""

from .transforms import (
    is_affine,
    affine_inverse,
    compose_matrix,
    decompose_matrix,
    geometric_transform,
    transform_points,
    matrices_close,
)

__all__ = [
    "is_affine",
    "affine_inverse",
    "compose_matrix",
    "decompose_matrix",
    "geometric_transform",
    "transform_points",
    "matrices_close",
]
