"""
Affine transform utilities for pose matrices.

All matrices are 4x4 float64 with the column-vector convention described in
rigbake.core.types. Rotations are exchanged as quaternions [w, x, y, z];
scipy's Rotation (which uses [x, y, z, w]) does the heavy lifting.
"""

from typing import Optional, Sequence, Tuple
import logging

import numpy as np
from scipy.spatial.transform import Rotation

from ..core.types import Matrix4, MatrixLike, as_matrix4

logger = logging.getLogger(__name__)

_AFFINE_BOTTOM_ROW = np.array([0.0, 0.0, 0.0, 1.0])


def is_affine(matrix: MatrixLike, atol: float = 1e-12) -> bool:
    """Check that the bottom row of a 4x4 matrix is [0, 0, 0, 1]."""
    matrix = np.asarray(matrix, dtype=np.float64)
    return bool(np.allclose(matrix[3], _AFFINE_BOTTOM_ROW, atol=atol, rtol=0.0))


def affine_inverse(matrix: MatrixLike) -> Matrix4:
    """
    Invert an affine (translation + rotation + scale) transform.

    Inverts only the 3x3 linear part and back-rotates the translation:

        inv([A t; 0 1]) = [A^-1  -A^-1 t; 0 1]

    Matrices with a projective bottom row fall back to a general inverse.

    Args:
        matrix: 4x4 affine matrix

    Returns:
        (4, 4) inverse

    Raises:
        numpy.linalg.LinAlgError: If the linear part is singular
    """
    matrix = as_matrix4(matrix)

    if not is_affine(matrix):
        logger.debug("Matrix is not affine, using general inverse")
        return np.linalg.inv(matrix)

    linear_inv = np.linalg.inv(matrix[:3, :3])

    result = np.eye(4, dtype=np.float64)
    result[:3, :3] = linear_inv
    result[:3, 3] = -linear_inv @ matrix[:3, 3]
    return result


def compose_matrix(
    translation: Optional[Sequence[float]] = None,
    quaternion: Optional[Sequence[float]] = None,
    scale: Optional[Sequence[float]] = None
) -> Matrix4:
    """
    Build T @ R @ S from translation, rotation and scale.

    Args:
        translation: (3,) translation, defaults to zero
        quaternion: (4,) rotation [w, x, y, z], defaults to identity
        scale: (3,) per-axis scale, defaults to one

    Returns:
        (4, 4) affine matrix
    """
    matrix = np.eye(4, dtype=np.float64)

    if quaternion is not None:
        w, x, y, z = quaternion
        matrix[:3, :3] = Rotation.from_quat([x, y, z, w]).as_matrix()

    if scale is not None:
        matrix[:3, :3] = matrix[:3, :3] * np.asarray(scale, dtype=np.float64)

    if translation is not None:
        matrix[:3, 3] = np.asarray(translation, dtype=np.float64)

    return matrix


def decompose_matrix(matrix: MatrixLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Decompose a 4x4 affine matrix into translation, rotation and scale.

    Args:
        matrix: 4x4 affine matrix without shear

    Returns:
        translation: (3,) translation vector
        quaternion: (4,) unit quaternion [w, x, y, z]
        scale: (3,) per-axis scale (x is negated for mirrored matrices)
    """
    matrix = as_matrix4(matrix)

    translation = matrix[:3, 3].copy()
    linear = matrix[:3, :3].copy()

    # Remove scale from the rotation columns
    scale = np.linalg.norm(linear, axis=0)
    scale = np.maximum(scale, 1e-12)
    if np.linalg.det(linear) < 0:
        scale[0] = -scale[0]
    rotation_matrix = linear / scale

    x, y, z, w = Rotation.from_matrix(rotation_matrix).as_quat()
    quaternion = np.array([w, x, y, z], dtype=np.float64)

    return translation, quaternion, scale


def geometric_transform(
    translation: Optional[Sequence[float]] = None,
    rotation_degrees: Optional[Sequence[float]] = None,
    scaling: Optional[Sequence[float]] = None
) -> Matrix4:
    """
    Build a node's geometric (pivot) transform from FBX-style components.

    Rotation is given as XYZ Euler angles in degrees, applied X first.

    Args:
        translation: (3,) geometric translation
        rotation_degrees: (3,) geometric rotation
        scaling: (3,) geometric scaling

    Returns:
        (4, 4) affine matrix T @ R @ S
    """
    quaternion = None
    if rotation_degrees is not None:
        x, y, z, w = Rotation.from_euler('xyz', rotation_degrees, degrees=True).as_quat()
        quaternion = [w, x, y, z]

    return compose_matrix(translation, quaternion, scaling)


def transform_points(matrix: MatrixLike, points: np.ndarray) -> np.ndarray:
    """Apply a 4x4 transform to points (N, 3)."""
    matrix = np.asarray(matrix, dtype=np.float64)
    points = np.asarray(points, dtype=np.float64)
    return points @ matrix[:3, :3].T + matrix[:3, 3]


def matrices_close(a: MatrixLike, b: MatrixLike, atol: float = 1e-5) -> bool:
    """Element-wise comparison of two matrices with an absolute tolerance."""
    return bool(np.allclose(np.asarray(a), np.asarray(b), atol=atol, rtol=0.0))
