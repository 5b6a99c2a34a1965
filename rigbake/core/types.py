"""
Type aliases and array conventions for rigbake.

Matrix Convention:
==================

All pose matrices are 4x4 float64 arrays using the column-vector convention:

    p_world = M @ [x, y, z, 1]

so the translation lives in ``M[:3, 3]`` and composition reads right to left:

    global_pose = parent_global_pose @ local_pose

Stream Convention:
==================

Per-polygon-vertex streams are 2D arrays with one row per polygon-vertex:

    positions:  (N, 3) float64
    normals:    (N, 3) float64
    texcoords:  (N, 2) float64, or shape (0, 2) when the mesh has no UVs
    joints:     (N, 4) int32 joint slots, or shape (0, 4) when unskinned
    weights:    (N, 4) float64, or shape (0, 4) when unskinned
"""

from typing import Tuple, Union, Sequence
import numpy as np


# =============================================================================
# Basic Type Aliases
# =============================================================================

# 4x4 affine pose matrix (column-vector convention)
Matrix4 = np.ndarray

# Anything numpy can turn into a 4x4 matrix
MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]

# Single (joint slot, weight) pair
Influence = Tuple[int, float]

# Per-polygon-vertex attribute stream (N, D)
Stream = np.ndarray


def as_matrix4(value: MatrixLike, name: str = "matrix") -> Matrix4:
    """
    Convert a value to a float64 4x4 matrix.

    Args:
        value: Nested sequence or array with 16 elements in row-major order
        name: Name for error messages

    Returns:
        (4, 4) float64 array (always a copy)

    Raises:
        ValueError: If the value cannot be shaped into a 4x4 matrix
    """
    matrix = np.array(value, dtype=np.float64)
    if matrix.shape == (16,):
        matrix = matrix.reshape(4, 4)
    if matrix.shape != (4, 4):
        raise ValueError(f"{name} should be a 4x4 matrix, got shape {matrix.shape}")
    return matrix


def validate_stream(
    stream: np.ndarray,
    width: int,
    expected_rows: int = None,
    name: str = "stream"
) -> None:
    """
    Validate that an array follows the per-polygon-vertex stream convention.

    Args:
        stream: Array to validate
        width: Expected number of columns
        expected_rows: Expected number of rows (None to skip the check)
        name: Name for error messages

    Raises:
        ValueError: If the array does not match the convention
    """
    if stream.ndim != 2 or stream.shape[1] != width:
        raise ValueError(
            f"{name} should have shape (N, {width}), got {stream.shape}"
        )

    if expected_rows is not None and stream.shape[0] != expected_rows:
        raise ValueError(
            f"{name} should have {expected_rows} rows, got {stream.shape[0]}"
        )
