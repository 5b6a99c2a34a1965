"""
Tests for affine transform utilities.
"""

import numpy as np
import pytest

from rigbake.core import as_matrix4
from rigbake.geometry import (
    affine_inverse,
    compose_matrix,
    decompose_matrix,
    geometric_transform,
    is_affine,
    matrices_close,
    transform_points,
)


def _random_quaternion(rng):
    q = rng.normal(size=4)
    return q / np.linalg.norm(q)


class TestAffineInverse:
    """Tests for affine_inverse."""

    def test_inverse_of_identity(self):
        """Identity inverts to identity."""
        assert np.allclose(affine_inverse(np.eye(4)), np.eye(4))

    def test_inverse_of_trs(self, rng):
        """M @ inverse(M) is identity for random TRS matrices."""
        for _ in range(10):
            matrix = compose_matrix(
                rng.normal(size=3),
                _random_quaternion(rng),
                rng.uniform(0.5, 2.0, size=3),
            )
            inverse = affine_inverse(matrix)
            assert np.allclose(matrix @ inverse, np.eye(4), atol=1e-10)
            assert np.allclose(inverse[3], [0.0, 0.0, 0.0, 1.0])

    def test_matches_general_inverse(self, rng):
        """Affine inverse agrees with numpy's general inverse."""
        matrix = compose_matrix([1.0, -2.0, 3.0], _random_quaternion(rng), [2.0, 1.0, 0.5])
        assert np.allclose(affine_inverse(matrix), np.linalg.inv(matrix))

    def test_translation_only(self):
        """Pure translation inverts to the negated translation."""
        matrix = compose_matrix([1.0, 2.0, 3.0])
        inverse = affine_inverse(matrix)
        assert np.allclose(inverse[:3, 3], [-1.0, -2.0, -3.0])
        assert np.allclose(inverse[:3, :3], np.eye(3))

    def test_projective_falls_back_to_general_inverse(self):
        """Non-affine matrices still invert."""
        matrix = np.eye(4)
        matrix[3, 2] = 0.5
        assert not is_affine(matrix)
        assert np.allclose(affine_inverse(matrix) @ matrix, np.eye(4))

    def test_singular_raises(self):
        """A singular linear part raises LinAlgError."""
        matrix = np.diag([1.0, 1.0, 0.0, 1.0])
        with pytest.raises(np.linalg.LinAlgError):
            affine_inverse(matrix)


class TestComposeDecompose:
    """Tests for TRS composition and decomposition."""

    def test_compose_defaults_to_identity(self):
        """No components gives identity."""
        assert np.allclose(compose_matrix(), np.eye(4))

    def test_rotation_about_z(self):
        """A 90 degree rotation about z maps x to y."""
        half = np.pi / 4
        matrix = compose_matrix(quaternion=[np.cos(half), 0.0, 0.0, np.sin(half)])
        result = transform_points(matrix, np.array([[1.0, 0.0, 0.0]]))
        assert np.allclose(result, [[0.0, 1.0, 0.0]])

    def test_round_trip(self, rng):
        """decompose(compose(t, q, s)) recovers t, q (up to sign) and s."""
        t = rng.normal(size=3)
        q = _random_quaternion(rng)
        s = np.array([1.5, 0.5, 2.0])

        t2, q2, s2 = decompose_matrix(compose_matrix(t, q, s))

        assert np.allclose(t2, t)
        assert np.allclose(s2, s)
        assert np.isclose(abs(np.dot(q, q2)), 1.0)

    def test_decompose_identity(self):
        """Identity decomposes to zero translation, identity rotation, unit scale."""
        t, q, s = decompose_matrix(np.eye(4))
        assert np.allclose(t, 0.0)
        assert np.allclose(q, [1.0, 0.0, 0.0, 0.0])
        assert np.allclose(s, 1.0)

    def test_decompose_mirrored(self):
        """Mirrored matrices get a negative x scale."""
        matrix = compose_matrix(scale=[-1.0, 1.0, 1.0])
        _, _, s = decompose_matrix(matrix)
        assert s[0] < 0


class TestGeometricTransform:
    """Tests for FBX-style geometric transforms."""

    def test_empty_is_identity(self):
        """No components gives identity."""
        assert np.allclose(geometric_transform(), np.eye(4))

    def test_rotation_in_degrees(self):
        """Rotation is XYZ Euler in degrees."""
        matrix = geometric_transform(rotation_degrees=[0.0, 0.0, 90.0])
        result = transform_points(matrix, np.array([[1.0, 0.0, 0.0]]))
        assert np.allclose(result, [[0.0, 1.0, 0.0]])

    def test_scale_then_translate(self):
        """Scale applies before translation (T @ R @ S)."""
        matrix = geometric_transform(translation=[1.0, 0.0, 0.0], scaling=[2.0, 2.0, 2.0])
        result = transform_points(matrix, np.array([[1.0, 0.0, 0.0]]))
        assert np.allclose(result, [[3.0, 0.0, 0.0]])


class TestMatrixHelpers:
    """Tests for matrix coercion and comparison."""

    def test_as_matrix4_accepts_flat(self):
        """16 elements reshape row-major."""
        matrix = as_matrix4(list(range(16)))
        assert matrix.shape == (4, 4)
        assert matrix[0, 3] == 3.0
        assert matrix.dtype == np.float64

    def test_as_matrix4_copies(self):
        """The result never aliases the input."""
        source = np.eye(4)
        matrix = as_matrix4(source)
        matrix[0, 0] = 5.0
        assert source[0, 0] == 1.0

    def test_as_matrix4_rejects_bad_shape(self):
        """3x3 input raises ValueError."""
        with pytest.raises(ValueError):
            as_matrix4(np.eye(3))

    def test_matrices_close(self):
        """Tolerance is absolute per element."""
        a = np.eye(4)
        b = np.eye(4)
        b[0, 3] = 5e-6
        assert matrices_close(a, b)
        b[0, 3] = 1e-3
        assert not matrices_close(a, b)
