"""
Tests for skin weight resolution.

Run with: pytest tests/test_skin_weights.py -v
"""

import numpy as np
import pytest

from rigbake.core import MalformedMesh, WEIGHT_SUM_TOLERANCE
from rigbake.geometry import affine_inverse, compose_matrix
from rigbake.pipeline import (
    SkinWeightResolver,
    cap_influences,
    cluster_inverse_bind_pose,
    resolve_skin_weights,
)
from rigbake.scene import MeshGeometry, SkinCluster, SkinDeformer
from rigbake.skeleton import Joint, Skeleton


def _cluster(name, indices, weights, transform=None, link=None):
    return SkinCluster(
        joint_name=name,
        control_point_indices=np.asarray(indices),
        weights=np.asarray(weights, dtype=np.float64),
        transform_matrix=np.eye(4) if transform is None else transform,
        transform_link_matrix=np.eye(4) if link is None else link,
    )


def _geometry(clusters, num_cp=3, polygon_vertices=None, geometric=None):
    if polygon_vertices is None:
        polygon_vertices = np.arange(num_cp)
    return MeshGeometry(
        control_points=np.zeros((num_cp, 3)),
        polygon_vertices=np.asarray(polygon_vertices),
        skin=SkinDeformer(clusters=list(clusters)),
        geometric_transform=geometric,
    )


class TestCapInfluences:
    """Tests for per-control-point capping and normalization."""

    def test_five_clusters(self):
        """The four largest of [0.1, 0.3, 0.05, 0.4, 0.15] survive, renormalized."""
        contributions = list(enumerate([0.1, 0.3, 0.05, 0.4, 0.15]))

        pairs, degenerate = cap_influences(contributions)

        slots = [slot for slot, _ in pairs]
        weights = np.array([weight for _, weight in pairs])
        assert slots == [3, 1, 4, 0]
        assert np.allclose(weights, np.array([0.4, 0.3, 0.15, 0.1]) / 0.95)
        assert abs(weights.sum() - 1.0) < WEIGHT_SUM_TOLERANCE
        assert not degenerate

    def test_ties_keep_encounter_order(self):
        """Equal weights keep cluster order."""
        pairs, _ = cap_influences([(0, 0.25), (1, 0.25), (2, 0.5)])
        assert [slot for slot, _ in pairs] == [2, 0, 1, 0]
        assert np.allclose([w for _, w in pairs], [0.5, 0.25, 0.25, 0.0])

    def test_padding(self):
        """Fewer than four influences are padded with (0, 0.0)."""
        pairs, _ = cap_influences([(2, 2.0)])
        assert pairs == [(2, 1.0), (0, 0.0), (0, 0.0), (0, 0.0)]

    def test_no_influences(self):
        """A control point without clusters is unskinned, not degenerate."""
        pairs, degenerate = cap_influences([])
        assert pairs == [(0, 0.0)] * 4
        assert not degenerate

    def test_zero_weights_are_degenerate(self):
        """All-zero weights resolve to four (0, 0.0) pairs."""
        pairs, degenerate = cap_influences([(1, 0.0), (2, 0.0)])
        assert pairs == [(0, 0.0)] * 4
        assert degenerate

    def test_max_influences(self):
        """Only max_influences pairs are kept before padding."""
        pairs, _ = cap_influences([(0, 0.2), (1, 0.5), (2, 0.3)], max_influences=2)
        assert [slot for slot, _ in pairs] == [1, 2, 0, 0]
        assert np.allclose([w for _, w in pairs], [0.625, 0.375, 0.0, 0.0])


class TestSkinWeightResolver:
    """Tests for mesh-level weight resolution."""

    def test_five_cluster_control_point(self):
        """One control point influenced by five clusters."""
        weights = [0.1, 0.3, 0.05, 0.4, 0.15]
        clusters = [_cluster(f'j{i}', [0], [w]) for i, w in enumerate(weights)]

        result = resolve_skin_weights(_geometry(clusters))

        assert result.joint_names == ['j0', 'j1', 'j2', 'j3', 'j4']
        assert list(result.joint_indices[0]) == [3, 1, 4, 0]
        assert np.allclose(result.weights[0], np.array([0.4, 0.3, 0.15, 0.1]) / 0.95)
        assert np.all(result.weights[1:] == 0.0)

    def test_expands_to_polygon_vertices(self):
        """Rows follow the polygon-vertex map."""
        clusters = [_cluster('a', [0, 1], [1.0, 0.25]), _cluster('b', [1, 2], [0.75, 1.0])]

        result = resolve_skin_weights(_geometry(clusters, polygon_vertices=[0, 1, 2, 1, 1]))

        assert result.joint_indices.shape == (5, 4)
        assert result.weights.shape == (5, 4)
        assert result.joint_indices.dtype == np.int32
        assert np.array_equal(result.weights[1], result.weights[3])
        assert list(result.joint_indices[1][:2]) == [1, 0]
        assert np.allclose(result.weights[1][:2], [0.75, 0.25])

    def test_normalization_property(self, rng):
        """Skinned rows sum to one and are non-increasing."""
        num_cp = 20
        clusters = []
        for j in range(7):
            indices = rng.choice(num_cp, size=10, replace=False)
            clusters.append(_cluster(f'j{j}', indices, rng.uniform(0.0, 1.0, size=10)))

        result = resolve_skin_weights(_geometry(clusters, num_cp=num_cp))

        sums = result.weights.sum(axis=1)
        skinned = sums > 0
        assert np.all(np.abs(sums[skinned] - 1.0) < WEIGHT_SUM_TOLERANCE)
        assert np.all(result.weights[~skinned] == 0.0)
        assert np.all(np.diff(result.weights, axis=1) <= 1e-12)

    def test_degenerate_control_points_reported(self):
        """Zero total weight is reported per control point."""
        clusters = [_cluster('a', [0, 1], [0.0, 1.0]), _cluster('b', [0], [0.0])]

        result = resolve_skin_weights(_geometry(clusters))

        assert result.degenerate_control_points == [0]
        assert np.all(result.weights[0] == 0.0)
        assert np.all(result.joint_indices[0] == 0)
        assert result.weights[1][0] == 1.0

    def test_writes_inverse_bind_poses(self):
        """Each cluster's inverse bind pose lands in the joint of the same name."""
        skeleton = Skeleton([Joint('root'), Joint('arm', 0)])
        link = compose_matrix([0.0, 1.0, 0.0])
        clusters = [_cluster('arm', [0], [1.0], link=link)]

        SkinWeightResolver().resolve(_geometry(clusters), skeleton)

        assert np.allclose(skeleton.get_joint('arm').inverse_bind_pose[:3, 3], [0.0, -1.0, 0.0])
        assert np.allclose(skeleton.get_joint('root').inverse_bind_pose, np.eye(4))

    def test_invalid_skin_leaves_skeleton_untouched(self):
        """A later malformed cluster keeps earlier bind poses out of the skeleton."""
        skeleton = Skeleton([Joint('root'), Joint('arm', 0)])
        clusters = [
            _cluster('arm', [0], [1.0], link=compose_matrix([5.0, 0.0, 0.0])),
            _cluster('root', [0, 1], [0.5, 0.5, 0.5]),
        ]

        with pytest.raises(MalformedMesh):
            SkinWeightResolver().resolve(_geometry(clusters), skeleton)

        assert np.allclose(skeleton.get_joint('arm').inverse_bind_pose, np.eye(4))

    def test_bad_polygon_vertices_leave_skeleton_untouched(self):
        """The polygon-vertex range check runs before any bind pose is written."""
        skeleton = Skeleton([Joint('root')])
        clusters = [_cluster('root', [0], [1.0], link=compose_matrix([0.0, 2.0, 0.0]))]

        with pytest.raises(MalformedMesh):
            SkinWeightResolver().resolve(_geometry(clusters, polygon_vertices=[0, 1, 9]), skeleton)

        assert np.allclose(skeleton.get_joint('root').inverse_bind_pose, np.eye(4))

    def test_deferred_bind_poses(self):
        """write_bind_poses=False returns the poses for the caller to apply."""
        skeleton = Skeleton([Joint('root'), Joint('arm', 0)])
        link = compose_matrix([0.0, 1.0, 0.0])
        clusters = [_cluster('arm', [0], [1.0], link=link), _cluster('ghost', [1], [1.0])]

        result = SkinWeightResolver().resolve(_geometry(clusters), skeleton, write_bind_poses=False)

        assert np.allclose(skeleton.get_joint('arm').inverse_bind_pose, np.eye(4))
        assert [name for name, _ in result.inverse_bind_poses] == ['arm']

        result.apply_bind_poses(skeleton)

        assert np.allclose(skeleton.get_joint('arm').inverse_bind_pose[:3, 3], [0.0, -1.0, 0.0])

    def test_unknown_joints_keep_weights(self):
        """Clusters naming missing joints are reported but still contribute."""
        skeleton = Skeleton([Joint('root')])
        clusters = [_cluster('root', [0], [0.5]), _cluster('ghost', [0], [0.5])]

        result = resolve_skin_weights(_geometry(clusters), skeleton)

        assert result.unknown_joints == ['ghost']
        assert np.allclose(result.weights[0][:2], [0.5, 0.5])

    def test_without_skeleton(self):
        """Every cluster joint is unknown without a skeleton."""
        result = resolve_skin_weights(_geometry([_cluster('a', [0], [1.0])]))
        assert result.unknown_joints == ['a']

    def test_out_of_range_control_point_raises(self):
        """Cluster indices past the control points are malformed."""
        with pytest.raises(MalformedMesh):
            resolve_skin_weights(_geometry([_cluster('a', [5], [1.0])]))

    def test_mismatched_cluster_arrays_raise(self):
        """Index and weight arrays must have equal length."""
        with pytest.raises(MalformedMesh):
            resolve_skin_weights(_geometry([_cluster('a', [0, 1], [1.0])]))

    def test_no_skin_raises(self):
        """Resolving a mesh without a skin deformer is malformed."""
        geometry = MeshGeometry(np.zeros((3, 3)), np.arange(3))
        with pytest.raises(MalformedMesh):
            SkinWeightResolver().resolve(geometry)

    @pytest.mark.parametrize("max_influences", [0, 5])
    def test_invalid_max_influences(self, max_influences):
        """max_influences must be in [1, 4]."""
        with pytest.raises(ValueError):
            SkinWeightResolver(max_influences)


class TestClusterInverseBindPose:
    """Tests for the cluster inverse bind pose."""

    def test_composition_order(self):
        """inverse(link @ transform @ geometric)."""
        link = compose_matrix([0.0, 1.0, 0.0], [np.cos(0.3), 0.0, np.sin(0.3), 0.0])
        transform = compose_matrix(scale=[2.0, 2.0, 2.0])
        geometric = compose_matrix([1.0, 0.0, 0.0])
        cluster = _cluster('a', [], [], transform=transform, link=link)

        result = cluster_inverse_bind_pose(cluster, geometric)

        assert np.allclose(result, np.linalg.inv(link @ transform @ geometric))

    def test_without_geometric(self):
        """No geometric transform means identity."""
        link = compose_matrix([3.0, 0.0, 0.0])
        cluster = _cluster('a', [], [], link=link)
        assert np.allclose(cluster_inverse_bind_pose(cluster), affine_inverse(link))

    def test_singular_raises(self):
        """A singular bind pose is malformed."""
        cluster = _cluster('a', [], [], link=np.diag([0.0, 1.0, 1.0, 1.0]))
        with pytest.raises(MalformedMesh):
            cluster_inverse_bind_pose(cluster)
