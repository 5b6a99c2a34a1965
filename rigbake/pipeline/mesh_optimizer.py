"""
Vertex deduplication into indexed meshes.

Every polygon-vertex becomes a packed record (position, normal, uv, four
joint slots, four weights). Records with identical bytes collapse into a
single vertex; the index buffer keeps one entry per polygon-vertex so the
original draw order is preserved.

Strategies:
- 'hash': dict keyed by the record bytes, O(N)
- 'linear': scan of the vertices emitted so far, O(N * V)

Both emit vertices in first-seen order and produce identical output.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from ..core.constants import DEDUP_HASH, DEDUP_STRATEGIES, MAX_INFLUENCES
from ..core.errors import MalformedMesh
from ..core.types import Influence, validate_stream

logger = logging.getLogger(__name__)


# =============================================================================
# Vertex Layout
# =============================================================================

# Packed record: the bytes of one row are the vertex identity
VERTEX_DTYPE = np.dtype([
    ('position', '<f8', (3,)),
    ('normal', '<f8', (3,)),
    ('uv', '<f8', (2,)),
    ('joints', '<i4', (MAX_INFLUENCES,)),
    ('weights', '<f8', (MAX_INFLUENCES,)),
])


class Vertex:
    """
    Single packed vertex.

    Equality and hashing use the raw record bytes, so 0.0 and -0.0 are
    different vertices and NaNs with the same payload are equal.
    """

    __slots__ = ('_record',)

    def __init__(self, record: np.ndarray):
        """
        Args:
            record: Array of VERTEX_DTYPE with exactly one element
        """
        record = np.asarray(record, dtype=VERTEX_DTYPE).reshape(1)
        self._record = record.copy()

    @classmethod
    def from_fields(
        cls,
        position: Sequence[float],
        normal: Sequence[float],
        uv: Optional[Sequence[float]] = None,
        influences: Optional[Sequence[Influence]] = None
    ) -> 'Vertex':
        record = np.zeros(1, dtype=VERTEX_DTYPE)
        record['position'] = position
        record['normal'] = normal
        if uv is not None:
            record['uv'] = uv
        if influences is not None:
            influences = list(influences)
            if len(influences) != MAX_INFLUENCES:
                raise ValueError(f"Expected {MAX_INFLUENCES} influences, got {len(influences)}")
            record['joints'] = [slot for slot, _ in influences]
            record['weights'] = [weight for _, weight in influences]
        return cls(record)

    @property
    def position(self) -> np.ndarray:
        return self._record['position'][0].copy()

    @property
    def normal(self) -> np.ndarray:
        return self._record['normal'][0].copy()

    @property
    def uv(self) -> np.ndarray:
        return self._record['uv'][0].copy()

    @property
    def influences(self) -> List[Influence]:
        return list(zip(
            self._record['joints'][0].tolist(),
            self._record['weights'][0].tolist(),
        ))

    @property
    def key(self) -> bytes:
        return self._record.tobytes()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vertex):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return (
            f"Vertex(position={self.position.tolist()}, normal={self.normal.tolist()}, "
            f"uv={self.uv.tolist()}, influences={self.influences})"
        )


def pack_vertices(
    positions: np.ndarray,
    normals: np.ndarray,
    uvs: Optional[np.ndarray] = None,
    joints: Optional[np.ndarray] = None,
    weights: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Pack per-polygon-vertex streams into VERTEX_DTYPE records.

    Empty or missing UV and influence streams fall back to zeros.

    Args:
        positions: (N, 3)
        normals: (N, 3)
        uvs: (N, 2), or None / empty
        joints: (N, 4) joint slots, or None / empty
        weights: (N, 4), or None / empty

    Returns:
        (N,) structured array

    Raises:
        MalformedMesh: If stream shapes disagree
    """
    positions = np.asarray(positions, dtype=np.float64)
    N = positions.shape[0] if positions.ndim == 2 else -1
    streams = [
        ('position', positions, 3, True),
        ('normal', normals, 3, True),
        ('uv', uvs, 2, False),
        ('joints', joints, MAX_INFLUENCES, False),
        ('weights', weights, MAX_INFLUENCES, False),
    ]

    packed = np.zeros(max(N, 0), dtype=VERTEX_DTYPE)
    for name, stream, width, required in streams:
        if stream is None:
            if required:
                raise MalformedMesh(f"Missing {name} stream")
            continue
        stream = np.asarray(stream)
        if not required and stream.size == 0:
            continue
        try:
            validate_stream(stream, width, N, name)
        except ValueError as e:
            raise MalformedMesh(str(e)) from e
        packed[name] = stream

    if (joints is None or np.asarray(joints).size == 0) != (weights is None or np.asarray(weights).size == 0):
        raise MalformedMesh("Joint and weight streams must both be present or both be empty")

    return packed


def deduplicate(packed: np.ndarray, strategy: str = DEDUP_HASH) -> Tuple[np.ndarray, np.ndarray]:
    """
    Collapse byte-identical records.

    Args:
        packed: (N,) VERTEX_DTYPE records
        strategy: 'hash' or 'linear'

    Returns:
        Tuple of:
        - vertices: (V,) unique records in first-seen order
        - indices: (N,) int64, vertices[indices[i]] == packed[i]
    """
    if strategy not in DEDUP_STRATEGIES:
        raise ValueError(f"Unknown dedup strategy '{strategy}', expected one of {DEDUP_STRATEGIES}")

    N = packed.shape[0]
    rows = np.ascontiguousarray(packed).view(np.uint8).reshape(N, VERTEX_DTYPE.itemsize)
    indices = np.empty(N, dtype=np.int64)
    first_seen: List[int] = []

    if strategy == DEDUP_HASH:
        lookup: Dict[bytes, int] = {}
        for i in range(N):
            key = rows[i].tobytes()
            index = lookup.get(key)
            if index is None:
                index = len(first_seen)
                lookup[key] = index
                first_seen.append(i)
            indices[i] = index
    else:
        emitted: List[bytes] = []
        for i in range(N):
            key = rows[i].tobytes()
            for index, existing in enumerate(emitted):
                if existing == key:
                    break
            else:
                index = len(emitted)
                emitted.append(key)
                first_seen.append(i)
            indices[i] = index

    return packed[np.asarray(first_seen, dtype=np.int64)], indices


# =============================================================================
# Indexed Mesh
# =============================================================================

class Mesh:
    """
    Imported mesh: deduplicated vertex records plus an index buffer.

    Attributes:
        node_name: Scene node that owned the geometry
        material_name: Referenced material
        vertices: (V,) VERTEX_DTYPE records, first-seen order
        indices: (N,) one entry per original polygon-vertex
        joint_names: Joint slot -> joint name (empty when unskinned)
        is_skinned: True if the mesh carries an influence table
        has_texcoord0: True if the mesh carries a UV set
    """

    def __init__(
        self,
        node_name: str,
        material_name: Optional[str],
        vertices: np.ndarray,
        indices: np.ndarray,
        joint_names: Optional[Sequence[str]] = None,
        is_skinned: bool = False,
        has_texcoord0: bool = False
    ):
        self.node_name = node_name
        self.material_name = material_name

        self.vertices = np.array(vertices, dtype=VERTEX_DTYPE)
        self.indices = np.array(indices, dtype=np.int64)
        self.vertices.flags.writeable = False
        self.indices.flags.writeable = False

        self.joint_names: List[str] = list(joint_names) if joint_names else []
        self.is_skinned = bool(is_skinned)
        self.has_texcoord0 = bool(has_texcoord0)

    # -------------------------------------------------------------------------
    # Stream views
    # -------------------------------------------------------------------------

    @property
    def num_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def num_indices(self) -> int:
        return int(self.indices.shape[0])

    @property
    def positions(self) -> np.ndarray:
        return self.vertices['position']

    @property
    def normals(self) -> np.ndarray:
        return self.vertices['normal']

    @property
    def texcoords0(self) -> np.ndarray:
        return self.vertices['uv'] if self.has_texcoord0 else np.zeros((0, 2))

    @property
    def joint_indices(self) -> np.ndarray:
        return self.vertices['joints'] if self.is_skinned else np.zeros((0, MAX_INFLUENCES), dtype=np.int32)

    @property
    def joint_weights(self) -> np.ndarray:
        return self.vertices['weights'] if self.is_skinned else np.zeros((0, MAX_INFLUENCES))

    @property
    def triangles(self) -> np.ndarray:
        """Index buffer as (T, 3) faces."""
        if self.num_indices % 3:
            raise ValueError(
                f"Mesh '{self.node_name}' has {self.num_indices} indices, not a triangle list"
            )
        return self.indices.reshape(-1, 3)

    def vertex(self, index: int) -> Vertex:
        return Vertex(self.vertices[index])

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def to_gpu_arrays(self) -> Dict[str, np.ndarray]:
        """
        Renderer-ready buffers.

        Returns:
            Dict with float32 'positions' and 'normals', uint32 'indices', plus
            float32 'texcoords0' when present, and uint8 'joint_indices' with
            float32 'joint_weights' for skinned meshes
        """
        arrays = {
            'positions': self.positions.astype(np.float32),
            'normals': self.normals.astype(np.float32),
            'indices': self.indices.astype(np.uint32),
        }
        if self.has_texcoord0:
            arrays['texcoords0'] = self.texcoords0.astype(np.float32)
        if self.is_skinned:
            if len(self.joint_names) > 256:
                raise ValueError(
                    f"Mesh '{self.node_name}' has {len(self.joint_names)} joints, "
                    "more than uint8 joint indices can address"
                )
            arrays['joint_indices'] = self.joint_indices.astype(np.uint8)
            arrays['joint_weights'] = self.joint_weights.astype(np.float32)
        return arrays

    def to_trimesh(self):
        """Convert to a trimesh.Trimesh without merging or reordering vertices."""
        import trimesh

        visual = None
        if self.has_texcoord0:
            visual = trimesh.visual.TextureVisuals(uv=self.texcoords0.copy())

        return trimesh.Trimesh(
            vertices=self.positions.copy(),
            faces=self.triangles.copy(),
            vertex_normals=self.normals.copy(),
            visual=visual,
            process=False,
        )

    def __repr__(self) -> str:
        return (
            f"Mesh({self.node_name!r}, material={self.material_name!r}, "
            f"vertices={self.num_vertices}, indices={self.num_indices}, "
            f"joints={len(self.joint_names)})"
        )


def optimize_mesh(
    positions: np.ndarray,
    normals: np.ndarray,
    uvs: Optional[np.ndarray] = None,
    joints: Optional[np.ndarray] = None,
    weights: Optional[np.ndarray] = None,
    strategy: str = DEDUP_HASH,
    node_name: str = '',
    material_name: Optional[str] = None,
    joint_names: Optional[Sequence[str]] = None
) -> Mesh:
    """
    Deduplicate per-polygon-vertex streams into an indexed Mesh.

    Args:
        positions: (N, 3)
        normals: (N, 3)
        uvs: (N, 2), or None / empty
        joints: (N, 4) joint slots, or None / empty
        weights: (N, 4), or None / empty
        strategy: 'hash' or 'linear'
        node_name: Owning node name
        material_name: Referenced material
        joint_names: Joint slot -> joint name

    Returns:
        Mesh with len(indices) == N and first-seen vertex order

    Raises:
        MalformedMesh: If stream shapes disagree

    Example:
        >>> mesh = optimize_mesh(positions, normals, uvs)  # two triangles sharing an edge
        >>> mesh.num_vertices, mesh.num_indices
        (4, 6)
    """
    packed = pack_vertices(positions, normals, uvs, joints, weights)
    vertices, indices = deduplicate(packed, strategy)

    has_uv = uvs is not None and np.asarray(uvs).size > 0
    is_skinned = joints is not None and np.asarray(joints).size > 0

    logger.info(
        f"Optimized mesh '{node_name}': {packed.shape[0]} polygon-vertices -> "
        f"{vertices.shape[0]} vertices [{strategy}]"
    )

    return Mesh(
        node_name=node_name,
        material_name=material_name,
        vertices=vertices,
        indices=indices,
        joint_names=joint_names if is_skinned else None,
        is_skinned=is_skinned,
        has_texcoord0=has_uv,
    )
