"""
Immutable model asset types.

ModelData is built once per source file and then shared read-only by every
consumer. All arrays are copied on construction and flagged read-only.
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
import numpy as np

from ..core.constants import MAX_BONE_INFLUENCES, ROOT_PARENT_INDEX, WEIGHT_SUM_TOLERANCE
from ..core.exceptions import SkeletonError
from ..core.types import BoneTransform
from ..utils.transforms import decompose_matrix
from .animation import AnimationCollection


def _frozen(value, dtype, shape: Tuple[int, ...] = None) -> np.ndarray:
    array = np.array(value, dtype=dtype)
    if shape is not None:
        array = array.reshape(shape)
    array.setflags(write=False)
    return array


# =============================================================================
# Geometry
# =============================================================================

@dataclass(frozen=True, eq=False)
class BoundingBox:
    """Axis-aligned bounding box."""
    minimum: np.ndarray
    maximum: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, 'minimum', _frozen(self.minimum, np.float32, (3,)))
        object.__setattr__(self, 'maximum', _frozen(self.maximum, np.float32, (3,)))

    @classmethod
    def from_points(cls, points: np.ndarray) -> 'BoundingBox':
        """Tight box around (N, 3) points; a zero box when there are none."""
        points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
        if points.shape[0] == 0:
            return cls(np.zeros(3), np.zeros(3))
        return cls(points.min(axis=0), points.max(axis=0))

    @classmethod
    def union(cls, boxes: Iterable['BoundingBox']) -> 'BoundingBox':
        """Smallest box enclosing all `boxes`."""
        boxes = list(boxes)
        if not boxes:
            return cls(np.zeros(3), np.zeros(3))
        return cls(
            np.min([b.minimum for b in boxes], axis=0),
            np.max([b.maximum for b in boxes], axis=0),
        )

    @property
    def center(self) -> np.ndarray:
        return (self.minimum + self.maximum) * 0.5

    @property
    def size(self) -> np.ndarray:
        return self.maximum - self.minimum


@dataclass(frozen=True, eq=False)
class Mesh:
    """
    Indexed triangle mesh with per-vertex skinning data.

    Attributes:
        name: Mesh name
        positions: (V, 3) float32
        normals: (V, 3) float32
        uvs: (V, 2) float32
        indices: (3T,) int32 flat triangle list
        material_index: Index into the source material list, -1 if none
        bone_indices: (V, 4) int32 bone slots
        bone_weights: (V, 4) float32 weights, each row sums to one
        bounds: Local-space bounding box of `positions`
    """
    name: str
    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray
    material_index: int = -1
    bone_indices: Optional[np.ndarray] = None
    bone_weights: Optional[np.ndarray] = None
    bounds: Optional[BoundingBox] = None

    def __post_init__(self):
        positions = _frozen(self.positions, np.float32).reshape(-1, 3)
        vertex_count = positions.shape[0]

        normals = _frozen(self.normals, np.float32).reshape(-1, 3)
        uvs = _frozen(self.uvs, np.float32).reshape(-1, 2)
        if normals.shape[0] != vertex_count or uvs.shape[0] != vertex_count:
            raise ValueError(
                f"Mesh '{self.name}': attribute lengths differ "
                f"(positions={vertex_count}, normals={normals.shape[0]}, uvs={uvs.shape[0]})"
            )

        indices = _frozen(self.indices, np.int32).reshape(-1)
        if indices.shape[0] % 3 != 0:
            raise ValueError(f"Mesh '{self.name}': index count {indices.shape[0]} is not a multiple of 3")
        if indices.shape[0] and (indices.min() < 0 or indices.max() >= vertex_count):
            raise ValueError(f"Mesh '{self.name}': triangle index out of range")

        if self.bone_indices is None:
            bone_indices = np.zeros((vertex_count, MAX_BONE_INFLUENCES), dtype=np.int32)
        else:
            bone_indices = np.array(self.bone_indices, dtype=np.int32)
        if self.bone_weights is None:
            bone_weights = np.zeros((vertex_count, MAX_BONE_INFLUENCES), dtype=np.float32)
            bone_weights[:, 0] = 1.0
        else:
            bone_weights = np.array(self.bone_weights, dtype=np.float32)
        expected = (vertex_count, MAX_BONE_INFLUENCES)
        if bone_indices.shape != expected or bone_weights.shape != expected:
            raise ValueError(
                f"Mesh '{self.name}': bone arrays must have shape {expected}, "
                f"got {bone_indices.shape} and {bone_weights.shape}"
            )
        bone_indices.setflags(write=False)
        bone_weights.setflags(write=False)

        object.__setattr__(self, 'positions', positions)
        object.__setattr__(self, 'normals', normals)
        object.__setattr__(self, 'uvs', uvs)
        object.__setattr__(self, 'indices', indices)
        object.__setattr__(self, 'material_index', int(self.material_index))
        object.__setattr__(self, 'bone_indices', bone_indices)
        object.__setattr__(self, 'bone_weights', bone_weights)
        if self.bounds is None:
            object.__setattr__(self, 'bounds', BoundingBox.from_points(positions))

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0] // 3)

    @property
    def triangles(self) -> np.ndarray:
        """(T, 3) view of the index buffer."""
        return self.indices.reshape(-1, 3)

    def weights_normalized(self, tolerance: float = WEIGHT_SUM_TOLERANCE) -> bool:
        """True when every vertex's weights sum to one within `tolerance`."""
        if self.vertex_count == 0:
            return True
        return bool(np.all(np.abs(self.bone_weights.sum(axis=1) - 1.0) <= tolerance))


# =============================================================================
# Skeleton
# =============================================================================

def _identity() -> np.ndarray:
    return np.eye(4, dtype=np.float32)


@dataclass(frozen=True, eq=False)
class Bone:
    """
    One entry of the flattened skeleton.

    Attributes:
        name: Name of the scene node the bone was found on
        parent_index: Index of the nearest bone ancestor, -1 for roots
        local_bind_transform: Bind transform relative to the parent bone,
            including any non-bone nodes in between
        offset_matrix: Inverse bind matrix (mesh space to bone space)
        pre_transform: Accumulated transform of the non-bone nodes between
            the parent bone and this bone's node
    """
    name: str
    parent_index: int
    local_bind_transform: np.ndarray
    offset_matrix: np.ndarray = field(default_factory=_identity)
    pre_transform: np.ndarray = field(default_factory=_identity)

    def __post_init__(self):
        object.__setattr__(self, 'parent_index', int(self.parent_index))
        object.__setattr__(self, 'local_bind_transform', _frozen(self.local_bind_transform, np.float32, (4, 4)))
        object.__setattr__(self, 'offset_matrix', _frozen(self.offset_matrix, np.float32, (4, 4)))
        object.__setattr__(self, 'pre_transform', _frozen(self.pre_transform, np.float32, (4, 4)))

    @property
    def is_root(self) -> bool:
        return self.parent_index == ROOT_PARENT_INDEX


def validate_bone_order(bones: Iterable[Bone]) -> None:
    """
    Check that every bone's parent precedes it.

    Raises:
        SkeletonError: If a parent index is not strictly smaller than the
            bone's own index (roots must use -1)
    """
    for index, bone in enumerate(bones):
        if bone.parent_index == ROOT_PARENT_INDEX:
            continue
        if not 0 <= bone.parent_index < index:
            raise SkeletonError(
                f"Bone[{index}] '{bone.name}' has parent index {bone.parent_index}; "
                f"parents must precede their children"
            )


# =============================================================================
# Model
# =============================================================================

@dataclass(frozen=True, eq=False)
class ModelData:
    """
    Engine-ready model: meshes, flattened skeleton and optional animations.

    Attributes:
        name: Model name (source file stem)
        meshes: Meshes in source order
        bones: Flattened skeleton, parents before children
        bone_name_to_index: Bone name to index in `bones`
        animations: Animation clips, None when the source has none
        import_warnings: Per-item anomalies corrected during import
        source_path: Resolved path the model was imported from
    """
    name: str
    meshes: Tuple[Mesh, ...] = ()
    bones: Tuple[Bone, ...] = ()
    bone_name_to_index: Mapping[str, int] = field(default_factory=dict)
    animations: Optional[AnimationCollection] = None
    import_warnings: Tuple[str, ...] = ()
    source_path: Optional[str] = None

    def __post_init__(self):
        bones = tuple(self.bones)
        validate_bone_order(bones)

        name_to_index = dict(self.bone_name_to_index)
        if not name_to_index and bones:
            name_to_index = {bone.name: i for i, bone in enumerate(bones)}
        for name, idx in name_to_index.items():
            if not 0 <= idx < len(bones) or bones[idx].name != name:
                raise SkeletonError(f"Bone map entry '{name}' -> {idx} does not match the bone array")

        object.__setattr__(self, 'meshes', tuple(self.meshes))
        object.__setattr__(self, 'bones', bones)
        object.__setattr__(self, 'bone_name_to_index', MappingProxyType(name_to_index))
        object.__setattr__(self, 'import_warnings', tuple(self.import_warnings))

    @property
    def total_vertex_count(self) -> int:
        return sum(mesh.vertex_count for mesh in self.meshes)

    @property
    def total_triangle_count(self) -> int:
        return sum(mesh.triangle_count for mesh in self.meshes)

    @property
    def bounds(self) -> BoundingBox:
        return BoundingBox.union(mesh.bounds for mesh in self.meshes)

    @property
    def bone_count(self) -> int:
        return len(self.bones)

    @property
    def has_skeleton(self) -> bool:
        return len(self.bones) > 0

    @property
    def is_animated(self) -> bool:
        return self.animations is not None and len(self.animations) > 0

    @property
    def bone_names(self) -> List[str]:
        return [bone.name for bone in self.bones]

    def parent_indices(self) -> np.ndarray:
        """(J,) int32 parent index per bone."""
        return np.array([bone.parent_index for bone in self.bones], dtype=np.int32)

    def get_bone_index(self, name: str) -> Optional[int]:
        return self.bone_name_to_index.get(name)

    def try_get_bind_transform(self, bone_name: str) -> Optional[BoneTransform]:
        """
        Decompose a bone's local bind transform.

        Returns:
            BoneTransform(position, rotation, scale), or None for unknown names
        """
        index = self.bone_name_to_index.get(bone_name)
        if index is None:
            return None
        position, rotation, scale = decompose_matrix(self.bones[index].local_bind_transform)
        return BoneTransform(position, rotation, scale)


@dataclass(frozen=True)
class AssetMetadata:
    """Lightweight preview record for an imported model."""
    name: str
    extension: str
    mesh_count: int
    vertex_count: int
    triangle_count: int
    bone_count: int
    animation_count: int
    bounds_min: Tuple[float, float, float]
    bounds_max: Tuple[float, float, float]

    @classmethod
    def from_model_data(cls, model: ModelData, path: Union[str, Path, None] = None) -> 'AssetMetadata':
        """Summarize `model`; `path` defaults to the model's source path."""
        path = Path(path if path is not None else (model.source_path or model.name))
        bounds = model.bounds
        return cls(
            name=path.name,
            extension=path.suffix,
            mesh_count=len(model.meshes),
            vertex_count=model.total_vertex_count,
            triangle_count=model.total_triangle_count,
            bone_count=model.bone_count,
            animation_count=len(model.animations) if model.animations is not None else 0,
            bounds_min=tuple(float(v) for v in bounds.minimum),
            bounds_max=tuple(float(v) for v in bounds.maximum),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            'name': self.name,
            'extension': self.extension,
            'mesh_count': self.mesh_count,
            'vertex_count': self.vertex_count,
            'triangle_count': self.triangle_count,
            'bone_count': self.bone_count,
            'animation_count': self.animation_count,
            'bounds_min': list(self.bounds_min),
            'bounds_max': list(self.bounds_max),
        }
