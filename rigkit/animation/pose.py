"""
Skeleton pose resolution.

Composes per-bone local transforms into world matrices in a single pass over
the bone array (parents always precede children), then multiplies by the
offset matrices to get the skinning matrices handed to the renderer:

    world[i]    = world[parent[i]] @ local[i]     (local[i] for roots)
    skinning[i] = world[i] @ offset[i]
"""

import logging
from typing import Optional, Sequence, Union
import numpy as np
import torch

from ..assets.model_data import Bone, ModelData, validate_bone_order
from ..core.constants import ROOT_PARENT_INDEX
from ..core.exceptions import SkeletonError
from ..core.types import Pose
from ..utils.quaternion import matrix_to_quaternion, quaternion_to_matrix
from .bone_names import BoneNameMatcher


logger = logging.getLogger(__name__)

TensorLike = Union[torch.Tensor, np.ndarray]


# =============================================================================
# Matrix Helpers
# =============================================================================

def trs_to_matrix(
    position: torch.Tensor,
    rotation: torch.Tensor,
    scale: Optional[torch.Tensor] = None
) -> torch.Tensor:
    """
    Build M = T * R * S.

    Args:
        position: (..., 3) translation
        rotation: (..., 4) quaternion [w, x, y, z]
        scale: (..., 3) scale, unit if None

    Returns:
        (..., 4, 4) transform
    """
    R = quaternion_to_matrix(rotation)
    if scale is not None:
        R = R * scale.unsqueeze(-2)

    batch_shape = position.shape[:-1]
    M = torch.zeros(*batch_shape, 4, 4, device=position.device, dtype=position.dtype)
    M[..., :3, :3] = R
    M[..., :3, 3] = position
    M[..., 3, 3] = 1.0
    return M


def _as_tensor(value: TensorLike, device=None, dtype=None) -> torch.Tensor:
    # torch warns on read-only numpy buffers, and asset arrays are read-only
    if isinstance(value, np.ndarray) and not value.flags.writeable:
        value = value.copy()
    return torch.as_tensor(value, device=device, dtype=dtype)


def _stack(matrices: Sequence[np.ndarray], device, dtype) -> torch.Tensor:
    if not matrices:
        return torch.zeros(0, 4, 4, device=device, dtype=dtype)
    return torch.as_tensor(np.stack(matrices), device=device, dtype=dtype)


def bind_local_transforms(
    bones: Sequence[Bone],
    device: torch.device = torch.device('cpu'),
    dtype: torch.dtype = torch.float32
) -> torch.Tensor:
    """(J, 4, 4) local bind transforms."""
    return _stack([b.local_bind_transform for b in bones], device, dtype)


def offset_matrices(
    bones: Sequence[Bone],
    device: torch.device = torch.device('cpu'),
    dtype: torch.dtype = torch.float32
) -> torch.Tensor:
    """(J, 4, 4) inverse bind matrices."""
    return _stack([b.offset_matrix for b in bones], device, dtype)


# =============================================================================
# Resolution
# =============================================================================

def resolve_world_matrices(
    parent_indices: Sequence[int],
    local_transforms: torch.Tensor,
    out: Optional[torch.Tensor] = None
) -> torch.Tensor:
    """
    Compose local transforms into world transforms.

    Args:
        parent_indices: Parent per bone, -1 for roots
        local_transforms: (J, 4, 4)
        out: Optional preallocated (J, 4, 4) result buffer

    Returns:
        (J, 4, 4) world transforms

    Raises:
        SkeletonError: If a parent does not precede its child
    """
    if local_transforms.shape[0] != len(parent_indices):
        raise ValueError(
            f"Got {local_transforms.shape[0]} local transforms for {len(parent_indices)} bones"
        )
    world = out if out is not None else torch.empty_like(local_transforms)

    for i, parent in enumerate(parent_indices):
        if parent == ROOT_PARENT_INDEX:
            world[i] = local_transforms[i]
        elif 0 <= parent < i:
            world[i] = world[parent] @ local_transforms[i]
        else:
            raise SkeletonError(f"Bone {i} has parent index {parent}; parents must precede children")

    return world


def resolve_skinning_matrices(bones: Sequence[Bone], local_transforms: TensorLike) -> torch.Tensor:
    """
    Skinning matrices for a bone array.

    Args:
        bones: Flattened skeleton
        local_transforms: (J, 4, 4) local transform per bone

    Returns:
        (J, 4, 4) skinning matrices, indexed like `bones`
    """
    local = _as_tensor(local_transforms, dtype=torch.float32)
    world = resolve_world_matrices([b.parent_index for b in bones], local)
    offsets = offset_matrices(bones, device=local.device, dtype=local.dtype)
    return world @ offsets


def skin_vertices(
    positions: TensorLike,
    bone_indices: TensorLike,
    bone_weights: TensorLike,
    skinning_matrices: torch.Tensor
) -> torch.Tensor:
    """
    Linear blend skinning.

    v' = sum_k w_k * (M_{b_k} @ v)

    Args:
        positions: (V, 3) rest positions
        bone_indices: (V, 4) bone index per influence slot
        bone_weights: (V, 4) weight per influence slot
        skinning_matrices: (J, 4, 4)

    Returns:
        (V, 3) deformed positions
    """
    device, dtype = skinning_matrices.device, skinning_matrices.dtype
    positions = _as_tensor(positions, device=device, dtype=dtype)
    if skinning_matrices.shape[0] == 0:
        # Static model: nothing to deform
        return positions.clone()
    bone_indices = _as_tensor(bone_indices, device=device).long()
    bone_weights = _as_tensor(bone_weights, device=device, dtype=dtype)

    ones = torch.ones(positions.shape[0], 1, device=device, dtype=dtype)
    homo = torch.cat([positions, ones], dim=-1)  # (V, 4)

    # (V, 4, 4, 4): per vertex, per slot matrix
    slot_matrices = skinning_matrices[bone_indices]
    blended = (bone_weights[..., None, None] * slot_matrices).sum(dim=1)  # (V, 4, 4)

    skinned = (blended @ homo.unsqueeze(-1)).squeeze(-1)
    return skinned[:, :3]


# =============================================================================
# Per-instance Resolver
# =============================================================================

class SkeletonPoseResolver:
    """
    Per-instance pose state for one ModelData.

    Owns preallocated local, world and skinning buffers that are overwritten
    on every call to `resolve`. Callers that keep results across frames must
    clone them.
    """

    def __init__(
        self,
        model: ModelData,
        device: torch.device = torch.device('cpu'),
        dtype: torch.dtype = torch.float32
    ):
        """
        Args:
            model: Imported model; its bone array must be parent-ordered
            device: Device for the buffers
            dtype: Buffer dtype
        """
        validate_bone_order(model.bones)
        self.model = model
        self.device = device
        self.dtype = dtype

        self.parent_indices = [b.parent_index for b in model.bones]
        self.matcher = BoneNameMatcher(model.bone_name_to_index)

        self._bind_local = bind_local_transforms(model.bones, device, dtype)
        self._pre = _stack([b.pre_transform for b in model.bones], device, dtype)
        self._offsets = offset_matrices(model.bones, device, dtype)

        self._local = self._bind_local.clone()
        self._world = torch.empty_like(self._bind_local)
        self._skinning = torch.empty_like(self._bind_local)
        self.resolve(None)

    @property
    def num_bones(self) -> int:
        return len(self.parent_indices)

    @property
    def local_matrices(self) -> torch.Tensor:
        return self._local

    @property
    def world_matrices(self) -> torch.Tensor:
        return self._world

    @property
    def skinning_matrices(self) -> torch.Tensor:
        return self._skinning

    def set_local_pose(self, pose: Optional[Pose] = None) -> torch.Tensor:
        """
        Fill the local buffer from a sampled pose.

        Bones without a matching channel keep their bind transform. Animated
        bones get pre_transform @ TRS so folded non-bone nodes still apply.
        """
        self._local.copy_(self._bind_local)
        if not pose:
            return self._local

        by_index = self.matcher.remap_pose(pose)
        if not by_index:
            return self._local

        indices = sorted(by_index)
        position = torch.as_tensor(
            np.stack([by_index[i].position for i in indices]), device=self.device, dtype=self.dtype
        )
        rotation = torch.as_tensor(
            np.stack([by_index[i].rotation for i in indices]), device=self.device, dtype=self.dtype
        )
        scale = torch.as_tensor(
            np.stack([by_index[i].scale for i in indices]), device=self.device, dtype=self.dtype
        )
        idx = torch.as_tensor(indices, device=self.device, dtype=torch.long)
        self._local[idx] = self._pre[idx] @ trs_to_matrix(position, rotation, scale)
        return self._local

    def resolve(self, pose: Optional[Pose] = None) -> torch.Tensor:
        """
        Resolve skinning matrices for a sampled pose.

        Args:
            pose: Bone name to BoneTransform, None for the bind pose

        Returns:
            (J, 4, 4) skinning matrices (internal buffer)
        """
        self.set_local_pose(pose)
        resolve_world_matrices(self.parent_indices, self._local, out=self._world)
        torch.matmul(self._world, self._offsets, out=self._skinning)
        return self._skinning

    def bind_pose(self) -> torch.Tensor:
        """Skinning matrices at the bind pose."""
        return self.resolve(None)

    def bone_world_positions(self) -> torch.Tensor:
        """(J, 3) world position of each bone from the last resolve."""
        return self._world[:, :3, 3].clone()

    def bone_world_rotations(self) -> torch.Tensor:
        """(J, 4) world rotation [w, x, y, z] of each bone from the last resolve."""
        if self.num_bones == 0:
            return torch.zeros(0, 4, device=self.device, dtype=self.dtype)
        R = self._world[:, :3, :3]
        scale = torch.linalg.norm(R, dim=-2, keepdim=True).clamp_min(1e-8)
        return matrix_to_quaternion(R / scale)

    def skin_mesh(self, mesh_index: int = 0) -> torch.Tensor:
        """Deform one of the model's meshes with the last resolved skinning matrices."""
        mesh = self.model.meshes[mesh_index]
        return skin_vertices(mesh.positions, mesh.bone_indices, mesh.bone_weights, self._skinning)
