"""
Runtime animation for imported models.

Includes the pose sampler, skeleton pose resolution and skinning, bone-name
matching, and the playback state machine.
"""

from .sampler import (
    wrap_time,
    sample_track,
    sample_channel,
    sample_clip,
    identity_transform,
    blend_poses,
)
from .bone_names import normalize_bone_name, BoneNameMatcher
from .pose import (
    trs_to_matrix,
    bind_local_transforms,
    offset_matrices,
    resolve_world_matrices,
    resolve_skinning_matrices,
    skin_vertices,
    SkeletonPoseResolver,
)
from .player import AnimationPlayer

__all__ = [
    # Sampling
    "wrap_time",
    "sample_track",
    "sample_channel",
    "sample_clip",
    "identity_transform",
    "blend_poses",
    # Bone names
    "normalize_bone_name",
    "BoneNameMatcher",
    # Pose resolution
    "trs_to_matrix",
    "bind_local_transforms",
    "offset_matrices",
    "resolve_world_matrices",
    "resolve_skinning_matrices",
    "skin_vertices",
    "SkeletonPoseResolver",
    # Playback
    "AnimationPlayer",
]
