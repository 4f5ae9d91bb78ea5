"""
Immutable asset types produced by the importer.

Includes meshes, the flattened skeleton, animation clips, and the ModelData
snapshot shared by renderers and scene instantiation.
"""

from .animation import (
    AnimationKeyframe,
    KeyframeTrack,
    AnimationChannel,
    AnimationClip,
    AnimationCollection,
)
from .model_data import (
    BoundingBox,
    Mesh,
    Bone,
    ModelData,
    AssetMetadata,
    validate_bone_order,
)

__all__ = [
    # Animation
    "AnimationKeyframe",
    "KeyframeTrack",
    "AnimationChannel",
    "AnimationClip",
    "AnimationCollection",
    # Model
    "BoundingBox",
    "Mesh",
    "Bone",
    "ModelData",
    "AssetMetadata",
    "validate_bone_order",
]
