"""
Core module for rigkit.

Contains:
- Constants: Centralized default values and numeric constants
- Types: Type aliases and the BoneTransform record
- Exceptions: Import error hierarchy and the ImportFailure result
"""

from .constants import (
    MAX_BONE_INFLUENCES,
    DEFAULT_MIN_WEIGHT_SUM,
    FALLBACK_BONE_INDEX,
    FALLBACK_BONE_WEIGHT,
    ROOT_PARENT_INDEX,
    DEFAULT_TICKS_PER_SECOND,
    DEFAULT_FADE_DURATION,
    MIN_PLAYBACK_SPEED,
    DEFAULT_EPS,
    WEIGHT_SUM_TOLERANCE,
)
from .types import (
    PathLike,
    SkinEntry,
    BoneTransform,
    Pose,
)
from .exceptions import (
    ModelImportError,
    SceneLoadError,
    EmptySceneError,
    SkeletonError,
    AnimationError,
    ImportCancelled,
    ImportFailure,
)

__all__ = [
    # Constants
    "MAX_BONE_INFLUENCES",
    "DEFAULT_MIN_WEIGHT_SUM",
    "FALLBACK_BONE_INDEX",
    "FALLBACK_BONE_WEIGHT",
    "ROOT_PARENT_INDEX",
    "DEFAULT_TICKS_PER_SECOND",
    "DEFAULT_FADE_DURATION",
    "MIN_PLAYBACK_SPEED",
    "DEFAULT_EPS",
    "WEIGHT_SUM_TOLERANCE",
    # Types
    "PathLike",
    "SkinEntry",
    "BoneTransform",
    "Pose",
    # Exceptions
    "ModelImportError",
    "SceneLoadError",
    "EmptySceneError",
    "SkeletonError",
    "AnimationError",
    "ImportCancelled",
    "ImportFailure",
]
