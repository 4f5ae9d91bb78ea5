"""
Centralized constants for rigkit.

This module defines the default values and numeric constants shared by the
import pipeline and the runtime pose code.

Usage:
    from rigkit.core.constants import MAX_BONE_INFLUENCES
"""

# =============================================================================
# Skinning
# =============================================================================

# Bone influence slots per vertex (fixed by the GPU vertex layout)
MAX_BONE_INFLUENCES: int = 4

# Raw weight sum below which a vertex falls back to the single-influence default
DEFAULT_MIN_WEIGHT_SUM: float = 1e-3

# Bone index and weight used by vertices with no usable influence
FALLBACK_BONE_INDEX: int = 0
FALLBACK_BONE_WEIGHT: float = 1.0

# Parent index stored on root bones
ROOT_PARENT_INDEX: int = -1


# =============================================================================
# Animation
# =============================================================================

# Tick rate used when a clip reports a non-positive ticks-per-second
DEFAULT_TICKS_PER_SECOND: float = 25.0

# Cross-fade duration between clips (seconds)
DEFAULT_FADE_DURATION: float = 0.25

# Lower bound on playback speed
MIN_PLAYBACK_SPEED: float = 0.001

# Dot product above which slerp degrades to normalized lerp
SLERP_LINEAR_THRESHOLD: float = 0.9995


# =============================================================================
# Numeric Constants
# =============================================================================

# Small epsilon for division stability
DEFAULT_EPS: float = 1e-8

# Tolerance used when checking that skin weights sum to one
WEIGHT_SUM_TOLERANCE: float = 1e-4


# =============================================================================
# Mesh Defaults
# =============================================================================

DEFAULT_NORMAL = (0.0, 1.0, 0.0)
DEFAULT_MESH_NAME_FORMAT: str = "Mesh_{index}"
DEFAULT_ANIMATION_NAME_FORMAT: str = "Animation_{index}"
