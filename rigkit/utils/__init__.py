"""
Utility functions for rigkit.

Includes NumPy transform helpers, batched torch quaternion operations, and
configuration management.
"""

from .transforms import (
    IDENTITY_QUATERNION,
    ZERO_POSITION,
    UNIT_SCALE,
    identity_matrix,
    as_matrix,
    compose_matrix,
    decompose_matrix,
    lerp,
    quaternion_slerp_np,
)
from .quaternion import (
    normalize_quaternion,
    quaternion_to_matrix,
    matrix_to_quaternion,
)
from .config import ImportConfig, CacheConfig, load_config, save_config

__all__ = [
    # NumPy transforms
    "IDENTITY_QUATERNION",
    "ZERO_POSITION",
    "UNIT_SCALE",
    "identity_matrix",
    "as_matrix",
    "compose_matrix",
    "decompose_matrix",
    "lerp",
    "quaternion_slerp_np",
    # Quaternion operations
    "normalize_quaternion",
    "quaternion_to_matrix",
    "matrix_to_quaternion",
    # Config
    "ImportConfig",
    "CacheConfig",
    "load_config",
    "save_config",
]
