"""
Type aliases used across rigkit.

Conventions:
    - Quaternions are stored as [w, x, y, z]
    - Matrices are 4x4, column-vector convention (translation in M[:3, 3]),
      so transforms compose as parent @ child
    - Keyframe times are in seconds once they leave the importer
"""

import os
from typing import Dict, NamedTuple, Sequence, Tuple, Union
import numpy as np

# Anything a path-keyed API accepts
PathLike = Union[str, os.PathLike]

# One authored skin influence list: (bone_name, [(vertex_id, weight), ...])
SkinEntry = Tuple[str, Sequence[Tuple[int, float]]]


class BoneTransform(NamedTuple):
    """Local transform of a single bone as separate components."""
    position: np.ndarray   # (3,) float32
    rotation: np.ndarray   # (4,) float32 [w, x, y, z]
    scale: np.ndarray      # (3,) float32


# Per-bone-name sampled pose
Pose = Dict[str, BoneTransform]
