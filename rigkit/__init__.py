"""
rigkit: Rigged model import and skeletal animation runtime

Converts externally parsed 3D scenes (meshes, skeleton, animation tracks)
into immutable, engine-ready assets and evaluates them at runtime.

Key Features:
- Scene flattening into a parent-ordered, index-addressed bone array
- Skin weight resolution with four normalized influences per vertex
- Animation clips with independent position/rotation/scale tracks
- Deterministic pose sampling with shortest-path slerp
- Batched skinning matrix resolution and linear blend skinning in PyTorch
- Thread-pooled asset cache with in-flight import deduplication

Example:
    >>> import rigkit
    >>> with rigkit.cache.AssetCache() as cache:
    ...     model = cache.get_or_import('character.fbx')
    >>> resolver = rigkit.animation.SkeletonPoseResolver(model)
    >>> pose = model.animations.get('Walk').sample(0.5)
    >>> skinning = resolver.resolve(pose)
"""

__version__ = "0.1.0"
__author__ = "rigkit Contributors"

from . import core
from . import utils
from . import assets
from . import importer
from . import animation
from . import cache

__all__ = [
    "core",
    "utils",
    "assets",
    "importer",
    "animation",
    "cache",
]
