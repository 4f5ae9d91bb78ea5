"""
Import pipeline from an external scene to ModelData.

Includes the scene flattener, skin weight resolver, animation clip extractor,
mesh buffer extraction, and the ModelImporter that ties them together.
"""

from .report import ImportReport
from .flatten import collect_bone_names, collect_offset_matrices, flatten_skeleton
from .skin import read_skin_entries, fallback_influences, resolve_skin_weights
from .clips import read_key_value, build_track, resolve_ticks_per_second, extract_clip, extract_animations
from .mesh import read_uvs, read_triangles, build_mesh
from .model_importer import ModelImporter, load_model_data, check_assimp_available

__all__ = [
    "ImportReport",
    # Scene flattening
    "collect_bone_names",
    "collect_offset_matrices",
    "flatten_skeleton",
    # Skin weights
    "read_skin_entries",
    "fallback_influences",
    "resolve_skin_weights",
    # Animation clips
    "read_key_value",
    "build_track",
    "resolve_ticks_per_second",
    "extract_clip",
    "extract_animations",
    # Meshes
    "read_uvs",
    "read_triangles",
    "build_mesh",
    # Importer
    "ModelImporter",
    "load_model_data",
    "check_assimp_available",
]
