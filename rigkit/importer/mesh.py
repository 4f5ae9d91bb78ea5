"""
Mesh buffer extraction.

Copies vertex attributes out of an external mesh into engine buffers and
attaches the resolved skin weights.
"""

import logging
from typing import Any, Dict, Optional, Tuple
import numpy as np

from ..assets.model_data import Mesh
from ..core.constants import DEFAULT_MESH_NAME_FORMAT, DEFAULT_MIN_WEIGHT_SUM, DEFAULT_NORMAL
from .report import ImportReport
from .scene import read_list, read_name
from .skin import fallback_influences, read_skin_entries, resolve_skin_weights


logger = logging.getLogger(__name__)


def _read_vec(mesh: Any, attr: str, vertex_count: int, width: int) -> Optional[np.ndarray]:
    value = getattr(mesh, attr, None)
    if value is None:
        return None
    array = np.asarray(value, dtype=np.float32)
    if array.size == 0:
        return None
    if array.ndim == 1:
        if array.size % width:
            return None
        array = array.reshape(-1, width)
    if array.shape[0] != vertex_count or array.shape[1] < width:
        return None
    return array[:, :width]


def read_uvs(mesh: Any, vertex_count: int, flip_v: bool = True) -> Optional[np.ndarray]:
    """
    First texture coordinate channel as (V, 2).

    `texturecoords` holds one (V, 2|3) array per channel.
    """
    channels = getattr(mesh, 'texturecoords', None)
    if channels is None or len(channels) == 0:
        return None
    first = np.asarray(channels[0], dtype=np.float32)
    if first.ndim != 2 or first.shape[0] != vertex_count or first.shape[1] < 2:
        return None
    uvs = first[:, :2].copy()
    if flip_v:
        uvs[:, 1] = 1.0 - uvs[:, 1]
    return uvs


def read_triangles(
    mesh: Any,
    vertex_count: int,
    mesh_name: str = '',
    report: Optional[ImportReport] = None
) -> np.ndarray:
    """
    Flat triangle index list.

    Faces that are not triangles or that reference missing vertices are
    skipped individually, with one summary warning per mesh.
    """
    indices = []
    non_triangles = 0
    out_of_range = 0
    for face in read_list(mesh, 'faces'):
        face_indices = getattr(face, 'indices', face)
        face_indices = [int(i) for i in face_indices]
        if len(face_indices) != 3:
            non_triangles += 1
            continue
        if any(i < 0 or i >= vertex_count for i in face_indices):
            out_of_range += 1
            continue
        indices.extend(face_indices)

    if report is not None:
        if non_triangles:
            report.warn(f"Mesh '{mesh_name}': skipped {non_triangles} non-triangular face(s)", logger)
        if out_of_range:
            report.warn(f"Mesh '{mesh_name}': skipped {out_of_range} face(s) with out-of-range indices", logger)

    return np.array(indices, dtype=np.int32)


def build_mesh(
    mesh: Any,
    index: int,
    bone_name_to_index: Dict[str, int],
    min_weight_sum: float = DEFAULT_MIN_WEIGHT_SUM,
    flip_uv_v: bool = True,
    default_normal: Tuple[float, float, float] = DEFAULT_NORMAL,
    report: Optional[ImportReport] = None
) -> Mesh:
    """
    Convert one external mesh.

    Args:
        mesh: External mesh (`vertices`, `normals`, `texturecoords`, `faces`,
            `materialindex`, `bones`)
        index: Position in the scene, used for the default name
        bone_name_to_index: Name table from the flattened skeleton
        min_weight_sum: See resolve_skin_weights
        flip_uv_v: Store V as 1 - v
        default_normal: Normal used when the mesh has none
        report: Receives per-item warnings

    Returns:
        Mesh
    """
    name = read_name(mesh) or DEFAULT_MESH_NAME_FORMAT.format(index=index)

    raw = getattr(mesh, 'vertices', None)
    positions = np.asarray(raw if raw is not None else np.zeros((0, 3)), dtype=np.float32).reshape(-1, 3)
    vertex_count = positions.shape[0]

    normals = _read_vec(mesh, 'normals', vertex_count, 3)
    if normals is None:
        if vertex_count:
            logger.debug(f"Mesh '{name}': no normals, using {default_normal}")
        normals = np.tile(np.asarray(default_normal, dtype=np.float32), (vertex_count, 1))

    uvs = read_uvs(mesh, vertex_count, flip_uv_v)
    if uvs is None:
        uvs = np.zeros((vertex_count, 2), dtype=np.float32)

    indices = read_triangles(mesh, vertex_count, name, report)

    material_index = getattr(mesh, 'materialindex', None)
    material_index = -1 if material_index is None else int(material_index)

    if bone_name_to_index:
        bone_indices, bone_weights = resolve_skin_weights(
            vertex_count,
            read_skin_entries(mesh),
            bone_name_to_index,
            min_weight_sum=min_weight_sum,
            report=report,
            mesh_name=name,
        )
    else:
        bone_indices, bone_weights = fallback_influences(vertex_count)

    return Mesh(
        name=name,
        positions=positions,
        normals=normals,
        uvs=uvs,
        indices=indices,
        material_index=material_index,
        bone_indices=bone_indices,
        bone_weights=bone_weights,
    )
