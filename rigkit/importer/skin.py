"""
Skin weight resolution.

Per vertex, influences are collected in encounter order, truncated to the
four largest and renormalized. All lookups go through the bone name, never
through a mesh's own bone list position.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple
import numpy as np

from ..core.constants import (
    MAX_BONE_INFLUENCES,
    DEFAULT_MIN_WEIGHT_SUM,
    FALLBACK_BONE_INDEX,
    FALLBACK_BONE_WEIGHT,
)
from ..core.types import SkinEntry
from .report import ImportReport
from .scene import read_list, read_name


logger = logging.getLogger(__name__)


def read_skin_entries(mesh) -> List[SkinEntry]:
    """
    Extract (bone name, vertex weights) entries from an external mesh.

    Weights are read from `bone.weights[]` objects exposing `vertexid` and
    `weight`, or from plain (vertex_id, weight) pairs.
    """
    entries = []
    for bone in read_list(mesh, 'bones'):
        pairs = []
        for w in read_list(bone, 'weights'):
            if hasattr(w, 'vertexid'):
                pairs.append((int(w.vertexid), float(w.weight)))
            else:
                vertex_id, weight = w
                pairs.append((int(vertex_id), float(weight)))
        entries.append((read_name(bone), pairs))
    return entries


def fallback_influences(vertex_count: int) -> Tuple[np.ndarray, np.ndarray]:
    """Every vertex rigidly bound to bone 0."""
    indices = np.zeros((vertex_count, MAX_BONE_INFLUENCES), dtype=np.int32)
    weights = np.zeros((vertex_count, MAX_BONE_INFLUENCES), dtype=np.float32)
    indices[:, 0] = FALLBACK_BONE_INDEX
    weights[:, 0] = FALLBACK_BONE_WEIGHT
    return indices, weights


def resolve_skin_weights(
    vertex_count: int,
    entries: Iterable[SkinEntry],
    bone_name_to_index: Dict[str, int],
    min_weight_sum: float = DEFAULT_MIN_WEIGHT_SUM,
    report: Optional[ImportReport] = None,
    mesh_name: str = ''
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Resolve per-vertex bone influences.

    Args:
        vertex_count: Number of vertices in the mesh
        entries: (bone_name, [(vertex_id, weight), ...]) per skin bone
        bone_name_to_index: Name table from the flattened skeleton
        min_weight_sum: Raw sum at or below which the vertex falls back to
            the single-influence default
        report: Receives dangling-bone and truncation warnings
        mesh_name: Used in warning messages

    Returns:
        bone_indices: (V, 4) int32
        bone_weights: (V, 4) float32, rows sum to 1
    """
    influences: List[List[Tuple[int, float]]] = [[] for _ in range(vertex_count)]
    out_of_range = 0

    for bone_name, weights in entries:
        bone_index = bone_name_to_index.get(bone_name)
        if bone_index is None:
            if report is not None:
                report.warn(
                    f"Mesh '{mesh_name}': skipping influences of unknown bone '{bone_name}'",
                    logger,
                )
            continue
        for vertex_id, weight in weights:
            if not 0 <= vertex_id < vertex_count:
                out_of_range += 1
                continue
            influences[vertex_id].append((bone_index, float(weight)))

    if out_of_range and report is not None:
        report.warn(
            f"Mesh '{mesh_name}': skipped {out_of_range} influence(s) on out-of-range vertices",
            logger,
        )

    bone_indices, bone_weights = fallback_influences(vertex_count)
    truncated = 0
    degenerate = 0

    for vid, pairs in enumerate(influences):
        if not pairs:
            continue

        if len(pairs) > MAX_BONE_INFLUENCES:
            # sorted() is stable, so equal weights keep encounter order
            pairs = sorted(pairs, key=lambda p: -p[1])[:MAX_BONE_INFLUENCES]
            truncated += 1

        total = sum(w for _, w in pairs)
        if total <= min_weight_sum:
            degenerate += 1
            continue

        bone_indices[vid] = 0
        bone_weights[vid] = 0.0
        for slot, (bone_index, weight) in enumerate(pairs):
            bone_indices[vid, slot] = bone_index
            bone_weights[vid, slot] = weight / total

    if truncated and report is not None:
        report.warn(
            f"Mesh '{mesh_name}': {truncated} vertex(es) had more than "
            f"{MAX_BONE_INFLUENCES} influences; kept the largest",
            logger,
        )
    if degenerate and report is not None:
        report.warn(
            f"Mesh '{mesh_name}': {degenerate} vertex(es) had near-zero total weight; "
            f"bound to bone {FALLBACK_BONE_INDEX}",
            logger,
        )

    return bone_indices, bone_weights
