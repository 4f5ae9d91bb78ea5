"""
Scene flattening: external node tree to an index-addressed bone array.

Bones are the nodes whose names are referenced by some mesh's skin data.
Indices are assigned in depth-first discovery order, so every parent bone
precedes its children. Transforms of intervening non-bone nodes are folded
into the next bone's local bind transform.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import numpy as np

from ..assets.model_data import Bone
from ..core.constants import ROOT_PARENT_INDEX
from ..utils.transforms import identity_matrix
from .report import ImportReport
from .scene import read_list, read_matrix, read_name


logger = logging.getLogger(__name__)


# =============================================================================
# Bone Discovery
# =============================================================================

def collect_bone_names(meshes: Iterable[Any]) -> Set[str]:
    """
    Names of every node referenced as a bone by any mesh.

    Args:
        meshes: External meshes exposing `bones[].name`

    Returns:
        Set of bone names
    """
    names = set()
    for mesh in meshes:
        for bone in read_list(mesh, 'bones'):
            name = read_name(bone)
            if name:
                names.add(name)
    return names


def collect_offset_matrices(
    meshes: Iterable[Any],
    transpose: bool = False,
    report: Optional[ImportReport] = None
) -> Dict[str, np.ndarray]:
    """
    Inverse bind matrix per bone name.

    The first mesh that references a bone provides its offset. Later meshes
    disagreeing with it are reported.
    """
    offsets: Dict[str, np.ndarray] = {}
    for mesh in meshes:
        for bone in read_list(mesh, 'bones'):
            name = read_name(bone)
            if not name:
                continue
            offset = read_matrix(bone, 'offsetmatrix', transpose=transpose)
            if name not in offsets:
                offsets[name] = offset
            elif report is not None and not np.allclose(offsets[name], offset, atol=1e-5):
                report.warn(
                    f"Bone '{name}' has different offset matrices across meshes; keeping the first",
                    logger,
                )
    return offsets


# =============================================================================
# Flattening
# =============================================================================

def flatten_skeleton(
    root: Any,
    bone_names: Set[str],
    offset_matrices: Optional[Dict[str, np.ndarray]] = None,
    transpose: bool = False,
    report: Optional[ImportReport] = None
) -> Tuple[List[Bone], Dict[str, int]]:
    """
    Walk the node tree depth-first and build the bone array.

    Each stack entry carries the nearest bone ancestor's index and the
    transform accumulated over non-bone nodes since that ancestor. The
    accumulator resets to identity below every bone.

    Args:
        root: External root node (`name`, `transformation`, `children`)
        bone_names: Node names to treat as bones
        offset_matrices: Inverse bind matrix per bone name
        transpose: Transpose node matrices on read
        report: Receives duplicate and missing bone warnings

    Returns:
        bones: Bone array in discovery order
        name_to_index: Bone name to index
    """
    offset_matrices = offset_matrices or {}
    bones: List[Bone] = []
    name_to_index: Dict[str, int] = {}

    if root is None or not bone_names:
        return bones, name_to_index

    stack = [(root, ROOT_PARENT_INDEX, identity_matrix())]
    while stack:
        node, parent_index, accumulated = stack.pop()
        name = read_name(node)
        local = read_matrix(node, 'transformation', transpose=transpose)

        if name in bone_names and name not in name_to_index:
            index = len(bones)
            offset = offset_matrices.get(name)
            bones.append(Bone(
                name=name,
                parent_index=parent_index,
                local_bind_transform=accumulated @ local,
                offset_matrix=offset if offset is not None else identity_matrix(),
                pre_transform=accumulated,
            ))
            name_to_index[name] = index
            logger.debug(f"Bone[{index}] '{name}' parent={parent_index}")
            child_parent, child_accumulated = index, identity_matrix()
        else:
            if name in bone_names and report is not None:
                report.warn(
                    f"Duplicate bone node '{name}'; keeping bone {name_to_index[name]} "
                    f"and treating the later node as a plain node",
                    logger,
                )
            child_parent, child_accumulated = parent_index, accumulated @ local

        # Reversed so children are visited in authored order
        for child in reversed(read_list(node, 'children')):
            stack.append((child, child_parent, child_accumulated))

    if report is not None:
        for name in sorted(bone_names - set(name_to_index)):
            report.warn(f"Bone '{name}' is referenced by skin data but has no scene node", logger)

    return bones, name_to_index
