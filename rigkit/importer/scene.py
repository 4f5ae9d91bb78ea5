"""
Read-only accessors over the external scene object model.

The importer is duck-typed over pyassimp's objects: names may arrive as str,
bytes or an aiString-like object with a `data` field, and collections may be
lists, tuples, numpy arrays or None. Nothing here mutates the scene.
"""

from typing import Any, List
import numpy as np

from ..utils.transforms import as_matrix


def read_name(obj: Any, default: str = '') -> str:
    """Decode the `name` of a scene object."""
    name = getattr(obj, 'name', None)
    return decode_name(name, default)


def decode_name(name: Any, default: str = '') -> str:
    """Turn a str / bytes / aiString-like value into str."""
    if name is None:
        return default
    if hasattr(name, 'data'):
        name = name.data
    if isinstance(name, (bytes, bytearray)):
        name = bytes(name).decode('utf-8', errors='replace')
    name = str(name)
    return name if name else default


def read_list(obj: Any, attr: str) -> List[Any]:
    """`obj.attr` as a list; missing or None becomes []."""
    value = getattr(obj, attr, None)
    if value is None:
        return []
    return list(value)


def read_matrix(obj: Any, attr: str, transpose: bool = False) -> np.ndarray:
    """`obj.attr` as a (4, 4) float32 matrix, identity when absent."""
    return as_matrix(getattr(obj, attr, None), transpose=transpose)
