"""
NumPy transform helpers shared by the importer and the pose sampler.

Matrices use the column-vector convention (translation in M[:3, 3]) and
quaternions are [w, x, y, z].
"""

from typing import Tuple
import numpy as np

from ..core.constants import DEFAULT_EPS, SLERP_LINEAR_THRESHOLD


IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32)
ZERO_POSITION = np.zeros(3, dtype=np.float32)
UNIT_SCALE = np.ones(3, dtype=np.float32)


def identity_matrix() -> np.ndarray:
    """Fresh 4x4 float32 identity."""
    return np.eye(4, dtype=np.float32)


def as_matrix(value, transpose: bool = False) -> np.ndarray:
    """
    Convert an external 4x4 matrix (nested lists, ndarray, ctypes struct
    exposing a buffer) to a float32 ndarray.

    Args:
        value: Matrix-like value from the external loader
        transpose: Set when the source stores translation in the bottom row

    Returns:
        (4, 4) float32 matrix
    """
    if value is None:
        return identity_matrix()
    matrix = np.array(value, dtype=np.float32).reshape(4, 4)
    if transpose:
        matrix = matrix.T.copy()
    return matrix


def quaternion_to_matrix3(q: np.ndarray) -> np.ndarray:
    """Convert unit quaternion [w, x, y, z] to a 3x3 rotation matrix."""
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm < DEFAULT_EPS:
        return np.eye(3)
    w, x, y, z = q / norm

    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def compose_matrix(
    translation: np.ndarray,
    quaternion: np.ndarray,
    scale: np.ndarray = None
) -> np.ndarray:
    """
    Build M = T * R * S.

    Args:
        translation: (3,) translation
        quaternion: (4,) rotation [w, x, y, z]
        scale: (3,) scale, unit if None

    Returns:
        (4, 4) float32 matrix
    """
    if scale is None:
        scale = UNIT_SCALE
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, :3] = quaternion_to_matrix3(quaternion) * np.asarray(scale, dtype=np.float64)
    matrix[:3, 3] = translation
    return matrix.astype(np.float32)


def decompose_matrix(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Decompose 4x4 transformation matrix into translation, quaternion and scale.

    Args:
        matrix: 4x4 transformation matrix

    Returns:
        translation: (3,) translation vector
        quaternion: (4,) quaternion [w, x, y, z]
        scale: (3,) per-axis scale
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    translation = matrix[:3, 3].astype(np.float32)
    rotation_matrix = matrix[:3, :3].copy()

    # Remove scale from rotation matrix
    scale = np.linalg.norm(rotation_matrix, axis=0)
    if np.linalg.det(rotation_matrix) < 0:
        scale[0] = -scale[0]
    safe_scale = np.where(np.abs(scale) < DEFAULT_EPS, 1.0, scale)
    rotation_matrix = rotation_matrix / safe_scale

    # Shepperd's method for robust matrix to quaternion
    trace = rotation_matrix[0, 0] + rotation_matrix[1, 1] + rotation_matrix[2, 2]

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (rotation_matrix[2, 1] - rotation_matrix[1, 2]) * s
        y = (rotation_matrix[0, 2] - rotation_matrix[2, 0]) * s
        z = (rotation_matrix[1, 0] - rotation_matrix[0, 1]) * s
    elif rotation_matrix[0, 0] > rotation_matrix[1, 1] and rotation_matrix[0, 0] > rotation_matrix[2, 2]:
        s = 2.0 * np.sqrt(1.0 + rotation_matrix[0, 0] - rotation_matrix[1, 1] - rotation_matrix[2, 2])
        w = (rotation_matrix[2, 1] - rotation_matrix[1, 2]) / s
        x = 0.25 * s
        y = (rotation_matrix[0, 1] + rotation_matrix[1, 0]) / s
        z = (rotation_matrix[0, 2] + rotation_matrix[2, 0]) / s
    elif rotation_matrix[1, 1] > rotation_matrix[2, 2]:
        s = 2.0 * np.sqrt(1.0 + rotation_matrix[1, 1] - rotation_matrix[0, 0] - rotation_matrix[2, 2])
        w = (rotation_matrix[0, 2] - rotation_matrix[2, 0]) / s
        x = (rotation_matrix[0, 1] + rotation_matrix[1, 0]) / s
        y = 0.25 * s
        z = (rotation_matrix[1, 2] + rotation_matrix[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + rotation_matrix[2, 2] - rotation_matrix[0, 0] - rotation_matrix[1, 1])
        w = (rotation_matrix[1, 0] - rotation_matrix[0, 1]) / s
        x = (rotation_matrix[0, 2] + rotation_matrix[2, 0]) / s
        y = (rotation_matrix[1, 2] + rotation_matrix[2, 1]) / s
        z = 0.25 * s

    quaternion = np.array([w, x, y, z], dtype=np.float64)
    quaternion /= np.linalg.norm(quaternion)

    return translation, quaternion.astype(np.float32), scale.astype(np.float32)


def lerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    """Linear interpolation between two vectors."""
    return ((1.0 - t) * a + t * b).astype(np.float32)


def quaternion_slerp_np(q0: np.ndarray, q1: np.ndarray, t: float) -> np.ndarray:
    """
    NumPy implementation of quaternion SLERP along the shortest arc.

    Args:
        q0: Start quaternion [w, x, y, z]
        q1: End quaternion [w, x, y, z]
        t: Interpolation parameter [0, 1]

    Returns:
        Interpolated unit quaternion [w, x, y, z]
    """
    q0 = np.asarray(q0, dtype=np.float64)
    q1 = np.asarray(q1, dtype=np.float64)
    dot = float(np.dot(q0, q1))

    # q and -q are the same rotation; take the short way round
    if dot < 0:
        q1 = -q1
        dot = -dot

    dot = min(dot, 1.0)

    # Near-linear case
    if dot > SLERP_LINEAR_THRESHOLD:
        result = q0 + t * (q1 - q0)
        return (result / np.linalg.norm(result)).astype(np.float32)

    theta = np.arccos(dot)
    sin_theta = np.sin(theta)

    s0 = np.sin((1 - t) * theta) / sin_theta
    s1 = np.sin(t * theta) / sin_theta

    result = s0 * q0 + s1 * q1
    return (result / np.linalg.norm(result)).astype(np.float32)
