"""
Exceptions and failure results for model import.

Exceptions are raised inside the import pipeline. The cache boundary turns
them into ImportFailure values so callers receive an explicit result instead
of a crash.
"""

from dataclasses import dataclass
from typing import Optional


class ModelImportError(Exception):
    """Base exception for model import errors."""
    pass


class SceneLoadError(ModelImportError):
    """The external scene library failed or is unavailable."""
    pass


class EmptySceneError(ModelImportError):
    """The imported scene contains no meshes."""
    pass


class SkeletonError(ModelImportError):
    """The bone array violates the parent-before-child ordering."""
    pass


class AnimationError(ModelImportError):
    """Malformed animation data in the external scene."""
    pass


class ImportCancelled(ModelImportError):
    """The import was cancelled between pipeline stages."""
    pass


@dataclass(frozen=True)
class ImportFailure:
    """
    Failed import result handed to every waiter on a path.

    Attributes:
        path: Resolved path of the source file
        reason: Human readable diagnostic message
        error_type: Name of the exception class that caused the failure
    """
    path: str
    reason: str
    error_type: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.error_type == ImportCancelled.__name__

    @classmethod
    def from_exception(cls, path: str, error: BaseException) -> 'ImportFailure':
        """Build a failure from the exception raised by a loader."""
        message = str(error) or error.__class__.__name__
        return cls(path=path, reason=message, error_type=error.__class__.__name__)

    def __str__(self) -> str:
        return f"Import of '{self.path}' failed: {self.reason}"
