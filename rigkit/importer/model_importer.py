"""
Model import pipeline.

Turns an external scene (pyassimp object model) into an immutable ModelData:

    scene -> flatten skeleton -> meshes + skin weights -> animation clips

Requires PyAssimp for loading files: pip install pyassimp
`import_scene` works on any object that looks like a pyassimp scene and does
not need the native library.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from ..assets.model_data import ModelData
from ..core.exceptions import EmptySceneError, ImportCancelled, SceneLoadError
from ..utils.config import ImportConfig
from .clips import extract_animations
from .flatten import collect_bone_names, collect_offset_matrices, flatten_skeleton
from .mesh import build_mesh
from .report import ImportReport
from .scene import read_list


logger = logging.getLogger(__name__)


# =============================================================================
# Assimp Availability
# =============================================================================

def _get_assimp_install_message() -> str:
    """Get installation instructions for pyassimp."""
    return (
        "PyAssimp is not available. To import model files, install it:\n"
        "  pip install pyassimp\n"
        "  brew install assimp  # macOS\n"
        "  apt-get install libassimp-dev  # Ubuntu/Debian"
    )


def _import_pyassimp():
    """Import pyassimp lazily, mapping a missing package or library to SceneLoadError."""
    try:
        import pyassimp
        import pyassimp.errors
        import pyassimp.postprocess
    except (KeyboardInterrupt, SystemExit):
        raise
    except ImportError as e:
        raise SceneLoadError(_get_assimp_install_message()) from e
    except BaseException as e:
        # AssimpError derives from BaseException and is raised at import time
        # when the native library cannot be found
        raise SceneLoadError(_get_assimp_install_message()) from e
    return pyassimp


def check_assimp_available() -> bool:
    """Check if pyassimp and its native library can be loaded."""
    try:
        _import_pyassimp()
        return True
    except SceneLoadError:
        return False


# =============================================================================
# Importer
# =============================================================================

class ModelImporter:
    """
    Builds ModelData from external scenes.

    An instance is a valid loader for AssetCache: it is callable as
    `importer(path, cancel_event)`.
    """

    def __init__(self, config: Optional[ImportConfig] = None):
        """
        Args:
            config: Import settings, defaults to ImportConfig()
        """
        self.config = config or ImportConfig()

    def __call__(self, path: Union[str, Path], cancel_event: Optional[threading.Event] = None) -> ModelData:
        return self.load(path, cancel_event)

    def _processing_flags(self, postprocess) -> int:
        flags = 0
        if self.config.triangulate:
            flags |= postprocess.aiProcess_Triangulate
        if self.config.generate_normals:
            flags |= postprocess.aiProcess_GenSmoothNormals
        if self.config.join_identical_vertices:
            flags |= postprocess.aiProcess_JoinIdenticalVertices
        return flags

    def load(self, path: Union[str, Path], cancel_event: Optional[threading.Event] = None) -> ModelData:
        """
        Load a model file through pyassimp.

        Args:
            path: Path to the model file
            cancel_event: Set by another thread to abandon the import

        Returns:
            ModelData

        Raises:
            FileNotFoundError: If the file doesn't exist
            SceneLoadError: If pyassimp is unavailable or fails to read the file
            EmptySceneError: If the scene has no meshes
            ImportCancelled: If `cancel_event` was set between stages
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        _check_cancelled(cancel_event, path)

        pyassimp = _import_pyassimp()
        flags = self._processing_flags(pyassimp.postprocess)

        logger.info(f"Loading model from: {path}")
        try:
            with pyassimp.load(str(path), processing=flags) as scene:
                return self.import_scene(scene, name=path.stem, source_path=str(path), cancel_event=cancel_event)
        except pyassimp.errors.AssimpError as e:
            raise SceneLoadError(f"pyassimp failed to load {path}: {e}") from e

    def import_scene(
        self,
        scene: Any,
        name: str = 'model',
        source_path: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> ModelData:
        """
        Convert an already parsed external scene.

        The scene is only read. The returned ModelData shares no objects with
        it, so the caller may release the scene afterwards.

        Args:
            scene: Object exposing `meshes`, `rootnode` and `animations`
            name: Model name
            source_path: Recorded on the ModelData
            cancel_event: Checked between stages

        Returns:
            ModelData
        """
        config = self.config
        report = ImportReport(source_path or name)

        meshes = read_list(scene, 'meshes')
        if not meshes:
            raise EmptySceneError(f"Scene '{source_path or name}' contains no meshes")

        # Skeleton
        _check_cancelled(cancel_event, source_path or name)
        bone_names = collect_bone_names(meshes)
        offsets = collect_offset_matrices(meshes, transpose=config.transpose_matrices, report=report)
        bones, bone_name_to_index = flatten_skeleton(
            getattr(scene, 'rootnode', None),
            bone_names,
            offset_matrices=offsets,
            transpose=config.transpose_matrices,
            report=report,
        )
        logger.info(f"Extracted skeleton: {len(bones)} bones")

        # Meshes and skin weights
        _check_cancelled(cancel_event, source_path or name)
        model_meshes = tuple(
            build_mesh(
                mesh,
                i,
                bone_name_to_index,
                min_weight_sum=config.min_weight_sum,
                flip_uv_v=config.flip_uv_v,
                default_normal=config.default_normal,
                report=report,
            )
            for i, mesh in enumerate(meshes)
        )
        logger.info(
            f"Extracted {len(model_meshes)} meshes: "
            f"{sum(m.vertex_count for m in model_meshes)} vertices, "
            f"{sum(m.triangle_count for m in model_meshes)} triangles"
        )

        # Animations
        _check_cancelled(cancel_event, source_path or name)
        animations = extract_animations(
            read_list(scene, 'animations'),
            default_ticks_per_second=config.default_ticks_per_second,
            is_looping=config.loop_animations,
            report=report,
        )
        if animations is not None:
            logger.info(f"Extracted {len(animations)} animation clips")

        _check_cancelled(cancel_event, source_path or name)
        if len(report):
            logger.info(f"Import of '{source_path or name}' finished with {len(report)} warning(s)")

        return ModelData(
            name=name,
            meshes=model_meshes,
            bones=tuple(bones),
            bone_name_to_index=bone_name_to_index,
            animations=animations,
            import_warnings=report.warnings,
            source_path=source_path,
        )


def _check_cancelled(cancel_event: Optional[threading.Event], source) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ImportCancelled(f"Import of '{source}' was cancelled")


def load_model_data(
    path: Union[str, Path],
    config: Optional[ImportConfig] = None,
    cancel_event: Optional[threading.Event] = None
) -> ModelData:
    """
    Load a model file with a one-off ModelImporter.

    Args:
        path: Path to the model file
        config: Import settings
        cancel_event: Optional cancellation flag

    Returns:
        ModelData
    """
    return ModelImporter(config).load(path, cancel_event)
