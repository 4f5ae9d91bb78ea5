"""
Configuration management for rigkit.

Provides configuration classes for the import pipeline and the asset cache.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Tuple, TypeVar, Type, Union
from pathlib import Path

from ..core.constants import (
    DEFAULT_MIN_WEIGHT_SUM,
    DEFAULT_TICKS_PER_SECOND,
    DEFAULT_NORMAL,
)


ConfigT = TypeVar('ConfigT', bound='_ConfigBase')


class _ConfigBase:
    """Dictionary and JSON round-tripping shared by the config dataclasses."""

    extra: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls: Type[ConfigT], config_dict: Dict[str, Any]) -> ConfigT:
        """Create config from dictionary, keeping unknown keys in `extra`."""
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        known_kwargs = {k: v for k, v in config_dict.items() if k in known_fields and k != 'extra'}
        extra_kwargs = dict(config_dict.get('extra') or {})
        extra_kwargs.update({k: v for k, v in config_dict.items() if k not in known_fields})

        config = cls(**known_kwargs)
        config.extra = extra_kwargs
        return config

    def update(self: ConfigT, **kwargs) -> ConfigT:
        """Return a new config with updated values."""
        config_dict = self.to_dict()
        config_dict.update(kwargs)
        return self.__class__.from_dict(config_dict)


@dataclass
class ImportConfig(_ConfigBase):
    """
    Configuration for converting an external scene into ModelData.

    Attributes:
        min_weight_sum: Raw skin weight sum below which a vertex falls back
            to the single-influence default
        default_ticks_per_second: Rate used when a clip reports a
            non-positive ticks-per-second
        loop_animations: Whether extracted clips loop
        flip_uv_v: Store texture coordinates as (u, 1 - v)
        default_normal: Normal assigned when a mesh carries none
        transpose_matrices: Transpose node/offset matrices on read
        triangulate: Ask the external loader to triangulate faces
        generate_normals: Ask the external loader to generate normals
        join_identical_vertices: Ask the external loader to weld vertices
    """

    # Skinning
    min_weight_sum: float = DEFAULT_MIN_WEIGHT_SUM

    # Animation
    default_ticks_per_second: float = DEFAULT_TICKS_PER_SECOND
    loop_animations: bool = True

    # Mesh buffers
    flip_uv_v: bool = True
    default_normal: Tuple[float, float, float] = DEFAULT_NORMAL

    # Matrix layout
    transpose_matrices: bool = False

    # External loader post-processing
    triangulate: bool = True
    generate_normals: bool = True
    join_identical_vertices: bool = True

    # Additional fields
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.default_normal = tuple(float(v) for v in self.default_normal)
        if self.min_weight_sum < 0:
            raise ValueError(f"min_weight_sum must be non-negative, got {self.min_weight_sum}")
        if self.default_ticks_per_second <= 0:
            raise ValueError(
                f"default_ticks_per_second must be positive, got {self.default_ticks_per_second}"
            )


@dataclass
class CacheConfig(_ConfigBase):
    """
    Configuration for the asset cache.

    Attributes:
        max_workers: Background import threads
        validate_mtime: Treat an entry as stale when its file changed on disk
        thread_name_prefix: Name prefix for worker threads
    """

    max_workers: int = 2
    validate_mtime: bool = True
    thread_name_prefix: str = 'rigkit-import'

    # Additional fields
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")


def load_config(
    filepath: Union[str, Path],
    config_cls: Type[ConfigT] = ImportConfig
) -> ConfigT:
    """
    Load configuration from JSON file.

    Args:
        filepath: Path to JSON config file
        config_cls: ImportConfig or CacheConfig

    Returns:
        Config object
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        config_dict = json.load(f)
    return config_cls.from_dict(config_dict)


def save_config(config: _ConfigBase, filepath: Union[str, Path]) -> None:
    """
    Save configuration to JSON file.

    Args:
        config: Config object to save
        filepath: Output file path
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
