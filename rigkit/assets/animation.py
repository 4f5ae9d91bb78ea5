"""
Immutable animation data types.

A clip holds one channel per animated bone. Each channel keeps its position,
rotation and scale keys in three independent tracks so a sparse track is
never interpolated against values that were never authored.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
import numpy as np

from ..core.types import Pose


class AnimationKeyframe(NamedTuple):
    """A single key: time in seconds and the component value."""
    time: float
    value: np.ndarray


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class KeyframeTrack:
    """
    Time-sorted keys for one transform component.

    Attributes:
        times: (K,) float64 strictly increasing key times in seconds
        values: (K, D) float32 values, D = 3 for position/scale, 4 for rotation
    """
    times: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        times = np.array(self.times, dtype=np.float64).reshape(-1)
        values = np.array(self.values, dtype=np.float32)
        if values.ndim != 2:
            raise ValueError(f"Track values must be a (K, D) array, got shape {values.shape}")
        if values.shape[0] != times.shape[0]:
            raise ValueError(
                f"Track has {times.shape[0]} times but {values.shape[0]} values"
            )
        if times.shape[0] > 1 and not np.all(np.diff(times) > 0):
            raise ValueError("Track times must be strictly increasing")
        object.__setattr__(self, 'times', _readonly(times))
        object.__setattr__(self, 'values', _readonly(values))

    @classmethod
    def empty(cls, width: int) -> 'KeyframeTrack':
        """Track without keys."""
        return cls(times=np.zeros(0, dtype=np.float64), values=np.zeros((0, width), dtype=np.float32))

    @classmethod
    def from_keyframes(cls, keyframes: Sequence[AnimationKeyframe], width: int) -> 'KeyframeTrack':
        """Build a track from already sorted, deduplicated keyframes."""
        if not keyframes:
            return cls.empty(width)
        times = np.array([k.time for k in keyframes], dtype=np.float64)
        values = np.stack([np.asarray(k.value, dtype=np.float32).reshape(width) for k in keyframes])
        return cls(times=times, values=values)

    def __len__(self) -> int:
        return int(self.times.shape[0])

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def start_time(self) -> Optional[float]:
        return float(self.times[0]) if len(self) else None

    @property
    def end_time(self) -> Optional[float]:
        return float(self.times[-1]) if len(self) else None

    def keyframes(self) -> List[AnimationKeyframe]:
        """Keys as (time, value) records."""
        return [AnimationKeyframe(float(t), v.copy()) for t, v in zip(self.times, self.values)]


def _empty_position_track() -> KeyframeTrack:
    return KeyframeTrack.empty(3)


def _empty_rotation_track() -> KeyframeTrack:
    return KeyframeTrack.empty(4)


@dataclass(frozen=True, eq=False)
class AnimationChannel:
    """Position, rotation and scale tracks targeting one named bone."""
    target_bone_name: str
    position_track: KeyframeTrack = field(default_factory=_empty_position_track)
    rotation_track: KeyframeTrack = field(default_factory=_empty_rotation_track)
    scale_track: KeyframeTrack = field(default_factory=_empty_position_track)

    def __post_init__(self):
        for track, width, label in (
            (self.position_track, 3, 'position'),
            (self.rotation_track, 4, 'rotation'),
            (self.scale_track, 3, 'scale'),
        ):
            if not track.is_empty and track.width != width:
                raise ValueError(
                    f"Channel '{self.target_bone_name}': {label} track has width "
                    f"{track.width}, expected {width}"
                )

    @property
    def is_empty(self) -> bool:
        return self.position_track.is_empty and self.rotation_track.is_empty and self.scale_track.is_empty

    @property
    def key_count(self) -> int:
        return len(self.position_track) + len(self.rotation_track) + len(self.scale_track)


@dataclass(frozen=True, eq=False)
class AnimationClip:
    """
    A named animation.

    Attributes:
        name: Clip name, unique within its collection
        duration: Length in seconds
        ticks_per_second: Rate the source keys were authored at
        is_looping: Wrap sample times instead of clamping
        channels: One channel per animated bone
    """
    name: str
    duration: float
    ticks_per_second: float
    is_looping: bool = True
    channels: Tuple[AnimationChannel, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'channels', tuple(self.channels))
        object.__setattr__(self, 'duration', float(self.duration))
        if self.duration < 0:
            raise ValueError(f"Clip '{self.name}' has negative duration {self.duration}")
        index = {}
        for i, channel in enumerate(self.channels):
            index.setdefault(channel.target_bone_name, i)
        object.__setattr__(self, '_channel_index', MappingProxyType(index))

    @property
    def channel_names(self) -> List[str]:
        return [c.target_bone_name for c in self.channels]

    def get_channel(self, bone_name: str) -> Optional[AnimationChannel]:
        """Channel targeting `bone_name`, or None."""
        idx = self._channel_index.get(bone_name)
        return self.channels[idx] if idx is not None else None

    def sample(self, time: float) -> Pose:
        """Sample every channel at `time` seconds."""
        from ..animation.sampler import sample_clip
        return sample_clip(self, time)


@dataclass(frozen=True, eq=False)
class AnimationCollection:
    """Ordered clips with a name lookup."""
    clips: Tuple[AnimationClip, ...] = ()
    name_to_index: Mapping[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        clips = tuple(self.clips)
        index: Dict[str, int] = {}
        for i, clip in enumerate(clips):
            if clip.name in index:
                raise ValueError(f"Duplicate animation name '{clip.name}'")
            index[clip.name] = i
        object.__setattr__(self, 'clips', clips)
        object.__setattr__(self, 'name_to_index', MappingProxyType(index))

    def __len__(self) -> int:
        return len(self.clips)

    def __iter__(self) -> Iterator[AnimationClip]:
        return iter(self.clips)

    def __contains__(self, name: object) -> bool:
        return name in self.name_to_index

    @property
    def names(self) -> List[str]:
        return [clip.name for clip in self.clips]

    def get(self, key: Union[str, int]) -> Optional[AnimationClip]:
        """
        Look a clip up by name or by position.

        Returns:
            The clip, or None when the name is unknown or the index is out of range
        """
        if isinstance(key, str):
            idx = self.name_to_index.get(key)
            return self.clips[idx] if idx is not None else None
        if 0 <= key < len(self.clips):
            return self.clips[key]
        return None

    def index_of(self, name: str) -> int:
        """Position of clip `name`, or -1."""
        return self.name_to_index.get(name, -1)
