"""
Animation clip extraction.

Converts external node-keyed keyframe tracks into AnimationClips. Each of the
position, rotation and scale tracks is kept independent: times are converted
from ticks to seconds, sorted, and exact duplicates collapse to the last
authored value. Nothing else about the keys is changed.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence
import numpy as np

from ..assets.animation import (
    AnimationKeyframe,
    KeyframeTrack,
    AnimationChannel,
    AnimationClip,
    AnimationCollection,
)
from ..core.constants import DEFAULT_ANIMATION_NAME_FORMAT, DEFAULT_TICKS_PER_SECOND
from ..core.exceptions import AnimationError
from .report import ImportReport
from .scene import decode_name, read_list, read_name


logger = logging.getLogger(__name__)


# =============================================================================
# Key Reading
# =============================================================================

def read_key_value(value: Any, width: int) -> np.ndarray:
    """
    Convert an external key value to a float32 vector.

    Accepts objects with x/y/z (and w for rotations) fields, or sequences.
    Rotation sequences are read as [w, x, y, z].
    """
    if width == 4 and hasattr(value, 'w'):
        return np.array([value.w, value.x, value.y, value.z], dtype=np.float32)
    if width == 3 and hasattr(value, 'x'):
        return np.array([value.x, value.y, value.z], dtype=np.float32)
    array = np.asarray(value, dtype=np.float32).reshape(-1)
    if array.shape[0] != width:
        raise AnimationError(f"Expected a key value with {width} components, got {array.shape[0]}")
    return array


def _read_key(key: Any, width: int):
    if hasattr(key, 'time'):
        return float(key.time), read_key_value(key.value, width)
    time, value = key
    return float(time), read_key_value(value, width)


def build_track(
    raw_keys: Sequence[Any],
    width: int,
    ticks_per_second: float,
    label: str = '',
    report: Optional[ImportReport] = None
) -> KeyframeTrack:
    """
    Build one track from external keys.

    Args:
        raw_keys: Keys exposing `time` (ticks) and `value`, or (time, value) pairs
        width: 3 for position/scale, 4 for rotation
        ticks_per_second: Divisor converting ticks to seconds
        label: Used in warning messages
        report: Receives duplicate and non-finite key warnings

    Returns:
        KeyframeTrack with strictly increasing times
    """
    keys: List[AnimationKeyframe] = []
    skipped = 0
    for raw in raw_keys:
        ticks, value = _read_key(raw, width)
        if not math.isfinite(ticks) or not np.all(np.isfinite(value)):
            skipped += 1
            continue
        keys.append(AnimationKeyframe(ticks / ticks_per_second, value))

    # sorted() is stable: equal times stay in authored order
    keys.sort(key=lambda k: k.time)

    deduped: List[AnimationKeyframe] = []
    duplicates = 0
    for key in keys:
        if deduped and deduped[-1].time == key.time:
            deduped[-1] = key
            duplicates += 1
        else:
            deduped.append(key)

    if report is not None:
        if skipped:
            report.warn(f"{label}: skipped {skipped} non-finite key(s)", logger)
        if duplicates:
            report.warn(f"{label}: collapsed {duplicates} duplicate-time key(s) to the later value", logger)

    return KeyframeTrack.from_keyframes(deduped, width)


# =============================================================================
# Clip Extraction
# =============================================================================

def resolve_ticks_per_second(anim: Any, default: float = DEFAULT_TICKS_PER_SECOND) -> float:
    """Source rate, or `default` when it is missing or non-positive."""
    tps = getattr(anim, 'tickspersecond', None)
    try:
        tps = float(tps)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(tps) or tps <= 0:
        return default
    return tps


def extract_clip(
    anim: Any,
    name: str,
    default_ticks_per_second: float = DEFAULT_TICKS_PER_SECOND,
    is_looping: bool = True,
    report: Optional[ImportReport] = None
) -> AnimationClip:
    """
    Convert one external animation into an AnimationClip.

    Channels targeting the same node are merged: their keys are concatenated
    in authored order before sorting, so the later channel wins ties.

    Args:
        anim: External animation (`duration`, `tickspersecond`, `channels`)
        name: Clip name to use
        default_ticks_per_second: Rate used when the source rate is invalid
        is_looping: Looping flag for the clip
        report: Receives per-key warnings

    Returns:
        AnimationClip with duration in seconds
    """
    tps = resolve_ticks_per_second(anim, default_ticks_per_second)

    raw_duration = getattr(anim, 'duration', 0.0) or 0.0
    duration = float(raw_duration) / tps
    if not math.isfinite(duration) or duration < 0:
        if report is not None:
            report.warn(f"Animation '{name}': invalid duration {raw_duration}; using 0", logger)
        duration = 0.0

    # node name -> [position keys, rotation keys, scale keys]
    merged: Dict[str, List[List[Any]]] = {}
    for channel in read_list(anim, 'channels'):
        node_name = decode_name(getattr(channel, 'nodename', None))
        if not node_name:
            if report is not None:
                report.warn(f"Animation '{name}': skipping channel without a target node", logger)
            continue
        if node_name in merged:
            logger.debug(f"Animation '{name}': merging extra channel for '{node_name}'")
        slots = merged.setdefault(node_name, [[], [], []])
        slots[0].extend(read_list(channel, 'positionkeys'))
        slots[1].extend(read_list(channel, 'rotationkeys'))
        slots[2].extend(read_list(channel, 'scalingkeys'))

    channels = []
    for node_name, (positions, rotations, scales) in merged.items():
        label = f"Animation '{name}' channel '{node_name}'"
        channels.append(AnimationChannel(
            target_bone_name=node_name,
            position_track=build_track(positions, 3, tps, f"{label} position", report),
            rotation_track=build_track(rotations, 4, tps, f"{label} rotation", report),
            scale_track=build_track(scales, 3, tps, f"{label} scale", report),
        ))

    return AnimationClip(
        name=name,
        duration=duration,
        ticks_per_second=tps,
        is_looping=is_looping,
        channels=tuple(channels),
    )


def extract_animations(
    animations: Sequence[Any],
    default_ticks_per_second: float = DEFAULT_TICKS_PER_SECOND,
    is_looping: bool = True,
    report: Optional[ImportReport] = None
) -> Optional[AnimationCollection]:
    """
    Extract every animation of a scene.

    Unnamed animations become `Animation_<i>`; repeated names get a numeric
    suffix so lookups by name stay unambiguous.

    Returns:
        AnimationCollection, or None when the scene has no animations
    """
    animations = list(animations or [])
    if not animations:
        return None

    clips = []
    used = set()
    for i, anim in enumerate(animations):
        name = read_name(anim) or DEFAULT_ANIMATION_NAME_FORMAT.format(index=i)
        unique = name
        suffix = 1
        while unique in used:
            unique = f"{name}_{suffix}"
            suffix += 1
        if unique != name and report is not None:
            report.warn(f"Duplicate animation name '{name}' renamed to '{unique}'", logger)
        used.add(unique)

        clip = extract_clip(anim, unique, default_ticks_per_second, is_looping, report)
        logger.debug(f"Clip '{clip.name}': {len(clip.channels)} channels, {clip.duration:.3f}s")
        clips.append(clip)

    return AnimationCollection(clips=tuple(clips))
