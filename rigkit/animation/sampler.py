"""
Pose sampling.

Evaluates an AnimationClip at a time in seconds. Each track is sampled on its
own: empty tracks give the identity default, times outside the key range give
the end key unchanged, and everything else is interpolated between the
bracketing keys (lerp for position/scale, shortest-path slerp for rotation).

Sampling is pure and deterministic: the same clip and time always produce
bit-identical output.
"""

import math
from numbers import Real
from typing import Optional
import numpy as np

from ..assets.animation import AnimationChannel, AnimationClip, KeyframeTrack
from ..core.types import BoneTransform, Pose
from ..utils.transforms import (
    IDENTITY_QUATERNION,
    ZERO_POSITION,
    UNIT_SCALE,
    lerp,
    quaternion_slerp_np,
)


def wrap_time(time: float, duration: float, is_looping: bool) -> float:
    """
    Map a query time into [0, duration].

    Looping clips wrap with modulo, so t = duration maps to 0. One-shot clips
    clamp. Clips without length always sample at 0.

    Raises:
        ValueError: If `time` is not a finite real number
    """
    if isinstance(time, bool) or not isinstance(time, Real) or not math.isfinite(time):
        raise ValueError(f"Sample time must be a finite number, got {time!r}")
    time = float(time)
    if duration <= 0:
        return 0.0
    if is_looping:
        return time % duration
    return min(max(time, 0.0), duration)


def sample_track(track: KeyframeTrack, time: float, default: np.ndarray) -> np.ndarray:
    """
    Sample one track.

    Args:
        track: Keyframe track
        time: Time in seconds, already wrapped or clamped
        default: Value for an empty track

    Returns:
        float32 value, a fresh array the caller may modify
    """
    count = len(track)
    if count == 0:
        return np.array(default, dtype=np.float32)

    times = track.times
    values = track.values
    if time <= times[0]:
        return values[0].copy()
    if time >= times[-1]:
        return values[-1].copy()

    i = int(np.searchsorted(times, time, side='right')) - 1
    t0 = times[i]
    t1 = times[i + 1]
    if t1 == t0:
        return values[i].copy()
    u = float((time - t0) / (t1 - t0))

    if track.width == 4:
        return quaternion_slerp_np(values[i], values[i + 1], u)
    return lerp(values[i], values[i + 1], u)


def sample_channel(channel: AnimationChannel, time: float) -> BoneTransform:
    """Sample the three tracks of a channel at an already wrapped time."""
    return BoneTransform(
        position=sample_track(channel.position_track, time, ZERO_POSITION),
        rotation=sample_track(channel.rotation_track, time, IDENTITY_QUATERNION),
        scale=sample_track(channel.scale_track, time, UNIT_SCALE),
    )


def sample_clip(clip: AnimationClip, time: float) -> Pose:
    """
    Sample every channel of a clip.

    Args:
        clip: Animation clip
        time: Query time in seconds, wrapped or clamped per the clip's looping flag

    Returns:
        Bone name to BoneTransform for every channel. Bones without a channel
        are absent and keep their bind pose.
    """
    local_time = wrap_time(time, clip.duration, clip.is_looping)
    return {channel.target_bone_name: sample_channel(channel, local_time) for channel in clip.channels}


def identity_transform() -> BoneTransform:
    """Rest delta: zero position, identity rotation, unit scale."""
    return BoneTransform(ZERO_POSITION.copy(), IDENTITY_QUATERNION.copy(), UNIT_SCALE.copy())


def blend_poses(a: Pose, b: Pose, weight: float, fallback: Optional[Pose] = None) -> Pose:
    """
    Blend two poses.

    Args:
        a: Pose at weight 0
        b: Pose at weight 1
        weight: Blend factor, clamped to [0, 1]
        fallback: Transforms for bones present on only one side; identity
            when omitted

    Returns:
        Pose over the union of bone names
    """
    weight = min(max(float(weight), 0.0), 1.0)
    fallback = fallback or {}
    result: Pose = {}
    for name in list(a) + [n for n in b if n not in a]:
        ta = a.get(name) or fallback.get(name) or identity_transform()
        tb = b.get(name) or fallback.get(name) or identity_transform()
        result[name] = BoneTransform(
            position=lerp(ta.position, tb.position, weight),
            rotation=quaternion_slerp_np(ta.rotation, tb.rotation, weight),
            scale=lerp(ta.scale, tb.scale, weight),
        )
    return result
