"""
Clip playback with cross-fading.

AnimationPlayer tracks the current clip and time for one animated instance.
It does no I/O and allocates only the sampled pose, so it can run on the
update thread every frame.
"""

import logging
from typing import Optional, Union

from ..assets.animation import AnimationClip, AnimationCollection
from ..core.constants import DEFAULT_FADE_DURATION, MIN_PLAYBACK_SPEED
from ..core.types import Pose
from .sampler import blend_poses, sample_clip


logger = logging.getLogger(__name__)


class AnimationPlayer:
    """
    Playback state machine over an AnimationCollection.

    Switching clips with `fade=True` blends from the previous clip, frozen at
    the time it was interrupted, into the new one over `fade_duration`
    seconds.

    Example:
        >>> player = AnimationPlayer(model.animations)
        >>> player.play('Walk')
        >>> player.update(1 / 60)
        >>> pose = player.sample()
    """

    def __init__(
        self,
        animations: AnimationCollection,
        speed: float = 1.0,
        fade_duration: float = DEFAULT_FADE_DURATION
    ):
        """
        Args:
            animations: Clips available for playback
            speed: Playback rate multiplier, clamped to a small positive minimum
            fade_duration: Cross-fade length in seconds
        """
        self.animations = animations
        self._speed = 1.0
        self.speed = speed
        self._fade_duration = 0.0
        self.fade_duration = fade_duration

        self.current_clip: Optional[AnimationClip] = None
        self.current_time = 0.0
        self.is_playing = False
        self.is_paused = False

        self._previous_clip: Optional[AnimationClip] = None
        self._previous_time = 0.0
        self._fade_elapsed = 0.0

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @property
    def speed(self) -> float:
        return self._speed

    @speed.setter
    def speed(self, value: float):
        self._speed = max(MIN_PLAYBACK_SPEED, float(value))

    @property
    def fade_duration(self) -> float:
        return self._fade_duration

    @fade_duration.setter
    def fade_duration(self, value: float):
        self._fade_duration = max(0.0, float(value))

    @property
    def is_fading(self) -> bool:
        return self._previous_clip is not None

    @property
    def fade_weight(self) -> float:
        """Weight of the current clip in the blend, 1.0 when not fading."""
        if not self.is_fading or self._fade_duration <= 0:
            return 1.0
        return min(max(self._fade_elapsed / self._fade_duration, 0.0), 1.0)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def play(self, clip: Union[str, int], fade: bool = True) -> bool:
        """
        Start a clip by name or index.

        Playing the clip that is already running is a no-op.

        Returns:
            False if the clip does not exist
        """
        target = self.animations.get(clip) if self.animations is not None else None
        if target is None:
            logger.warning(f"Animation {clip!r} not found")
            return False

        if target is self.current_clip and self.is_playing:
            return True

        if fade and self.current_clip is not None and self.is_playing and self._fade_duration > 0:
            self._previous_clip = self.current_clip
            self._previous_time = self.current_time
            self._fade_elapsed = 0.0
        else:
            self._previous_clip = None

        self.current_clip = target
        self.current_time = 0.0
        self.is_playing = True
        self.is_paused = False
        logger.debug(f"Playing '{target.name}'{' with fade' if self.is_fading else ''}")
        return True

    def pause(self):
        if self.is_playing:
            self.is_paused = True

    def resume(self):
        self.is_paused = False

    def stop(self):
        """Stop playback and rewind. The current clip stays selected."""
        self.is_playing = False
        self.is_paused = False
        self.current_time = 0.0
        self._previous_clip = None
        self._fade_elapsed = 0.0

    def update(self, dt: float):
        """
        Advance playback by `dt` seconds of wall time.

        Looping clips wrap. A one-shot clip stops on its last frame.
        """
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        if not self.is_playing or self.is_paused or self.current_clip is None:
            return

        clip = self.current_clip
        self.current_time += dt * self._speed
        if self.current_time >= clip.duration:
            if clip.is_looping and clip.duration > 0:
                self.current_time %= clip.duration
            else:
                self.current_time = clip.duration
                self.is_playing = False

        if self.is_fading:
            self._fade_elapsed += dt
            if self._fade_elapsed >= self._fade_duration:
                self._previous_clip = None

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    def sample(self) -> Pose:
        """Pose for the current state, blended while a fade is active."""
        if self.current_clip is None:
            return {}
        pose = sample_clip(self.current_clip, self.current_time)
        if self.is_fading:
            previous = sample_clip(self._previous_clip, self._previous_time)
            return blend_poses(previous, pose, self.fade_weight)
        return pose
