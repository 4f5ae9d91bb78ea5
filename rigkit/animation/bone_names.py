"""
Matching animation channel names to skeleton bones.

Clips authored against a differently named rig (namespaced exports, Mixamo
prefixes, mixed separators) still drive the skeleton when their names agree
after normalization.
"""

import logging
import re
from typing import Dict, Iterable, Mapping, Optional, Set

from ..core.types import BoneTransform, Pose


logger = logging.getLogger(__name__)

_MIXAMO_PREFIX = re.compile('mixamorig', re.IGNORECASE)
_SEPARATORS = re.compile(r'[_\- ]')


def normalize_bone_name(name: str) -> str:
    """
    Canonical form of a bone name.

    Drops everything up to the last ':' namespace separator, removes
    'mixamorig' in any case, removes '_', '-' and spaces, and lowercases.

    >>> normalize_bone_name('mixamorig:Left_Arm')
    'leftarm'
    """
    if ':' in name:
        name = name[name.rindex(':') + 1:]
    name = _MIXAMO_PREFIX.sub('', name)
    name = _SEPARATORS.sub('', name)
    return name.lower()


class BoneNameMatcher:
    """
    Resolves channel names to bone indices.

    Exact names win. Otherwise the normalized name is looked up; when several
    bones normalize to the same key the lowest index is used.
    """

    def __init__(self, bone_name_to_index: Mapping[str, int]):
        self._exact = dict(bone_name_to_index)
        self._normalized: Dict[str, int] = {}
        for name, index in sorted(self._exact.items(), key=lambda item: item[1]):
            self._normalized.setdefault(normalize_bone_name(name), index)
        self._cache: Dict[str, Optional[int]] = {}
        self._reported: Set[str] = set()

    def match(self, channel_name: str) -> Optional[int]:
        """Bone index for `channel_name`, or None."""
        if channel_name in self._cache:
            return self._cache[channel_name]
        index = self._exact.get(channel_name)
        if index is None:
            index = self._normalized.get(normalize_bone_name(channel_name))
        if index is None and channel_name not in self._reported:
            self._reported.add(channel_name)
            logger.debug(f"Channel '{channel_name}' matches no bone; ignoring it")
        self._cache[channel_name] = index
        return index

    def match_all(self, names: Iterable[str]) -> Dict[str, int]:
        """Matched subset of `names` as name -> bone index."""
        result = {}
        for name in names:
            index = self.match(name)
            if index is not None:
                result[name] = index
        return result

    def remap_pose(self, pose: Pose) -> Dict[int, BoneTransform]:
        """
        Re-key a sampled pose by bone index.

        An exact-name channel takes precedence over one that only matches
        after normalization.
        """
        result = {}
        exact_hits = set()
        for name, transform in pose.items():
            index = self.match(name)
            if index is None:
                continue
            is_exact = name in self._exact
            if index in result and (index in exact_hits or not is_exact):
                continue
            result[index] = transform
            if is_exact:
                exact_hits.add(index)
        return result
