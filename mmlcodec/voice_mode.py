from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from .constants import PART_CHORD1, PART_CHORD2, PART_MELODY
from .tuning import CodecTuning


class VoiceMode(str, Enum):
    MELODY = "melody"
    UPPER = "upper"
    LOWER = "lower"


PitchPicker = Callable[[Sequence[int], Optional[int]], int]


def pick_highest(candidates: Sequence[int], previous: Optional[int]) -> int:
    return candidates[-1]


def pick_lowest(candidates: Sequence[int], previous: Optional[int]) -> int:
    return candidates[0]


def pick_nearest(candidates: Sequence[int], previous: Optional[int]) -> int:
    if previous is None:
        return candidates[-1]
    return min(candidates, key=lambda pitch: abs(pitch - previous))


@dataclass(frozen=True)
class VoicePolicy:
    """Per-step pitch selection rule of one voice role.

    ``candidates`` passed to ``pick`` are sorted ascending and de-duplicated.
    When ``exclude_lowest_from`` is set, the lowest candidate is dropped once
    at least that many candidates sound. ``hold_within_candidates`` decides
    whether a held pitch must survive the exclusion to be continued.
    """

    pick: PitchPicker
    exclude_lowest_from: Optional[int]
    hold_within_candidates: bool

    def narrow(self, source: Sequence[int]) -> Sequence[int]:
        if self.exclude_lowest_from is not None and len(source) >= self.exclude_lowest_from:
            return source[1:]
        return source


POLICIES = {
    VoiceMode.MELODY: VoicePolicy(pick=pick_highest, exclude_lowest_from=None, hold_within_candidates=False),
    VoiceMode.LOWER: VoicePolicy(pick=pick_lowest, exclude_lowest_from=None, hold_within_candidates=False),
    VoiceMode.UPPER: VoicePolicy(pick=pick_nearest, exclude_lowest_from=3, hold_within_candidates=True),
}

PART_MODES = {
    PART_MELODY: VoiceMode.MELODY,
    PART_CHORD1: VoiceMode.UPPER,
    PART_CHORD2: VoiceMode.LOWER,
}


def policy_for(mode: VoiceMode) -> VoicePolicy:
    return POLICIES[VoiceMode(mode)]


def short_run_threshold(mode: VoiceMode, pass_index: int, tuning: CodecTuning) -> int:
    base = tuning.melody_short_run_base if mode == VoiceMode.MELODY else tuning.harmony_short_run_base
    return base + pass_index


def candidate_resolutions(mode: VoiceMode, compress: bool, tuning: CodecTuning) -> Sequence[int]:
    if mode == VoiceMode.MELODY:
        return tuning.melody_resolutions if compress else (tuning.melody_fixed_resolution,)
    return tuning.harmony_resolutions if compress else (tuning.harmony_fixed_resolution,)
