from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

from .run_encoder import runs_to_sequence, sequence_to_runs
from .structures import Run, StepSequence
from .tuning import DEFAULT_TUNING, CodecTuning
from .voice_mode import VoiceMode, short_run_threshold


def _replacement_for(run: Run, left: Optional[int], right: Optional[int]) -> Optional[int]:
    has_left = left is not None
    has_right = right is not None

    if run.value is None:
        if has_left and has_right:
            return left if left == right else None
        if has_left:
            return left
        if has_right:
            return right
        return None

    if has_left and has_right:
        return left if abs(left - run.value) <= abs(right - run.value) else right
    if has_left:
        return left
    if has_right:
        return right
    return run.value


def simplify_sequence(
    sequence: StepSequence,
    mode: VoiceMode,
    level: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> StepSequence:
    """Absorb short runs into a neighbour, one pass per level, until nothing changes."""
    if level <= 0 or len(sequence) < 3:
        return tuple(sequence)

    working = tuple(sequence)
    for pass_index in range(level):
        runs: List[Run] = sequence_to_runs(working)
        threshold = short_run_threshold(mode, pass_index, tuning)
        changed = False

        for index, run in enumerate(runs):
            if run.length > threshold:
                continue
            left = runs[index - 1].value if index > 0 else None
            right = runs[index + 1].value if index + 1 < len(runs) else None
            replacement = _replacement_for(run, left, right)
            if replacement != run.value:
                runs[index] = replace(run, value=replacement)
                changed = True

        if not changed:
            break
        working = runs_to_sequence(runs, len(working))

    return working
