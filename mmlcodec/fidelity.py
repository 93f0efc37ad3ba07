from __future__ import annotations

import math
from typing import List, Optional

from .run_encoder import sequence_to_runs
from .structures import StepSequence
from .tuning import DEFAULT_TUNING, CodecTuning
from .utils import clamp


def score_pitch_match(
    reference: Optional[int],
    candidate: Optional[int],
    tuning: CodecTuning = DEFAULT_TUNING,
) -> float:
    if reference is None and candidate is None:
        return tuning.both_rest_score
    if reference is None or candidate is None:
        return tuning.rest_mismatch_score

    distance = abs(reference - candidate)
    if distance == 0:
        return tuning.exact_match_score
    if distance == 1:
        return tuning.semitone_score
    if distance == 2:
        return tuning.whole_tone_score
    if distance <= tuning.third_semitones:
        return tuning.third_score
    if distance <= tuning.fifth_semitones:
        return tuning.fifth_score
    return tuning.far_score


def score_leap(
    reference: int,
    candidate: int,
    prev_reference: int,
    prev_candidate: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> float:
    move_distance = abs((reference - prev_reference) - (candidate - prev_candidate))
    if move_distance == 0:
        return tuning.leap_identical_bonus
    if move_distance <= tuning.leap_close_semitones:
        return tuning.leap_close_bonus
    if move_distance >= tuning.leap_far_semitones:
        return -tuning.leap_far_penalty
    return 0.0


def _change_points(
    reference: StepSequence,
    reference_step_ticks: int,
    candidate: StepSequence,
    candidate_step_ticks: int,
    length: int,
) -> List[int]:
    # reference step i samples candidate step floor(i * R / C); candidate run
    # starting at s first becomes visible at reference step ceil(s * C / R)
    points = {0}
    for run in sequence_to_runs(reference[:length]):
        points.add(run.start)
    for run in sequence_to_runs(candidate):
        if run.start == 0:
            continue
        index = -(-run.start * candidate_step_ticks // reference_step_ticks)
        if index < length:
            points.add(index)
    return sorted(points)


def evaluate_fidelity(
    reference: StepSequence,
    reference_step_ticks: int,
    candidate: StepSequence,
    candidate_step_ticks: int,
    limit_steps: Optional[int] = None,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> float:
    """Mean per-reference-step similarity of ``candidate`` to ``reference``.

    Every reference step samples the candidate at the same tick and scores
    pitch proximity, agreement of the change/hold pattern, and agreement of
    the melodic leap when both sides move. Steps inside a stretch where
    neither sequence changes score identically, so the sum is taken per
    stretch rather than per step.
    """
    if not reference or not candidate:
        return -math.inf

    length = len(reference) if limit_steps is None else int(clamp(limit_steps, 1, len(reference)))
    reference_step_ticks = max(1, reference_step_ticks)
    candidate_step_ticks = max(1, candidate_step_ticks)
    last_candidate = len(candidate) - 1

    def sample(index: int) -> Optional[int]:
        candidate_index = index * reference_step_ticks // candidate_step_ticks
        return candidate[min(candidate_index, last_candidate)]

    points = _change_points(reference, reference_step_ticks, candidate, candidate_step_ticks, length)
    points.append(length)

    total = 0.0
    prev_reference: Optional[int] = None
    prev_candidate: Optional[int] = None
    for segment_start, segment_end in zip(points, points[1:]):
        reference_pitch = reference[segment_start]
        candidate_pitch = sample(segment_start)
        match = score_pitch_match(reference_pitch, candidate_pitch, tuning)

        reference_changed = reference_pitch != prev_reference
        candidate_changed = candidate_pitch != prev_candidate
        total += match
        if reference_changed == candidate_changed:
            total += tuning.transition_match_bonus
        if (
            reference_changed
            and candidate_changed
            and None not in (reference_pitch, candidate_pitch, prev_reference, prev_candidate)
        ):
            total += score_leap(reference_pitch, candidate_pitch, prev_reference, prev_candidate, tuning)

        # the rest of the stretch holds on both sides
        total += (segment_end - segment_start - 1) * (match + tuning.transition_match_bonus)
        prev_reference = reference_pitch
        prev_candidate = candidate_pitch

    return total / length


def early_window_steps(
    reference_length: int,
    reference_steps_per_quarter: int,
    tuning: CodecTuning = DEFAULT_TUNING,
) -> int:
    steps_per_quarter = max(1, reference_steps_per_quarter)
    total_quarters = reference_length / steps_per_quarter
    quarters = clamp(
        total_quarters * tuning.early_window_fraction,
        tuning.early_window_min_quarters,
        tuning.early_window_max_quarters,
    )
    quarters = min(quarters, total_quarters)
    return max(1, int(math.ceil(quarters * steps_per_quarter)))
