from __future__ import annotations

from typing import List, Optional, Sequence

from .midi_utils import notes_end_tick
from .structures import NoteEvent, StepSequence
from .utils import ceil_div, clamp
from .voice_mode import VoiceMode, policy_for


def total_steps_for(notes: Sequence[NoteEvent], step_ticks: int, target_end_ticks: int = 0) -> int:
    max_end = max(notes_end_tick(notes), target_end_ticks or 0)
    return max(1, ceil_div(max_end, step_ticks))


def build_step_sequence(
    notes: Sequence[NoteEvent],
    step_ticks: int,
    mode: VoiceMode,
    target_end_ticks: int = 0,
) -> StepSequence:
    step_ticks = max(1, int(step_ticks))
    total_steps = total_steps_for(notes, step_ticks, target_end_ticks)
    if not notes:
        return (None,) * total_steps

    active: List[List[int]] = [[] for _ in range(total_steps)]
    onsets: List[List[int]] = [[] for _ in range(total_steps)]
    for note in notes:
        start = int(clamp(note.start_tick // step_ticks, 0, total_steps - 1))
        end = int(clamp(max(start + 1, ceil_div(note.end_tick, step_ticks)), start + 1, total_steps))
        onsets[start].append(note.pitch)
        for step in range(start, end):
            active[step].append(note.pitch)

    policy = policy_for(mode)
    sequence: List[Optional[int]] = [None] * total_steps
    previous: Optional[int] = None

    for index in range(total_steps):
        if not active[index]:
            continue

        active_sorted = sorted(set(active[index]))
        onset_sorted = sorted(set(onsets[index]))
        has_onset = bool(onset_sorted)
        candidates = policy.narrow(onset_sorted if has_onset else active_sorted)

        hold_scope = candidates if policy.hold_within_candidates else active_sorted
        if not has_onset and previous is not None and previous in hold_scope:
            picked = previous
        else:
            picked = policy.pick(candidates, previous)

        sequence[index] = picked
        previous = picked

    return tuple(sequence)


def build_monophonic_sequence(
    notes: Sequence[NoteEvent],
    step_ticks: int,
    target_end_ticks: int = 0,
) -> StepSequence:
    """Place notes directly as non-overlapping runs.

    A later onset cuts the sounding note short. Two notes starting on the same
    step keep the longer one; the shorter only fills steps the longer leaves free.
    """
    step_ticks = max(1, int(step_ticks))
    total_steps = total_steps_for(notes, step_ticks, target_end_ticks)
    sequence: List[Optional[int]] = [None] * total_steps
    if not notes:
        return tuple(sequence)

    owner_onset: List[int] = [-1] * total_steps
    owner_duration: List[int] = [0] * total_steps

    for note in sorted(notes, key=lambda n: (n.start_tick, -n.duration_ticks, -n.pitch)):
        start = int(clamp(round(note.start_tick / step_ticks), 0, total_steps - 1))
        end = int(clamp(max(start + 1, round(note.end_tick / step_ticks)), start + 1, total_steps))

        if sequence[start] is not None and owner_onset[start] == start and owner_duration[start] >= note.duration_ticks:
            for step in range(start, end):
                if sequence[step] is None:
                    sequence[step] = note.pitch
                    owner_onset[step] = start
                    owner_duration[step] = note.duration_ticks
            continue

        cut_owner = owner_onset[start] if sequence[start] is not None else -1
        for step in range(start, end):
            sequence[step] = note.pitch
            owner_onset[step] = start
            owner_duration[step] = note.duration_ticks

        step = end
        while cut_owner >= 0 and step < total_steps and owner_onset[step] == cut_owner:
            sequence[step] = None
            owner_onset[step] = -1
            owner_duration[step] = 0
            step += 1

    return tuple(sequence)


def has_pitch(sequence: StepSequence) -> bool:
    return any(value is not None for value in sequence)
