from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .constants import DEFAULT_OCTAVE, OCTAVE_MAX, OCTAVE_MIN, QUARTERS_PER_WHOLE
from .music_notation import build_duration_choices, midi_to_pitch_info, split_duration
from .structures import EncodedPart, Run, StepSequence
from .utils import clamp

PITCH_LETTERS = "cdefgab"


def sequence_to_runs(sequence: StepSequence) -> List[Run]:
    if not sequence:
        return []

    runs: List[Run] = []
    current = sequence[0]
    start = 0
    for index in range(1, len(sequence)):
        if sequence[index] != current:
            runs.append(Run(value=current, start=start, end=index))
            current = sequence[index]
            start = index
    runs.append(Run(value=current, start=start, end=len(sequence)))
    return runs


def runs_to_sequence(runs: Sequence[Run], total_length: int) -> StepSequence:
    sequence: List[Optional[int]] = [None] * total_length
    for run in runs:
        for index in range(run.start, min(run.end, total_length)):
            sequence[index] = run.value
    return tuple(sequence)


def normalize_runs(runs: Sequence[Run], base_length: int, keep_trailing_rests: bool = False) -> List[Run]:
    """Drop trailing rests unless the part must keep its full length; never return nothing."""
    normalized = list(runs)
    if not keep_trailing_rests:
        while normalized and normalized[-1].value is None:
            normalized.pop()
    if not normalized:
        return [Run(value=None, start=0, end=base_length)]
    return normalized


def header_tokens(
    runs: Sequence[Run],
    base_length: int,
    tempo: int,
    volume: int,
    include_tempo: bool,
) -> Tuple[List[str], int]:
    tokens: List[str] = []
    if include_tempo:
        tokens.append(f"t{tempo}")
    tokens.append(f"v{volume}")

    first_pitch = next((run.value for run in runs if run.value is not None), None)
    octave = midi_to_pitch_info(first_pitch).octave if first_pitch is not None else DEFAULT_OCTAVE
    octave = int(clamp(octave, OCTAVE_MIN, OCTAVE_MAX))
    tokens.append(f"o{octave}")
    tokens.append(f"l{base_length}")
    return tokens, octave


def encode_runs(
    runs: Sequence[Run],
    base_length: int,
    tempo: int,
    volume: int,
    include_tempo: bool,
) -> Tuple[List[str], List[int]]:
    choices = build_duration_choices(base_length)
    tokens, current_octave = header_tokens(runs, base_length, tempo, volume, include_tempo)
    token_steps = [0] * len(tokens)

    for run in runs:
        parts = split_duration(run.length, choices)
        if run.value is None:
            for part in parts:
                tokens.append(f"r{part.suffix}")
                token_steps.append(part.steps)
            continue

        info = midi_to_pitch_info(run.value)
        shift = ""
        while current_octave < info.octave:
            shift += ">"
            current_octave += 1
        while current_octave > info.octave:
            shift += "<"
            current_octave -= 1

        first = parts[0]
        tokens.append(f"{shift}{info.name}{first.suffix}")
        token_steps.append(first.steps)
        for part in parts[1:]:
            tokens.append(f"&{info.name}{part.suffix}")
            token_steps.append(part.steps)

    return tokens, token_steps


def is_note_onset(token: str) -> bool:
    stripped = token.lstrip("<>")
    return bool(stripped) and stripped[0] in PITCH_LETTERS


def count_note_onsets(tokens: Sequence[str]) -> int:
    return sum(1 for token in tokens if is_note_onset(token))


def truncate_tokens(tokens: Sequence[str], limit: int) -> int:
    if limit <= 0:
        return 0
    used = 0
    for index, token in enumerate(tokens):
        if used + len(token) > limit:
            return index
        used += len(token)
    return len(tokens)


def build_encoded_part(
    tokens: Sequence[str],
    token_steps: Sequence[int],
    step_ticks: int,
    steps_per_quarter: int,
    limit: Optional[int] = None,
    simplify_level: int = 0,
    fidelity: float = 0.0,
) -> EncodedPart:
    keep = len(tokens) if limit is None else truncate_tokens(tokens, limit)
    kept_tokens = tuple(tokens[:keep])
    kept_steps = tuple(token_steps[:keep])
    return EncodedPart(
        text="".join(kept_tokens),
        tokens=kept_tokens,
        token_steps=kept_steps,
        note_event_count=count_note_onsets(kept_tokens),
        retained_end_ticks=sum(kept_steps) * step_ticks,
        step_ticks=step_ticks,
        steps_per_quarter=steps_per_quarter,
        simplify_level=simplify_level,
        fidelity=fidelity,
        truncated=keep < len(tokens),
    )


def clip_part_to_ticks(part: EncodedPart, max_ticks: int) -> EncodedPart:
    """Cut a part at the last token boundary that does not pass ``max_ticks``."""
    if part.retained_end_ticks <= max_ticks:
        return part

    elapsed = 0
    keep = 0
    for steps in part.token_steps:
        ticks = steps * part.step_ticks
        if elapsed + ticks > max_ticks:
            break
        elapsed += ticks
        keep += 1

    kept_tokens = part.tokens[:keep]
    return replace(
        part,
        text="".join(kept_tokens),
        tokens=kept_tokens,
        token_steps=part.token_steps[:keep],
        note_event_count=count_note_onsets(kept_tokens),
        retained_end_ticks=elapsed,
        truncated=True,
    )


def fallback_part(tempo: int, volume: int, include_tempo: bool, limit: int, ppq: int) -> EncodedPart:
    tokens = ([f"t{tempo}"] if include_tempo else []) + [f"v{volume}", f"o{DEFAULT_OCTAVE}", "l4", "r1"]
    token_steps = [0] * (len(tokens) - 1) + [QUARTERS_PER_WHOLE]
    return build_encoded_part(tokens, token_steps, step_ticks=max(1, ppq), steps_per_quarter=1, limit=limit)
