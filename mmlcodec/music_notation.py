from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Tuple

from .constants import (
    DURATION_DENOMINATORS,
    LOWEST_ENCODABLE_PITCH,
    MIDI_MAX,
    NOTE_NAMES,
    OCTAVE_MAX,
    OCTAVE_MIN,
    QUARTERS_PER_WHOLE,
)
from .utils import clamp

# Beyond this many multiples of the longest token, lengths are peeled off greedily.
EXACT_SPLIT_SPAN = 4


@dataclass(frozen=True)
class PitchInfo:
    name: str
    octave: int


@dataclass(frozen=True)
class DurationChoice:
    steps: int
    suffix: str


def encodable_pitch(pitch: int) -> int:
    pitch = int(clamp(pitch, 0, MIDI_MAX))
    while pitch < LOWEST_ENCODABLE_PITCH:
        pitch += 12
    return pitch


def midi_to_pitch_info(pitch: int) -> PitchInfo:
    pitch = encodable_pitch(pitch)
    octave = int(clamp(pitch // 12 - 1, OCTAVE_MIN, OCTAVE_MAX))
    return PitchInfo(name=NOTE_NAMES[pitch % 12], octave=octave)


def base_length_for(steps_per_quarter: int) -> int:
    return QUARTERS_PER_WHOLE * steps_per_quarter


@lru_cache(maxsize=64)
def build_duration_choices(base_length: int) -> Tuple[DurationChoice, ...]:
    """Every length (in steps) one token can express under ``l<base_length>``.

    Plain and single-dotted fractions of a whole note are kept when they land
    on whole steps; where two spellings reach the same length the shorter one
    wins. One step is always reachable through the bare default length.
    """
    by_steps: Dict[int, DurationChoice] = {}

    def offer(steps: int, suffix: str) -> None:
        current = by_steps.get(steps)
        if current is None or len(suffix) < len(current.suffix):
            by_steps[steps] = DurationChoice(steps=steps, suffix=suffix)

    for denominator in DURATION_DENOMINATORS:
        if base_length % denominator:
            continue
        steps = base_length // denominator
        if steps < 1:
            continue
        offer(steps, "" if denominator == base_length else str(denominator))
        if steps % 2 == 0:
            offer(steps + steps // 2, f"{denominator}.")

    if 1 not in by_steps:
        by_steps[1] = DurationChoice(steps=1, suffix="")

    return tuple(sorted(by_steps.values(), key=lambda c: -c.steps))


@lru_cache(maxsize=64)
def _split_table(choices: Tuple[DurationChoice, ...]) -> Tuple[Tuple[DurationChoice, ...], ...]:
    # entry n holds the fewest-token (then fewest-character) spelling of n steps
    limit = choices[0].steps * (EXACT_SPLIT_SPAN + 1)
    best: List[Tuple[int, int, Tuple[DurationChoice, ...]]] = [(0, 0, ())]
    for total in range(1, limit + 1):
        candidate = None
        for choice in choices:
            if choice.steps > total:
                continue
            count, chars, parts = best[total - choice.steps]
            option = (count + 1, chars + len(choice.suffix), parts + (choice,))
            if candidate is None or option[:2] < candidate[:2]:
                candidate = option
        best.append(candidate)
    return tuple(entry[2] for entry in best)


def split_duration(steps: int, choices: Tuple[DurationChoice, ...]) -> List[DurationChoice]:
    """Factor a run length into the fewest tokens, longest first."""
    parts: List[DurationChoice] = []
    if steps <= 0:
        return parts

    longest = choices[0]
    remaining = steps
    while remaining > longest.steps * EXACT_SPLIT_SPAN:
        parts.append(longest)
        remaining -= longest.steps

    parts.extend(_split_table(choices)[remaining])
    return sorted(parts, key=lambda c: -c.steps)


def duration_in_beats(denominator: int, dots: int) -> float:
    safe_denominator = denominator if denominator > 0 else 4
    base = QUARTERS_PER_WHOLE / safe_denominator
    factor = 1.0
    add = 0.5
    for _ in range(dots):
        factor += add
        add /= 2
    return base * factor
