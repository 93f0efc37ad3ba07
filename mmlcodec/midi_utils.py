from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from .constants import (
    DEFAULT_VELOCITY,
    EMITTED_VOLUME_MAX,
    EMITTED_VOLUME_MIN,
    ENCODE_BPM_MAX,
    ENCODE_BPM_MIN,
    MIDI_MAX,
    MIDI_MIN,
    SECONDS_PER_MINUTE,
)
from .structures import NoteEvent
from .utils import clamp


def sort_notes(notes: Iterable[NoteEvent]) -> List[NoteEvent]:
    return sorted(notes, key=lambda n: (n.start_tick, n.pitch))


def notes_end_tick(notes: Sequence[NoteEvent]) -> int:
    if not notes:
        return 0
    return max(note.end_tick for note in notes)


def overlap_ratio(notes: Sequence[NoteEvent]) -> float:
    """Fraction of notes starting while an earlier note of the same list still sounds."""
    if not notes:
        return 0.0
    overlap_count = 0
    active_end = -1
    for note in sort_notes(notes):
        if note.start_tick < active_end:
            overlap_count += 1
        active_end = max(active_end, note.end_tick)
    return overlap_count / max(1, len(notes))


def normalize_note(pitch: int, start_tick: int, duration_ticks: int, velocity: float) -> NoteEvent:
    return NoteEvent(
        pitch=int(clamp(int(pitch), MIDI_MIN, MIDI_MAX)),
        start_tick=max(0, int(start_tick)),
        duration_ticks=max(1, int(duration_ticks)),
        velocity=float(clamp(float(velocity), 0.0, 1.0)),
    )


def slice_notes_by_range(notes: Sequence[NoteEvent], start_tick: int, end_tick: int) -> List[NoteEvent]:
    if not notes or end_tick <= start_tick:
        return []

    sliced: List[NoteEvent] = []
    for note in notes:
        if note.end_tick <= start_tick or note.start_tick >= end_tick:
            continue
        clipped_start = max(note.start_tick, start_tick)
        clipped_end = min(note.end_tick, end_tick)
        sliced.append(
            replace(
                note,
                start_tick=clipped_start - start_tick,
                duration_ticks=max(1, clipped_end - clipped_start),
            )
        )
    return sort_notes(sliced)


def make_monophonic(notes: Sequence[NoteEvent]) -> List[NoteEvent]:
    ordered = sort_notes(notes)
    mono_notes: List[NoteEvent] = []
    for note in ordered:
        while mono_notes and mono_notes[-1].end_tick > note.start_tick:
            prev = mono_notes[-1]
            new_duration = note.start_tick - prev.start_tick
            if new_duration > 0:
                mono_notes[-1] = replace(prev, duration_ticks=new_duration)
                break
            mono_notes.pop()
        mono_notes.append(note)
    return mono_notes


def coalesce_same_pitch(notes: Sequence[NoteEvent]) -> List[NoteEvent]:
    """Resolve overlaps between notes of identical pitch.

    The earlier note is cut at the later note's start; when both start on the
    same tick the later duplicate is dropped instead.
    """
    ordered = sort_notes(notes)
    kept: List[NoteEvent] = []
    last_by_pitch: Dict[int, int] = {}
    for note in ordered:
        last_index = last_by_pitch.get(note.pitch)
        if last_index is not None:
            prev = kept[last_index]
            if prev.end_tick > note.start_tick:
                trimmed = note.start_tick - prev.start_tick
                if trimmed <= 0:
                    if note.end_tick > prev.end_tick:
                        kept[last_index] = replace(prev, duration_ticks=note.end_tick - prev.start_tick)
                    continue
                kept[last_index] = replace(prev, duration_ticks=trimmed)
        last_by_pitch[note.pitch] = len(kept)
        kept.append(note)
    return kept


def average_velocity(notes: Sequence[NoteEvent], fallback: float = DEFAULT_VELOCITY) -> float:
    if not notes:
        return fallback
    return sum(note.velocity for note in notes) / len(notes)


def map_volume(velocity_average: float) -> int:
    return int(clamp(round(8 + velocity_average * 7), EMITTED_VOLUME_MIN, EMITTED_VOLUME_MAX))


def normalize_tempo(bpm: float) -> int:
    return int(clamp(round(bpm or 120), ENCODE_BPM_MIN, ENCODE_BPM_MAX))


def seconds_to_ticks(seconds: float, bpm: float, ppq: int) -> int:
    if seconds <= 0:
        return 0
    return int(seconds * float(bpm) / SECONDS_PER_MINUTE * ppq)
