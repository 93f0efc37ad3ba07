from __future__ import annotations

import pytest

from mmlcodec.midi_utils import (
    coalesce_same_pitch,
    make_monophonic,
    map_volume,
    normalize_note,
    normalize_tempo,
    overlap_ratio,
    seconds_to_ticks,
    slice_notes_by_range,
)
from mmlcodec.structures import NoteEvent


def test_overlap_ratio() -> None:
    assert overlap_ratio([]) == 0.0
    assert overlap_ratio([NoteEvent(60, 0, 480), NoteEvent(62, 480, 480)]) == 0.0
    assert overlap_ratio([NoteEvent(60, 0, 960), NoteEvent(62, 480, 480)]) == pytest.approx(0.5)


def test_normalize_note_clamps_values() -> None:
    note = normalize_note(200, -5, 0, 1.5)
    assert note == NoteEvent(127, 0, 1, 1.0)


def test_slice_notes_clips_and_rebases() -> None:
    notes = [NoteEvent(60, 0, 960), NoteEvent(62, 960, 480), NoteEvent(64, 1440, 480)]
    sliced = slice_notes_by_range(notes, 480, 1200)
    assert sliced == [NoteEvent(60, 0, 480), NoteEvent(62, 480, 240)]
    assert slice_notes_by_range(notes, 500, 500) == []


def test_make_monophonic_shortens_and_drops() -> None:
    notes = [NoteEvent(60, 0, 960), NoteEvent(64, 0, 480), NoteEvent(67, 240, 480)]
    assert make_monophonic(notes) == [NoteEvent(64, 0, 240), NoteEvent(67, 240, 480)]


def test_coalesce_same_pitch_trims_earlier_note() -> None:
    notes = [NoteEvent(60, 0, 960), NoteEvent(60, 480, 480)]
    assert coalesce_same_pitch(notes) == [NoteEvent(60, 0, 480), NoteEvent(60, 480, 480)]


def test_coalesce_same_pitch_drops_same_start_duplicate() -> None:
    notes = [NoteEvent(60, 0, 480), NoteEvent(60, 0, 960, velocity=0.5)]
    assert coalesce_same_pitch(notes) == [NoteEvent(60, 0, 960)]


def test_map_volume_range() -> None:
    assert map_volume(0.0) == 8
    assert map_volume(0.7) == 13
    assert map_volume(1.0) == 15


def test_normalize_tempo() -> None:
    assert normalize_tempo(500) == 300
    assert normalize_tempo(10) == 30
    assert normalize_tempo(0) == 120
    assert normalize_tempo(127.6) == 128


def test_seconds_to_ticks() -> None:
    assert seconds_to_ticks(1.0, 120, 480) == 960
    assert seconds_to_ticks(-1.0, 120, 480) == 0
