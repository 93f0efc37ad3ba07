from __future__ import annotations

import pytest

from mmlcodec.ensemble import (
    assign_slots,
    build_slots,
    choose_split_boundary,
    count_active_at,
    estimate_losses,
    pitch_bands,
    plan_parallel,
    plan_sequential,
    render_segments,
    slice_costs,
    split_tick_ranges,
)
from mmlcodec.pools import PartPools
from mmlcodec.structures import NoteEvent
from mmlcodec.voice_classifier import summarize_voice


def _line(pitch: int, count: int = 8) -> list[NoteEvent]:
    return [NoteEvent(pitch, i * 480, 240) for i in range(count)]


def test_slice_costs_weigh_onsets_releases_and_sustain() -> None:
    costs = slice_costs([NoteEvent(60, 0, 960)], 1440, 480)
    assert costs == pytest.approx([4.2, 2.0, 0.0])


def test_boundary_prefers_silent_tick_in_window() -> None:
    notes = [NoteEvent(60, 0, 1200), NoteEvent(64, 1440, 1440)]
    boundary = choose_split_boundary(960, 240, 2400, notes, 480)
    assert boundary == 1200
    assert count_active_at(notes, boundary) == 0


def test_boundary_collapses_when_range_is_empty() -> None:
    assert choose_split_boundary(500, 700, 700, [], 480) == 700


def test_sequential_boundaries_avoid_sounding_notes() -> None:
    notes = [NoteEvent(60, 0, 900), NoteEvent(62, 1000, 900), NoteEvent(64, 2000, 880)]
    ranges = split_tick_ranges(2880, 3, notes, 480)

    assert ranges[0][0] == 0
    assert ranges[-1][1] == 2880
    for (_, end), (start, _) in zip(ranges, ranges[1:]):
        assert end == start
        assert count_active_at(notes, start) == 0


def test_sustained_note_split_keeps_minimum_segments() -> None:
    notes = [NoteEvent(60, 0, 2880)]
    ranges = split_tick_ranges(2880, 3, notes, 480)

    assert len(ranges) == 3
    assert ranges[0][0] == 0
    assert ranges[-1][1] == 2880
    for start, end in ranges:
        assert end - start >= 2880 // 12


def test_single_range_covers_everything() -> None:
    assert split_tick_ranges(1000, 1, [], 480) == [(0, 1000)]


def test_plan_sequential_slices_every_pool() -> None:
    melody = tuple(_line(72))
    harmony = tuple(_line(48))
    segments = plan_sequential(PartPools(melody=melody, upper=harmony, lower=harmony), 2, 480)

    assert len(segments) == 2
    assert segments[0].start_tick == 0
    assert segments[1].end_tick == 3600
    assert segments[0].end_tick == segments[1].start_tick
    for segment in segments:
        assert segment.melody_notes
        assert all(note.start_tick < segment.length_ticks for note in segment.melody_notes)


def test_pitch_bands_backfill_empty_bands() -> None:
    high = summarize_voice(0, _line(72))
    low = summarize_voice(1, _line(48))
    assert high is not None and low is not None

    assert pitch_bands([high]) == [[high], [high], [high]]
    assert pitch_bands([high, low]) == [[high], [low], [low]]


def test_build_slots_orders_by_pitch() -> None:
    notes = _line(48) + _line(72) + _line(60)
    slots = build_slots(notes, 3, 480)
    assert [round(slot.avg_pitch) for slot in slots] == [72, 60, 48]


def test_plan_parallel_assigns_one_voice_per_role() -> None:
    pitches = [84, 76, 67, 60, 52, 40]
    notes = [note for pitch in pitches for note in _line(pitch)]
    segments = plan_parallel(notes, 2, 120, 480)

    assert len(segments) == 2
    assert {n.pitch for n in segments[0].melody_notes} == {84}
    assert {n.pitch for n in segments[1].melody_notes} == {76}
    assert {n.pitch for n in segments[0].upper_notes} == {67}
    assert {n.pitch for n in segments[1].upper_notes} == {60}
    assert {n.pitch for n in segments[0].lower_notes} == {52}
    assert {n.pitch for n in segments[1].lower_notes} == {40}
    assert all(segment.start_tick == 0 and segment.end_tick == 3600 for segment in segments)


def test_plan_parallel_sparse_players_get_empty_parts() -> None:
    segments = plan_parallel(_line(72), 2, 120, 480)
    assert segments[0].melody_notes
    assert segments[1].melody_notes == ()


def test_render_segments_keeps_segment_length() -> None:
    segments = plan_parallel(_line(72) + _line(48), 1, 120, 480)
    rendered = render_segments(segments, 120, 480, compress=False)
    assert len(rendered) == 1
    assert rendered[0].melody.retained_end_ticks == 3600
    assert rendered[0].melody.text.startswith("t120")


def test_dense_lower_slot_takes_chord1_when_chord2_would_lose_notes() -> None:
    total_ticks = 300 * 240
    melody = summarize_voice(0, [NoteEvent(84, index * 18000, 480) for index in range(4)])
    sparse = summarize_voice(1, [NoteEvent(70, index * 18000, 480) for index in range(4)])
    # roughly 600 characters: fits chord1 (800) but not chord2 (500)
    dense = summarize_voice(2, [NoteEvent(62 + (index % 2) * 2, index * 240, 240) for index in range(300)])
    assert melody is not None and sparse is not None and dense is not None

    chord1_loss, chord2_loss = estimate_losses(dense, 120, 480, total_ticks)
    assert chord1_loss == 0
    assert chord2_loss > 0
    assert estimate_losses(sparse, 120, 480, total_ticks) == (0, 0)

    bands = assign_slots([melody, sparse, dense], 1, 120, 480, total_ticks)
    assert bands == [[melody], [dense], [sparse]]
