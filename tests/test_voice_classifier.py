from __future__ import annotations

import pytest

from mmlcodec.errors import EmptyInputError
from mmlcodec.structures import NoteEvent, Track
from mmlcodec.voice_assignment import assign_to_buckets, separate_voices
from mmlcodec.voice_classifier import classify_voices, collect_voice_stats, summarize_voice


def _line(pitch: int, count: int = 16, step: int = 480) -> Track:
    return Track(notes=tuple(NoteEvent(pitch + (i % 3), i * step, step) for i in range(count)))


def _chords(pitches: tuple[int, ...], count: int = 16, step: int = 480) -> Track:
    return Track(notes=tuple(NoteEvent(p, i * step, step) for i in range(count) for p in pitches))


def test_no_playable_notes_raises() -> None:
    with pytest.raises(EmptyInputError):
        classify_voices([])
    with pytest.raises(EmptyInputError):
        classify_voices([Track(notes=())])


def test_summarize_voice_overlap_ratio() -> None:
    stats = summarize_voice(0, [NoteEvent(60, 0, 480), NoteEvent(64, 0, 480), NoteEvent(67, 480, 480)])
    assert stats is not None
    assert stats.note_count == 3
    assert stats.overlap_ratio == pytest.approx(1 / 3)
    assert stats.max_end_tick == 960
    assert summarize_voice(1, []) is None


def test_high_monophonic_track_becomes_melody() -> None:
    roles = classify_voices([_chords((48, 52, 55)), _line(72)])
    assert [track.index for track in roles.melody_tracks] == [1]
    assert [track.index for track in roles.harmony_tracks] == [0]
    assert [track.index for track in roles.chord_pool_tracks] == [0]
    assert not roles.separated


def test_close_monophonic_track_supports_melody() -> None:
    roles = classify_voices([_line(72), _chords((48, 52, 55)), _line(69)])
    assert [track.index for track in roles.melody_tracks] == [0, 2]
    assert [track.index for track in roles.harmony_tracks] == [1]


def test_percussion_is_ignored_when_pitched_tracks_exist() -> None:
    drums = Track(notes=tuple(NoteEvent(90, i * 240, 120) for i in range(32)), percussion=True)
    roles = classify_voices([drums, _line(60)])
    assert [track.index for track in roles.melody_tracks] == [1]


def test_all_percussion_is_still_usable() -> None:
    drums = Track(notes=tuple(NoteEvent(38, i * 240, 120) for i in range(8)), percussion=True)
    roles = classify_voices([drums])
    assert roles.melody_tracks[0].is_percussion


def test_dense_single_track_is_separated_into_voices() -> None:
    roles = classify_voices([_chords((48, 55, 64), count=24)])
    assert roles.separated
    assert roles.melody_tracks[0].avg_pitch == pytest.approx(64)
    assert roles.upper_tracks is not None and roles.lower_tracks is not None
    assert roles.upper_tracks[0].avg_pitch == pytest.approx(55)
    assert roles.lower_tracks[0].avg_pitch == pytest.approx(48)


def test_sparse_chord_track_is_not_separated() -> None:
    roles = classify_voices([_chords((48, 55, 64), count=8)])
    assert not roles.separated


def test_assign_to_buckets_prefers_lowest_index_on_ties() -> None:
    buckets = assign_to_buckets([1, 2, 3], 3, lambda bucket, item: 0.0)
    assert buckets == [[1, 2, 3], [], []]


def test_separate_voices_trims_residual_overlap() -> None:
    notes = [NoteEvent(60, 0, 960), NoteEvent(62, 480, 480)]
    voices = separate_voices(notes, 1, 480)
    assert voices == [[NoteEvent(60, 0, 480), NoteEvent(62, 480, 480)]]


def test_collect_voice_stats_skips_empty_tracks() -> None:
    stats = collect_voice_stats([Track(notes=()), _line(60)])
    assert [voice.index for voice in stats] == [1]
