from __future__ import annotations

from mmlcodec.sequencer import build_monophonic_sequence, build_step_sequence, has_pitch
from mmlcodec.structures import NoteEvent
from mmlcodec.voice_mode import VoiceMode, pick_nearest, policy_for


def test_upper_two_candidates_use_nearest_rule() -> None:
    notes = [NoteEvent(60, 0, 960), NoteEvent(64, 0, 960)]
    sequence = build_step_sequence(notes, 120, VoiceMode.UPPER)
    assert sequence == (64,) * 8


def test_upper_moves_to_nearest_previous_pitch() -> None:
    notes = [NoteEvent(63, 0, 480), NoteEvent(60, 480, 480), NoteEvent(64, 480, 480)]
    sequence = build_step_sequence(notes, 120, VoiceMode.UPPER)
    assert sequence == (63, 63, 63, 63, 64, 64, 64, 64)


def test_upper_excludes_lowest_of_three() -> None:
    policy = policy_for(VoiceMode.UPPER)
    assert list(policy.narrow([60, 64])) == [60, 64]
    assert list(policy.narrow([60, 64, 67])) == [64, 67]
    assert pick_nearest(policy.narrow([60, 64, 67]), 61) == 64
    assert pick_nearest([60, 64], 63) == 64
    assert pick_nearest([60, 64], None) == 64


def test_melody_holds_previous_pitch_without_onset() -> None:
    notes = [NoteEvent(67, 0, 960), NoteEvent(60, 0, 960), NoteEvent(62, 240, 240)]
    sequence = build_step_sequence(notes, 120, VoiceMode.MELODY)
    assert sequence == (67, 67, 62, 62, 67, 67, 67, 67)


def test_lower_holds_previous_pitch_without_onset() -> None:
    notes = [NoteEvent(48, 0, 960), NoteEvent(55, 0, 960), NoteEvent(52, 240, 240)]
    sequence = build_step_sequence(notes, 120, VoiceMode.LOWER)
    assert sequence == (48, 48, 52, 52, 48, 48, 48, 48)


def test_empty_pool_yields_single_rest() -> None:
    assert build_step_sequence([], 120, VoiceMode.MELODY) == (None,)
    assert not has_pitch(build_step_sequence([], 120, VoiceMode.MELODY))


def test_forced_end_keeps_trailing_rests() -> None:
    sequence = build_step_sequence([NoteEvent(60, 0, 480)], 120, VoiceMode.MELODY, target_end_ticks=960)
    assert sequence == (60, 60, 60, 60, None, None, None, None)
    assert build_step_sequence([], 120, VoiceMode.LOWER, target_end_ticks=480) == (None,) * 4


def test_monophonic_later_onset_cuts_earlier_note() -> None:
    notes = [NoteEvent(60, 0, 480), NoteEvent(62, 240, 480)]
    assert build_monophonic_sequence(notes, 120) == (60, 60, 62, 62, 62, 62)


def test_monophonic_same_onset_keeps_longer_note() -> None:
    notes = [NoteEvent(64, 0, 480), NoteEvent(60, 0, 960)]
    assert build_monophonic_sequence(notes, 120) == (60,) * 8


def test_monophonic_earlier_long_note_does_not_resume() -> None:
    notes = [NoteEvent(60, 0, 960), NoteEvent(67, 240, 240)]
    assert build_monophonic_sequence(notes, 120) == (60, 60, 67, 67, None, None, None, None)
